from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .config import load_config
from .digest import build_scene_digest
from .model import ObjectKind
from .session import Session
from .suggest import MIN_PROMPT_LENGTH, PlaceholderSuggestionService, SuggestionResult, SuggestionService


class SearchRequest(BaseModel):
    term: str = ""


class SelectRequest(BaseModel):
    pallet_id: Optional[str] = None


class AddObjectRequest(BaseModel):
    type: ObjectKind = ObjectKind.BOX
    color: Optional[str] = None
    position: Optional[List[float]] = Field(default=None, min_length=3, max_length=3)
    size: Optional[List[float]] = Field(default=None, min_length=3, max_length=3)


class SuggestRequest(BaseModel):
    prompt: str = Field(min_length=MIN_PROMPT_LENGTH)


class AcceptSuggestionRequest(BaseModel):
    suggestion: str


def create_app(session: Session | None = None, suggestions: SuggestionService | None = None) -> FastAPI:
    """One in-memory session per app; sync endpoints run in a threadpool so access is locked."""
    state = {"session": session or Session(load_config())}
    service = suggestions or PlaceholderSuggestionService()
    lock = threading.Lock()

    app = FastAPI(title="WarehouseViz API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _sess() -> Session:
        return state["session"]

    def _scene_payload(s: Session) -> Dict[str, Any]:
        return {
            "objects": [o.to_dict() for o in s.objects],
            "selected_id": s.selected_id,
            "can_animate": s.can_animate(),
            "issues": list(s.layout_issues),
        }

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "healthy"}

    @app.get("/api/warehouse")
    def get_warehouse() -> Dict[str, Any]:
        with lock:
            s = _sess()
            return {**s.warehouse.to_dict(), "bin_count": s.warehouse.bin_count(),
                    "full_count": len(s.warehouse.full_bins())}

    @app.post("/api/warehouse/regenerate")
    def regenerate() -> Dict[str, Any]:
        with lock:
            s = _sess()
            s.regenerate()
            return _scene_payload(s)

    @app.get("/api/scene")
    def get_scene() -> Dict[str, Any]:
        with lock:
            return _scene_payload(_sess())

    @app.get("/api/scene/digest")
    def get_scene_digest() -> Dict[str, Any]:
        with lock:
            digest = build_scene_digest(_sess().objects)
            return {"summary": digest["summary"], "sha256": digest["sha256"]}

    @app.post("/api/scene/clear")
    def clear_scene() -> Dict[str, Any]:
        with lock:
            s = _sess()
            s.clear_scene()
            return _scene_payload(s)

    @app.post("/api/scene/objects")
    def add_object(req: AddObjectRequest) -> Dict[str, Any]:
        with lock:
            obj = _sess().add_object(
                kind=req.type,
                color=req.color,
                position=tuple(req.position) if req.position else None,
                size=tuple(req.size) if req.size else None,
            )
            return obj.to_dict()

    @app.post("/api/animations")
    def start_animation() -> Dict[str, Any]:
        with lock:
            s = _sess()
            anim = s.start_animation()
            if anim is None:
                return {"started": False, "reason": "no pallet available to animate", "animation": None}
            return {"started": True, "animation": anim.to_dict()}

    @app.get("/api/animations")
    def list_animations() -> Dict[str, Any]:
        with lock:
            s = _sess()
            positions = s.tick()
            return {
                "animations": [
                    {**a.to_dict(), "position": list(positions[a.pallet_id]),
                     "finished": s.driver.is_finished(a.id)}
                    for a in s.driver.active_states()
                ],
            }

    @app.get("/api/animations/{anim_id}")
    def get_animation(anim_id: str) -> Dict[str, Any]:
        with lock:
            s = _sess()
            positions = s.tick()
            entry = s.driver.get(anim_id)
            if entry is None:
                raise HTTPException(status_code=404, detail="animation not found")
            return {**entry.state.to_dict(), "position": list(positions[entry.state.pallet_id]),
                    "finished": s.driver.is_finished(anim_id)}

    @app.get("/api/pallets/{pallet_id}")
    def pallet_details(pallet_id: str) -> Dict[str, Any]:
        with lock:
            details = _sess().pallet_details(pallet_id)
        if details is None:
            raise HTTPException(status_code=404, detail="pallet not found")
        return details

    @app.post("/api/search")
    def search(req: SearchRequest) -> Dict[str, Any]:
        with lock:
            return {"selected_id": _sess().search(req.term)}

    @app.post("/api/select")
    def select(req: SelectRequest) -> Dict[str, Any]:
        with lock:
            try:
                return {"selected_id": _sess().select(req.pallet_id)}
            except KeyError:
                raise HTTPException(status_code=404, detail="pallet not found")

    @app.post("/api/suggestions")
    def suggest(req: SuggestRequest) -> SuggestionResult:
        # outside the lock; suggestions never touch the scene
        return _sess().suggest(service, req.prompt)

    @app.post("/api/suggestions/accept")
    def accept_suggestion(req: AcceptSuggestionRequest) -> Dict[str, Any]:
        with lock:
            obj = _sess().accept_suggestion(req.suggestion)
            return obj.to_dict()

    return app


app = create_app()
