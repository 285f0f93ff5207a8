from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .config import AppConfig
from .driver import AnimationDriver, monotonic_ms
from .generator import generate_warehouse, new_id
from .layout import compile_layout, is_longitudinal_belt, is_perpendicular_belt
from .model import AnimationState, Bin, ObjectKind, SceneObject, Vec3, Warehouse
from .motion import has_eligible_pallet, plan_animation
from .search import find_pallet
from .suggest import SuggestionResult, SuggestionService, request_suggestions


class Session:
    """Warehouse, compiled scene, selection and running animations for one viewer.

    All mutation happens on the caller's thread. regenerate() and clear_scene()
    drop every running animation immediately.
    """

    def __init__(self, cfg: AppConfig | None = None, rng: np.random.Generator | None = None,
                 clock: Callable[[], float] = monotonic_ms, verbose: bool = False):
        self.cfg = cfg or AppConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.cfg.seed)
        self.driver = AnimationDriver(clock=clock, grace_ms=self.cfg.motion.grace_ms)
        self.verbose = verbose
        self.layout_issues: List[str] = []
        self.selected_id: Optional[str] = None
        self.search_term = ""
        self.warehouse = self._generate()
        self.objects = self._compile()

    # ---- Scene lifecycle ----
    def _generate(self) -> Warehouse:
        g = self.cfg.generator
        return generate_warehouse(g.racks, g.columns_per_rack, g.layers_per_column, g.bins_per_layer,
                                  rng=self.rng, fill_probability=g.fill_probability,
                                  item_catalog=g.item_catalog)

    def _compile(self) -> List[SceneObject]:
        issues: List[str] = []
        objects = compile_layout(self.warehouse, self.cfg.layout, issues=issues)
        self.layout_issues = issues
        if self.verbose:
            for msg in issues:
                print(f"[layout] {msg}")
        return objects

    def regenerate(self) -> Warehouse:
        self.driver.clear()
        self.selected_id = None
        self.search_term = ""
        self.warehouse = self._generate()
        self.objects = self._compile()
        return self.warehouse

    def clear_scene(self) -> None:
        self.driver.clear()
        self.objects = []
        self.selected_id = None
        self.search_term = ""

    def add_object(self, kind: ObjectKind = ObjectKind.BOX, color: str | None = None,
                   position: Vec3 | None = None, size: Vec3 | None = None) -> SceneObject:
        if position is None:
            position = (float(self.rng.uniform(-5.0, 5.0)), 0.5, float(self.rng.uniform(-5.0, 5.0)))
        obj = SceneObject(
            id=f"object-{new_id(self.rng)}",
            kind=ObjectKind(kind),
            position=position,
            color=color or self.cfg.viewer.default_object_color,
            size=size or (1.0, 1.0, 1.0),
        )
        self.objects = self.objects + [obj]
        return obj

    # ---- Animation ----
    def _has_conveyors(self) -> bool:
        return (any(is_longitudinal_belt(o.id) for o in self.objects)
                and any(is_perpendicular_belt(o.id) for o in self.objects))

    def can_animate(self) -> bool:
        self.driver.retire_expired()
        return self._has_conveyors() and has_eligible_pallet(self.warehouse, self.driver.animating_pallet_ids())

    def start_animation(self) -> Optional[AnimationState]:
        self.driver.retire_expired()
        state = plan_animation(self.warehouse, self.objects, self.driver.animating_pallet_ids(),
                               rng=self.rng, cfg=self.cfg.motion)
        if state is None:
            if self.verbose:
                print("[warehouseviz] no pallet available to animate")
            return None
        self.driver.start(state)
        return state

    def tick(self) -> Dict[str, Vec3]:
        return self.driver.tick()

    # ---- Selection ----
    def select(self, pallet_id: Optional[str]) -> Optional[str]:
        if pallet_id is not None:
            b = self.warehouse.find_bin(pallet_id)
            if b is None or not b.is_full:
                raise KeyError(pallet_id)
        self.selected_id = pallet_id
        return self.selected_id

    def search(self, term: str) -> Optional[str]:
        self.search_term = term
        found = find_pallet(self.warehouse, term)
        self.selected_id = found.id if found is not None else None
        return self.selected_id

    def object_by_id(self, obj_id: str) -> Optional[SceneObject]:
        return next((o for o in self.objects if o.id == obj_id), None)

    def bin_for(self, pallet_id: str) -> Optional[Bin]:
        return self.warehouse.find_bin(pallet_id)

    def pallet_details(self, pallet_id: str) -> Optional[Dict[str, Any]]:
        obj = self.object_by_id(pallet_id)
        if obj is None or obj.kind is not ObjectKind.PALLET:
            return None
        b = self.bin_for(pallet_id)
        return {
            "id": obj.id,
            "item": b.item if b is not None else None,
            "position": list(obj.position),
            "animating": pallet_id in self.driver.animating_pallet_ids(),
        }

    # ---- Suggestions ----
    def suggest(self, service: SuggestionService, prompt: str) -> SuggestionResult:
        return request_suggestions(service, prompt)

    def accept_suggestion(self, suggestion: str) -> SceneObject:
        """Turn an accepted suggestion into one new default primitive."""
        obj = self.add_object(kind=ObjectKind.BOX)
        if self.verbose:
            print(f'[warehouseviz] added {obj.id} inspired by "{suggestion}"')
        return obj
