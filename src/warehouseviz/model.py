from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

Vec3 = Tuple[float, float, float]


# ---------- Warehouse hierarchy ----------

@dataclass
class Bin:
    id: str
    name: str
    is_full: bool
    item: Optional[str] = None

@dataclass
class Layer:
    id: str
    name: str
    bins: List[Bin] = field(default_factory=list)

@dataclass
class Column:
    id: str
    name: str
    layers: List[Layer] = field(default_factory=list)

@dataclass
class Rack:
    id: str
    name: str
    columns: List[Column] = field(default_factory=list)

@dataclass
class Warehouse:
    racks: List[Rack] = field(default_factory=list)

    def iter_bins(self) -> Iterator[Bin]:
        for rack in self.racks:
            for column in rack.columns:
                for layer in column.layers:
                    yield from layer.bins

    def full_bins(self) -> List[Bin]:
        return [b for b in self.iter_bins() if b.is_full]

    def bin_count(self) -> int:
        return sum(1 for _ in self.iter_bins())

    def find_bin(self, bin_id: str) -> Optional[Bin]:
        for b in self.iter_bins():
            if b.id == bin_id:
                return b
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "racks": [
                {
                    "id": r.id,
                    "name": r.name,
                    "columns": [
                        {
                            "id": c.id,
                            "name": c.name,
                            "layers": [
                                {
                                    "id": l.id,
                                    "name": l.name,
                                    "bins": [
                                        {"id": b.id, "name": b.name, "isFull": b.is_full, "item": b.item}
                                        for b in l.bins
                                    ],
                                }
                                for l in c.layers
                            ],
                        }
                        for c in r.columns
                    ],
                }
                for r in self.racks
            ]
        }


# ---------- Scene primitives ----------

class ObjectKind(str, Enum):
    BOX = "box"
    SPHERE = "sphere"
    TORUS = "torus"
    PALLET = "pallet"


@dataclass
class SceneObject:
    id: str
    kind: ObjectKind
    position: Vec3
    color: str
    size: Optional[Vec3] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "type": self.kind.value,
            "position": list(self.position),
            "color": self.color,
        }
        if self.size is not None:
            out["size"] = list(self.size)
        return out

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "SceneObject":
        pos = obj.get("position") or [0.0, 0.0, 0.0]
        size = obj.get("size")
        return cls(
            id=str(obj["id"]),
            kind=ObjectKind(obj.get("type", "box")),
            position=(float(pos[0]), float(pos[1]), float(pos[2])),
            color=str(obj.get("color", "#888888")),
            size=(float(size[0]), float(size[1]), float(size[2])) if size else None,
        )


# ---------- Animation ----------

@dataclass
class AnimationSegment:
    duration_ms: float
    start: Vec3
    end: Vec3

    def to_dict(self) -> Dict[str, Any]:
        return {"duration": self.duration_ms, "startPosition": list(self.start), "endPosition": list(self.end)}

@dataclass
class AnimationState:
    id: str
    pallet_id: str
    segments: List[AnimationSegment]
    total_duration_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "palletId": self.pallet_id,
            "segments": [s.to_dict() for s in self.segments],
            "totalDuration": self.total_duration_ms,
        }
