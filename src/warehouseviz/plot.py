from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.collections import PatchCollection
from matplotlib.figure import Figure
from matplotlib.patches import Circle, Rectangle

from .layout import LEG_PREFIX, is_longitudinal_belt, is_perpendicular_belt
from .model import AnimationState, ObjectKind, SceneObject, Vec3
from .motion import trace_points


# ---------- Helpers ----------

def _footprint(obj: SceneObject) -> Tuple[float, float, float, float]:
    """(x0, z0, width, depth) of an object seen from above."""
    sx, _, sz = obj.size if obj.size is not None else (1.0, 1.0, 1.0)
    x, _, z = obj.position
    return (x - sx / 2, z - sz / 2, sx, sz)


def plan_bounds(objects: Sequence[SceneObject], margin: float = 1.5) -> Tuple[float, float, float, float]:
    if not objects:
        return (0.0, 0.0, 10.0, 10.0)
    boxes = np.array([_footprint(o) for o in objects], dtype=np.float32)
    x0 = float(np.min(boxes[:, 0]))
    z0 = float(np.min(boxes[:, 1]))
    x1 = float(np.max(boxes[:, 0] + boxes[:, 2]))
    z1 = float(np.max(boxes[:, 1] + boxes[:, 3]))
    return (x0 - margin, z0 - margin, x1 + margin, z1 + margin)


# ---------- Rendering ----------

def plot_layout(objects: Sequence[SceneObject],
                ax: Optional[plt.Axes] = None,
                active: Sequence[AnimationState] = (),
                positions: Optional[dict] = None,
                selected_id: Optional[str] = None,
                title: str = "Warehouse plan view") -> plt.Axes:
    """Top-down X/Z plan: racks and shelves, pallets, conveyor belts, animation traces."""
    if ax is None:
        _, ax = plt.subplots(figsize=(10, 8))
    positions = positions or {}
    structure: List[Rectangle] = []
    pallets: List[Rectangle] = []
    belts: List[Rectangle] = []
    others: List[Rectangle] = []
    # drawn in y order so higher shelves sit on top
    for obj in sorted(objects, key=lambda o: o.position[1]):
        if obj.id.startswith(LEG_PREFIX):
            continue
        x0, z0, w, d = _footprint(obj)
        if obj.kind is ObjectKind.PALLET:
            fc = "red" if obj.id == selected_id else obj.color
            pallets.append(Rectangle((x0, z0), w, d, facecolor=fc, edgecolor=(0.3, 0.2, 0.1, 0.8), linewidth=0.4))
        elif is_longitudinal_belt(obj.id) or is_perpendicular_belt(obj.id):
            belts.append(Rectangle((x0, z0), w, d, facecolor=obj.color, edgecolor="none", alpha=0.85))
        elif obj.kind is ObjectKind.BOX and obj.id.endswith("-shelf"):
            structure.append(Rectangle((x0, z0), w, d, facecolor=obj.color, edgecolor="none", alpha=0.35))
        elif obj.kind is ObjectKind.BOX and ("-vpost-" in obj.id or "-hbeam-" in obj.id):
            structure.append(Rectangle((x0, z0), w, d, facecolor=obj.color, edgecolor="none", alpha=0.6))
        else:
            others.append(Rectangle((x0, z0), w, d, facecolor=obj.color, edgecolor="black", linewidth=0.6))

    for group in (belts, structure, pallets, others):
        if group:
            ax.add_collection(PatchCollection(group, match_original=True))

    for state in active:
        pts = np.array(trace_points(state), dtype=np.float32)
        if len(pts):
            ax.plot(pts[:, 0], pts[:, 2], linestyle="--", color="goldenrod", linewidth=1.2, zorder=6)
        pos: Optional[Vec3] = positions.get(state.pallet_id)
        if pos is not None:
            ax.add_patch(Circle((pos[0], pos[2]), radius=0.45, color="gold", alpha=0.9, zorder=7))

    x0, z0, x1, z1 = plan_bounds(objects)
    ax.set_xlim(x0, x1)
    ax.set_ylim(z1, z0)   # +Z points toward the viewer in the 3D scene
    ax.set_aspect("equal", adjustable="box")
    ax.set_xlabel("x [m]")
    ax.set_ylabel("z [m]")
    ax.set_title(title)
    return ax


def save_layout_png(objects: Sequence[SceneObject], path: Path, dpi: int = 120, **kwargs) -> Path:
    # Figure without pyplot renders through Agg regardless of the interactive backend
    fig = Figure(figsize=(12, 9))
    ax = fig.subplots()
    plot_layout(objects, ax=ax, **kwargs)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=dpi, bbox_inches="tight")
    return path
