from __future__ import annotations
from typing import Collection, Iterable, List, Optional

import numpy as np

from .config import MotionCfg
from .generator import new_id
from .layout import is_longitudinal_belt, is_perpendicular_belt
from .model import AnimationSegment, AnimationState, Bin, SceneObject, Vec3, Warehouse


def eligible_bins(warehouse: Warehouse, animating_ids: Collection[str]) -> List[Bin]:
	busy = set(animating_ids)
	return [b for b in warehouse.iter_bins() if b.is_full and b.id not in busy]

def has_eligible_pallet(warehouse: Warehouse, animating_ids: Collection[str]) -> bool:
	busy = set(animating_ids)
	return any(b.is_full and b.id not in busy for b in warehouse.iter_bins())


def _nearest_longitudinal_belt(objects: Iterable[SceneObject], z: float) -> Optional[SceneObject]:
	belts = [o for o in objects if is_longitudinal_belt(o.id)]
	if not belts:
		return None
	# min() keeps the first of equally near belts
	return min(belts, key=lambda o: abs(o.position[2] - z))

def _perpendicular_belt(objects: Iterable[SceneObject]) -> Optional[SceneObject]:
	for o in objects:
		if is_perpendicular_belt(o.id):
			return o
	return None


def plan_animation(warehouse: Warehouse,
                   objects: List[SceneObject],
                   animating_ids: Collection[str],
                   rng: np.random.Generator | None = None,
                   cfg: MotionCfg | None = None) -> Optional[AnimationState]:
	"""Pick a random idle full bin and plan its pallet's trip to the drop-off.

	Returns None when nothing can be animated: no idle full bin, the pallet was
	not compiled into `objects`, or the conveyors are missing.
	"""
	cfg = cfg or MotionCfg()
	rng = rng if rng is not None else np.random.default_rng()
	candidates = eligible_bins(warehouse, animating_ids)
	if not candidates:
		return None
	chosen = candidates[int(rng.integers(len(candidates)))]

	pallet = next((o for o in objects if o.id == chosen.id), None)
	if pallet is None:
		return None
	belt = _nearest_longitudinal_belt(objects, pallet.position[2])
	perp = _perpendicular_belt(objects)
	if belt is None or perp is None:
		return None

	perp_depth = perp.size[2] if perp.size is not None else 0.0
	_, belt_y, belt_z = belt.position
	perp_x, perp_y, perp_z = perp.position

	above_belt: Vec3 = (pallet.position[0], belt_y, belt_z)
	belt_end: Vec3 = (perp_x, belt_y, belt_z)
	on_perp: Vec3 = (perp_x, perp_y, belt_z)
	drop_off: Vec3 = (perp_x, perp_y, perp_z + perp_depth * cfg.drop_offset_fraction)

	waypoints = [pallet.position, above_belt, belt_end, on_perp, drop_off]
	segments = [
		AnimationSegment(duration_ms=float(d), start=waypoints[i], end=waypoints[i + 1])
		for i, d in enumerate(cfg.segment_durations_ms)
	]
	return AnimationState(
		id=new_id(rng),
		pallet_id=chosen.id,
		segments=segments,
		total_duration_ms=float(sum(s.duration_ms for s in segments)),
	)


def position_at(state: AnimationState, elapsed_ms: float) -> Vec3:
	"""Position along the keyframed path after elapsed_ms; clamps to both ends."""
	if not state.segments:
		raise ValueError(f"animation {state.id} has no segments")
	if elapsed_ms <= 0:
		return state.segments[0].start
	t0 = 0.0
	for seg in state.segments:
		t1 = t0 + seg.duration_ms
		if elapsed_ms < t1:
			frac = (elapsed_ms - t0) / seg.duration_ms
			sx, sy, sz = seg.start
			ex, ey, ez = seg.end
			return (sx + (ex - sx) * frac, sy + (ey - sy) * frac, sz + (ez - sz) * frac)
		t0 = t1
	return state.segments[-1].end


def trace_points(state: AnimationState) -> List[Vec3]:
	if not state.segments:
		return []
	return [state.segments[0].start] + [seg.end for seg in state.segments]
