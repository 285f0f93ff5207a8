from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Collection, Dict, Iterable, List, Optional, Sequence, Set, Tuple
import time

import numpy as np
import pybullet as p
import pybullet_data
from matplotlib.colors import to_rgba

from .config import ViewerCfg
from .model import AnimationState, ObjectKind, SceneObject, Vec3
from .motion import trace_points
from .session import Session

RGBA = Tuple[float, float, float, float]


# ---------- Frames ----------
# Scene coordinates are Y-up; pybullet is Z-up. Rotate +90 deg about X.

def to_world(v: Sequence[float]) -> Vec3:
	return (float(v[0]), -float(v[2]), float(v[1]))

def extents_to_world(size: Sequence[float]) -> Vec3:
	return (float(size[0]), float(size[2]), float(size[1]))

def from_world(v: Sequence[float]) -> Vec3:
	return (float(v[0]), float(v[2]), -float(v[1]))

def hex_to_rgba(color: str, alpha: float = 1.0) -> RGBA:
	r, g, b, _ = to_rgba(color)
	return (r, g, b, alpha)


# ---------- Primitive geometry ----------

@dataclass
class ShapePart:
	geom: str                                  # "box" | "sphere" | "mesh"
	offset: Vec3 = (0.0, 0.0, 0.0)             # world frame, relative to body origin
	half_extents: Vec3 | None = None
	radius: float | None = None
	vertices: List[List[float]] | None = None
	indices: List[int] | None = None

@dataclass
class PrimitiveSpec:
	kind: ObjectKind
	visual: List[ShapePart]
	collision: List[ShapePart] = field(default_factory=list)


def _size_of(obj: SceneObject) -> Vec3:
	return obj.size if obj.size is not None else (1.0, 1.0, 1.0)

def _box_spec(obj: SceneObject) -> PrimitiveSpec:
	hx, hy, hz = (0.5 * s for s in extents_to_world(_size_of(obj)))
	part = ShapePart("box", half_extents=(hx, hy, hz))
	return PrimitiveSpec(ObjectKind.BOX, [part], [part])

def _sphere_spec(obj: SceneObject) -> PrimitiveSpec:
	part = ShapePart("sphere", radius=_size_of(obj)[0] / 2)
	return PrimitiveSpec(ObjectKind.SPHERE, [part], [part])

def torus_mesh(radius: float, tube: float, radial: int = 12, tubular: int = 32) -> Tuple[List[List[float]], List[int]]:
	"""Torus in the scene's XY plane, returned in world coordinates."""
	u = np.linspace(0.0, 2.0 * np.pi, tubular, endpoint=False)
	v = np.linspace(0.0, 2.0 * np.pi, radial, endpoint=False)
	uu, vv = np.meshgrid(u, v, indexing="ij")
	x = (radius + tube * np.cos(vv)) * np.cos(uu)
	y = (radius + tube * np.cos(vv)) * np.sin(uu)
	z = tube * np.sin(vv)
	verts = [list(to_world(pt)) for pt in np.stack([x, y, z], axis=-1).reshape(-1, 3)]
	indices: List[int] = []
	for i in range(tubular):
		for j in range(radial):
			a = i * radial + j
			b = ((i + 1) % tubular) * radial + j
			c = ((i + 1) % tubular) * radial + (j + 1) % radial
			d = i * radial + (j + 1) % radial
			indices.extend([a, b, d, b, c, d])
	return verts, indices

def _torus_spec(obj: SceneObject) -> PrimitiveSpec:
	radius = _size_of(obj)[0] / 2
	tube = 0.4
	verts, indices = torus_mesh(radius, tube)
	visual = ShapePart("mesh", vertices=verts, indices=indices)
	reach = radius + tube
	collision = ShapePart("box", half_extents=extents_to_world((reach, reach, tube)))
	return PrimitiveSpec(ObjectKind.TORUS, [visual], [collision])

def _pallet_spec(obj: SceneObject) -> PrimitiveSpec:
	"""Five top planks over three support runners."""
	width, height, depth = _size_of(obj)
	plank_h = 0.1
	n_planks = 5
	plank_w = width / n_planks
	plank_gap = 0.05
	parts: List[ShapePart] = []
	for i in range(n_planks):
		offset = (i * plank_w - width / 2 + plank_w / 2, height / 2 - plank_h / 2, 0.0)
		half = extents_to_world(((plank_w - plank_gap) / 2, plank_h / 2, depth / 2))
		parts.append(ShapePart("box", offset=to_world(offset), half_extents=half))
	support_h = height - plank_h
	support_d = 0.2
	for z in (-depth / 2 + support_d / 2, 0.0, depth / 2 - support_d / 2):
		half = extents_to_world((width / 2, support_h / 2, support_d / 2))
		parts.append(ShapePart("box", offset=to_world((0.0, 0.0, z)), half_extents=half))
	return PrimitiveSpec(ObjectKind.PALLET, parts, parts)

_BUILDERS: Dict[ObjectKind, Callable[[SceneObject], PrimitiveSpec]] = {
	ObjectKind.BOX: _box_spec,
	ObjectKind.SPHERE: _sphere_spec,
	ObjectKind.TORUS: _torus_spec,
	ObjectKind.PALLET: _pallet_spec,
}

def primitive_spec(obj: SceneObject) -> PrimitiveSpec:
	builder = _BUILDERS.get(obj.kind)
	if builder is None:
		raise ValueError(f"no geometry builder for kind {obj.kind!r}")
	return builder(obj)


# ---------- Reconciliation ----------

@dataclass
class ReconcilePlan:
	added: List[str]
	removed: List[str]
	kept: List[str]

def reconcile(known_ids: Iterable[str], objects: Sequence[SceneObject]) -> ReconcilePlan:
	known = set(known_ids)
	current = [o.id for o in objects]
	current_set = set(current)
	return ReconcilePlan(
		added=[i for i in current if i not in known],
		removed=sorted(known - current_set),
		kept=[i for i in current if i in known],
	)

def desired_color(obj: SceneObject, selected_id: Optional[str], highlighted: Collection[str], cfg: ViewerCfg) -> str:
	"""Animation highlight wins over selection; only pallets are recolored."""
	if obj.kind is not ObjectKind.PALLET:
		return obj.color
	if obj.id in highlighted:
		return cfg.animating_color
	if obj.id == selected_id:
		return cfg.selected_color
	return obj.color


# ---------- pybullet scene ----------

class PyBulletRenderer:
	def __init__(self, cfg: ViewerCfg | None = None, use_gui: bool = False):
		self.cfg = cfg or ViewerCfg()
		self.use_gui = use_gui
		self.client = p.connect(p.GUI if use_gui else p.DIRECT)
		if use_gui:
			p.configureDebugVisualizer(p.COV_ENABLE_GUI, 0, physicsClientId=self.client)
		p.resetSimulation(physicsClientId=self.client)
		p.setAdditionalSearchPath(pybullet_data.getDataPath(), physicsClientId=self.client)
		self.plane_id = p.loadURDF("plane.urdf", physicsClientId=self.client)
		self._bodies: Dict[str, int] = {}
		self._body_to_id: Dict[int, str] = {}
		self._kinds: Dict[str, ObjectKind] = {}
		self._positions: Dict[str, Vec3] = {}
		self._colors: Dict[str, str] = {}
		self._traces: Dict[str, List[int]] = {}

	def __len__(self) -> int:
		return len(self._bodies)

	def __contains__(self, obj_id: str) -> bool:
		return obj_id in self._bodies

	def body_of(self, obj_id: str) -> Optional[int]:
		return self._bodies.get(obj_id)

	def id_of(self, body_id: int) -> Optional[str]:
		return self._body_to_id.get(body_id)

	def trace_ids(self) -> Set[str]:
		return set(self._traces)

	# ---- bodies ----
	def _shape_kwargs(self, part: ShapePart, visual: bool) -> Dict[str, object]:
		if part.geom == "box":
			return {"shapeType": p.GEOM_BOX, "halfExtents": list(part.half_extents)}
		if part.geom == "sphere":
			return {"shapeType": p.GEOM_SPHERE, "radius": float(part.radius)}
		if part.geom == "mesh" and visual:
			return {"shapeType": p.GEOM_MESH, "vertices": part.vertices, "indices": part.indices}
		raise ValueError(f"unsupported shape part {part.geom!r}")

	def _create_body(self, obj: SceneObject) -> int:
		spec = primitive_spec(obj)
		rgba = hex_to_rgba(obj.color)
		if len(spec.visual) == 1 and spec.visual[0].offset == (0.0, 0.0, 0.0):
			vis = p.createVisualShape(rgbaColor=rgba, physicsClientId=self.client,
			                          **self._shape_kwargs(spec.visual[0], True))
		else:
			vis = p.createVisualShapeArray(
				shapeTypes=[p.GEOM_BOX] * len(spec.visual),
				halfExtents=[list(part.half_extents) for part in spec.visual],
				visualFramePositions=[list(part.offset) for part in spec.visual],
				physicsClientId=self.client,
			)
		if len(spec.collision) == 1 and spec.collision[0].offset == (0.0, 0.0, 0.0):
			col = p.createCollisionShape(physicsClientId=self.client, **self._shape_kwargs(spec.collision[0], False))
		else:
			col = p.createCollisionShapeArray(
				shapeTypes=[p.GEOM_BOX] * len(spec.collision),
				halfExtents=[list(part.half_extents) for part in spec.collision],
				collisionFramePositions=[list(part.offset) for part in spec.collision],
				physicsClientId=self.client,
			)
		bid = p.createMultiBody(
			baseMass=0,
			baseCollisionShapeIndex=col,
			baseVisualShapeIndex=vis,
			basePosition=list(to_world(obj.position)),
			physicsClientId=self.client,
		)
		p.changeVisualShape(bid, -1, rgbaColor=rgba, physicsClientId=self.client)
		return bid

	def _move(self, obj_id: str, position: Vec3) -> None:
		if self._positions.get(obj_id) == position:
			return
		p.resetBasePositionAndOrientation(self._bodies[obj_id], list(to_world(position)), [0, 0, 0, 1],
		                                  physicsClientId=self.client)
		self._positions[obj_id] = position

	def _recolor(self, obj_id: str, color: str) -> None:
		if self._colors.get(obj_id) == color:
			return
		p.changeVisualShape(self._bodies[obj_id], -1, rgbaColor=hex_to_rgba(color), physicsClientId=self.client)
		self._colors[obj_id] = color

	def _remove(self, obj_id: str) -> None:
		bid = self._bodies.pop(obj_id)
		self._body_to_id.pop(bid, None)
		self._kinds.pop(obj_id, None)
		self._positions.pop(obj_id, None)
		self._colors.pop(obj_id, None)
		p.removeBody(bid, physicsClientId=self.client)

	# ---- traces ----
	def _draw_trace(self, state: AnimationState) -> List[int]:
		# debug lines only exist in the GUI; DIRECT keeps the bookkeeping
		if not self.use_gui:
			return []
		rgb = list(hex_to_rgba(self.cfg.trace_color)[:3])
		pts = [to_world(pt) for pt in trace_points(state)]
		return [
			p.addUserDebugLine(list(a), list(b), lineColorRGB=rgb, lineWidth=2.0, physicsClientId=self.client)
			for a, b in zip(pts[:-1], pts[1:])
		]

	def _sync_traces(self, active: Sequence[AnimationState]) -> None:
		live = {a.id: a for a in active}
		for anim_id in [aid for aid in self._traces if aid not in live]:
			for item in self._traces.pop(anim_id):
				p.removeUserDebugItem(item, physicsClientId=self.client)
		for anim_id, state in live.items():
			if anim_id not in self._traces:
				self._traces[anim_id] = self._draw_trace(state)

	def sync(self, objects: Sequence[SceneObject], active: Sequence[AnimationState] = (),
	         selected_id: Optional[str] = None, positions: Dict[str, Vec3] | None = None,
	         finished: Collection[str] = ()) -> ReconcilePlan:
		"""Make the pybullet scene match objects; animated pallets take positions from `positions`.

		`finished` holds animation ids whose clip has ended but which are still
		inside their grace window; their pallets drop the animation highlight.
		"""
		positions = positions or {}
		plan = reconcile(self._bodies.keys(), objects)
		for obj_id in plan.removed:
			self._remove(obj_id)

		done = set(finished)
		highlighted = {a.pallet_id for a in active if a.id not in done}
		animating = {a.pallet_id for a in active}
		for obj in objects:
			if obj.id not in self._bodies:
				bid = self._create_body(obj)
				self._bodies[obj.id] = bid
				self._body_to_id[bid] = obj.id
				self._kinds[obj.id] = obj.kind
				self._positions[obj.id] = obj.position
				self._colors[obj.id] = obj.color
			if obj.id in positions:
				self._move(obj.id, positions[obj.id])
			elif obj.id not in animating:
				self._move(obj.id, obj.position)
			self._recolor(obj.id, desired_color(obj, selected_id, highlighted, self.cfg))

		self._sync_traces(active)
		return plan

	# ---- picking & camera ----
	def pick(self, ray_from: Sequence[float], ray_to: Sequence[float], pallets_only: bool = True) -> Optional[str]:
		p.performCollisionDetection(physicsClientId=self.client)
		hits = p.rayTest(list(ray_from), list(ray_to), physicsClientId=self.client)
		if not hits:
			return None
		obj_id = self._body_to_id.get(hits[0][0])
		if obj_id is None:
			return None
		if pallets_only and self._kinds.get(obj_id) is not ObjectKind.PALLET:
			return None
		return obj_id

	def mouse_ray(self, mouse_x: float, mouse_y: float, far: float = 10000.0) -> Tuple[List[float], List[float]]:
		width, height, _, _, _, cam_fwd, horizon, vertical, _, _, dist, target = \
			p.getDebugVisualizerCamera(physicsClientId=self.client)
		target = np.asarray(target, dtype=float)
		fwd = np.asarray(cam_fwd, dtype=float)
		cam_pos = target - dist * fwd
		ray_fwd = target - cam_pos
		ray_fwd = ray_fwd * (far / max(1e-9, float(np.linalg.norm(ray_fwd))))
		horizon = np.asarray(horizon, dtype=float)
		vertical = np.asarray(vertical, dtype=float)
		ray_center = cam_pos + ray_fwd
		ray_to = (ray_center - 0.5 * horizon + 0.5 * vertical
		          + float(mouse_x) * horizon / max(1, width) - float(mouse_y) * vertical / max(1, height))
		return cam_pos.tolist(), ray_to.tolist()

	def focus(self, obj_id: str, distance: float = 8.0) -> None:
		bid = self._bodies.get(obj_id)
		if bid is None or not self.use_gui:
			return
		pos, _ = p.getBasePositionAndOrientation(bid, physicsClientId=self.client)
		cam = p.getDebugVisualizerCamera(physicsClientId=self.client)
		p.resetDebugVisualizerCamera(distance, cam[8], cam[9], list(pos), physicsClientId=self.client)

	def reset_camera(self, objects: Sequence[SceneObject]) -> None:
		if not objects or not self.use_gui:
			return
		pts = np.array([to_world(o.position) for o in objects], dtype=float)
		lo, hi = pts.min(axis=0), pts.max(axis=0)
		span = float(max(5.0, np.max(hi - lo)))
		p.resetDebugVisualizerCamera(span * 0.8, 45.0, -40.0, ((lo + hi) * 0.5).tolist(), physicsClientId=self.client)

	def close(self) -> None:
		if p.isConnected(self.client):
			p.disconnect(self.client)


# ---------- Interactive loop ----------

_KEY_ANIMATE = ord("a")
_KEY_REGENERATE = ord("r")
_KEY_CLEAR = ord("c")
_KEY_ADD = ord("n")
_KEY_QUIT = ord("q")

def run_viewer(session: Session, cfg: ViewerCfg | None = None, max_frames: int | None = None) -> int:
	"""GUI loop: a=animate pallet, r=regenerate, c=clear scene, n=add box, q=quit, click=select pallet."""
	cfg = cfg or session.cfg.viewer
	renderer = PyBulletRenderer(cfg, use_gui=cfg.gui)
	renderer.reset_camera(session.objects)
	frame_dt = 1.0 / max(1.0, cfg.fps)
	last_selected = None
	frames = 0
	print("[viewer] keys: a=animate  r=regenerate  c=clear  n=add box  q=quit  (click a pallet to select)")
	try:
		while p.isConnected(renderer.client):
			positions = session.tick()
			active = session.driver.active_states()
			finished = {a.id for a in active if session.driver.is_finished(a.id)}
			renderer.sync(session.objects, active, session.selected_id, positions, finished)
			if session.selected_id != last_selected and session.selected_id is not None:
				renderer.focus(session.selected_id)
			last_selected = session.selected_id

			if cfg.gui:
				keys = p.getKeyboardEvents(physicsClientId=renderer.client)
				if _triggered(keys, _KEY_QUIT):
					break
				if _triggered(keys, _KEY_ANIMATE):
					state = session.start_animation()
					if state is not None:
						print(f"[viewer] animating pallet {state.pallet_id} ({state.total_duration_ms / 1000:.1f}s)")
				if _triggered(keys, _KEY_REGENERATE):
					session.regenerate()
					renderer.reset_camera(session.objects)
					print(f"[viewer] regenerated: {len(session.warehouse.full_bins())} pallets")
				if _triggered(keys, _KEY_CLEAR):
					session.clear_scene()
					print("[viewer] scene cleared")
				if _triggered(keys, _KEY_ADD):
					session.add_object()
				for event in p.getMouseEvents(physicsClientId=renderer.client):
					event_type, mx, my, button, state = event
					if event_type == 2 and button == 0 and (state & p.KEY_WAS_TRIGGERED):
						ray_from, ray_to = renderer.mouse_ray(mx, my)
						select_picked(session, renderer.pick(ray_from, ray_to))

			frames += 1
			if max_frames is not None and frames >= max_frames:
				break
			time.sleep(frame_dt)
	finally:
		renderer.close()
	return 0

def select_picked(session: Session, obj_id: Optional[str]) -> Optional[str]:
	"""Select a clicked pallet; pallets with no backing bin clear the selection."""
	try:
		return session.select(obj_id)
	except KeyError:
		return session.select(None)

def _triggered(keys: Dict[int, int], key: int) -> bool:
	return bool(keys.get(key, 0) & p.KEY_WAS_TRIGGERED)
