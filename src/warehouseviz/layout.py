from __future__ import annotations
from typing import List, Tuple
import math

from .config import LayoutCfg
from .model import ObjectKind, Rack, SceneObject, Vec3, Warehouse

BELT_PREFIX = "conveyor-belt-"
PERP_BELT_PREFIX = "conveyor-belt-perp"
LEG_PREFIX = "conveyor-leg-"


def is_longitudinal_belt(obj_id: str) -> bool:
	return obj_id.startswith(BELT_PREFIX) and "perp" not in obj_id

def is_perpendicular_belt(obj_id: str) -> bool:
	return obj_id.startswith(PERP_BELT_PREFIX)

def _fmt_num(v: float) -> str:
	v = float(v)
	if v.is_integer():
		return str(int(v))
	return repr(v)

def _box(obj_id: str, position: Vec3, size: Vec3, color: str) -> SceneObject:
	return SceneObject(id=obj_id, kind=ObjectKind.BOX, position=position, color=color, size=size)


def rack_footprint(rack: Rack, cfg: LayoutCfg, issues: List[str] | None = None) -> Tuple[float, float, float, int]:
	"""(width, depth, height, layer_count) of a rack, read off its first column/layer."""
	bx, by, bz = cfg.bin_size
	n_cols = len(rack.columns)
	n_layers = 0
	n_bins = 0
	if n_cols == 0:
		if issues is not None:
			issues.append(f"{rack.name} ({rack.id}) has no columns")
	else:
		first_col = rack.columns[0]
		n_layers = len(first_col.layers)
		if n_layers == 0:
			if issues is not None:
				issues.append(f"{rack.name} ({rack.id}) column 1 has no layers")
		else:
			n_bins = len(first_col.layers[0].bins)
		if issues is not None:
			for column in rack.columns[1:]:
				if len(column.layers) != n_layers:
					issues.append(f"{rack.name} ({rack.id}) {column.name} has {len(column.layers)} layers, expected {n_layers}")
				for layer in column.layers:
					if len(layer.bins) != n_bins:
						issues.append(f"{rack.name} ({rack.id}) {column.name} {layer.name} has {len(layer.bins)} bins, expected {n_bins}")
	width = max(0.0, n_cols * (bx + cfg.column_gap) - cfg.column_gap)
	depth = n_bins * bz
	height = max(0.0, (n_layers - 1) * (by + cfg.layer_gap) + by)
	return width, depth, height, n_layers


def max_row_width(warehouse: Warehouse, cfg: LayoutCfg) -> float:
	rpr = max(1, int(cfg.racks_per_row))
	racks = warehouse.racks
	best = 0.0
	for i in range(0, len(racks), rpr):
		row_width = 0.0
		for rack in racks[i:i + rpr]:
			width, _, _, _ = rack_footprint(rack, cfg)
			row_width += width + cfg.rack_gap
		best = max(best, row_width)
	return best


def _longitudinal_conveyor(suffix: str, z: float, belt_length: float, cfg: LayoutCfg) -> List[SceneObject]:
	out: List[SceneObject] = []
	bw, bh, leg = cfg.belt_width, cfg.belt_height, cfg.leg_size
	top = cfg.belt_top_y
	x_shift = -cfg.rack_gap / 2
	out.append(_box(f"{BELT_PREFIX}{suffix}", (belt_length / 2 + x_shift, top, z),
	                (belt_length, bh, bw), cfg.belt_color))
	n_legs = max(2, int(cfg.longitudinal_legs))
	leg_h = top - bh / 2
	for i in range(n_legs):
		leg_x = (i / (n_legs - 1)) * (belt_length - leg) + leg / 2
		for side, dz in ((1, -(bw / 2 + leg / 2)), (2, bw / 2 + leg / 2)):
			out.append(_box(f"{LEG_PREFIX}{suffix}-{i}-{side}", (leg_x + x_shift, leg_h / 2, z + dz),
			                (leg, leg_h, leg), cfg.leg_color))
	return out


def _perpendicular_conveyor(x: float, start_z: float, end_z: float, cfg: LayoutCfg) -> List[SceneObject]:
	out: List[SceneObject] = []
	bw, bh, leg = cfg.belt_width, cfg.belt_height, cfg.leg_size
	top = cfg.belt_top_y
	length = abs(end_z - start_z)
	n_legs = max(2, int(math.floor(length / cfg.perp_leg_spacing)) + 2)
	tag = _fmt_num(x)
	out.append(_box(f"{PERP_BELT_PREFIX}-{tag}", (x, top, start_z + length / 2),
	                (bw, bh, length), cfg.belt_color))
	leg_h = top - bh / 2
	for i in range(n_legs):
		leg_z = start_z + (i / (n_legs - 1)) * (length - leg) + leg / 2
		for side, dx in ((1, -bw / 2 + leg / 2), (2, bw / 2 - leg / 2)):
			out.append(_box(f"{LEG_PREFIX}perp-{tag}-{i}-{side}", (x + dx, leg_h / 2, leg_z),
			                (leg, leg_h, leg), cfg.leg_color))
	return out


def _rack_objects(rack: Rack, origin_x: float, origin_z: float, cfg: LayoutCfg,
                  width: float, depth: float, height: float, n_layers: int) -> List[SceneObject]:
	out: List[SceneObject] = []
	bx, by, bz = cfg.bin_size
	sw = cfg.structure_width
	pitch_x = bx + cfg.column_gap
	pitch_y = by + cfg.layer_gap

	def _face_z(j: int) -> float:
		# j=0 front face, j=1 back face
		return origin_z + j * (depth - sw) - depth / 2 + sw / 2

	# vertical posts at every column boundary, front and back
	for i in range(len(rack.columns) + 1):
		for j in range(2):
			out.append(_box(f"{rack.id}-vpost-{i}-{j}",
			                (origin_x + i * pitch_x - cfg.column_gap / 2 - bx / 2, height / 2, _face_z(j)),
			                (sw, height, sw), cfg.structure_color))

	beam_x = origin_x + width / 2 - bx / 2
	for i in range(n_layers):
		layer_y = i * pitch_y
		for j in range(2):
			out.append(_box(f"{rack.id}-hbeam-front-back-{i}-{j}",
			                (beam_x, layer_y + by / 2 - sw / 2, _face_z(j)),
			                (width, sw, sw), cfg.structure_color))
	for j in range(2):
		out.append(_box(f"{rack.id}-hbeam-bottom-{j}", (beam_x, sw / 2, _face_z(j)),
		                (width, sw, sw), cfg.structure_color))

	for col_idx, column in enumerate(rack.columns):
		column_x = origin_x + col_idx * pitch_x
		for layer_idx, layer in enumerate(column.layers):
			layer_y = cfg.floor_offset + by / 2 + layer_idx * pitch_y
			out.append(_box(f"{layer.id}-shelf", (column_x, layer_y - by / 2 - sw / 2, origin_z),
			                (bx, sw, depth), cfg.shelf_color))
			for bin_idx, b in enumerate(layer.bins):
				if not b.is_full:
					continue
				bin_z = bin_idx * bz - depth / 2 + bz / 2
				out.append(SceneObject(
					id=b.id,
					kind=ObjectKind.PALLET,
					position=(column_x, layer_y, origin_z + bin_z),
					color=cfg.pallet_color,
					size=(bx - 0.1, by, bz - 0.1),
				))
	return out


def compile_layout(warehouse: Warehouse, cfg: LayoutCfg | None = None,
                   issues: List[str] | None = None) -> List[SceneObject]:
	"""Flatten a warehouse into positioned primitives.

	Racks are laid out left to right in rows of cfg.racks_per_row along X; rows
	advance along Z separated by aisles. Every aisle (before the first row,
	between rows, after the last row) carries a longitudinal conveyor, and a
	single perpendicular conveyor at x = -rack_gap crosses all of them.
	"""
	cfg = cfg or LayoutCfg()
	rpr = max(1, int(cfg.racks_per_row))
	objects: List[SceneObject] = []
	belt_length = max_row_width(warehouse, cfg)

	current_x = 0.0
	current_z = 0.0
	max_depth_in_row = 0.0

	objects.extend(_longitudinal_conveyor("original", -cfg.aisle_gap / 2, belt_length, cfg))
	current_z += cfg.aisle_gap / 2

	for rack_idx, rack in enumerate(warehouse.racks):
		width, depth, height, n_layers = rack_footprint(rack, cfg, issues)
		if rack_idx > 0 and rack_idx % rpr == 0:
			current_x = 0.0
			current_z += max_depth_in_row + cfg.aisle_gap
			max_depth_in_row = 0.0
			objects.extend(_longitudinal_conveyor(str(rack_idx // rpr), current_z - cfg.aisle_gap / 2, belt_length, cfg))
		max_depth_in_row = max(max_depth_in_row, depth)
		objects.extend(_rack_objects(rack, current_x, current_z, cfg, width, depth, height, n_layers))
		current_x += width + cfg.rack_gap

	last_z = current_z + max_depth_in_row + cfg.aisle_gap / 2
	objects.extend(_longitudinal_conveyor("last", last_z, belt_length, cfg))
	objects.extend(_perpendicular_conveyor(-cfg.rack_gap, -cfg.aisle_gap, last_z + cfg.aisle_gap, cfg))
	return objects


def conveyor_belts(objects: List[SceneObject]) -> Tuple[List[SceneObject], List[SceneObject]]:
	"""Split belts (legs excluded) into (longitudinal, perpendicular)."""
	longitudinal = [o for o in objects if is_longitudinal_belt(o.id)]
	perpendicular = [o for o in objects if is_perpendicular_belt(o.id)]
	return longitudinal, perpendicular
