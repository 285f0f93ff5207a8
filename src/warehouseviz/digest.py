from __future__ import annotations
import json, hashlib
from typing import Dict, Any, List, Sequence
from pathlib import Path

from .layout import is_longitudinal_belt, is_perpendicular_belt
from .model import ObjectKind, SceneObject

def _sha256_bytes(b: bytes) -> str:
	h = hashlib.sha256(); h.update(b); return h.hexdigest()

def _round3(x: float) -> float:
	return float(round(x, 3))

def _pack_object(obj: SceneObject) -> Dict[str, Any]:
	entry: Dict[str, Any] = {
		"id": obj.id,
		"type": obj.kind.value,
		"position": [_round3(v) for v in obj.position],
		"color": obj.color.lower(),
	}
	if obj.size is not None:
		entry["size"] = [_round3(v) for v in obj.size]
	return entry

def build_scene_digest(objects: Sequence[SceneObject]) -> Dict[str, Any]:
	"""Canonical, order-independent summary of a compiled scene plus its sha256."""
	packed: List[Dict[str, Any]] = sorted((_pack_object(o) for o in objects), key=lambda e: e["id"])
	counts: Dict[str, int] = {}
	for o in objects:
		counts[o.kind.value] = counts.get(o.kind.value, 0) + 1
	summary = {
		"object_count": len(packed),
		"counts_by_type": dict(sorted(counts.items())),
		"pallets": sum(1 for o in objects if o.kind is ObjectKind.PALLET),
		"longitudinal_belts": sum(1 for o in objects if is_longitudinal_belt(o.id)),
		"perpendicular_belts": sum(1 for o in objects if is_perpendicular_belt(o.id)),
	}
	blob = json.dumps(packed, sort_keys=True, separators=(",", ":")).encode("utf-8")
	return {
		"summary": summary,
		"objects": packed,
		"sha256": _sha256_bytes(blob),
	}

def write_scene_digest(path: Path, digest: Dict[str, Any]) -> None:
	path.write_text(json.dumps(digest, indent=2), encoding="utf-8")
