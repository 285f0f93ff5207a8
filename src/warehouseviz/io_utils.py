## src/warehouseviz/io_utils.py
from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Dict, List, Sequence
import yaml

from .model import SceneObject


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def write_yaml(path: Path, data: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)


def write_json(path: Path, data: Dict[str, Any] | list[Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def write_scene(path: Path, objects: Sequence[SceneObject]) -> None:
    write_json(path, [o.to_dict() for o in objects])


def read_scene(path: Path) -> List[SceneObject]:
    with open(path, "r", encoding="utf-8") as f:
        rows = json.load(f)
    if not isinstance(rows, list):
        raise ValueError(f"{path} must contain a JSON list of scene objects")
    return [SceneObject.from_dict(r) for r in rows]
