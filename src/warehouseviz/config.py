from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import copy
import os

import yaml

CONFIG_ENV_VAR = "WAREHOUSEVIZ_CONFIG"

# ---------- Schema & Defaults ----------

DEFAULT_ITEM_CATALOG = [
    "Widgets", "Gadgets", "Bolts", "Nuts", "Cables",
    "Paint", "Tiles", "Lumber", "Bearings", "Filters",
]

@dataclass
class GeneratorCfg:
    racks: int = 24
    columns_per_rack: int = 5
    layers_per_column: int = 4
    bins_per_layer: int = 2
    fill_probability: float = 0.5
    item_catalog: List[str] = field(default_factory=lambda: list(DEFAULT_ITEM_CATALOG))

@dataclass
class LayoutCfg:
    bin_size: Tuple[float, float, float] = (1.2, 0.8, 1.0)   # x (width), y (height), z (depth)
    layer_gap: float = 0.2
    column_gap: float = 0.3
    rack_gap: float = 2.0
    aisle_gap: float = 4.0
    racks_per_row: int = 4
    structure_width: float = 0.1
    floor_offset: float = 0.0
    belt_width: float = 1.0
    belt_height: float = 0.2
    belt_top_y: float = 1.0
    leg_size: float = 0.15
    longitudinal_legs: int = 10
    perp_leg_spacing: float = 5.0
    structure_color: str = "#a0a0a0"
    shelf_color: str = "#c0c0c0"
    pallet_color: str = "#d2b48c"
    belt_color: str = "#333333"
    leg_color: str = "#666666"

@dataclass
class MotionCfg:
    segment_durations_ms: Tuple[float, float, float, float] = (4000.0, 5000.0, 2000.0, 7000.0)
    grace_ms: float = 500.0
    drop_offset_fraction: float = 0.25   # of the perpendicular belt's depth, past its centre

@dataclass
class ViewerCfg:
    fps: float = 60.0
    gui: bool = True
    selected_color: str = "#ff0000"
    animating_color: str = "#ffff00"
    trace_color: str = "#ffff00"
    default_object_color: str = "#4a90d9"

@dataclass
class AppConfig:
    seed: Optional[int] = None
    generator: GeneratorCfg = field(default_factory=GeneratorCfg)
    layout: LayoutCfg = field(default_factory=LayoutCfg)
    motion: MotionCfg = field(default_factory=MotionCfg)
    viewer: ViewerCfg = field(default_factory=ViewerCfg)

    def to_dict(self) -> Dict[str, Any]:
        def _cv(o):
            if hasattr(o, "__dict__"):
                return {k: _cv(v) for k, v in o.__dict__.items()}
            if isinstance(o, (list, tuple)):
                return [_cv(x) for x in o]
            return o
        return _cv(self)


class ConfigError(ValueError):
    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


# ---------- Validation ----------

_Number = (int, float)

def _is_number(v: Any) -> bool:
    return isinstance(v, _Number) and not isinstance(v, bool)

def _is_vec3(v: Any) -> bool:
    return isinstance(v, (list, tuple)) and len(v) == 3 and all(_is_number(x) for x in v)

def _is_color(v: Any) -> bool:
    if not isinstance(v, str) or len(v) != 7 or not v.startswith("#"):
        return False
    try:
        int(v[1:], 16)
    except ValueError:
        return False
    return True

def validate_config(cfg: Dict[str, Any]) -> Tuple[bool, List[str]]:
    errors: List[str] = []

    seed = cfg.get("seed")
    if seed is not None and (not isinstance(seed, int) or isinstance(seed, bool)):
        errors.append("seed must be an integer or null.")

    gen = cfg.get("generator", {}) or {}
    for key in ("racks", "columns_per_rack", "layers_per_column", "bins_per_layer"):
        val = gen.get(key, 1)
        if not isinstance(val, int) or isinstance(val, bool) or val < 0:
            errors.append(f"generator.{key} must be a non-negative integer.")
    fp = gen.get("fill_probability", 0.5)
    if not _is_number(fp) or not (0.0 <= fp <= 1.0):
        errors.append("generator.fill_probability must be within [0, 1].")
    catalog = gen.get("item_catalog", [])
    if catalog is not None and (not isinstance(catalog, list) or not all(isinstance(x, str) for x in catalog)):
        errors.append("generator.item_catalog must be a list of strings.")

    lay = cfg.get("layout", {}) or {}
    if "bin_size" in lay and (not _is_vec3(lay["bin_size"]) or min(lay["bin_size"]) <= 0):
        errors.append("layout.bin_size must be three positive numbers.")
    rpr = lay.get("racks_per_row", 4)
    if not isinstance(rpr, int) or isinstance(rpr, bool) or rpr < 1:
        errors.append("layout.racks_per_row must be a positive integer.")
    legs = lay.get("longitudinal_legs", 10)
    if not isinstance(legs, int) or isinstance(legs, bool) or legs < 2:
        errors.append("layout.longitudinal_legs must be an integer >= 2.")
    spacing = lay.get("perp_leg_spacing", 5.0)
    if not _is_number(spacing) or spacing <= 0:
        errors.append("layout.perp_leg_spacing must be positive.")
    for key, val in lay.items():
        if key.endswith("_color") and not _is_color(val):
            errors.append(f"layout.{key} must be a #rrggbb color.")

    mot = cfg.get("motion", {}) or {}
    durations = mot.get("segment_durations_ms", [1, 1, 1, 1])
    if (not isinstance(durations, (list, tuple)) or len(durations) != 4
            or not all(_is_number(d) and d > 0 for d in durations)):
        errors.append("motion.segment_durations_ms must be four positive numbers.")
    grace = mot.get("grace_ms", 0.0)
    if not _is_number(grace) or grace < 0:
        errors.append("motion.grace_ms must be a non-negative number.")

    view = cfg.get("viewer", {}) or {}
    fps = view.get("fps", 60.0)
    if not _is_number(fps) or fps <= 0:
        errors.append("viewer.fps must be positive.")
    for key, val in view.items():
        if key.endswith("_color") and not _is_color(val):
            errors.append(f"viewer.{key} must be a #rrggbb color.")

    return (len(errors) == 0), errors


# ---------- Loading ----------

def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out

def _tuple3(v: Any) -> Tuple[float, float, float]:
    return (float(v[0]), float(v[1]), float(v[2]))

def config_from_dict(data: Dict[str, Any]) -> AppConfig:
    merged = _deep_merge(AppConfig().to_dict(), data or {})
    ok, errors = validate_config(merged)
    if not ok:
        raise ConfigError(errors)
    known_gen = GeneratorCfg.__dataclass_fields__
    known_lay = LayoutCfg.__dataclass_fields__
    known_mot = MotionCfg.__dataclass_fields__
    known_view = ViewerCfg.__dataclass_fields__
    gen = {k: v for k, v in merged["generator"].items() if k in known_gen}
    lay = {k: v for k, v in merged["layout"].items() if k in known_lay}
    mot = {k: v for k, v in merged["motion"].items() if k in known_mot}
    view = {k: v for k, v in merged["viewer"].items() if k in known_view}
    lay["bin_size"] = _tuple3(lay["bin_size"])
    mot["segment_durations_ms"] = tuple(float(d) for d in mot["segment_durations_ms"])
    gen["item_catalog"] = list(gen.get("item_catalog") or [])
    return AppConfig(
        seed=merged.get("seed"),
        generator=GeneratorCfg(**gen),
        layout=LayoutCfg(**lay),
        motion=MotionCfg(**mot),
        viewer=ViewerCfg(**view),
    )

def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load a YAML config over the defaults. Falls back to $WAREHOUSEVIZ_CONFIG, then defaults."""
    if path is None:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if not env_path:
            return AppConfig()
        path = Path(env_path)
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"config not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError([f"{path} must contain a mapping at the top level."])
    return config_from_dict(data)
