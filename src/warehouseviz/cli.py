from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np
from pydantic import ValidationError

from .config import AppConfig, ConfigError, load_config
from .digest import build_scene_digest, write_scene_digest
from .io_utils import ensure_dir, write_json, write_scene, write_yaml
from .motion import position_at
from .session import Session
from .suggest import PlaceholderSuggestionService, request_suggestions


class _ManualClock:
    def __init__(self, t_ms: float = 0.0):
        self.t_ms = t_ms

    def __call__(self) -> float:
        return self.t_ms


def _load_cfg(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(Path(args.config) if getattr(args, "config", None) else None)
    if getattr(args, "seed", None) is not None:
        cfg.seed = int(args.seed)
    g = cfg.generator
    for name in ("racks", "columns_per_rack", "layers_per_column", "bins_per_layer"):
        val = getattr(args, name, None)
        if val is not None:
            if val < 0:
                raise SystemExit(f"--{name.replace('_', '-')} must be >= 0")
            setattr(g, name, int(val))
    return cfg


def _add_common(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--config", type=str, default=None, help="YAML config (defaults: $WAREHOUSEVIZ_CONFIG or built-ins)")
    sp.add_argument("--seed", type=int, default=None, help="Seed for generation and planning")
    sp.add_argument("--racks", type=int, default=None)
    sp.add_argument("--columns-per-rack", dest="columns_per_rack", type=int, default=None)
    sp.add_argument("--layers-per-column", dest="layers_per_column", type=int, default=None)
    sp.add_argument("--bins-per-layer", dest="bins_per_layer", type=int, default=None)


# ---------- Commands ----------

def run_generate_cli(args: argparse.Namespace) -> int:
    session = Session(_load_cfg(args), verbose=True)
    digest = build_scene_digest(session.objects)
    summary = digest["summary"]
    wh = session.warehouse
    print(f"[warehouseviz] racks={len(wh.racks)} bins={wh.bin_count()} full={len(wh.full_bins())}")
    print(f"[warehouseviz] objects={summary['object_count']} pallets={summary['pallets']} "
          f"belts={summary['longitudinal_belts']}+{summary['perpendicular_belts']} sha256={digest['sha256'][:12]}")
    if args.out_dir:
        out = Path(args.out_dir)
        ensure_dir(out)
        write_json(out / "warehouse.json", wh.to_dict())
        write_scene(out / "scene.json", session.objects)
        write_scene_digest(out / "digest.json", digest)
        print(f"[OK] Wrote {out}")
    return 0


def run_plot_cli(args: argparse.Namespace) -> int:
    from .plot import save_layout_png

    clock = _ManualClock()
    session = Session(_load_cfg(args), clock=clock, verbose=True)
    for _ in range(max(0, args.animate)):
        if session.start_animation() is None:
            print("[warehouseviz] no more pallets available to animate")
            break
    clock.t_ms = float(args.at_ms)
    positions = session.tick()
    out = save_layout_png(session.objects, Path(args.out), active=session.driver.active_states(),
                          positions=positions)
    print(f"[OK] Wrote {out}")
    return 0


def run_view_cli(args: argparse.Namespace) -> int:
    from .renderer import run_viewer

    cfg = _load_cfg(args)
    if args.fps is not None:
        cfg.viewer.fps = float(args.fps)
    cfg.viewer.gui = not args.headless
    if args.headless and args.max_frames is None:
        raise SystemExit("--headless needs --max-frames")
    session = Session(cfg, verbose=True)
    return run_viewer(session, cfg.viewer, max_frames=args.max_frames)


def run_animate_cli(args: argparse.Namespace) -> int:
    session = Session(_load_cfg(args), clock=_ManualClock(), verbose=True)
    state = session.start_animation()
    if state is None:
        print("[ERR] No pallet available to animate")
        return 1
    print(f"[warehouseviz] pallet {state.pallet_id} total={state.total_duration_ms:.0f}ms")
    step = max(1.0, float(args.step_ms))
    rows = []
    for t in np.arange(0.0, state.total_duration_ms + step, step):
        t = float(min(t, state.total_duration_ms))
        x, y, z = position_at(state, t)
        rows.append({"t_ms": t, "x": x, "y": y, "z": z})
        print(f"  t={t:8.0f}ms  x={x:8.3f}  y={y:6.3f}  z={z:8.3f}")
    if args.out:
        write_json(Path(args.out), {"animation": state.to_dict(), "samples": rows})
        print(f"[OK] Wrote {args.out}")
    return 0


def run_suggest_cli(args: argparse.Namespace) -> int:
    try:
        res = request_suggestions(PlaceholderSuggestionService(), args.prompt)
    except ValidationError as e:
        print(f"[ERR] {e.errors()[0].get('msg', 'invalid prompt')}")
        return 2
    if not res.success or res.data is None:
        print(f"[ERR] {res.error or 'An unknown error occurred.'}")
        return 1
    print(res.data.scene_description)
    for name in res.data.suggested_objects:
        print(f"  - {name}")
    if res.data.additional_details:
        print(res.data.additional_details)
    return 0


def run_config_cli(args: argparse.Namespace) -> int:
    cfg = _load_cfg(args)
    write_yaml(Path(args.out), cfg.to_dict())
    print(f"[OK] Wrote {args.out}")
    return 0


# ---------- Parser ----------

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="warehouseviz", description="Procedural warehouse layouts and pallet animations.")
    sub = ap.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("generate", help="Generate a warehouse and compile its scene")
    _add_common(sp)
    sp.add_argument("--out-dir", type=str, default=None, help="Write warehouse.json, scene.json and digest.json here")
    sp.set_defaults(func=run_generate_cli)

    sp = sub.add_parser("plot", help="Save a top-down plan view PNG")
    _add_common(sp)
    sp.add_argument("--out", type=str, default="layout.png")
    sp.add_argument("--animate", type=int, default=0, help="Start this many pallet animations")
    sp.add_argument("--at-ms", type=float, default=0.0, help="Draw animated pallets at this elapsed time")
    sp.set_defaults(func=run_plot_cli)

    sp = sub.add_parser("view", help="Open the interactive 3D viewer (pybullet)")
    _add_common(sp)
    sp.add_argument("--fps", type=float, default=None)
    sp.add_argument("--headless", action="store_true", help="Run the loop without a window (DIRECT mode)")
    sp.add_argument("--max-frames", type=int, default=None)
    sp.set_defaults(func=run_view_cli)

    sp = sub.add_parser("animate", help="Plan one pallet animation and print sampled positions")
    _add_common(sp)
    sp.add_argument("--step-ms", type=float, default=1000.0)
    sp.add_argument("--out", type=str, default=None, help="Optional JSON output")
    sp.set_defaults(func=run_animate_cli)

    sp = sub.add_parser("suggest", help="Ask the suggestion service for scene ideas")
    sp.add_argument("prompt", type=str)
    sp.set_defaults(func=run_suggest_cli)

    sp = sub.add_parser("config", help="Write the effective config as YAML")
    _add_common(sp)
    sp.add_argument("--out", type=str, default="warehouseviz.yaml")
    sp.set_defaults(func=run_config_cli)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return int(args.func(args))
    except (ConfigError, FileNotFoundError) as e:
        print(f"[ERR] {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
