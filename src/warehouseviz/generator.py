from __future__ import annotations
from typing import Optional, Sequence
import uuid

import numpy as np

from .model import Bin, Column, Layer, Rack, Warehouse


def new_id(rng: np.random.Generator) -> str:
    """UUID4 hex drawn from rng so a seeded generator reproduces the same ids."""
    return uuid.UUID(bytes=rng.bytes(16), version=4).hex


def generate_warehouse(num_racks: int,
                       num_columns_per_rack: int,
                       num_layers_per_column: int,
                       num_bins_per_layer: int,
                       rng: np.random.Generator | None = None,
                       fill_probability: float = 0.5,
                       item_catalog: Optional[Sequence[str]] = None) -> Warehouse:
    counts = (num_racks, num_columns_per_rack, num_layers_per_column, num_bins_per_layer)
    if any(int(c) < 0 for c in counts):
        raise ValueError(f"warehouse dimensions must be non-negative, got {counts}")
    if not (0.0 <= fill_probability <= 1.0):
        raise ValueError(f"fill_probability must be within [0, 1], got {fill_probability}")
    rng = rng if rng is not None else np.random.default_rng()
    catalog = list(item_catalog or [])

    racks = []
    for i in range(int(num_racks)):
        columns = []
        for j in range(int(num_columns_per_rack)):
            layers = []
            for k in range(int(num_layers_per_column)):
                bins = []
                for l in range(int(num_bins_per_layer)):
                    is_full = bool(rng.random() < fill_probability)
                    item = None
                    if is_full and catalog:
                        item = catalog[int(rng.integers(len(catalog)))]
                    bins.append(Bin(id=new_id(rng), name=f"Bin {l + 1}", is_full=is_full, item=item))
                layers.append(Layer(id=new_id(rng), name=f"Layer {k + 1}", bins=bins))
            columns.append(Column(id=new_id(rng), name=f"Column {j + 1}", layers=layers))
        racks.append(Rack(id=new_id(rng), name=f"Rack {i + 1}", columns=columns))
    return Warehouse(racks=racks)
