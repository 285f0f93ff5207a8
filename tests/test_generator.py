from __future__ import annotations

import numpy as np
import pytest

from warehouseviz.generator import generate_warehouse, new_id


def test_dimensions_and_names() -> None:
    wh = generate_warehouse(24, 5, 4, 2, rng=np.random.default_rng(0))
    assert len(wh.racks) == 24
    assert all(len(r.columns) == 5 for r in wh.racks)
    assert all(len(c.layers) == 4 for r in wh.racks for c in r.columns)
    assert wh.bin_count() == 960
    assert wh.racks[0].name == "Rack 1"
    assert wh.racks[3].columns[4].name == "Column 5"
    assert wh.racks[0].columns[0].layers[2].name == "Layer 3"
    assert wh.racks[0].columns[0].layers[0].bins[1].name == "Bin 2"


def test_ids_are_unique_across_levels() -> None:
    wh = generate_warehouse(3, 2, 2, 2, rng=np.random.default_rng(1))
    ids = [r.id for r in wh.racks]
    ids += [c.id for r in wh.racks for c in r.columns]
    ids += [l.id for r in wh.racks for c in r.columns for l in c.layers]
    ids += [b.id for b in wh.iter_bins()]
    assert len(ids) == len(set(ids))


def test_seeded_generation_is_reproducible() -> None:
    a = generate_warehouse(2, 2, 2, 2, rng=np.random.default_rng(42))
    b = generate_warehouse(2, 2, 2, 2, rng=np.random.default_rng(42))
    assert a.to_dict() == b.to_dict()


def test_fill_probability_extremes() -> None:
    empty = generate_warehouse(2, 2, 2, 2, rng=np.random.default_rng(3), fill_probability=0.0)
    assert empty.full_bins() == []
    full = generate_warehouse(2, 2, 2, 2, rng=np.random.default_rng(3), fill_probability=1.0,
                              item_catalog=["Bolts"])
    assert len(full.full_bins()) == 16
    assert {b.item for b in full.full_bins()} == {"Bolts"}


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_default_fill_is_about_half(seed: int) -> None:
    wh = generate_warehouse(24, 5, 4, 2, rng=np.random.default_rng(seed))
    frac = len(wh.full_bins()) / wh.bin_count()
    assert 0.4 <= frac <= 0.6


def test_fill_probability_is_respected() -> None:
    wh = generate_warehouse(24, 5, 4, 2, rng=np.random.default_rng(6), fill_probability=0.2)
    frac = len(wh.full_bins()) / wh.bin_count()
    assert 0.1 <= frac <= 0.3


def test_empty_bins_carry_no_item() -> None:
    wh = generate_warehouse(4, 3, 3, 2, rng=np.random.default_rng(5), item_catalog=["Nuts", "Paint"])
    for b in wh.iter_bins():
        if not b.is_full:
            assert b.item is None
        else:
            assert b.item in ("Nuts", "Paint")


def test_zero_racks_is_an_empty_warehouse() -> None:
    wh = generate_warehouse(0, 5, 4, 2)
    assert wh.racks == []
    assert wh.bin_count() == 0


@pytest.mark.parametrize("counts", [(-1, 1, 1, 1), (1, 1, -2, 1)])
def test_negative_counts_rejected(counts) -> None:
    with pytest.raises(ValueError):
        generate_warehouse(*counts)


def test_bad_fill_probability_rejected() -> None:
    with pytest.raises(ValueError):
        generate_warehouse(1, 1, 1, 1, fill_probability=1.5)


def test_new_id_is_uuid4_hex() -> None:
    value = new_id(np.random.default_rng(9))
    assert len(value) == 32
    assert value[12] == "4"
    assert value == new_id(np.random.default_rng(9))


def test_to_dict_uses_camel_case_fullness() -> None:
    wh = generate_warehouse(1, 1, 1, 1, rng=np.random.default_rng(2), fill_probability=1.0)
    b = wh.to_dict()["racks"][0]["columns"][0]["layers"][0]["bins"][0]
    assert b["isFull"] is True
    assert set(b) == {"id", "name", "isFull", "item"}
