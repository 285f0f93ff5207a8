from __future__ import annotations

from warehouseviz.model import Bin, Column, Layer, Rack, Warehouse
from warehouseviz.search import find_pallet


def _warehouse() -> Warehouse:
    bins = [
        Bin(id="AAA-111", name="Bin 1", is_full=False),
        Bin(id="bbb-222", name="Bin 2", is_full=True, item="Copper Cables"),
        Bin(id="ccc-333", name="Bin 3", is_full=True, item="Cables"),
        Bin(id="ddd-444", name="Bin 4", is_full=True, item=None),
    ]
    layer = Layer(id="l1", name="Layer 1", bins=bins)
    return Warehouse(racks=[Rack(id="r1", name="Rack 1", columns=[Column(id="c1", name="Column 1", layers=[layer])])])


def test_matches_item_case_insensitively_first_in_order() -> None:
    assert find_pallet(_warehouse(), "CABLES").id == "bbb-222"


def test_matches_id_substring() -> None:
    assert find_pallet(_warehouse(), "333").id == "ccc-333"
    assert find_pallet(_warehouse(), "DDD").id == "ddd-444"


def test_query_is_matched_as_typed() -> None:
    # surrounding spaces are part of the needle
    assert find_pallet(_warehouse(), " cables").id == "bbb-222"
    assert find_pallet(_warehouse(), "  DDD ") is None


def test_empty_bins_never_match() -> None:
    assert find_pallet(_warehouse(), "aaa") is None


def test_blank_or_unmatched_query() -> None:
    wh = _warehouse()
    assert find_pallet(wh, "") is None
    assert find_pallet(wh, "   ") is None
    assert find_pallet(wh, None) is None
    assert find_pallet(wh, "lumber") is None
