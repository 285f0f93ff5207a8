from __future__ import annotations
from typing import Optional

from .model import Bin, Warehouse


def _matches(b: Bin, needle: str) -> bool:
    if needle in b.id.lower():
        return True
    return bool(b.item) and needle in b.item.lower()


def find_pallet(warehouse: Warehouse, query: str | None) -> Optional[Bin]:
    """First full bin whose id or item contains query (case-insensitive); None for a blank query.

    Blankness is judged on the trimmed query but the match uses it as typed.
    """
    query = query or ""
    if not query.strip():
        return None
    needle = query.lower()
    for b in warehouse.iter_bins():
        if b.is_full and _matches(b, needle):
            return b
    return None
