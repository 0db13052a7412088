from __future__ import annotations

from typing import List, Tuple

from ..errors import EmptyTargetError
from .fragments import Fragment, FragmentStore, Order


def _order_key(order: Order) -> Tuple[int, float, str]:
    # Numbers sort before strings.
    if isinstance(order, str):
        return (1, 0.0, order)
    return (0, float(order), "")


def ordered_fragments(store: FragmentStore, target: str) -> List[Fragment]:
    return sorted(store.fragments_for(target), key=lambda f: (_order_key(f.order), f.name))


def assemble(store: FragmentStore, target: str, *, require_non_empty: bool = False) -> str:
    """Concatenate the fragments of `target` in (order, name) order."""

    fragments = ordered_fragments(store, target)
    if require_non_empty and not fragments:
        raise EmptyTargetError(target)
    return "".join(f.text() for f in fragments)
