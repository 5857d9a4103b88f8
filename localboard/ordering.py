"""
Fractional ordering helpers.

Columns and cards are positioned by a float `order` key so a drop between two
siblings only rewrites the moved row. Repeated midpoint inserts eventually
exhaust float precision; rebalance_orders() restores integral spacing and is
only ever run on request.

order_between() and needs_rebalance() are caller-side helpers: the UI shell
computes drop keys and decides when to call rebalanceColumns/rebalanceCards.
The store itself only uses next_order() and rebalance_orders().
"""
from typing import Iterable, List, Optional

from .schema import OrderUpdate

DEFAULT_MIN_GAP = 1e-9


def next_order(max_order: Optional[float]) -> float:
    """Order for a row appended to the end of its scope."""
    return (max_order or 0.0) + 1.0


def order_between(before: Optional[float], after: Optional[float]) -> float:
    """
    Order key for a row dropped between two neighbours (either may be None).

    Caller-side helper; the result always sorts strictly between the given
    neighbours while float precision allows.
    """
    if before is None and after is None:
        return 1.0
    if before is None:
        # halving only moves toward the front for a positive head
        return after / 2 if after > 0 else after - 1.0
    if after is None:
        return before + 1.0
    return (before + after) / 2


def needs_rebalance(orders: Iterable[float], min_gap: float = DEFAULT_MIN_GAP) -> bool:
    """
    True when two adjacent keys are too close to split again.

    Caller-side helper for deciding when to request a rebalance.
    """
    ordered = sorted(orders)
    return any(b - a < min_gap for a, b in zip(ordered, ordered[1:]))


def rebalance_orders(ids: Iterable[str]) -> List[OrderUpdate]:
    """Assign 1.0, 2.0, ... to ids in the sequence given."""
    return [OrderUpdate(id=item_id, order=float(i)) for i, item_id in enumerate(ids, start=1)]
