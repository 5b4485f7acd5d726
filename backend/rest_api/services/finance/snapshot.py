"""
Financial snapshot of an order.

The snapshot is the single source of truth for an order's money figures:
gross per line, the order discount allocated proportionally across lines
(with the rounding residual pushed onto the last line), net per line and the
total revenue. The sales ledger and every report read it; within one
reporting pass it is computed once per order through SnapshotCache.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shared.config.settings import settings

if TYPE_CHECKING:
    from rest_api.models import Order


@dataclass(frozen=True, slots=True)
class FinancialSnapshot:
    gross_per_line: tuple[float, ...]
    discount_per_line: tuple[float, ...]
    net_per_line: tuple[float, ...]
    subtotal_before_discount: float
    total_discount: float
    net_revenue_from_items: float
    total_revenue: float

    def net_for(self, index: int, fallback: float = 0.0) -> float:
        if 0 <= index < len(self.net_per_line):
            return self.net_per_line[index]
        return fallback


def allocate_discount(
    gross_per_line: Sequence[float],
    subtotal: float,
    total_discount: float,
    epsilon: float | None = None,
) -> list[float]:
    """
    Spread ``total_discount`` over the lines in proportion to their gross.

    No share exceeds its line's gross. If the shares do not add up to the
    discount, the residual goes to the last line, clamped to [0, gross_last].
    """
    eps = settings.money_epsilon if epsilon is None else epsilon
    shares = []
    for gross in gross_per_line:
        if subtotal <= 0 or gross <= 0 or total_discount <= 0:
            shares.append(0.0)
        else:
            shares.append(min(gross, gross / subtotal * total_discount))

    if shares:
        residual = total_discount - sum(shares)
        if abs(residual) > eps:
            last = len(shares) - 1
            shares[last] = min(max(shares[last] + residual, 0.0), gross_per_line[last])
    return shares


def compute_snapshot(
    lines: Iterable[tuple[float, float]],
    stored_subtotal: float | None = 0.0,
    total_discount: float | None = 0.0,
    shipping_cost: float | None = 0.0,
    stored_total: float | None = None,
    epsilon: float | None = None,
) -> FinancialSnapshot:
    """
    Compute the snapshot from raw (unit_price, quantity) pairs.

    stored_subtotal is used only when the lines carry no gross at all
    (legacy orders without line prices). stored_total, when given, is the
    authoritative revenue.
    """
    gross = [max(0.0, price or 0.0) * max(0.0, quantity or 0.0) for price, quantity in lines]
    subtotal = sum(gross)
    if subtotal <= 0:
        subtotal = max(stored_subtotal or 0.0, 0.0)

    discount = min(max(total_discount or 0.0, 0.0), subtotal) if subtotal > 0 else 0.0
    shares = allocate_discount(gross, subtotal, discount, epsilon)
    net = [max(g - d, 0.0) for g, d in zip(gross, shares)]
    net_items = sum(net)

    if stored_total is not None:
        total_revenue = stored_total
    else:
        total_revenue = max(net_items + (shipping_cost or 0.0), 0.0)

    return FinancialSnapshot(
        gross_per_line=tuple(gross),
        discount_per_line=tuple(shares),
        net_per_line=tuple(net),
        subtotal_before_discount=subtotal,
        total_discount=discount,
        net_revenue_from_items=net_items,
        total_revenue=total_revenue,
    )


def compute_financial_snapshot(order: "Order") -> FinancialSnapshot:
    """Snapshot of a persisted order, lines taken in position order."""
    return compute_snapshot(
        [(line.unit_price, line.quantity) for line in order.lines],
        stored_subtotal=order.subtotal,
        total_discount=order.total_discount,
        shipping_cost=order.shipping_cost,
        stored_total=order.total,
    )


class SnapshotCache:
    """Per-pass memo of snapshots keyed by order id."""

    def __init__(self) -> None:
        self._snapshots: dict[int, FinancialSnapshot] = {}

    def get(self, order: "Order") -> FinancialSnapshot:
        snapshot = self._snapshots.get(order.id)
        if snapshot is None:
            snapshot = compute_financial_snapshot(order)
            self._snapshots[order.id] = snapshot
        return snapshot

    def __len__(self) -> int:
        return len(self._snapshots)
