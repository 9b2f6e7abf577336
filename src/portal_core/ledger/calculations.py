"""Derived position figures — pure functions, no DB.

Everything here takes position snapshots (``Position`` models or rows with
the same attributes) and never mutates them. Any figure that needs a price
the position does not have comes back as zero.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from portal_core.models.enums import PositionStatus
from portal_core.models.position import Position, PositionWithCalculations

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class PositionLike(Protocol):
    status: PositionStatus
    sector: str | None
    entry_date: date
    entry_price: Decimal
    quantity: Decimal
    cost_basis: Decimal
    market_price: Decimal | None
    closing_price: Decimal | None
    closing_date: date | None
    realized_pnl: Decimal | None


def _dec(value: Decimal | float | int | None) -> Decimal:
    """Coerce to Decimal via str so floats don't drag in binary noise."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _today() -> date:
    return datetime.now(timezone.utc).date()


# ── Per-position ──────────────────────────────────────────────


def cost_basis(entry_price: Decimal | float, quantity: Decimal | float) -> Decimal:
    """entry_price * quantity."""
    return _dec(entry_price) * _dec(quantity)


def realized_pnl(closing_price: Decimal | float, entry_price: Decimal | float, quantity: Decimal | float) -> Decimal:
    """(closing - entry) * qty."""
    return (_dec(closing_price) - _dec(entry_price)) * _dec(quantity)


def unrealized_pnl(position: PositionLike) -> Decimal:
    """Mark-to-market P&L: (market - entry) * qty.

    Zero for closed positions and for positions without a market price.
    """
    if position.status == PositionStatus.CLOSED or not position.market_price:
        return ZERO
    return (_dec(position.market_price) - _dec(position.entry_price)) * _dec(position.quantity)


def performance_pct(position: PositionLike) -> Decimal:
    """((current / entry) - 1) * 100.

    *current* is the closing price for closed positions, otherwise the
    market price.
    """
    if position.status == PositionStatus.CLOSED:
        current = position.closing_price
    else:
        current = position.market_price
    if not current or not position.entry_price:
        return ZERO
    return (_dec(current) / _dec(position.entry_price) - 1) * HUNDRED


def days_held(position: PositionLike, today: date | None = None) -> int:
    """Calendar days from entry to close (closed) or to *today*."""
    if position.status == PositionStatus.CLOSED and position.closing_date is not None:
        end = position.closing_date
    else:
        end = today or _today()
    return (end - position.entry_date).days


def enrich(position: Position, today: date | None = None) -> PositionWithCalculations:
    """Attach unrealized P&L, performance and days held to a snapshot."""
    return PositionWithCalculations(
        **position.model_dump(),
        unrealized_pnl=unrealized_pnl(position),
        performance_pct=performance_pct(position),
        days_held=days_held(position, today),
    )


# ── Portfolio aggregates ──────────────────────────────────────


def _live(positions: Iterable[PositionLike]) -> list[PositionLike]:
    return [p for p in positions if p.status == PositionStatus.LIVE]


def portfolio_cost_basis(positions: Iterable[PositionLike]) -> Decimal:
    """Sum of cost basis over Live positions."""
    return sum((_dec(p.cost_basis) for p in _live(positions)), ZERO)


def total_unrealized_pnl(positions: Iterable[PositionLike]) -> Decimal:
    """Sum of unrealized P&L over Live positions."""
    return sum((unrealized_pnl(p) for p in _live(positions)), ZERO)


def total_realized_pnl(positions: Iterable[PositionLike]) -> Decimal:
    """Sum of realized P&L over Closed positions that have one."""
    return sum(
        (
            _dec(p.realized_pnl)
            for p in positions
            if p.status == PositionStatus.CLOSED and p.realized_pnl is not None
        ),
        ZERO,
    )


@dataclass
class SectorAllocation:
    """Share of the live book held in one sector."""

    name: str
    value: Decimal
    percentage: Decimal


@dataclass
class PortfolioSummary:
    """Dashboard roll-up of a set of positions."""

    portfolio_cost_basis: Decimal = ZERO
    total_unrealized_pnl: Decimal = ZERO
    total_realized_pnl: Decimal = ZERO
    status_counts: dict[str, int] = field(default_factory=dict)
    sector_allocation: list[SectorAllocation] = field(default_factory=list)
    top_performers: list[PositionWithCalculations] = field(default_factory=list)


def sector_allocation(positions: Iterable[PositionLike]) -> list[SectorAllocation]:
    """Cost basis of Live positions grouped by sector, largest first."""
    positions = list(positions)
    total = portfolio_cost_basis(positions)
    by_sector: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for p in _live(positions):
        by_sector[p.sector or "Other"] += _dec(p.cost_basis)

    allocations = [
        SectorAllocation(
            name=name,
            value=value,
            percentage=(value / total * HUNDRED) if total > 0 else ZERO,
        )
        for name, value in by_sector.items()
        if value > 0
    ]
    allocations.sort(key=lambda a: a.value, reverse=True)
    return allocations


def top_performers(
    positions: Iterable[Position],
    limit: int = 5,
    today: date | None = None,
) -> list[PositionWithCalculations]:
    """Live positions ranked by performance_pct, best first."""
    enriched = [enrich(p, today) for p in _live(positions)]
    enriched.sort(key=lambda p: p.performance_pct, reverse=True)
    return enriched[:limit]


def status_counts(positions: Iterable[PositionLike]) -> dict[str, int]:
    """Number of positions per status; every status is present."""
    counts = {status.value: 0 for status in PositionStatus}
    for p in positions:
        counts[PositionStatus(p.status).value] += 1
    return counts


def summarize(positions: Iterable[Position], today: date | None = None) -> PortfolioSummary:
    positions = list(positions)
    return PortfolioSummary(
        portfolio_cost_basis=portfolio_cost_basis(positions),
        total_unrealized_pnl=total_unrealized_pnl(positions),
        total_realized_pnl=total_realized_pnl(positions),
        status_counts=status_counts(positions),
        sector_allocation=sector_allocation(positions),
        top_performers=top_performers(positions, today=today),
    )


# ── Formatting ────────────────────────────────────────────────


def _quantize(value: Decimal, decimals: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def format_currency(value: Decimal | float | int, decimals: int = 2) -> str:
    """USD with thousands separators: 1234.5 -> "$1,234.50", -3 -> "-$3.00".

    Dashboard totals pass ``decimals=0``.
    """
    amount = _quantize(_dec(value).copy_abs(), decimals)
    sign = "-" if _dec(value) < 0 and amount != 0 else ""
    return f"{sign}${amount:,.{decimals}f}"


def format_percentage(value: Decimal | float | int, decimals: int = 2) -> str:
    """Signed percentage: 12.5 -> "+12.50%", -3 -> "-3.00%", 0 -> "+0.00%"."""
    value = _dec(value)
    sign = "+" if value >= 0 else ""
    return f"{sign}{_quantize(value, decimals):.{decimals}f}%"
