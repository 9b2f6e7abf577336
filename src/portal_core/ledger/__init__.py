"""Position ledger — lifecycle, derived P&L and audit trail."""

from portal_core.ledger.audit import AuditLogger
from portal_core.ledger.calculations import (
    PortfolioSummary,
    SectorAllocation,
    days_held,
    enrich,
    format_currency,
    format_percentage,
    performance_pct,
    portfolio_cost_basis,
    sector_allocation,
    status_counts,
    summarize,
    top_performers,
    total_realized_pnl,
    total_unrealized_pnl,
    unrealized_pnl,
)
from portal_core.ledger.roles import ProfileRoleResolver, RoleResolver, StaticRoleResolver
from portal_core.ledger.service import PositionLedger

__all__ = [
    "AuditLogger",
    "PortfolioSummary",
    "PositionLedger",
    "ProfileRoleResolver",
    "RoleResolver",
    "SectorAllocation",
    "StaticRoleResolver",
    "days_held",
    "enrich",
    "format_currency",
    "format_percentage",
    "performance_pct",
    "portfolio_cost_basis",
    "sector_allocation",
    "status_counts",
    "summarize",
    "top_performers",
    "total_realized_pnl",
    "total_unrealized_pnl",
    "unrealized_pnl",
]
