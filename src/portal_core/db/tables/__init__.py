"""Import all table modules so Base.metadata knows about them."""

from portal_core.db.tables.positions import AuditLogRow, PositionRow
from portal_core.db.tables.profiles import ProfileRow

__all__ = [
    "AuditLogRow",
    "PositionRow",
    "ProfileRow",
]
