"""Pydantic domain models."""

from portal_core.models.audit import AuditLogEntry, NewAuditEntry
from portal_core.models.enums import AuditAction, PositionStatus, Role, Visibility
from portal_core.models.position import (
    Position,
    PositionCreate,
    PositionPatch,
    PositionWithCalculations,
)

__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "NewAuditEntry",
    "Position",
    "PositionCreate",
    "PositionPatch",
    "PositionStatus",
    "PositionWithCalculations",
    "Role",
    "Visibility",
]
