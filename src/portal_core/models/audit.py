"""Audit log models."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, field_validator

from portal_core.models.enums import AuditAction


class NewAuditEntry(BaseModel):
    """What a caller hands to the audit logger; id and timestamp are assigned on write."""

    action: AuditAction
    position_id: int | None = None
    user_id: str | None = None
    diff_summary: str | None = None
    notes: str | None = None


class AuditLogEntry(NewAuditEntry):
    """A stored, immutable audit row."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
