"""Position models — ledger inputs, stored snapshots and derived views."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

from portal_core.models.enums import PositionStatus, Visibility

# Statuses a position may be created in; Closed/Archived are reached via close/archive
CREATABLE_STATUSES = frozenset({PositionStatus.DRAFT, PositionStatus.LIVE})


def _strip_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("title must not be blank")
    return v


Title = Annotated[str, AfterValidator(_strip_title)]


class PositionCreate(BaseModel):
    """Input for opening a new position. ``cost_basis`` is always derived."""

    model_config = ConfigDict(extra="forbid")

    title: Title
    ticker: str | None = None
    sector: str | None = None
    status: PositionStatus = PositionStatus.DRAFT
    visibility: Visibility = Visibility.ADMIN_ONLY
    entry_date: date | None = None
    entry_price: Decimal = Field(gt=0)
    quantity: Decimal = Field(gt=0)
    target_price: Decimal | None = Field(default=None, gt=0)
    market_price: Decimal | None = Field(default=None, gt=0)
    public_note: str = ""
    notes_admin: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("status")
    @classmethod
    def creatable_status(cls, v: PositionStatus) -> PositionStatus:
        if v not in CREATABLE_STATUSES:
            raise ValueError(f"positions cannot be created as {v.value}")
        return v


# Fields that may be omitted from a patch but never explicitly nulled
_NON_NULLABLE = (
    "title", "status", "visibility", "entry_date", "entry_price",
    "quantity", "public_note", "notes_admin", "tags",
)


class PositionPatch(BaseModel):
    """Partial edit. Only fields explicitly set are applied."""

    model_config = ConfigDict(extra="forbid")

    title: Title | None = None
    ticker: str | None = None
    sector: str | None = None
    status: PositionStatus | None = None
    visibility: Visibility | None = None
    entry_date: date | None = None
    opened_date: date | None = None
    entry_price: Decimal | None = Field(default=None, gt=0)
    quantity: Decimal | None = Field(default=None, gt=0)
    target_price: Decimal | None = Field(default=None, gt=0)
    public_note: str | None = None
    notes_admin: str | None = None
    tags: list[str] | None = None

    @model_validator(mode="after")
    def no_null_required(self) -> PositionPatch:
        nulled = [f for f in _NON_NULLABLE if f in self.model_fields_set and getattr(self, f) is None]
        if nulled:
            raise ValueError(f"fields cannot be cleared: {', '.join(nulled)}")
        return self

    def changes(self) -> dict:
        """The explicitly-set fields, as plain values."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class Position(BaseModel):
    """A stored position snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    ticker: str | None = None
    sector: str | None = None
    status: PositionStatus
    visibility: Visibility
    entry_date: date
    opened_date: date | None = None
    entry_price: Decimal
    quantity: Decimal
    cost_basis: Decimal
    target_price: Decimal | None = None
    market_price: Decimal | None = None
    price_updated_at: datetime | None = None
    closing_price: Decimal | None = None
    closing_date: date | None = None
    realized_pnl: Decimal | None = None
    public_note: str = ""
    notes_admin: str = ""
    tags: list[str] = Field(default_factory=list)
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime
    version: int

    @field_validator("public_note", "notes_admin", mode="before")
    @classmethod
    def none_to_empty(cls, v: str | None) -> str:
        return v or ""

    @field_validator("tags", mode="before")
    @classmethod
    def none_to_list(cls, v: list[str] | None) -> list[str]:
        return list(v or [])

    @field_validator("price_updated_at", "created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        # SQLite hands back naive datetimes; everything is written in UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class PositionWithCalculations(Position):
    """Position plus derived, never-persisted P&L figures."""

    unrealized_pnl: Decimal
    performance_pct: Decimal
    days_held: int
