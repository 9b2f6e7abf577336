"""SQLAlchemy ORM models for positions and their audit trail."""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Date, Enum, ForeignKey, Integer, Numeric, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime

from portal_core.db.base import Base
from portal_core.models.enums import AuditAction, PositionStatus, Visibility

SCHEMA = "portal"


def _enum_column(enum_cls: type[enum.Enum], name: str) -> Enum:
    """Store enum *values* ("Live", "members_view"), not member names."""
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class PositionRow(Base):
    __tablename__ = "positions"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    ticker: Mapped[str | None] = mapped_column(Text, nullable=True)
    sector: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[PositionStatus] = mapped_column(
        _enum_column(PositionStatus, "position_status"),
        nullable=False,
        default=PositionStatus.DRAFT,
    )
    visibility: Mapped[Visibility] = mapped_column(
        _enum_column(Visibility, "position_visibility"),
        nullable=False,
        default=Visibility.ADMIN_ONLY,
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    opened_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    entry_price: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    cost_basis: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    target_price: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    market_price: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    price_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closing_price: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    closing_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    realized_pnl: Mapped[Decimal | None] = mapped_column(Numeric, nullable=True)
    public_note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    notes_admin: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tags: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    created_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Optimistic lock: every UPDATE is "WHERE version = :seen" and bumps it
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class AuditLogRow(Base):
    __tablename__ = "audit_log"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    action: Mapped[AuditAction] = mapped_column(
        _enum_column(AuditAction, "audit_action"),
        nullable=False,
    )
    # No ON DELETE CASCADE: the trail outlives the position row
    position_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey(f"{SCHEMA}.positions.id"),
        nullable=True,
    )
    user_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    diff_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
