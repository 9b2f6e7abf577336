"""PositionLedger — position lifecycle, cost basis, closing and audit."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, TypeVar

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from portal_core.config.schema import LedgerConfig
from portal_core.db.tables.positions import PositionRow
from portal_core.errors import (
    ConcurrencyError,
    LedgerError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from portal_core.ledger import calculations, transitions
from portal_core.ledger.audit import AuditLogger
from portal_core.ledger.roles import RoleResolver
from portal_core.models.audit import AuditLogEntry, NewAuditEntry
from portal_core.models.enums import AuditAction, PositionStatus, Role, Visibility
from portal_core.models.position import (
    Position,
    PositionCreate,
    PositionPatch,
    PositionWithCalculations,
)

log = structlog.get_logger("position_ledger")

M = TypeVar("M", bound=BaseModel)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse(model: type[M], data: M | dict[str, Any]) -> M:
    """Accept a model instance or a plain dict; surface bad input as ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(str(exc)) from exc


def _positive(value: Any, name: str) -> Decimal:
    if value is None:
        raise ValidationError(f"{name} is required")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"{name} must be a number, got {value!r}") from exc
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{name} must be positive, got {value!r}")
    return amount


def _like_literal(text: str) -> str:
    """Escape LIKE wildcards so user text matches literally (escape char is a backslash)."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _as_date(value: date | str | None, name: str) -> date:
    if value is None or value == "":
        raise ValidationError(f"{name} is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be an ISO date, got {value!r}") from exc


class PositionLedger:
    """Owns position records and their audit trail.

    Each public method is one unit of work: one session, one transaction.
    The position write and its audit row commit together.

    Every mutator takes an optional ``expected_version``. When given, the
    call fails with ``ConcurrencyError`` if the stored version differs.
    Independently of that, the UPDATE is guarded by the version column, so a
    commit that lands between our read and our write is also detected.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: LedgerConfig | None = None,
        *,
        audit: AuditLogger | None = None,
        role_resolver: RoleResolver | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.config = config or LedgerConfig()
        self._clock = clock
        self.audit = audit or AuditLogger(session_factory, clock=clock)
        self._role_resolver = role_resolver

    # ── Session plumbing ──────────────────────────────────────

    @contextmanager
    def _unit_of_work(self, position_id: int | None = None) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except LedgerError:
            session.rollback()
            raise
        except StaleDataError as exc:
            session.rollback()
            raise ConcurrencyError(position_id) from exc
        except SQLAlchemyError as exc:
            session.rollback()
            log.error("store_operation_failed", position_id=position_id, error=str(exc))
            raise PersistenceError(str(exc)) from exc
        finally:
            session.close()

    def _load(
        self,
        session: Session,
        position_id: int,
        expected_version: int | None = None,
    ) -> PositionRow:
        row = session.get(PositionRow, position_id)
        if row is None:
            raise NotFoundError(position_id)
        if expected_version is not None and row.version != expected_version:
            raise ConcurrencyError(position_id, expected_version, row.version)
        return row

    def today(self) -> date:
        return self._clock().date()

    def _stamp(self, row: PositionRow, actor: str | None, now: datetime) -> None:
        row.updated_by = actor
        row.updated_at = now

    def _commit_with_audit(
        self,
        session: Session,
        row: PositionRow,
        action: AuditAction,
        actor: str | None,
        diff_summary: str,
        notes: str | None = None,
    ) -> Position:
        """Flush *row*, stage its audit entry and snapshot it."""
        session.flush()
        self.audit.stage(
            session,
            NewAuditEntry(
                action=action,
                position_id=row.id,
                user_id=actor,
                diff_summary=diff_summary,
                notes=notes,
            ),
        )
        session.flush()
        return Position.model_validate(row)

    # ── Reads ─────────────────────────────────────────────────

    def get(self, position_id: int) -> Position:
        with self._unit_of_work(position_id) as session:
            return Position.model_validate(self._load(session, position_id))

    def list_visible(
        self,
        role: Role | str,
        *,
        status: PositionStatus | str | None = None,
        sector: str | None = None,
        search: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Position]:
        """Positions *role* may see, newest entry first.

        Investors only ever get Live + members_view rows; the extra filters
        narrow that set and can never widen it.
        """
        try:
            role = Role(role)
            status = PositionStatus(status) if status is not None else None
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if offset < 0 or (limit is not None and limit < 0):
            raise ValidationError("limit and offset must be non-negative")

        stmt = select(PositionRow)
        if role is Role.INVESTOR:
            stmt = stmt.where(
                PositionRow.status == PositionStatus.LIVE,
                PositionRow.visibility == Visibility.MEMBERS_VIEW,
            )
        elif role is not Role.ADMIN:
            raise ValidationError(f"unsupported role {role!r}")

        if status is not None:
            stmt = stmt.where(PositionRow.status == status)
        if sector:
            stmt = stmt.where(PositionRow.sector == sector)
        if search:
            term = f"%{_like_literal(search.lower())}%"
            stmt = stmt.where(
                or_(
                    func.lower(PositionRow.title).like(term, escape="\\"),
                    func.lower(PositionRow.ticker).like(term, escape="\\"),
                )
            )
        stmt = stmt.order_by(PositionRow.entry_date.desc(), PositionRow.id.desc()).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._unit_of_work() as session:
            rows = session.execute(stmt).scalars().all()
            return [Position.model_validate(r) for r in rows]

    def list_for_user(self, user_id: str | None, **filters: Any) -> list[Position]:
        """Resolve *user_id*'s role, then list what that role may see."""
        if self._role_resolver is None:
            raise ValidationError("no role resolver configured")
        return self.list_visible(self._role_resolver(user_id), **filters)

    def enriched(self, position: Position) -> PositionWithCalculations:
        return calculations.enrich(position, today=self.today())

    def list_enriched(self, role: Role | str, **filters: Any) -> list[PositionWithCalculations]:
        return [self.enriched(p) for p in self.list_visible(role, **filters)]

    def audit_trail(self, position_id: int | None = None, *, limit: int | None = None) -> list[AuditLogEntry]:
        return self.audit.history(position_id, limit=limit)

    # ── Lifecycle ─────────────────────────────────────────────

    def create(self, data: PositionCreate | dict[str, Any], actor: str | None) -> Position:
        """Insert a new position with a derived cost basis."""
        data = _parse(PositionCreate, data)
        now = self._clock()
        entry_date = data.entry_date or now.date()

        row = PositionRow(
            title=data.title,
            ticker=data.ticker,
            sector=data.sector,
            status=data.status,
            visibility=data.visibility,
            entry_date=entry_date,
            opened_date=entry_date if data.status is PositionStatus.LIVE else None,
            entry_price=data.entry_price,
            quantity=data.quantity,
            cost_basis=calculations.cost_basis(data.entry_price, data.quantity),
            target_price=data.target_price,
            market_price=data.market_price,
            price_updated_at=now if data.market_price is not None else None,
            public_note=data.public_note,
            notes_admin=data.notes_admin,
            tags=list(data.tags),
            created_by=actor,
            updated_by=actor,
            created_at=now,
            updated_at=now,
        )
        with self._unit_of_work() as session:
            session.add(row)
            position = self._commit_with_audit(
                session,
                row,
                AuditAction.CREATE,
                actor,
                "Initial position created",
                notes=f"Position opened: {data.title}",
            )

        log.info(
            "position_created",
            position_id=position.id,
            actor=actor,
            status=position.status.value,
            cost_basis=str(position.cost_basis),
            version=position.version,
        )
        return position

    def update(
        self,
        position_id: int,
        patch: PositionPatch | dict[str, Any],
        actor: str | None,
        diff_summary: str | None = None,
        *,
        expected_version: int | None = None,
    ) -> Position:
        """Apply a partial edit.

        opened_date is filled the first time the position goes Live and is
        never changed afterwards. cost_basis follows entry_price/quantity.
        Entry terms are frozen once the position is Closed or Archived,
        since realized_pnl was computed from them.
        """
        patch = _parse(PositionPatch, patch)
        changes = patch.changes()
        now = self._clock()

        with self._unit_of_work(position_id) as session:
            row = self._load(session, position_id, expected_version)
            current = row.status
            target = changes.get("status", current)
            transitions.check_edit(current, target)
            transitions.check_terms_edit(current, changes)

            if "opened_date" in changes:
                if row.opened_date is not None and changes["opened_date"] != row.opened_date:
                    raise ValidationError(
                        f"opened_date is already {row.opened_date.isoformat()} and cannot change"
                    )
            elif row.opened_date is None and changes.get("status") is PositionStatus.LIVE:
                changes["opened_date"] = changes.get("entry_date") or row.entry_date or self.today()

            for name, value in changes.items():
                setattr(row, name, value)

            if "entry_price" in changes or "quantity" in changes:
                row.cost_basis = calculations.cost_basis(row.entry_price, row.quantity)

            self._stamp(row, actor, now)
            position = self._commit_with_audit(
                session,
                row,
                AuditAction.EDIT,
                actor,
                diff_summary or "Position updated",
            )

        log.info(
            "position_updated",
            position_id=position_id,
            actor=actor,
            fields=sorted(changes),
            version=position.version,
        )
        return position

    def close(
        self,
        position_id: int,
        closing_price: Decimal | float | str,
        closing_date: date | str,
        actor: str | None,
        public_note: str | None = None,
        *,
        expected_version: int | None = None,
    ) -> Position:
        """Close the position at *closing_price* and lock in realized P&L.

        One-way: a closed position cannot be closed again or reopened.
        """
        price = _positive(closing_price, "closing_price")
        closed_on = _as_date(closing_date, "closing_date")
        now = self._clock()

        with self._unit_of_work(position_id) as session:
            row = self._load(session, position_id, expected_version)
            transitions.check_close(row.status)
            if closed_on < row.entry_date:
                raise ValidationError(
                    f"closing_date {closed_on.isoformat()} is before entry_date {row.entry_date.isoformat()}"
                )

            pnl = calculations.realized_pnl(price, row.entry_price, row.quantity)
            row.status = PositionStatus.CLOSED
            row.closing_price = price
            row.closing_date = closed_on
            row.realized_pnl = pnl
            if public_note:
                row.public_note = public_note
            self._stamp(row, actor, now)

            position = self._commit_with_audit(
                session,
                row,
                AuditAction.CLOSE,
                actor,
                f"Position closed at {price}",
                notes=f"Realized P&L: {pnl:.2f}",
            )

        log.info(
            "position_closed",
            position_id=position_id,
            actor=actor,
            closing_price=str(price),
            realized_pnl=str(pnl),
            version=position.version,
        )
        return position

    def archive(
        self,
        position_id: int,
        actor: str | None,
        *,
        expected_version: int | None = None,
    ) -> Position:
        now = self._clock()
        with self._unit_of_work(position_id) as session:
            row = self._load(session, position_id, expected_version)
            previous = row.status
            transitions.check_archive(previous)
            row.status = PositionStatus.ARCHIVED
            self._stamp(row, actor, now)
            position = self._commit_with_audit(
                session, row, AuditAction.ARCHIVE, actor, "Position archived",
            )

        log.info(
            "position_archived",
            position_id=position_id,
            actor=actor,
            previous_status=previous.value,
            version=position.version,
        )
        return position

    def toggle_visibility(
        self,
        position_id: int,
        visibility: Visibility | str,
        actor: str | None,
        *,
        expected_version: int | None = None,
    ) -> Position:
        """Publish to members (members_view) or pull back (admin_only)."""
        try:
            visibility = Visibility(visibility)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if visibility is Visibility.MEMBERS_VIEW:
            action = AuditAction.PUBLISH
        elif visibility is Visibility.ADMIN_ONLY:
            action = AuditAction.UNPUBLISH
        else:
            raise ValidationError(f"unsupported visibility {visibility!r}")

        now = self._clock()
        with self._unit_of_work(position_id) as session:
            row = self._load(session, position_id, expected_version)
            row.visibility = visibility
            self._stamp(row, actor, now)
            position = self._commit_with_audit(
                session, row, action, actor, f"Visibility changed to {visibility.value}",
            )

        log.info(
            "position_visibility_changed",
            position_id=position_id,
            actor=actor,
            visibility=visibility.value,
            version=position.version,
        )
        return position

    def update_market_price(
        self,
        position_id: int,
        price: Decimal | float | str,
        actor: str | None,
        *,
        expected_version: int | None = None,
    ) -> Position:
        """Record a new mark and refresh price_updated_at."""
        mark = _positive(price, "market_price")
        now = self._clock()

        with self._unit_of_work(position_id) as session:
            row = self._load(session, position_id, expected_version)
            transitions.check_price_update(row.status, self.config.allow_price_updates_after_close)
            previous = row.market_price
            row.market_price = mark
            row.price_updated_at = now
            self._stamp(row, actor, now)
            position = self._commit_with_audit(
                session,
                row,
                AuditAction.PRICE_UPDATE,
                actor,
                f"Market price updated to {mark}",
                notes=f"Previous market price: {previous}" if previous is not None else None,
            )

        log.info(
            "market_price_updated",
            position_id=position_id,
            actor=actor,
            market_price=str(mark),
            version=position.version,
        )
        return position
