"""Append-only audit trail for position mutations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from portal_core.db.tables.positions import AuditLogRow
from portal_core.errors import PersistenceError
from portal_core.models.audit import AuditLogEntry, NewAuditEntry

log = structlog.get_logger("audit_log")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditLogger:
    """Writes and reads audit rows. There is no update or delete path."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def stage(self, session: Session, entry: NewAuditEntry) -> AuditLogRow:
        """Add *entry* to the caller's transaction.

        The row commits or rolls back together with whatever else the
        session holds, so a mutation is never stored without its audit row.
        """
        row = AuditLogRow(
            action=entry.action,
            position_id=entry.position_id,
            user_id=entry.user_id,
            timestamp=self._clock(),
            diff_summary=entry.diff_summary,
            notes=entry.notes,
        )
        session.add(row)
        return row

    def record(self, entry: NewAuditEntry) -> AuditLogEntry | None:
        """Append *entry* in its own transaction, best effort.

        For events that happen outside a ledger transaction. A failed write
        is logged for the operator and reported as ``None``.
        """
        try:
            with self._session_factory() as session, session.begin():
                row = self.stage(session, entry)
                session.flush()
                stored = AuditLogEntry.model_validate(row)
        except SQLAlchemyError as exc:
            log.error(
                "audit_write_failed",
                action=entry.action.value,
                position_id=entry.position_id,
                user_id=entry.user_id,
                error=str(exc),
            )
            return None
        log.info("audit_recorded", audit_id=stored.id, action=stored.action.value)
        return stored

    def history(
        self,
        position_id: int | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        """Audit rows newest first, optionally for a single position."""
        stmt = select(AuditLogRow).order_by(AuditLogRow.timestamp.desc(), AuditLogRow.id.desc())
        if position_id is not None:
            stmt = stmt.where(AuditLogRow.position_id == position_id)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self._session_factory() as session:
                rows = session.execute(stmt).scalars().all()
                return [AuditLogEntry.model_validate(r) for r in rows]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to read audit log: {exc}") from exc
