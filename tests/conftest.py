"""Shared test fixtures."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import BigInteger, Integer, JSON, create_engine, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import portal_core.db.tables  # noqa: F401 (registers every table on Base.metadata)
from portal_core.config.schema import LedgerConfig
from portal_core.db.base import Base
from portal_core.ledger import PositionLedger, StaticRoleResolver
from portal_core.models import Role

NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock so timestamps and "today" are deterministic."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def session_factory():
    """In-memory SQLite session factory with all tables created.

    Patches JSONB→JSON and BigInteger→Integer for SQLite compatibility.
    StaticPool keeps one connection so every session sees the same database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _rec):
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    # SQLite doesn't support schemas, JSONB, or BigInteger autoincrement
    for table in Base.metadata.tables.values():
        table.schema = None
        for col in table.columns:
            if isinstance(col.type, JSONB):
                col.type = JSON()
            if isinstance(col.type, BigInteger):
                col.type = Integer()

    Base.metadata.create_all(engine)

    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def roles():
    return StaticRoleResolver({"admin-1": Role.ADMIN, "inv-1": Role.INVESTOR})


@pytest.fixture
def ledger(session_factory, clock, roles):
    return PositionLedger(session_factory, LedgerConfig(), role_resolver=roles, clock=clock)
