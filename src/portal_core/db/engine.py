"""Engine and session factory construction.

Nothing here is global: callers build a factory once and hand it to the
components that need a database (ledger, audit logger, role resolver).
"""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker


def _ensure_psycopg_driver(url: str) -> str:
    """Rewrite postgresql:// to postgresql+psycopg:// for psycopg v3."""
    if url.startswith("postgresql://"):
        return "postgresql+psycopg://" + url[len("postgresql://"):]
    return url


def create_session_factory(url: str, **kwargs) -> sessionmaker[Session]:
    """Create an engine for *url* and return a session factory bound to it.

    Extra keyword arguments are passed through to ``create_engine``.
    """
    engine = create_engine(_ensure_psycopg_driver(url), **kwargs)
    return sessionmaker(bind=engine, expire_on_commit=False)
