"""Database layer — ORM base and session factory."""

from portal_core.db.base import Base
from portal_core.db.engine import create_session_factory

__all__ = ["Base", "create_session_factory"]
