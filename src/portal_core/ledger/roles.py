"""Role resolution — decides which listing branch a user gets."""

from __future__ import annotations

from typing import Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from portal_core.db.tables.profiles import ProfileRow
from portal_core.errors import PersistenceError
from portal_core.models.enums import Role

log = structlog.get_logger("roles")


class RoleResolver(Protocol):
    def __call__(self, user_id: str | None) -> Role: ...


class ProfileRoleResolver:
    """Looks the role up in ``profiles``; anyone unknown is an investor."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def __call__(self, user_id: str | None) -> Role:
        if not user_id:
            return Role.INVESTOR
        try:
            with self._session_factory() as session:
                value = session.execute(
                    select(ProfileRow.role).where(ProfileRow.id == user_id)
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to resolve role for {user_id}: {exc}") from exc

        if value is None:
            return Role.INVESTOR
        try:
            return Role(value)
        except ValueError:
            log.warning("unknown_role", user_id=user_id, role=value)
            return Role.INVESTOR


class StaticRoleResolver:
    """Fixed user → role mapping, for tests and scripts."""

    def __init__(self, roles: dict[str, Role]) -> None:
        self._roles = dict(roles)

    def __call__(self, user_id: str | None) -> Role:
        if user_id is None:
            return Role.INVESTOR
        return self._roles.get(user_id, Role.INVESTOR)
