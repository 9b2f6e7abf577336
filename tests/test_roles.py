"""Tests for role resolution."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from structlog.testing import capture_logs

from portal_core.db.tables.profiles import ProfileRow
from portal_core.errors import PersistenceError
from portal_core.ledger import ProfileRoleResolver, StaticRoleResolver
from portal_core.models import Role


@pytest.fixture
def resolver(session_factory):
    with session_factory() as session:
        session.add_all(
            [
                ProfileRow(id="u-admin", role="admin", full_name="Ada Admin"),
                ProfileRow(id="u-investor", role="investor"),
                ProfileRow(id="u-weird", role="superuser"),
            ]
        )
        session.commit()
    return ProfileRoleResolver(session_factory)


class TestProfileRoleResolver:
    def test_admin(self, resolver):
        assert resolver("u-admin") is Role.ADMIN

    def test_investor(self, resolver):
        assert resolver("u-investor") is Role.INVESTOR

    def test_unknown_user_is_investor(self, resolver):
        assert resolver("nobody") is Role.INVESTOR

    @pytest.mark.parametrize("user_id", [None, ""])
    def test_anonymous_is_investor(self, resolver, user_id):
        assert resolver(user_id) is Role.INVESTOR

    def test_unrecognized_role_is_investor(self, resolver):
        with capture_logs() as logs:
            assert resolver("u-weird") is Role.INVESTOR
        assert logs[0]["event"] == "unknown_role"
        assert logs[0]["role"] == "superuser"

    def test_store_failure(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path}/missing/dir/roles.db")
        resolver = ProfileRoleResolver(sessionmaker(bind=engine))
        with pytest.raises(PersistenceError):
            resolver("u-admin")
        engine.dispose()

    def test_drives_ledger_listing(self, resolver, session_factory, clock):
        from portal_core.ledger import PositionLedger

        ledger = PositionLedger(session_factory, role_resolver=resolver, clock=clock)
        ledger.create({"title": "draft", "entry_price": 1, "quantity": 1}, "u-admin")
        assert len(ledger.list_for_user("u-admin")) == 1
        assert ledger.list_for_user("u-investor") == []


class TestStaticRoleResolver:
    def test_mapping(self):
        resolver = StaticRoleResolver({"a": Role.ADMIN})
        assert resolver("a") is Role.ADMIN
        assert resolver("b") is Role.INVESTOR
        assert resolver(None) is Role.INVESTOR
