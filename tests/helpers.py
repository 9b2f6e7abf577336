"""Snapshot builders shared by the pure-function tests."""

from datetime import date, datetime, timezone
from decimal import Decimal

from portal_core.models import Position, PositionStatus, Visibility

_STAMP = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_position(**overrides) -> Position:
    entry_price = Decimal(str(overrides.pop("entry_price", "100")))
    quantity = Decimal(str(overrides.pop("quantity", "10")))
    fields = {
        "id": 1,
        "title": "Test position",
        "status": PositionStatus.LIVE,
        "visibility": Visibility.MEMBERS_VIEW,
        "entry_date": date(2024, 1, 1),
        "entry_price": entry_price,
        "quantity": quantity,
        "cost_basis": entry_price * quantity,
        "created_at": _STAMP,
        "updated_at": _STAMP,
        "version": 1,
    }
    fields.update(overrides)
    return Position(**fields)
