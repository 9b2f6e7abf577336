"""Position lifecycle transition tables.

    Draft --(edit)--> Live --(close)--> Closed --(archive)--> Archived
    Draft/Live --(archive)--> Archived

Every table is keyed by every PositionStatus member so a new status cannot
be added without deciding how each operation treats it.
"""

from __future__ import annotations

from collections.abc import Iterable

from portal_core.errors import InvalidTransitionError
from portal_core.models.enums import PositionStatus

Draft = PositionStatus.DRAFT
Live = PositionStatus.LIVE
Closed = PositionStatus.CLOSED
Archived = PositionStatus.ARCHIVED

# Status changes reachable through a plain edit
EDIT_TRANSITIONS: dict[PositionStatus, frozenset[PositionStatus]] = {
    Draft: frozenset({Draft, Live}),
    Live: frozenset({Live, Draft}),
    Closed: frozenset({Closed}),
    Archived: frozenset({Archived}),
}

CAN_CLOSE: dict[PositionStatus, bool] = {
    Draft: True,
    Live: True,
    Closed: False,
    Archived: False,
}

CAN_ARCHIVE: dict[PositionStatus, bool] = {
    Draft: True,
    Live: True,
    Closed: True,
    Archived: False,
}

# Whether entry terms (price, quantity, entry date) may still be edited.
# Closed/Archived rows have a realized P&L that depends on them.
TERMS_EDITABLE: dict[PositionStatus, bool] = {
    Draft: True,
    Live: True,
    Closed: False,
    Archived: False,
}

TERM_FIELDS = frozenset({"entry_price", "quantity", "entry_date"})

# Whether a status still takes marks without the after-close override
ACCEPTS_MARKS: dict[PositionStatus, bool] = {
    Draft: True,
    Live: True,
    Closed: False,
    Archived: False,
}


def check_edit(current: PositionStatus, target: PositionStatus) -> None:
    if target not in EDIT_TRANSITIONS[current]:
        raise InvalidTransitionError("edit", current.value, target.value)


def check_terms_edit(current: PositionStatus, fields: Iterable[str]) -> None:
    touched = TERM_FIELDS.intersection(fields)
    if touched and not TERMS_EDITABLE[current]:
        names = ", ".join(sorted(touched))
        raise InvalidTransitionError(f"change {names} of", current.value)


def check_close(current: PositionStatus) -> None:
    if not CAN_CLOSE[current]:
        raise InvalidTransitionError("close", current.value)


def check_archive(current: PositionStatus) -> None:
    if not CAN_ARCHIVE[current]:
        raise InvalidTransitionError("archive", current.value)


def check_price_update(current: PositionStatus, allow_after_close: bool = False) -> None:
    if not ACCEPTS_MARKS[current] and not allow_after_close:
        raise InvalidTransitionError("update the market price of", current.value)
