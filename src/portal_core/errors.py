"""Ledger error taxonomy.

Every operation fails loud and once: nothing here is retried internally.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all position ledger errors."""


class ValidationError(LedgerError):
    """Missing or invalid input (non-positive price or quantity, blank title, ...)."""


class InvalidTransitionError(ValidationError):
    """A status change that the position lifecycle does not allow."""

    def __init__(self, operation: str, current: str, target: str | None = None) -> None:
        self.operation = operation
        self.current = current
        self.target = target
        if target is None:
            msg = f"cannot {operation} a position in status {current}"
        else:
            msg = f"cannot {operation} a position from {current} to {target}"
        super().__init__(msg)


class NotFoundError(LedgerError):
    """The referenced position does not exist."""

    def __init__(self, position_id: int) -> None:
        self.position_id = position_id
        super().__init__(f"position {position_id} not found")


class PersistenceError(LedgerError):
    """The underlying store rejected or failed an operation."""


class ConcurrencyError(LedgerError):
    """The position changed since the caller last read it."""

    def __init__(
        self,
        position_id: int | None,
        expected: int | None = None,
        actual: int | None = None,
    ) -> None:
        self.position_id = position_id
        self.expected = expected
        self.actual = actual
        msg = f"position {position_id} was modified concurrently"
        if expected is not None:
            msg += f" (expected version {expected}, found {actual})"
        super().__init__(msg)
