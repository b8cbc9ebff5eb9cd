"""Error taxonomy for the attendance ledger and lineup engine.

Exception tree:
    RosterError
    +-- ValidationError   (missing/malformed date, handle or half input)
    |   +-- InvalidHalfError
    +-- DuplicateError    (check-in for a player already on the list)
    +-- NotFoundError     (flag toggle/removal without a record)
    +-- DependencyError   (a collaborator failed or returned malformed data)
        +-- EmptyRosterError  (the player directory cannot be read)
"""

from __future__ import annotations


class RosterError(ValueError):
    """Base class for every error raised by the engine."""


class ValidationError(RosterError):
    """Input rejected before touching the ledger."""


class InvalidHalfError(ValidationError):
    """Half is not ``first`` or ``second``."""


class DuplicateError(RosterError):
    """The player already has an attendance record for the date."""


class NotFoundError(RosterError):
    """No attendance record exists for (date, player)."""


class DependencyError(RosterError):
    """A collaborator call failed or returned malformed data.

    Missing payment/history data is never defaulted to "neutral"; callers get
    this error instead so fairness decisions are not silently biased.
    """


class EmptyRosterError(DependencyError):
    """The player directory could not be read."""


__all__ = [
    "RosterError",
    "ValidationError",
    "InvalidHalfError",
    "DuplicateError",
    "NotFoundError",
    "DependencyError",
    "EmptyRosterError",
]
