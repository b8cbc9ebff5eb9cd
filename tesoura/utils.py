# -*- coding: utf-8 -*-
"""
utils.py – helpers shared by the ledger, the collaborators and the engine.

- canonical_name: case-insensitive player handle key
- parse_session_date / parse_half / parse_arrival_time: input validation
- capacity constants for halves and squads
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime, time
from typing import Any

from tesoura.errors import InvalidHalfError, ValidationError

# ----------------------------
# Lineup capacities
# ----------------------------
SQUAD_SIZE = 10
ADMIT_CAPACITY = 2 * SQUAD_SIZE
HALVES = ("first", "second")
SQUADS = ("A", "B")
UNFILLED = "-"

# Panel labels "1T"/"2T" are accepted on input as well.
_HALF_ALIASES = {
    "first": "first",
    "1": "first",
    "1t": "first",
    "second": "second",
    "2": "second",
    "2t": "second",
}

# --------------------------------------------
# Handle normalisation (zero-width + case)
# --------------------------------------------
_ZW_REMOVALS = {
    "\u200b": "",  # ZERO WIDTH SPACE
    "\u200c": "",  # ZERO WIDTH NON-JOINER
    "\u200d": "",  # ZERO WIDTH JOINER
    "\u200e": "",  # LEFT-TO-RIGHT MARK
    "\u200f": "",  # RIGHT-TO-LEFT MARK
    "\u2060": "",  # WORD JOINER
    "\ufeff": "",  # ZERO WIDTH NO-BREAK SPACE (BOM)
}


def canonical_name(s: Any) -> str:
    """
    Normalises a player handle deterministically:
    - Unicode NFKC
    - strip zero-width/format characters
    - lowercasing
    - collapse + trim whitespace
    """
    if s is None:
        return ""
    s = unicodedata.normalize("NFKC", str(s))
    for k, v in _ZW_REMOVALS.items():
        s = s.replace(k, v)
    s = s.lower()
    s = " ".join(s.split())
    return s.strip()


def display_name(s: Any) -> str:
    """Trimmed display spelling of a handle (case preserved)."""
    if s is None:
        return ""
    s = unicodedata.normalize("NFKC", str(s))
    for k, v in _ZW_REMOVALS.items():
        s = s.replace(k, v)
    return " ".join(s.split())


def require_handle(handle: Any) -> str:
    """Return the display spelling of ``handle`` or raise ValidationError."""
    shown = display_name(handle)
    if not shown:
        raise ValidationError("player handle is missing")
    return shown


# ------------------------------------------------
# Dates, halves, arrival times
# ------------------------------------------------
_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_HHMM_RE = re.compile(r"(?<!\d)(\d{2}):(\d{2})(?!\d)")


def parse_session_date(value: Any) -> date:
    """Accepts a ``date`` or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value or "").strip()
    m = _DATE_RE.match(s)
    if not m:
        raise ValidationError(f"invalid session date {value!r} (expected YYYY-MM-DD)")
    try:
        return date(*map(int, m.groups()))
    except ValueError as exc:
        raise ValidationError(f"invalid session date {value!r}: {exc}") from exc


def parse_half(value: Any) -> str:
    key = str(value or "").strip().lower()
    half = _HALF_ALIASES.get(key)
    if half is None:
        raise InvalidHalfError(f"invalid half {value!r} (expected 'first' or 'second')")
    return half


def parse_arrival_time(value: Any, *, now: datetime | None = None) -> str:
    """
    Arrival time as ``HH:MM``.

    ``None``/empty falls back to ``now`` (or the wall clock) truncated to
    minutes; strings only need to contain ``HH:MM`` somewhere, so ISO
    timestamps from a browser clock are accepted as-is.
    """
    if isinstance(value, datetime):
        return value.strftime("%H:%M")
    if isinstance(value, time):
        return value.strftime("%H:%M")
    s = str(value or "").strip()
    if s:
        m = _HHMM_RE.search(s)
        if not m:
            raise ValidationError(f"invalid arrival time {value!r} (expected HH:MM)")
        hh, mm = int(m.group(1)), int(m.group(2))
        if hh > 23 or mm > 59:
            raise ValidationError(f"invalid arrival time {value!r} (expected HH:MM)")
        return f"{hh:02d}:{mm:02d}"
    current = now or datetime.now()
    return current.strftime("%H:%M")


__all__ = [
    "canonical_name",
    "display_name",
    "require_handle",
    "parse_session_date",
    "parse_half",
    "parse_arrival_time",
    "SQUAD_SIZE",
    "ADMIT_CAPACITY",
    "HALVES",
    "SQUADS",
    "UNFILLED",
]
