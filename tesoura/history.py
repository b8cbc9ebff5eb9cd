# -*- coding: utf-8 -*-
"""
history.py – attendance history per player for the admission rules.

For a session date the aggregator looks back over the last K dates that
have any attendance (strictly before the session) and reports per player:

  * missed_count                – window dates without a check-in
  * attended_previous           – check-in exactly 7 days earlier
  * played_both_halves_previous – filled slot in both halves 7 days earlier

The previous date is a calendar rule (session − 7 days), not "the previous
date in the ledger"; a skipped week therefore counts as absent for everyone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, Optional, Protocol, Set

import pandas as pd

from tesoura.attendance import AttendanceLedger
from tesoura.errors import ValidationError
from tesoura.lineups import LineupStore, filled_handles
from tesoura.utils import canonical_name, parse_session_date

DEFAULT_WINDOW = 12


@dataclass(frozen=True)
class PlayerHistory:
    missed_count: int
    attended_previous: bool
    played_both_halves_previous: bool = False


class HistoryAggregator(Protocol):
    def stats(
        self,
        as_of_date: date,
        window_size: int = DEFAULT_WINDOW,
        handles: Optional[Iterable[str]] = None,
    ) -> Dict[str, PlayerHistory]:
        raise NotImplementedError


def previous_session(session_date: date) -> date:
    return session_date - timedelta(days=7)


class LedgerHistoryAggregator:
    """History computed from the attendance ledger and the lineup store."""

    def __init__(self, ledger: AttendanceLedger, lineups: LineupStore | None = None):
        self._ledger = ledger
        self._lineups = lineups

    def _played_both(self, day: date) -> Set[str]:
        if self._lineups is None:
            return set()
        first = {canonical_name(h) for h in filled_handles(self._lineups, day, "first")}
        second = {canonical_name(h) for h in filled_handles(self._lineups, day, "second")}
        return first & second

    def window_dates(self, as_of_date: date, window_size: int = DEFAULT_WINDOW) -> list[date]:
        day = parse_session_date(as_of_date)
        return [d for d in self._ledger.dates() if d < day][-int(window_size):]

    def stats(
        self,
        as_of_date: date,
        window_size: int = DEFAULT_WINDOW,
        handles: Optional[Iterable[str]] = None,
    ) -> Dict[str, PlayerHistory]:
        """
        Per canonical handle history. ``handles`` adds players that may have
        no record at all in the window (new members); they come back with
        every window date counted as missed.
        """
        day = parse_session_date(as_of_date)
        try:
            window_size = int(window_size)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"invalid history window {window_size!r}") from exc
        if window_size < 1:
            raise ValidationError("history window must be >= 1")

        df = self._ledger.to_frame()
        df["key"] = df["PlayerName"].map(canonical_name)
        df["Day"] = df["Date"].map(parse_session_date)

        window = self.window_dates(day, window_size)
        in_window = df[df["Day"].isin(window)]
        attended = in_window.groupby("key")["Day"].nunique()

        prev = previous_session(day)
        prev_keys = set(df.loc[df["Day"] == prev, "key"])
        both = self._played_both(prev)

        keys = set(attended.index) | prev_keys
        keys.update(canonical_name(h) for h in (handles or ()))
        keys.discard("")

        out: Dict[str, PlayerHistory] = {}
        for key in sorted(keys):
            out[key] = PlayerHistory(
                missed_count=len(window) - int(attended.get(key, 0)),
                attended_previous=key in prev_keys,
                played_both_halves_previous=key in both,
            )
        return out


__all__ = [
    "DEFAULT_WINDOW",
    "PlayerHistory",
    "HistoryAggregator",
    "LedgerHistoryAggregator",
    "previous_session",
]
