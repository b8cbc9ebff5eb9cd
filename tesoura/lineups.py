"""Lineup store: computed squads per (date, half).

A (date, half) lineup is always written whole: exactly ``2 * capacity``
slots, empty ones carrying no player. Replacement swaps the complete slot
tuple under a lock, so a reader sees either the previous lineup or the new
one.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import pandas as pd

from tesoura.errors import ValidationError
from tesoura.utils import (
    SQUAD_SIZE,
    SQUADS,
    UNFILLED,
    canonical_name,
    parse_half,
    parse_session_date,
)


@dataclass(frozen=True)
class LineupAssignment:
    session_date: date
    half: str
    squad: str
    slot: int
    handle: Optional[str]
    points: int = 0

    @property
    def filled(self) -> bool:
        return self.handle is not None


def build_assignments(
    session_date: date,
    half: str,
    squad_a: Sequence[str],
    squad_b: Sequence[str],
    *,
    capacity: int = SQUAD_SIZE,
    points: Mapping[str, int] | None = None,
) -> List[LineupAssignment]:
    """Lay two squads out as ``2 * capacity`` slots, padding with unfilled ones."""

    if len(squad_a) > capacity or len(squad_b) > capacity:
        raise ValidationError(f"squad exceeds capacity {capacity}")
    points = points or {}
    seen: set[str] = set()
    rows: List[LineupAssignment] = []
    for squad, members in zip(SQUADS, (squad_a, squad_b)):
        for slot in range(1, capacity + 1):
            handle = members[slot - 1] if slot <= len(members) else None
            if handle is not None:
                key = canonical_name(handle)
                if key in seen:
                    raise ValidationError(f"{handle!r} assigned twice in the {half} half")
                seen.add(key)
            rows.append(
                LineupAssignment(
                    session_date=session_date,
                    half=half,
                    squad=squad,
                    slot=slot,
                    handle=handle,
                    points=int(points.get(canonical_name(handle), 0)) if handle else 0,
                )
            )
    return rows


class LineupStore(Protocol):
    def replace(
        self,
        session_date: Any,
        half: Any,
        squad_a: Sequence[str],
        squad_b: Sequence[str],
        *,
        capacity: int = SQUAD_SIZE,
        points: Mapping[str, int] | None = None,
    ) -> List[LineupAssignment]:
        raise NotImplementedError

    def get(self, session_date: Any, half: Any) -> List[LineupAssignment]:
        raise NotImplementedError

    def clear(self, session_date: Any, half: Any) -> bool:
        raise NotImplementedError


def filled_handles(store: LineupStore, session_date: Any, half: Any) -> List[str]:
    """Handles holding a filled slot of a stored lineup, squad A first."""
    rows = sorted(store.get(session_date, half), key=lambda a: (a.squad, a.slot))
    return [a.handle for a in rows if a.handle is not None]


class InMemoryLineupStore:
    def __init__(self) -> None:
        self._lineups: Dict[Tuple[date, str], Tuple[LineupAssignment, ...]] = {}
        self._lock = threading.Lock()

    def replace(
        self,
        session_date: Any,
        half: Any,
        squad_a: Sequence[str],
        squad_b: Sequence[str],
        *,
        capacity: int = SQUAD_SIZE,
        points: Mapping[str, int] | None = None,
    ) -> List[LineupAssignment]:
        day = parse_session_date(session_date)
        which = parse_half(half)
        rows = tuple(build_assignments(day, which, squad_a, squad_b, capacity=capacity, points=points))
        with self._lock:
            self._lineups[(day, which)] = rows
        return list(rows)

    def get(self, session_date: Any, half: Any) -> List[LineupAssignment]:
        key = (parse_session_date(session_date), parse_half(half))
        with self._lock:
            rows = self._lineups.get(key, ())
        return sorted(rows, key=lambda a: (a.squad, a.slot))

    def clear(self, session_date: Any, half: Any) -> bool:
        key = (parse_session_date(session_date), parse_half(half))
        with self._lock:
            return self._lineups.pop(key, None) is not None

    def clear_date(self, session_date: Any) -> int:
        day = parse_session_date(session_date)
        with self._lock:
            keys = [k for k in self._lineups if k[0] == day]
            for k in keys:
                del self._lineups[k]
        return len(keys)

    def players(self, session_date: Any, half: Any) -> List[str]:
        return filled_handles(self, session_date, half)

    # --------------------------
    # tabular round trip
    # --------------------------

    COLUMNS = ["Date", "Half", "Squad", "Slot", "PlayerName", "Points"]

    def to_frame(self) -> pd.DataFrame:
        with self._lock:
            items = sorted(self._lineups.items(), key=lambda kv: (kv[0][0], kv[0][1]))
        rows = [
            {
                "Date": a.session_date.isoformat(),
                "Half": a.half,
                "Squad": a.squad,
                "Slot": a.slot,
                "PlayerName": a.handle if a.handle is not None else UNFILLED,
                "Points": a.points,
            }
            for _, assignments in items
            for a in sorted(assignments, key=lambda x: (x.squad, x.slot))
        ]
        return pd.DataFrame(rows, columns=self.COLUMNS)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "InMemoryLineupStore":
        store = cls()
        if df.empty:
            return store
        missing = set(cls.COLUMNS) - set(df.columns)
        if missing:
            raise ValidationError(f"lineup table is missing columns: {sorted(missing)}")
        df = df.copy()
        df["Slot"] = pd.to_numeric(df["Slot"], errors="coerce").fillna(0).astype(int)
        df["Points"] = pd.to_numeric(df["Points"], errors="coerce").fillna(0).astype(int)
        df["PlayerName"] = df["PlayerName"].fillna("").astype(str).str.strip()
        for (raw_date, raw_half), group in df.groupby(["Date", "Half"], sort=True):
            day = parse_session_date(raw_date)
            which = parse_half(raw_half)
            rows = []
            for row in group.sort_values(["Squad", "Slot"], kind="mergesort").itertuples(index=False):
                squad = str(row.Squad).strip().upper()
                if squad not in SQUADS:
                    raise ValidationError(f"unknown squad {row.Squad!r} in lineup table")
                handle = row.PlayerName if row.PlayerName not in ("", UNFILLED) else None
                rows.append(
                    LineupAssignment(
                        session_date=day,
                        half=which,
                        squad=squad,
                        slot=int(row.Slot),
                        handle=handle,
                        points=int(row.Points) if handle else 0,
                    )
                )
            store._lineups[(day, which)] = tuple(rows)
        return store

    @classmethod
    def load_csv(cls, path: str | Path) -> "InMemoryLineupStore":
        csv_path = Path(path)
        if not csv_path.exists():
            return cls()
        df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
        return cls.from_frame(df)

    def save_csv(self, path: str | Path) -> None:
        csv_path = Path(path)
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        self.to_frame().to_csv(csv_path, index=False)


__all__ = [
    "LineupAssignment",
    "LineupStore",
    "InMemoryLineupStore",
    "build_assignments",
    "filled_handles",
]
