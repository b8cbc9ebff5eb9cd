"""Attendance ledger: who checked in for a session date, in arrival order.

Each date owns its own arena of records (keyed by canonical handle) and its
own lock, so check-ins for one date are serialised while different dates
never contend. Sequence numbers per date always form ``1..k``.
"""

from __future__ import annotations

import itertools
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional
from zoneinfo import ZoneInfo

import pandas as pd

from tesoura.errors import DuplicateError, NotFoundError, ValidationError
from tesoura.utils import (
    canonical_name,
    parse_arrival_time,
    parse_session_date,
    require_handle,
)


@dataclass(frozen=True)
class AttendanceRecord:
    """One check-in for a session date.

    Attributes:
        session_date: Date of the session.
        handle: Display handle as typed at check-in.
        key: Canonical handle, unique per date.
        sequence: 1-based arrival order within the date.
        arrival_time: ``HH:MM`` local time.
        note: Free-form note.
        opted_out: Present but not available for any lineup.
        left_early: Present for roll-call, penalised for the second half.
        record_id: Ledger-wide insertion id (final ordering tiebreak).
    """

    session_date: date
    handle: str
    key: str
    sequence: int
    arrival_time: str
    note: str = ""
    opted_out: bool = False
    left_early: bool = False
    record_id: int = 0


def _order_key(record: AttendanceRecord) -> tuple[int, int]:
    return record.sequence, record.record_id


class AttendanceLedger:
    def __init__(self, *, tz: ZoneInfo | str | None = None):
        if isinstance(tz, str):
            tz = ZoneInfo(tz)
        self._tz = tz
        self._records: Dict[date, Dict[str, AttendanceRecord]] = {}
        self._locks: Dict[date, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._ids = itertools.count(1)

    # --------------------------
    # internals
    # --------------------------

    def _lock_for(self, session_date: date) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(session_date)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_date] = lock
            return lock

    @contextmanager
    def _locked(self, session_date: date) -> Iterator[None]:
        """Hold the lock of ``session_date``; the lock is dropped once the date is empty."""
        while True:
            lock = self._lock_for(session_date)
            lock.acquire()
            with self._registry_lock:
                current = self._locks.get(session_date) is lock
            if current:
                break
            # dropped by the previous holder while we waited
            lock.release()
        try:
            yield
        finally:
            with self._registry_lock:
                if not self._records.get(session_date) and self._locks.get(session_date) is lock:
                    del self._locks[session_date]
            lock.release()

    def _next_id(self) -> int:
        with self._registry_lock:
            return next(self._ids)

    def _now(self) -> datetime:
        return datetime.now(self._tz) if self._tz is not None else datetime.now()

    def _require(self, session_date: date, handle: Any) -> tuple[str, AttendanceRecord]:
        key = canonical_name(require_handle(handle))
        record = self._records.get(session_date, {}).get(key)
        if record is None:
            raise NotFoundError(f"{handle!r} has no attendance record for {session_date.isoformat()}")
        return key, record

    # --------------------------
    # operations
    # --------------------------

    def check_in(
        self,
        session_date: Any,
        handle: Any,
        arrival_time: Any = None,
        *,
        note: str = "",
    ) -> AttendanceRecord:
        day = parse_session_date(session_date)
        shown = require_handle(handle)
        key = canonical_name(shown)
        arrival = parse_arrival_time(arrival_time, now=self._now())

        with self._locked(day):
            records = self._records.setdefault(day, {})
            if key in records:
                raise DuplicateError(f"{shown!r} is already checked in for {day.isoformat()}")
            max_seq = max((r.sequence for r in records.values()), default=0)
            record = AttendanceRecord(
                session_date=day,
                handle=shown,
                key=key,
                sequence=max_seq + 1,
                arrival_time=arrival,
                note=str(note or ""),
                record_id=self._next_id(),
            )
            records[key] = record
            return record

    def _set_flag(self, session_date: Any, handle: Any, **flag: bool) -> AttendanceRecord:
        day = parse_session_date(session_date)
        with self._locked(day):
            key, record = self._require(day, handle)
            updated = replace(record, **flag)
            self._records[day][key] = updated
            return updated

    def set_opted_out(self, session_date: Any, handle: Any, opted_out: bool) -> AttendanceRecord:
        return self._set_flag(session_date, handle, opted_out=bool(opted_out))

    def set_left_early(self, session_date: Any, handle: Any, left_early: bool) -> AttendanceRecord:
        return self._set_flag(session_date, handle, left_early=bool(left_early))

    def remove(self, session_date: Any, handle: Any) -> AttendanceRecord:
        """Delete a record and renumber the rest of the date to ``1..k``."""

        day = parse_session_date(session_date)
        with self._locked(day):
            key, record = self._require(day, handle)
            records = self._records[day]
            del records[key]
            for seq, r in enumerate(sorted(records.values(), key=_order_key), start=1):
                if r.sequence != seq:
                    records[r.key] = replace(r, sequence=seq)
            if not records:
                del self._records[day]
            return record

    def clear(self, session_date: Any) -> int:
        day = parse_session_date(session_date)
        with self._locked(day):
            removed = self._records.pop(day, {})
            return len(removed)

    def list(self, session_date: Any) -> List[AttendanceRecord]:
        day = parse_session_date(session_date)
        with self._locked(day):
            return sorted(self._records.get(day, {}).values(), key=_order_key)

    def eligible(self, session_date: Any) -> List[AttendanceRecord]:
        return [r for r in self.list(session_date) if not r.opted_out]

    def get(self, session_date: Any, handle: Any) -> Optional[AttendanceRecord]:
        day = parse_session_date(session_date)
        key = canonical_name(require_handle(handle))
        with self._locked(day):
            return self._records.get(day, {}).get(key)

    def dates(self) -> List[date]:
        snapshot = list(self._records.items())
        return sorted(d for d, recs in snapshot if recs)

    def __iter__(self) -> Iterator[AttendanceRecord]:
        for day in self.dates():
            yield from self.list(day)

    # --------------------------
    # tabular round trip
    # --------------------------

    COLUMNS = [
        "Date",
        "Sequence",
        "PlayerName",
        "ArrivalTime",
        "Note",
        "OptedOut",
        "LeftEarly",
        "RecordId",
    ]

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {
                "Date": r.session_date.isoformat(),
                "Sequence": r.sequence,
                "PlayerName": r.handle,
                "ArrivalTime": r.arrival_time,
                "Note": r.note,
                "OptedOut": int(r.opted_out),
                "LeftEarly": int(r.left_early),
                "RecordId": r.record_id,
            }
            for r in self
        ]
        return pd.DataFrame(rows, columns=self.COLUMNS)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, *, tz: ZoneInfo | str | None = None) -> "AttendanceLedger":
        """Rebuild a ledger from ``to_frame`` output.

        Raises ValidationError when a date holds duplicate players or its
        sequence numbers are not exactly ``1..k``.
        """

        ledger = cls(tz=tz)
        if df.empty:
            return ledger
        missing = {"Date", "Sequence", "PlayerName"} - set(df.columns)
        if missing:
            raise ValidationError(f"attendance table is missing columns: {sorted(missing)}")

        df = df.copy()
        for col, default in (("ArrivalTime", ""), ("Note", ""), ("OptedOut", 0), ("LeftEarly", 0), ("RecordId", 0)):
            if col not in df.columns:
                df[col] = default
        df["Sequence"] = pd.to_numeric(df["Sequence"], errors="coerce").fillna(0).astype(int)
        df["RecordId"] = pd.to_numeric(df["RecordId"], errors="coerce").fillna(0).astype(int)
        for col in ("OptedOut", "LeftEarly"):
            df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0).astype(int)
        df["Note"] = df["Note"].fillna("").astype(str)
        df["ArrivalTime"] = df["ArrivalTime"].fillna("").astype(str)

        max_id = int(df["RecordId"].max())
        next_id = max_id + 1
        for raw_date, group in df.groupby("Date", sort=True):
            day = parse_session_date(raw_date)
            group = group.sort_values(["Sequence", "RecordId"], kind="mergesort")
            seqs = group["Sequence"].tolist()
            if seqs != list(range(1, len(seqs) + 1)):
                raise ValidationError(f"attendance for {day.isoformat()} is not numbered 1..{len(seqs)}")
            records: Dict[str, AttendanceRecord] = {}
            for row in group.itertuples(index=False):
                shown = require_handle(row.PlayerName)
                key = canonical_name(shown)
                if key in records:
                    raise ValidationError(f"{shown!r} appears twice for {day.isoformat()}")
                record_id = int(row.RecordId)
                if record_id <= 0:
                    record_id = next_id
                    next_id += 1
                records[key] = AttendanceRecord(
                    session_date=day,
                    handle=shown,
                    key=key,
                    sequence=int(row.Sequence),
                    arrival_time=row.ArrivalTime if row.ArrivalTime else "",
                    note=row.Note,
                    opted_out=bool(row.OptedOut),
                    left_early=bool(row.LeftEarly),
                    record_id=record_id,
                )
            ledger._records[day] = records
        ledger._ids = itertools.count(next_id)
        return ledger

    @classmethod
    def load_csv(cls, path: str | Path, *, tz: ZoneInfo | str | None = None) -> "AttendanceLedger":
        csv_path = Path(path)
        if not csv_path.exists():
            return cls(tz=tz)
        df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
        return cls.from_frame(df, tz=tz)

    def save_csv(self, path: str | Path) -> None:
        csv_path = Path(path)
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        self.to_frame().to_csv(csv_path, index=False)


__all__ = ["AttendanceRecord", "AttendanceLedger"]
