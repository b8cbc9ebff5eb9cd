"""Payment status per player and billing period.

Billing period = calendar month of the session date. Payments for a month
are due by the Monday following its second Sunday: before that cutoff every
player is ``pending``; from the cutoff on a player is ``paid`` when the
payment ledger has an entry for (player, period), else ``overdue``.
"""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Protocol, Set, Tuple

import pandas as pd

from tesoura.errors import DependencyError
from tesoura.utils import canonical_name, parse_session_date


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentStatusResolver(Protocol):
    def status(self, session_date: date, handle: str) -> PaymentStatus:
        raise NotImplementedError


def billing_period(session_date: date) -> str:
    return f"{session_date.year:04d}-{session_date.month:02d}"


def billing_cutoff(year: int, month: int) -> date:
    """Monday following the second Sunday of the month."""

    first = date(year, month, 1)
    first_sunday = first + timedelta(days=(6 - first.weekday()) % 7)
    second_sunday = first_sunday + timedelta(days=7)
    return second_sunday + timedelta(days=1)


def _normalize_period(value: Any) -> str:
    ts = pd.to_datetime(str(value or "").strip(), format="%Y-%m", errors="coerce")
    if ts is None or pd.isna(ts):
        ts = pd.to_datetime(str(value or "").strip(), errors="coerce")
    if ts is None or pd.isna(ts):
        return ""
    return f"{ts.year:04d}-{ts.month:02d}"


class LedgerPaymentResolver:
    """Resolver backed by a table of recorded payments (player, period)."""

    def __init__(self, payments: Iterable[Tuple[str, str]] = ()):
        self._paid: Set[Tuple[str, str]] = set()
        for handle, period in payments:
            key = canonical_name(handle)
            norm = _normalize_period(period)
            if key and norm:
                self._paid.add((key, norm))

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "LedgerPaymentResolver":
        cols = {str(c).strip().lower(): c for c in df.columns}
        name_col = cols.get("playername")
        period_col = cols.get("period")
        if name_col is None or period_col is None:
            raise DependencyError("payments table needs columns PlayerName, Period")
        pairs = zip(df[name_col].fillna("").astype(str), df[period_col].fillna("").astype(str))
        return cls(pairs)

    @classmethod
    def load_csv(cls, path: str | Path) -> "LedgerPaymentResolver":
        csv_path = Path(path)
        if not csv_path.exists():
            raise DependencyError(f"payment ledger not found: {csv_path}")
        try:
            df = pd.read_csv(csv_path, dtype=str, comment="#")
        except (OSError, ValueError) as exc:
            raise DependencyError(f"payment ledger not readable: {csv_path} ({exc})") from exc
        return cls.from_frame(df)

    def has_paid(self, handle: str, period: str) -> bool:
        return (canonical_name(handle), period) in self._paid

    def status(self, session_date: date, handle: str) -> PaymentStatus:
        day = parse_session_date(session_date)
        if day < billing_cutoff(day.year, day.month):
            return PaymentStatus.PENDING
        if self.has_paid(handle, billing_period(day)):
            return PaymentStatus.PAID
        return PaymentStatus.OVERDUE


class CsvPaymentResolver:
    """Reads ``payments.csv`` on first use, so commands that never ask for a
    payment status do not need the file."""

    def __init__(self, path: str | Path = "data/payments.csv"):
        self.path = Path(path)
        self._ledger: LedgerPaymentResolver | None = None

    def status(self, session_date: date, handle: str) -> PaymentStatus:
        if self._ledger is None:
            self._ledger = LedgerPaymentResolver.load_csv(self.path)
        return self._ledger.status(session_date, handle)


def resolve_statuses(
    resolver: PaymentStatusResolver,
    session_date: date,
    handles: Iterable[str],
) -> Dict[str, PaymentStatus]:
    """Status per canonical handle; any resolver failure is a DependencyError."""

    out: Dict[str, PaymentStatus] = {}
    for handle in handles:
        try:
            raw = resolver.status(session_date, handle)
        except DependencyError:
            raise
        except Exception as exc:
            raise DependencyError(f"payment status lookup failed for {handle!r}: {exc}") from exc
        try:
            status = PaymentStatus(raw)
        except ValueError as exc:
            raise DependencyError(f"payment status for {handle!r} is malformed: {raw!r}") from exc
        out[canonical_name(handle)] = status
    return out


__all__ = [
    "PaymentStatus",
    "PaymentStatusResolver",
    "LedgerPaymentResolver",
    "CsvPaymentResolver",
    "billing_period",
    "billing_cutoff",
    "resolve_statuses",
]
