from datetime import date

import pandas as pd
import pytest

from tesoura.errors import DependencyError
from tesoura.payments import (
    CsvPaymentResolver,
    LedgerPaymentResolver,
    PaymentStatus,
    billing_cutoff,
    billing_period,
    resolve_statuses,
)


@pytest.mark.parametrize(
    "year, month, expected",
    [
        (2026, 1, date(2026, 1, 12)),  # month starts on a Thursday
        (2026, 2, date(2026, 2, 9)),  # month starts on a Sunday
        (2026, 6, date(2026, 6, 15)),  # month starts on a Monday
    ],
)
def test_billing_cutoff_is_monday_after_second_sunday(year, month, expected):
    cutoff = billing_cutoff(year, month)
    assert cutoff == expected
    assert cutoff.weekday() == 0


def test_billing_period_is_calendar_month():
    assert billing_period(date(2026, 1, 25)) == "2026-01"


def test_status_pending_before_cutoff_then_paid_or_overdue():
    resolver = LedgerPaymentResolver([("Ana", "2026-01")])

    assert resolver.status(date(2026, 1, 11), "ana") is PaymentStatus.PENDING
    assert resolver.status(date(2026, 1, 11), "bia") is PaymentStatus.PENDING
    assert resolver.status(date(2026, 1, 12), "ANA") is PaymentStatus.PAID
    assert resolver.status(date(2026, 1, 18), "bia") is PaymentStatus.OVERDUE
    # January payment does not cover February
    assert resolver.status(date(2026, 2, 15), "ana") is PaymentStatus.OVERDUE


def test_from_frame_requires_columns():
    with pytest.raises(DependencyError):
        LedgerPaymentResolver.from_frame(pd.DataFrame({"Name": ["Ana"]}))

    resolver = LedgerPaymentResolver.from_frame(
        pd.DataFrame({"playername": ["Ana"], "PERIOD": ["2026-01-03"]})
    )
    assert resolver.has_paid("ana", "2026-01")


def test_csv_resolver_missing_file_raises_on_first_use(tmp_path):
    resolver = CsvPaymentResolver(tmp_path / "payments.csv")
    with pytest.raises(DependencyError):
        resolver.status(date(2026, 1, 25), "Ana")


def test_csv_resolver_reads_ledger(tmp_path):
    path = tmp_path / "payments.csv"
    path.write_text("PlayerName,Period\nAna,2026-01\n", encoding="utf-8")
    resolver = CsvPaymentResolver(path)
    assert resolver.status(date(2026, 1, 25), "Ana") is PaymentStatus.PAID
    assert resolver.status(date(2026, 1, 25), "Bia") is PaymentStatus.OVERDUE


class _Broken:
    def status(self, session_date, handle):
        raise RuntimeError("billing service down")


class _Garbage:
    def status(self, session_date, handle):
        return "maybe"


def test_resolve_statuses_keys_by_canonical_handle():
    resolver = LedgerPaymentResolver([("Ana", "2026-01")])
    out = resolve_statuses(resolver, date(2026, 1, 25), ["ANA ", "Bia"])
    assert out == {"ana": PaymentStatus.PAID, "bia": PaymentStatus.OVERDUE}


@pytest.mark.parametrize("resolver", [_Broken(), _Garbage()])
def test_resolve_statuses_wraps_failures(resolver):
    with pytest.raises(DependencyError):
        resolve_statuses(resolver, date(2026, 1, 25), ["Ana"])
