from datetime import date

import pytest

from tesoura.attendance import AttendanceLedger
from tesoura.config import Config
from tesoura.engine import LineupEngine
from tesoura.errors import DependencyError, EmptyRosterError
from tesoura.history import LedgerHistoryAggregator, PlayerHistory
from tesoura.lineups import InMemoryLineupStore, build_assignments
from tesoura.payments import LedgerPaymentResolver, PaymentStatus
from tesoura.players import make_player
from tesoura.utils import parse_half, parse_session_date

DAY = "2026-01-25"
CFG = Config(SQUAD_SIZE=10, HISTORY_WINDOW=12, BALANCER="greedy", TIMEZONE="UTC", DATA_DIR="data")


class FakeDirectory:
    def __init__(self, players=None, error=None):
        self.players = players or []
        self.error = error

    def active_players(self):
        if self.error is not None:
            raise self.error
        return list(self.players)


class FakePayments:
    def __init__(self, error=None):
        self.error = error

    def status(self, session_date, handle):
        if self.error is not None:
            raise self.error
        return PaymentStatus.PENDING


class FakeHistory:
    def __init__(self, payload):
        self.payload = payload

    def stats(self, as_of_date, window_size=12, handles=None):
        return self.payload


def _engine(names, *, skills=None, payments=None, directory=None, history=None):
    skills = skills or {}
    ledger = AttendanceLedger(tz="UTC")
    for i, name in enumerate(names):
        ledger.check_in(DAY, name, f"09:{i:02d}")
    lineups = InMemoryLineupStore()
    return LineupEngine(
        ledger=ledger,
        directory=directory or FakeDirectory([make_player(n, skills.get(n, 1)) for n in names]),
        payments=payments or FakePayments(),
        history=history or LedgerHistoryAggregator(ledger, lineups),
        lineups=lineups,
        config=CFG,
    )


def _names(n):
    return [f"p{i:02d}" for i in range(1, n + 1)]


def test_first_half_trims_to_capacity_and_fills_slots():
    engine = _engine(_names(22))

    result = engine.compute_lineup(DAY, "first")

    assert result.admission.cut == ["p21", "p22"]
    assert len(result.assignments) == 20
    assert all(a.filled for a in result.assignments)
    assert abs(len(result.squad_a) - len(result.squad_b)) <= 1
    placed = sorted(a.handle for a in result.assignments)
    assert placed == sorted(result.admission.admitted)


def test_second_half_brings_in_players_cut_from_first():
    engine = _engine(_names(22))
    engine.compute_lineup(DAY, "first")

    result = engine.compute_lineup(DAY, "second")

    assert {"p21", "p22"} <= set(result.admission.admitted)
    assert len(result.admission.admitted) == 20


def test_compute_is_idempotent():
    skills = {n: i for i, n in enumerate(_names(14), start=1)}
    engine = _engine(_names(14), skills=skills)

    first = engine.compute_lineup(DAY, "first")
    again = engine.compute_lineup(DAY, "first")

    assert first.assignments == again.assignments
    assert engine.lineups.get(DAY, "first") == again.assignments


def test_opted_out_players_are_never_placed():
    engine = _engine(_names(5))
    engine.ledger.set_opted_out(DAY, "p03", True)

    result = engine.compute_lineup(DAY, "first")

    assert "p03" not in {a.handle for a in result.assignments}
    assert sum(a.filled for a in result.assignments) == 4


def test_empty_list_stores_unfilled_lineup():
    engine = _engine([])

    result = engine.compute_lineup(DAY, "first")

    assert result.admission.admitted == []
    assert len(result.assignments) == 20
    assert not any(a.filled for a in result.assignments)


def test_points_come_from_skill():
    engine = _engine(["Ana", "Bia"], skills={"Ana": 8, "Bia": 5})

    result = engine.compute_lineup(DAY, "first")

    points = {a.handle: a.points for a in result.assignments if a.filled}
    assert points == {"Ana": 8, "Bia": 5}


def test_payment_failure_keeps_previous_lineup():
    engine = _engine(_names(4))
    before = engine.compute_lineup(DAY, "first").assignments
    engine.payments = FakePayments(error=RuntimeError("timeout"))

    with pytest.raises(DependencyError):
        engine.compute_lineup(DAY, "first")

    assert engine.lineups.get(DAY, "first") == before


def test_directory_failure_is_empty_roster_error():
    engine = _engine(_names(2), directory=FakeDirectory(error=OSError("disk gone")))
    with pytest.raises(EmptyRosterError):
        engine.compute_lineup(DAY, "first")
    assert engine.lineups.get(DAY, "first") == []


def test_malformed_history_is_dependency_error():
    engine = _engine(_names(2), history=FakeHistory({"p01": {"missed": 1}}))
    with pytest.raises(DependencyError):
        engine.compute_lineup(DAY, "first")


def test_missing_history_entry_is_dependency_error():
    engine = _engine(
        _names(2),
        history=FakeHistory({"p01": PlayerHistory(missed_count=0, attended_previous=True)}),
    )
    with pytest.raises(DependencyError):
        engine.compute_lineup(DAY, "first")


def test_optimal_balancer_selected_by_config():
    engine = _engine(["p8", "p7", "p6", "p5", "p4"], skills={"p8": 8, "p7": 7, "p6": 6, "p5": 5, "p4": 4})
    engine.config = Config(SQUAD_SIZE=10, HISTORY_WINDOW=12, BALANCER="optimal", TIMEZONE="UTC", DATA_DIR="data")

    result = engine.compute_lineup(DAY, "first")

    assert sorted(result.squad_a) == ["p4", "p5", "p6"]
    assert sorted(result.squad_b) == ["p7", "p8"]


def test_undo_and_clear_session():
    engine = _engine(_names(3))
    engine.compute_lineup(DAY, "first")
    engine.compute_lineup(DAY, "second")

    assert engine.undo_lineup(DAY, "second") is True
    assert engine.lineups.get(DAY, "second") == []

    assert engine.clear_session(DAY) == 3
    assert engine.ledger.list(DAY) == []
    assert engine.lineups.get(DAY, "first") == []


def test_session_state_shape():
    engine = _engine(["Ana", "Bia"])
    engine.payments = LedgerPaymentResolver([("Ana", "2026-01")])
    engine.ledger.set_left_early(DAY, "Bia", True)
    engine.compute_lineup(DAY, "first")

    state = engine.session_state(date(2026, 1, 25))

    assert state["date"] == DAY
    assert {p["name"]: p["payment"] for p in state["players"]} == {"Ana": "paid", "Bia": "overdue"}
    assert [r["name"] for r in state["attendance"]] == ["Ana", "Bia"]
    assert state["attendance"][1]["left_early"] is True
    assert len(state["lineups"]["first"]) == 20
    assert state["lineups"]["second"] == []


class ContractStore:
    """Lineup store offering only replace/get/clear."""

    def __init__(self):
        self.rows = {}

    def replace(self, session_date, half, squad_a, squad_b, *, capacity=10, points=None):
        day, which = parse_session_date(session_date), parse_half(half)
        self.rows[(day, which)] = build_assignments(day, which, squad_a, squad_b, capacity=capacity, points=points)
        return list(self.rows[(day, which)])

    def get(self, session_date, half):
        return list(self.rows.get((parse_session_date(session_date), parse_half(half)), []))

    def clear(self, session_date, half):
        return self.rows.pop((parse_session_date(session_date), parse_half(half)), None) is not None


def test_engine_works_with_contract_only_store():
    ledger = AttendanceLedger(tz="UTC")
    names = _names(22)
    for name in names:
        ledger.check_in(DAY, name, "09:00")
    store = ContractStore()
    engine = LineupEngine(
        ledger=ledger,
        directory=FakeDirectory([make_player(n, 1) for n in names]),
        payments=FakePayments(),
        history=LedgerHistoryAggregator(ledger, store),
        lineups=store,
        config=CFG,
    )

    engine.compute_lineup(DAY, "first")
    second = engine.compute_lineup(DAY, "second")
    assert {"p21", "p22"} <= set(second.admission.admitted)

    assert engine.clear_session(DAY) == 22
    assert store.rows == {}
