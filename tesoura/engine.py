"""Lineup computation for a session: ledger + collaborators -> squads.

Flow per (date, half):
1. eligible check-ins from the attendance ledger,
2. active players from the directory (skill, registration date),
3. payment status and attendance history per eligible player,
4. admission (``tesoura.admission``) and squad split (``tesoura.balancer``),
5. the lineup store replaces the (date, half) lineup in one step.

Any failure before step 5 leaves the stored lineup untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping

from tesoura.admission import AdmissionResult, select_admission
from tesoura.attendance import AttendanceLedger, AttendanceRecord
from tesoura.balancer import BALANCERS
from tesoura.config import Config, get_config
from tesoura.errors import DependencyError, EmptyRosterError, RosterError
from tesoura.history import HistoryAggregator, PlayerHistory
from tesoura.lineup_config import DEFAULT_ADMISSION_WEIGHTS, AdmissionWeights
from tesoura.lineups import LineupAssignment, LineupStore, filled_handles
from tesoura.payments import PaymentStatusResolver, resolve_statuses
from tesoura.players import Player, PlayerDirectory, index_players
from tesoura.utils import HALVES, UNFILLED, canonical_name, parse_half, parse_session_date


@dataclass
class LineupResult:
    session_date: date
    half: str
    admission: AdmissionResult
    squad_a: List[str]
    squad_b: List[str]
    assignments: List[LineupAssignment]


def record_to_dict(record: AttendanceRecord) -> Dict[str, object]:
    return {
        "sequence": record.sequence,
        "name": record.handle,
        "arrival_time": record.arrival_time,
        "note": record.note,
        "opted_out": record.opted_out,
        "left_early": record.left_early,
    }


def assignment_to_dict(assignment: LineupAssignment) -> Dict[str, object]:
    return {
        "squad": assignment.squad,
        "slot": assignment.slot,
        "name": assignment.handle if assignment.handle is not None else UNFILLED,
        "points": assignment.points,
    }


class LineupEngine:
    def __init__(
        self,
        *,
        ledger: AttendanceLedger,
        directory: PlayerDirectory,
        payments: PaymentStatusResolver,
        history: HistoryAggregator,
        lineups: LineupStore,
        config: Config | None = None,
        weights: AdmissionWeights = DEFAULT_ADMISSION_WEIGHTS,
    ):
        self.ledger = ledger
        self.directory = directory
        self.payments = payments
        self.history = history
        self.lineups = lineups
        self.config = config or get_config()
        self.weights = weights

    # --------------------------
    # collaborator reads
    # --------------------------

    def _read_players(self) -> List[Player]:
        try:
            players = self.directory.active_players()
        except EmptyRosterError:
            raise
        except Exception as exc:
            raise EmptyRosterError(f"player directory not readable: {exc}") from exc
        if not isinstance(players, list) or not all(isinstance(p, Player) for p in players):
            raise EmptyRosterError("player directory returned malformed data")
        return players

    def _read_history(self, day: date, handles: List[str]) -> Dict[str, PlayerHistory]:
        try:
            stats = self.history.stats(day, self.config.HISTORY_WINDOW, handles)
        except RosterError:
            raise
        except Exception as exc:
            raise DependencyError(f"attendance history lookup failed: {exc}") from exc
        if not isinstance(stats, Mapping):
            raise DependencyError("attendance history returned malformed data")
        out: Dict[str, PlayerHistory] = {}
        for key, entry in stats.items():
            if not isinstance(entry, PlayerHistory):
                raise DependencyError(f"attendance history for {key!r} is malformed: {entry!r}")
            out[canonical_name(key)] = entry
        return out

    # --------------------------
    # operations
    # --------------------------

    def compute_lineup(self, session_date: Any, half: Any) -> LineupResult:
        day = parse_session_date(session_date)
        which = parse_half(half)
        cfg = self.config

        records = self.ledger.eligible(day)
        players = index_players(self._read_players())
        handles = [r.handle for r in records]
        statuses = resolve_statuses(self.payments, day, handles)
        history = self._read_history(day, handles)
        first_half = filled_handles(self.lineups, day, "first") if which == "second" else []

        admission = select_admission(
            records,
            half=which,
            statuses=statuses,
            history=history,
            players=players,
            first_half=first_half,
            capacity=cfg.ADMIT_CAPACITY,
            weights=self.weights,
        )

        skills = {key: p.skill for key, p in players.items()}
        balance = BALANCERS[cfg.BALANCER]
        squad_a, squad_b = balance(admission.admitted, skills, cfg.SQUAD_SIZE)

        assignments = self.lineups.replace(
            day,
            which,
            squad_a,
            squad_b,
            capacity=cfg.SQUAD_SIZE,
            points=skills,
        )
        return LineupResult(
            session_date=day,
            half=which,
            admission=admission,
            squad_a=squad_a,
            squad_b=squad_b,
            assignments=assignments,
        )

    def undo_lineup(self, session_date: Any, half: Any) -> bool:
        return self.lineups.clear(session_date, half)

    def clear_session(self, session_date: Any) -> int:
        """Drop attendance and both lineups of a date; returns removed check-ins."""
        day = parse_session_date(session_date)
        removed = self.ledger.clear(day)
        for half in HALVES:
            self.lineups.clear(day, half)
        return removed

    def session_state(self, session_date: Any) -> Dict[str, object]:
        """Everything the attendance panel shows for one date."""

        day = parse_session_date(session_date)
        players = self._read_players()
        statuses = resolve_statuses(self.payments, day, [p.handle for p in players])
        return {
            "date": day.isoformat(),
            "players": [
                {"name": p.handle, "skill": p.skill, "payment": statuses[p.key].value}
                for p in players
            ],
            "attendance": [record_to_dict(r) for r in self.ledger.list(day)],
            "lineups": {
                half: [assignment_to_dict(a) for a in self.lineups.get(day, half)]
                for half in HALVES
            },
        }


__all__ = [
    "LineupEngine",
    "LineupResult",
    "record_to_dict",
    "assignment_to_dict",
]
