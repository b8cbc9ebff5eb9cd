# -*- coding: utf-8 -*-
"""Command line entry point for the attendance list and lineups.

State lives in CSV files inside the data directory:

* ``players.csv``   – PlayerName, Skill, Active, CreatedAt (read only)
* ``attendance.csv`` – attendance ledger, rewritten after every change
* ``payments.csv``  – PlayerName, Period (YYYY-MM), read for lineups/state
* ``lineups.csv``   – stored lineups per date and half

``lineup`` and ``state`` also export ``out/latest.json`` for the panel.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, List, Sequence

from tesoura.attendance import AttendanceLedger
from tesoura.config import get_config
from tesoura.engine import LineupEngine, LineupResult, assignment_to_dict
from tesoura.errors import RosterError
from tesoura.history import LedgerHistoryAggregator
from tesoura.lineup_config import load_lineup_config
from tesoura.lineups import InMemoryLineupStore
from tesoura.payments import CsvPaymentResolver
from tesoura.players import CsvPlayerDirectory


# --------------------------
# CLI
# --------------------------

def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Attendance list and half-time lineups")
    ap.add_argument(
        "--data-dir",
        default=None,
        help="Directory with players/attendance/payments/lineups CSVs (default: config DATA_DIR)",
    )
    ap.add_argument(
        "--out",
        default="out",
        help="Output directory for latest.json",
    )
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("checkin", help="Add a player to the attendance list")
    p.add_argument("date")
    p.add_argument("player")
    p.add_argument("--time", default=None, help="Arrival time HH:MM (default: now)")
    p.add_argument("--note", default="")

    for name, help_text in (
        ("opt-out", "Mark a present player as not playing"),
        ("left-early", "Mark a present player as having left early"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("date")
        p.add_argument("player")
        p.add_argument("--undo", action="store_true", help="Clear the flag instead of setting it")

    p = sub.add_parser("remove", help="Remove a player from the attendance list")
    p.add_argument("date")
    p.add_argument("player")

    p = sub.add_parser("clear", help="Drop attendance and lineups of a date")
    p.add_argument("date")

    for name, help_text in (
        ("lineup", "Compute and store the lineup of a half"),
        ("undo", "Discard the stored lineup of a half"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("date")
        p.add_argument("half", help="first|second (1T/2T accepted)")

    p = sub.add_parser("state", help="Export the attendance panel state of a date")
    p.add_argument("date")

    return ap.parse_args(argv)


# --------------------------
# Wiring + payload helpers
# --------------------------

def _build_engine(data_dir: Path) -> LineupEngine:
    cfg = get_config()
    ledger = AttendanceLedger.load_csv(data_dir / "attendance.csv", tz=cfg.TIMEZONE)
    lineups = InMemoryLineupStore.load_csv(data_dir / "lineups.csv")
    weights, _meta = load_lineup_config(data_dir / "lineup_config.yml")
    return LineupEngine(
        ledger=ledger,
        directory=CsvPlayerDirectory(data_dir / "players.csv"),
        payments=CsvPaymentResolver(data_dir / "payments.csv"),
        history=LedgerHistoryAggregator(ledger, lineups),
        lineups=lineups,
        config=cfg,
        weights=weights,
    )


def _save(engine: LineupEngine, data_dir: Path) -> None:
    engine.ledger.save_csv(data_dir / "attendance.csv")
    engine.lineups.save_csv(data_dir / "lineups.csv")


def _lineup_payload(result: LineupResult) -> Dict[str, object]:
    ranking = result.admission.ranking
    squads: Dict[str, List[Dict[str, object]]] = {"A": [], "B": []}
    for a in result.assignments:
        squads[a.squad].append(assignment_to_dict(a))
    return {
        "date": result.session_date.isoformat(),
        "half": result.half,
        "squads": squads,
        "admission": {
            "capacity": result.admission.capacity,
            "admitted": result.admission.admitted,
            "cut": result.admission.cut,
            "ranking": json.loads(ranking.to_json(orient="records")),
        },
        "stats": {
            "eligible": len(ranking),
            "squad_a": len(result.squad_a),
            "squad_b": len(result.squad_b),
            "points_a": sum(a.points for a in result.assignments if a.squad == "A"),
            "points_b": sum(a.points for a in result.assignments if a.squad == "B"),
        },
    }


def _write_outputs(out_dir: Path, payload: Dict[str, object]) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    json_str = json.dumps(payload, ensure_ascii=False, indent=2)
    (out_dir / "latest.json").write_text(json_str, encoding="utf-8")


def _run(args: argparse.Namespace, engine: LineupEngine, out_dir: Path) -> str:
    cmd = args.command
    if cmd == "checkin":
        rec = engine.ledger.check_in(args.date, args.player, args.time, note=args.note)
        return f"{rec.handle} checked in as #{rec.sequence} at {rec.arrival_time}"
    if cmd == "opt-out":
        rec = engine.ledger.set_opted_out(args.date, args.player, not args.undo)
        return f"{rec.handle}: opted_out={int(rec.opted_out)}"
    if cmd == "left-early":
        rec = engine.ledger.set_left_early(args.date, args.player, not args.undo)
        return f"{rec.handle}: left_early={int(rec.left_early)}"
    if cmd == "remove":
        rec = engine.ledger.remove(args.date, args.player)
        return f"{rec.handle} removed; {len(engine.ledger.list(args.date))} remaining"
    if cmd == "clear":
        removed = engine.clear_session(args.date)
        return f"cleared {removed} check-ins and lineups for {args.date}"
    if cmd == "undo":
        dropped = engine.undo_lineup(args.date, args.half)
        return f"lineup {args.half} {'discarded' if dropped else 'was not stored'}"
    if cmd == "lineup":
        result = engine.compute_lineup(args.date, args.half)
        payload = _lineup_payload(result)
        _write_outputs(out_dir, payload)
        return (
            f"{result.half} half lineup built from {payload['stats']['eligible']} eligible → "
            f"A: {len(result.squad_a)} ({payload['stats']['points_a']} pts), "
            f"B: {len(result.squad_b)} ({payload['stats']['points_b']} pts), "
            f"cut: {len(result.admission.cut)}"
        )
    if cmd == "state":
        payload = engine.session_state(args.date)
        _write_outputs(out_dir, payload)
        return f"state for {args.date} written to {out_dir / 'latest.json'}"
    raise SystemExit(f"[fatal] unknown command {cmd!r}")


# --------------------------
# Main
# --------------------------

def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    cfg = get_config()
    data_dir = Path(args.data_dir or cfg.DATA_DIR)
    try:
        engine = _build_engine(data_dir)
        message = _run(args, engine, Path(args.out))
    except RosterError as exc:
        raise SystemExit(f"[fatal] {type(exc).__name__}: {exc}") from exc
    _save(engine, data_dir)
    print(f"[ok] {message}")


if __name__ == "__main__":  # pragma: no cover
    main()
