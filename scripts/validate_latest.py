from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

UNFILLED = "-"


def _annotate(kind: str, message: str) -> None:
    print(f"::{kind}::{message}")


def report_error(message: str) -> None:
    _annotate("error", message)


def read_payload(path: Path) -> dict[str, Any] | None:
    """Parsed lineup export, or None after reporting why it is unusable."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        report_error(f"{path} does not exist; run the lineup command first")
        return None
    except OSError as exc:
        report_error(f"{path} is not readable: {exc}")
        return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        report_error(f"{path}:{exc.lineno}:{exc.colno}: {exc.msg}")
        return None

    if not isinstance(data, dict):
        report_error(f"{path} holds {type(data).__name__}, expected an object")
        return None
    return data


def validate_squads(squads: Any) -> bool:
    if not isinstance(squads, dict) or set(squads.keys()) != {"A", "B"}:
        report_error(".squads must be an object with keys A and B")
        return False

    sizes = {}
    filled = {}
    seen: set[str] = set()
    for squad in ("A", "B"):
        slots = squads[squad]
        if not isinstance(slots, list):
            report_error(f".squads.{squad} must be an array")
            return False
        sizes[squad] = len(slots)
        filled[squad] = 0
        for index, slot in enumerate(slots):
            if not isinstance(slot, dict) or "name" not in slot or "slot" not in slot:
                report_error(f".squads.{squad}[{index}] must be an object with name and slot")
                return False
            if slot["slot"] != index + 1:
                report_error(f".squads.{squad}[{index}] has slot {slot['slot']}, expected {index + 1}")
                return False
            name = str(slot["name"])
            if name == UNFILLED:
                continue
            key = name.strip().lower()
            if key in seen:
                report_error(f"player {name!r} appears more than once")
                return False
            seen.add(key)
            filled[squad] += 1

    if sizes["A"] != sizes["B"]:
        report_error(".squads.A and .squads.B must have the same number of slots")
        return False
    if abs(filled["A"] - filled["B"]) > 1:
        report_error(f"squad sizes differ by more than one ({filled['A']} vs {filled['B']})")
        return False
    return True


def validate_admission(admission: Any, squads: dict[str, Any]) -> bool:
    if not isinstance(admission, dict):
        report_error(".admission must be an object")
        return False
    admitted = admission.get("admitted")
    capacity = admission.get("capacity")
    if not isinstance(admitted, list) or not isinstance(capacity, int):
        report_error(".admission needs an admitted array and an integer capacity")
        return False
    if len(admitted) > capacity:
        report_error(f"{len(admitted)} players admitted over a capacity of {capacity}")
        return False
    placed = {
        str(slot["name"]).strip().lower()
        for slots in squads.values()
        for slot in slots
        if slot["name"] != UNFILLED
    }
    if placed != {str(name).strip().lower() for name in admitted}:
        report_error("admitted players and squad slots do not match")
        return False
    return True


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    path = Path(args[0] if args else "out/latest.json")
    data = read_payload(path)
    if data is None:
        return 1

    squads = data.get("squads")
    ok = validate_squads(squads) and validate_admission(data.get("admission"), squads)
    if ok:
        _annotate("notice", f"{path}: {data.get('half', '?')} half lineup is consistent")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
