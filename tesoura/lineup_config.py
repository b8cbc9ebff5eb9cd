"""Admission weights for the second-half lineup.

The weights are policy, not contract: only their relative order matters
(sat out first half > left early > absent last week > played both halves last
week > overdue > misses). Values are read from ``data/lineup_config.yml`` (if
present) and fall back onto the defaults documented below.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml  # type: ignore


@dataclass(frozen=True)
class AdmissionWeights:
    sat_out_first_half: float
    left_early: float
    absent_previous: float
    played_both_previous: float
    overdue: float
    per_miss: float

    def to_snapshot(self) -> Dict[str, float]:
        return {k: float(v) for k, v in asdict(self).items()}


DEFAULT_ADMISSION_WEIGHTS = AdmissionWeights(
    sat_out_first_half=1000.0,
    left_early=900.0,
    absent_previous=500.0,
    played_both_previous=350.0,
    overdue=250.0,
    per_miss=20.0,
)


def _weight(block: Dict[str, Any], key: str, default: float) -> Tuple[float, bool]:
    """Non-negative weight for ``key`` plus whether the default was used."""
    raw = block.get(key)
    if raw is None or isinstance(raw, bool):
        return default, True
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default, True
    return max(0.0, value), False


def _admission_block(path: Path) -> Dict[str, Any] | None:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError):
        return None
    if not isinstance(data, dict):
        return None
    block = data.get("admission", data)
    return block if isinstance(block, dict) and block else None


def load_lineup_config(
    path: str | Path = "data/lineup_config.yml",
) -> Tuple[AdmissionWeights, Dict[str, Any]]:
    """Admission weights from ``path`` (``admission:`` block or flat keys).

    Returns ``(weights, meta)``; ``meta["defaults_applied"]`` lists the
    fields that were missing or invalid and fell back to the defaults.
    """

    cfg_path = Path(path)
    defaults = DEFAULT_ADMISSION_WEIGHTS.to_snapshot()
    meta: Dict[str, Any] = {
        "path": str(cfg_path),
        "loaded_from_file": False,
        "defaults_applied": [],
        "issues": [],
    }

    block = _admission_block(cfg_path)
    if block is None:
        meta["defaults_applied"] = sorted(defaults)
        meta["issues"].append("lineup config missing or empty; using defaults")
        if cfg_path.exists():
            print(f"[warn] lineup_config: {cfg_path} empty/unreadable – using built-in defaults")
        return DEFAULT_ADMISSION_WEIGHTS, meta

    meta["loaded_from_file"] = True
    values: Dict[str, float] = {}
    for key, default in defaults.items():
        values[key], fell_back = _weight(block, key, default)
        if fell_back:
            meta["defaults_applied"].append(key)

    if meta["defaults_applied"]:
        fields = ", ".join(sorted(meta["defaults_applied"]))
        meta["issues"].append(f"defaults used for fields: {fields}")
        print(f"[warn] lineup_config: fields missing/invalid ({fields}) – defaults used")
    print(f"[info] lineup_config: admission weights from {cfg_path}")
    return AdmissionWeights(**values), meta


__all__ = [
    "AdmissionWeights",
    "DEFAULT_ADMISSION_WEIGHTS",
    "load_lineup_config",
]
