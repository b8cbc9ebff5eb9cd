"""Admission: which present players play a half when the list exceeds capacity.

Ranking is an ordered list of ``SortRule(column, ascending)`` applied with a
stable sort, so the tie-break order is explicit and testable on its own:

First half (retention order, best first)
  1. attended the previous session
  2. not overdue
  3. fewer misses in the history window
  4. earlier arrival

Second half
  1. priority score (descending), see ``second_half_score``
  2. older registration (``created_at`` ascending)
  3. handle

Opted-out players never take part. When the eligible list fits into the
capacity everybody is admitted in arrival order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence

import pandas as pd

from tesoura.attendance import AttendanceRecord
from tesoura.errors import DependencyError, ValidationError
from tesoura.history import PlayerHistory
from tesoura.lineup_config import DEFAULT_ADMISSION_WEIGHTS, AdmissionWeights
from tesoura.payments import PaymentStatus
from tesoura.players import EPOCH, Player
from tesoura.utils import ADMIT_CAPACITY, canonical_name, parse_half


@dataclass(frozen=True)
class SortRule:
    column: str
    ascending: bool = True


FIRST_HALF_RULES = (
    SortRule("attended_previous", ascending=False),
    SortRule("overdue", ascending=True),
    SortRule("missed_count", ascending=True),
    SortRule("sequence", ascending=True),
)

SECOND_HALF_RULES = (
    SortRule("score", ascending=False),
    SortRule("created_ts", ascending=True),
    SortRule("key", ascending=True),
)

RULES_BY_HALF = {"first": FIRST_HALF_RULES, "second": SECOND_HALF_RULES}

CANDIDATE_COLUMNS = [
    "key",
    "handle",
    "sequence",
    "record_id",
    "left_early",
    "overdue",
    "missed_count",
    "attended_previous",
    "played_both_previous",
    "in_first_half",
    "created_ts",
    "skill",
    "score",
]


@dataclass
class AdmissionResult:
    half: str
    capacity: int
    admitted: List[str]
    cut: List[str]
    ranking: pd.DataFrame = field(repr=False)

    @property
    def trimmed(self) -> bool:
        return bool(self.cut)


def rank_candidates(frame: pd.DataFrame, rules: Sequence[SortRule]) -> pd.DataFrame:
    """Stable sort by ``rules``, evaluated left to right."""

    if frame.empty:
        return frame.reset_index(drop=True)
    return frame.sort_values(
        [r.column for r in rules],
        ascending=[r.ascending for r in rules],
        kind="mergesort",  # stable
    ).reset_index(drop=True)


def second_half_score(frame: pd.DataFrame, weights: AdmissionWeights) -> pd.Series:
    return (
        weights.sat_out_first_half * (~frame["in_first_half"]).astype(float)
        - weights.left_early * frame["left_early"].astype(float)
        - weights.absent_previous * (~frame["attended_previous"]).astype(float)
        - weights.played_both_previous * frame["played_both_previous"].astype(float)
        - weights.overdue * frame["overdue"].astype(float)
        - weights.per_miss * frame["missed_count"].astype(float)
    )


def build_candidates(
    records: Iterable[AttendanceRecord],
    *,
    statuses: Mapping[str, PaymentStatus],
    history: Mapping[str, PlayerHistory],
    players: Mapping[str, Player] | None = None,
    first_half: Iterable[str] = (),
    weights: AdmissionWeights = DEFAULT_ADMISSION_WEIGHTS,
) -> pd.DataFrame:
    """One row per eligible (not opted-out) record with every ranking signal."""

    players = players or {}
    first_keys = {canonical_name(h) for h in first_half}
    rows: List[Dict[str, object]] = []
    for record in records:
        if record.opted_out:
            continue
        key = record.key
        if key not in statuses:
            raise DependencyError(f"no payment status for {record.handle!r}")
        if key not in history:
            raise DependencyError(f"no attendance history for {record.handle!r}")
        stats = history[key]
        player = players.get(key)
        created_at = player.created_at if player is not None else EPOCH
        rows.append(
            {
                "key": key,
                "handle": record.handle,
                "sequence": int(record.sequence),
                "record_id": int(record.record_id),
                "left_early": bool(record.left_early),
                "overdue": PaymentStatus(statuses[key]) is PaymentStatus.OVERDUE,
                "missed_count": int(stats.missed_count),
                "attended_previous": bool(stats.attended_previous),
                "played_both_previous": bool(stats.played_both_halves_previous),
                "in_first_half": key in first_keys,
                "created_ts": created_at.timestamp(),
                "skill": int(player.skill) if player is not None else 0,
            }
        )

    frame = pd.DataFrame(rows, columns=CANDIDATE_COLUMNS[:-1])
    frame = frame.sort_values(["sequence", "record_id"], kind="mergesort").reset_index(drop=True)
    frame["score"] = second_half_score(frame, weights) if not frame.empty else pd.Series(dtype=float)
    return frame


def select_admission(
    records: Iterable[AttendanceRecord],
    *,
    half: str,
    statuses: Mapping[str, PaymentStatus],
    history: Mapping[str, PlayerHistory],
    players: Mapping[str, Player] | None = None,
    first_half: Iterable[str] = (),
    capacity: int = ADMIT_CAPACITY,
    weights: AdmissionWeights = DEFAULT_ADMISSION_WEIGHTS,
) -> AdmissionResult:
    """Trim the eligible list of a session to ``capacity`` players.

    ``first_half`` holds the handles assigned in the first-half lineup; it is
    only consulted for the second half.
    """

    which = parse_half(half)
    if capacity < 0:
        raise ValidationError(f"capacity must be >= 0, got {capacity}")

    frame = build_candidates(
        records,
        statuses=statuses,
        history=history,
        players=players,
        first_half=first_half if which == "second" else (),
        weights=weights,
    )

    if len(frame) <= capacity:
        ranking = frame.copy()
    else:
        ranking = rank_candidates(frame, RULES_BY_HALF[which])
    ranking["admitted"] = ranking.index < capacity

    admitted = ranking.loc[ranking["admitted"], "handle"].tolist()
    cut = ranking.loc[~ranking["admitted"], "handle"].tolist()
    return AdmissionResult(
        half=which,
        capacity=capacity,
        admitted=admitted,
        cut=cut,
        ranking=ranking,
    )


__all__ = [
    "SortRule",
    "FIRST_HALF_RULES",
    "SECOND_HALF_RULES",
    "AdmissionResult",
    "rank_candidates",
    "second_half_score",
    "build_candidates",
    "select_admission",
]
