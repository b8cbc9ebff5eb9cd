# -*- coding: utf-8 -*-
"""Split admitted players into squads A/B with close skill sums.

``balance_squads`` is the default: strongest players first, each one goes
to the squad with the lower running sum (A on a tie). A squad stops taking
players once it holds ``min(capacity, ceil(n / 2))`` players, which keeps
the sizes within one of each other even for short lists.

``balance_squads_optimal`` solves the same split exactly (minimum sum gap
for the same squad sizes) as a small binary program with PuLP/CBC.
"""

from __future__ import annotations

from typing import List, Mapping, Sequence, Tuple

import pulp

from tesoura.utils import SQUAD_SIZE, canonical_name


def _skill(skills: Mapping[str, int], handle: str) -> int:
    return int(skills.get(canonical_name(handle), 0))


def order_by_skill(handles: Sequence[str], skills: Mapping[str, int]) -> List[str]:
    """Skill descending, ties by handle."""
    return sorted(handles, key=lambda h: (-_skill(skills, h), canonical_name(h)))


def _squad_limit(n: int, capacity: int) -> int:
    return min(capacity, (n + 1) // 2)


def balance_squads(
    handles: Sequence[str],
    skills: Mapping[str, int],
    capacity: int = SQUAD_SIZE,
) -> Tuple[List[str], List[str]]:
    ranked = order_by_skill(handles, skills)
    limit = _squad_limit(min(len(ranked), 2 * capacity), capacity)

    squad_a: List[str] = []
    squad_b: List[str] = []
    sum_a = sum_b = 0
    for handle in ranked:
        a_full = len(squad_a) >= limit
        b_full = len(squad_b) >= limit
        if a_full and b_full:
            # only reachable with more than 2 * capacity players
            break
        s = _skill(skills, handle)
        if b_full or (not a_full and sum_a <= sum_b):
            squad_a.append(handle)
            sum_a += s
        else:
            squad_b.append(handle)
            sum_b += s
    return squad_a, squad_b


def balance_squads_optimal(
    handles: Sequence[str],
    skills: Mapping[str, int],
    capacity: int = SQUAD_SIZE,
) -> Tuple[List[str], List[str]]:
    ranked = order_by_skill(handles, skills)[: 2 * capacity]
    if not ranked:
        return [], []
    size_a = _squad_limit(len(ranked), capacity)
    values = [_skill(skills, h) for h in ranked]

    m = pulp.LpProblem("SquadBalance", pulp.LpMinimize)
    x = [pulp.LpVariable(f"x_{i}", cat="Binary") for i in range(len(ranked))]
    gap = pulp.LpVariable("gap", lowBound=0)

    total = sum(values)
    sum_a = pulp.lpSum(v * xi for v, xi in zip(values, x))
    m += gap
    m += pulp.lpSum(x) == size_a
    m += gap >= 2 * sum_a - total
    m += gap >= total - 2 * sum_a
    if 2 * size_a == len(ranked):
        # equal sizes: the strongest player anchors squad A, removing the mirrored optimum
        m += x[0] == 1

    m.solve(pulp.PULP_CBC_CMD(msg=False))
    if pulp.LpStatus[m.status] != "Optimal":
        print(f"[warn] balancer: solver status {pulp.LpStatus[m.status]} – falling back to greedy split")
        return balance_squads(handles, skills, capacity)

    squad_a = [h for h, xi in zip(ranked, x) if pulp.value(xi) > 0.5]
    squad_b = [h for h, xi in zip(ranked, x) if pulp.value(xi) <= 0.5]
    return squad_a, squad_b


BALANCERS = {
    "greedy": balance_squads,
    "optimal": balance_squads_optimal,
}


def squad_sum(squad: Sequence[str], skills: Mapping[str, int]) -> int:
    return sum(_skill(skills, h) for h in squad)


__all__ = [
    "BALANCERS",
    "balance_squads",
    "balance_squads_optimal",
    "order_by_skill",
    "squad_sum",
]
