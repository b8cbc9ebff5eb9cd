import pytest

from tesoura.balancer import (
    balance_squads,
    balance_squads_optimal,
    order_by_skill,
    squad_sum,
)


def _skills(**kwargs):
    return dict(kwargs)


def test_empty_list_gives_empty_squads():
    assert balance_squads([], {}) == ([], [])
    assert balance_squads_optimal([], {}) == ([], [])


def test_greedy_assigns_to_lower_sum():
    skills = _skills(a=9, b=8, c=7, d=6, e=5, f=4)

    squad_a, squad_b = balance_squads(list("fedcba"), skills)

    assert squad_a == ["a", "d", "e"]
    assert squad_b == ["b", "c", "f"]
    assert squad_sum(squad_a, skills) == 20
    assert squad_sum(squad_b, skills) == 19


def test_equal_skills_break_ties_by_handle():
    squad_a, squad_b = balance_squads(["bob", "amy", "cid", "dan"], {})
    assert squad_a == ["amy", "bob"]
    assert squad_b == ["cid", "dan"]


def test_short_list_keeps_sizes_within_one():
    skills = _skills(x=10, y=1, z=1, w=1)

    squad_a, squad_b = balance_squads(["x", "y", "z", "w"], skills)

    assert squad_a == ["x", "z"]
    assert squad_b == ["w", "y"]


@pytest.mark.parametrize(
    "skills",
    [
        {"p1": 10, "p2": 1, "p3": 1, "p4": 1, "p5": 1, "p6": 1, "p7": 1, "p8": 1},
        {"p1": 7, "p2": 7, "p3": 7, "p4": 2, "p5": 2},
        {f"p{i}": i for i in range(1, 21)},
        {"p1": 3},
    ],
)
def test_sizes_and_gap_bounded(skills):
    handles = list(skills)

    squad_a, squad_b = balance_squads(handles, skills)

    assert abs(len(squad_a) - len(squad_b)) <= 1
    assert sorted(squad_a + squad_b) == sorted(handles)
    gap = abs(squad_sum(squad_a, skills) - squad_sum(squad_b, skills))
    assert gap <= max(skills.values())


def test_capacity_overflow_leaves_extra_players_out():
    skills = _skills(a=5, b=4, c=3, d=2, e=1)

    squad_a, squad_b = balance_squads(list(skills), skills, capacity=2)

    assert len(squad_a) == 2
    assert len(squad_b) == 2
    assert "e" not in squad_a + squad_b


def test_greedy_is_deterministic_regardless_of_input_order():
    skills = _skills(a=4, b=4, c=3, d=3, e=2)
    first = balance_squads(["a", "b", "c", "d", "e"], skills)
    second = balance_squads(["e", "d", "c", "b", "a"], skills)
    assert first == second


def test_order_by_skill_uses_canonical_keys():
    skills = {"ana": 3, "bia": 5}
    assert order_by_skill(["ANA", "Bia"], skills) == ["Bia", "ANA"]


def test_optimal_reaches_minimum_gap():
    skills = _skills(p8=8, p7=7, p6=6, p5=5, p4=4)

    squad_a, squad_b = balance_squads_optimal(list(skills), skills)

    assert sorted(squad_a) == ["p4", "p5", "p6"]
    assert sorted(squad_b) == ["p7", "p8"]


def test_optimal_even_split_anchors_strongest_in_a():
    skills = _skills(a=9, b=8, c=7, d=6, e=5, f=4)

    squad_a, squad_b = balance_squads_optimal(list(skills), skills)

    assert len(squad_a) == len(squad_b) == 3
    assert "a" in squad_a
    assert abs(squad_sum(squad_a, skills) - squad_sum(squad_b, skills)) == 1
