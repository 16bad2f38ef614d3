"""Unit tests for the pairing cost and the pair optimizers."""

import random
from datetime import datetime, timedelta

import pytest

from config import EngineConfig
from models import Match, PlayerForm, pair_key
from pairing import (
    greedy_pairs,
    improve_pairs,
    make_pair,
    optimize_pairs,
    pairing_cost,
    solve_exact_pairs,
    total_pairing_cost,
)
from ratings import learn_synergy


def form(pid, rating):
    return PlayerForm(id=pid, base_rating=rating, form=0.0, effective_rating=rating)


@pytest.fixture
def four_players():
    return [form("w", 2.0), form("x", 3.0), form("y", 4.0), form("z", 5.0)]


@pytest.fixture
def session_pool():
    rng = random.Random(7)
    return [form(f"p{i}", round(rng.uniform(2.0, 5.5), 2)) for i in range(12)]


def test_ideal_gap_costs_nothing():
    assert pairing_cost(form("a", 2.8), form("b", 4.2), {}, set()) == pytest.approx(0.0)


def test_similar_partners_penalized():
    # (0.2 - 1.4)^2 + 1.5
    assert pairing_cost(form("a", 3.0), form("b", 3.2), {}, set()) == pytest.approx(2.94)


def test_broken_team_penalized():
    # (2.5 - 1.4)^2 + 3.0
    assert pairing_cost(form("a", 2.0), form("b", 4.5), {}, set()) == pytest.approx(4.21)


def test_two_support_players_penalized():
    # (0.5 - 1.4)^2 + 1.5 (too similar) + 10.0 (both support)
    assert pairing_cost(form("a", 2.0), form("b", 2.5), {}, set()) == pytest.approx(12.31)


def test_synergy_penalty_only_above_threshold():
    a, b = form("a", 3.0), form("b", 4.4)
    base = pairing_cost(a, b, {}, set())

    assert pairing_cost(a, b, {"a-b": 0.3}, set()) == pytest.approx(base)
    assert pairing_cost(a, b, {"a-b": 0.5}, set()) == pytest.approx(base + 1.0)
    assert pairing_cost(a, b, {"a-b": -0.5}, set()) == pytest.approx(base + 1.0)


def test_recent_partnership_penalized():
    a, b = form("a", 3.0), form("b", 4.4)
    base = pairing_cost(a, b, {}, set())
    assert pairing_cost(a, b, {}, {pair_key("b", "a")}) == pytest.approx(base + 15.0)


def test_cost_is_symmetric(session_pool):
    synergy = {pair_key("p0", "p1"): 0.8, pair_key("p2", "p3"): -0.6}
    recent = {pair_key("p1", "p2"), pair_key("p4", "p5")}
    for a in session_pool:
        for b in session_pool:
            if a.id == b.id:
                continue
            assert pairing_cost(a, b, synergy, recent) == pairing_cost(b, a, synergy, recent)


def test_pair_strength_and_structure():
    pair = make_pair(form("a", 4.5), form("b", 2.75), {}, set())
    assert pair.strength == pytest.approx(7.25)
    assert pair.structure == pytest.approx(1.75)
    assert pair.cost == pytest.approx(pairing_cost(form("a", 4.5), form("b", 2.75), {}, set()))


def test_greedy_seeds_weakest_player_first(four_players):
    pairs = greedy_pairs(four_players, {}, set())
    assert [p.ids for p in pairs] == [("w", "x"), ("y", "z")]


def test_four_player_session(four_players):
    pairs = optimize_pairs(four_players, {}, set(), rng=random.Random(1))

    assert sorted(p.ids for p in pairs) == [("w", "x"), ("y", "z")]
    for pair in pairs:
        assert pair.structure == pytest.approx(1.0)
        assert pair.cost == pytest.approx(0.16)


def test_odd_pool_rejected(four_players):
    with pytest.raises(ValueError):
        optimize_pairs(four_players[:3], {}, set())
    with pytest.raises(ValueError):
        solve_exact_pairs(four_players[:3], {}, set())


def test_empty_pool():
    assert optimize_pairs([], {}, set()) == []
    assert solve_exact_pairs([], {}, set()) == []


def test_local_search_repairs_bad_seed():
    seed = [
        make_pair(form("a", 2.0), form("b", 2.2), {}, set()),
        make_pair(form("c", 3.4), form("d", 3.6), {}, set()),
    ]
    improved = improve_pairs(seed, {}, set(), random.Random(3))

    assert total_pairing_cost(improved) == pytest.approx(0.08)
    assert total_pairing_cost(improved) < total_pairing_cost(seed)


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_local_search_never_regresses(session_pool, seed):
    synergy = {pair_key("p0", "p5"): 0.9}
    recent = {pair_key("p1", "p7"), pair_key("p2", "p9")}
    seeded = greedy_pairs(session_pool, synergy, recent)
    improved = improve_pairs(seeded, synergy, recent, random.Random(seed))

    assert total_pairing_cost(improved) <= total_pairing_cost(seeded)

    used = [pid for pair in improved for pid in pair.ids]
    assert sorted(used) == sorted(p.id for p in session_pool)
    for pair in improved:
        assert pair.cost == pytest.approx(
            pairing_cost(pair.player1, pair.player2, synergy, recent)
        )


def test_seeded_optimizer_is_reproducible(session_pool):
    first = optimize_pairs(session_pool, {}, set(), rng=random.Random(42))
    second = optimize_pairs(session_pool, {}, set(), rng=random.Random(42))
    assert [p.ids for p in first] == [p.ids for p in second]


def test_exact_solver_matches_small_optimum(four_players):
    pairs = solve_exact_pairs(four_players, {}, set())
    assert sorted(p.ids for p in pairs) == [("w", "x"), ("y", "z")]
    assert total_pairing_cost(pairs) == pytest.approx(0.32)


def test_exact_solver_is_no_worse_than_heuristic(session_pool):
    exact = solve_exact_pairs(session_pool, {}, set())
    heuristic = optimize_pairs(session_pool, {}, set(), rng=random.Random(0))

    used = sorted(pid for pair in exact for pid in pair.ids)
    assert used == sorted(p.id for p in session_pool)
    assert total_pairing_cost(exact) <= total_pairing_cost(heuristic) + 1e-2


def test_config_overrides_penalties():
    a, b = form("a", 3.0), form("b", 4.4)
    config = EngineConfig(repeat_pair_penalty=5.0, target_diff=1.0)
    # (1.4 - 1.0)^2 + 5.0
    assert pairing_cost(a, b, {}, {"a-b"}, config) == pytest.approx(5.16)


def test_unbeaten_partnership_pays_synergy_penalty():
    start = datetime(2025, 1, 6, 19, 0)
    history = [
        Match(id=f"m{i}", date=start + timedelta(days=i), team1=("a", "b"), team2=("c", "d"), winner=1)
        for i in range(5)
    ]
    synergy = learn_synergy(history)
    a, b = form("a", 3.0), form("b", 4.4)

    assert abs(synergy["a-b"]) > 0.35
    assert pairing_cost(a, b, synergy, set()) == pytest.approx(
        pairing_cost(a, b, {}, set()) + abs(synergy["a-b"]) * 2.0
    )
