import logging
import random
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ortools.sat.python import cp_model

from config import DEFAULT_CONFIG, EngineConfig
from models import Pair, PlayerForm, pair_key

logger = logging.getLogger(__name__)

# CP-SAT needs an integer objective
COST_SCALE = 1000


def pairing_cost(
    p1: PlayerForm,
    p2: PlayerForm,
    synergy: Dict[str, float],
    recent_pairs: Set[str],
    config: EngineConfig = DEFAULT_CONFIG,
) -> float:
    """Cost of putting ``p1`` and ``p2`` on the same team (lower is better).

    Terms, all additive:
      - quadratic distance of the rating gap from ``target_diff``
        (one partner is expected to carry the other);
      - flat penalties for partners that are too similar or too far apart;
      - a heavy penalty for two support players together;
      - ``|synergy| * synergy_weight`` for partnerships whose chemistry is
        already well known, to keep line-ups varied;
      - ``repeat_pair_penalty`` if the partnership played recently.
    """
    diff = abs(p1.effective_rating - p2.effective_rating)

    cost = (diff - config.target_diff) ** 2
    if diff < config.similar_diff:
        cost += config.similar_penalty
    if diff > config.broken_diff:
        cost += config.broken_penalty
    if p1.effective_rating < config.support_cutoff and p2.effective_rating < config.support_cutoff:
        cost += config.support_pair_penalty

    key = pair_key(p1.id, p2.id)
    syn = synergy.get(key, 0.0)
    if abs(syn) > config.synergy_threshold:
        cost += abs(syn) * config.synergy_weight

    if key in recent_pairs:
        cost += config.repeat_pair_penalty

    return cost


def make_pair(
    p1: PlayerForm,
    p2: PlayerForm,
    synergy: Dict[str, float],
    recent_pairs: Set[str],
    config: EngineConfig = DEFAULT_CONFIG,
) -> Pair:
    return Pair(player1=p1, player2=p2, cost=pairing_cost(p1, p2, synergy, recent_pairs, config))


def total_pairing_cost(pairs: Sequence[Pair]) -> float:
    return sum(p.cost for p in pairs)


def _check_even(pool: Sequence[PlayerForm]) -> None:
    if len(pool) % 2 != 0:
        raise ValueError(
            f"Cannot split {len(pool)} players into teams of two; "
            "the pool must hold an even number of players."
        )


# ---------------------------------------------------------------------------
# Heuristic: greedy seeding + random local swaps
# ---------------------------------------------------------------------------

def greedy_pairs(
    pool: Sequence[PlayerForm],
    synergy: Dict[str, float],
    recent_pairs: Set[str],
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[Pair]:
    """Weakest player first, each takes the cheapest partner still free."""
    ordered = sorted(pool, key=lambda p: p.effective_rating)
    used: Set[str] = set()
    pairs: List[Pair] = []

    for i, p1 in enumerate(ordered):
        if p1.id in used:
            continue

        best: Optional[Pair] = None
        for p2 in ordered[i + 1:]:
            if p2.id in used:
                continue
            candidate = make_pair(p1, p2, synergy, recent_pairs, config)
            if best is None or candidate.cost < best.cost:
                best = candidate

        if best is not None:
            used.add(p1.id)
            used.add(best.player2.id)
            pairs.append(best)

    return pairs


def improve_pairs(
    pairs: Sequence[Pair],
    synergy: Dict[str, float],
    recent_pairs: Set[str],
    rng: random.Random,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[Pair]:
    """Random hill-climb over second-member swaps between two teams.

    A swap is kept only if it strictly lowers the total cost, so the result
    is never worse than the input.
    """
    pairs = list(pairs)
    if len(pairs) < 2:
        return pairs

    accepted = 0
    for _ in range(config.local_search_iterations):
        idx_a = rng.randrange(len(pairs))
        idx_b = rng.randrange(len(pairs))
        while idx_b == idx_a:
            idx_b = rng.randrange(len(pairs))

        pair_a, pair_b = pairs[idx_a], pairs[idx_b]
        new_a = make_pair(pair_a.player1, pair_b.player2, synergy, recent_pairs, config)
        new_b = make_pair(pair_b.player1, pair_a.player2, synergy, recent_pairs, config)

        delta = (new_a.cost + new_b.cost) - (pair_a.cost + pair_b.cost)
        if delta < 0:
            pairs[idx_a] = new_a
            pairs[idx_b] = new_b
            accepted += 1

    logger.debug("Local search accepted %d swaps", accepted)
    return pairs


def optimize_pairs(
    pool: Sequence[PlayerForm],
    synergy: Dict[str, float],
    recent_pairs: Set[str],
    rng: Optional[random.Random] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[Pair]:
    """Split ``pool`` into two-player teams with low total pairing cost.

    Not guaranteed optimal; pass a seeded ``rng`` for reproducible output.
    """
    _check_even(pool)
    rng = rng or random.Random()
    seeded = greedy_pairs(pool, synergy, recent_pairs, config)
    return improve_pairs(seeded, synergy, recent_pairs, rng, config)


# ---------------------------------------------------------------------------
# Exact: minimum-cost perfect matching with CP-SAT
# ---------------------------------------------------------------------------

def solve_exact_pairs(
    pool: Sequence[PlayerForm],
    synergy: Dict[str, float],
    recent_pairs: Set[str],
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[Pair]:
    """Optimal pairing of ``pool`` under ``pairing_cost``.

    The model has one boolean per possible partnership (O(n^2) variables)
    and is meant for session-sized pools.
    """
    _check_even(pool)
    ordered = sorted(pool, key=lambda p: p.effective_rating)
    if not ordered:
        return []

    candidates: List[Tuple[int, int, Pair]] = []
    for i in range(len(ordered)):
        for j in range(i + 1, len(ordered)):
            candidates.append((i, j, make_pair(ordered[i], ordered[j], synergy, recent_pairs, config)))

    model = cp_model.CpModel()
    x: Dict[Tuple[int, int], cp_model.IntVar] = {}
    for i, j, _pair in candidates:
        x[(i, j)] = model.NewBoolVar(f"x_{i}_{j}")

    # Every player on exactly one team
    for k in range(len(ordered)):
        vars_here = [x[(i, j)] for i, j, _pair in candidates if k in (i, j)]
        model.Add(sum(vars_here) == 1)

    model.Minimize(
        sum(int(round(pair.cost * COST_SCALE)) * x[(i, j)] for i, j, pair in candidates)
    )

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = config.exact_time_limit_seconds

    status = solver.Solve(model)
    if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        raise RuntimeError(f"Exact pairing: no feasible solution found (status={status}).")

    return [pair for i, j, pair in candidates if solver.Value(x[(i, j)]) == 1]
