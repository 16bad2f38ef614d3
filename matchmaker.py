"""Public entry points of the matchmaking engine.

Every call relearns form and synergy from the full match history; nothing
is cached between calls.
"""

import logging
import random
from typing import Dict, List, Optional, Sequence

from config import DEFAULT_CONFIG, EngineConfig
from models import AutoMatchResult, Match, MatchProposal, Pair, Player, PlayerForm
from pairing import make_pair, optimize_pairs, solve_exact_pairs
from ratings import learn_forms, learn_synergy
from scheduler import (
    analyze,
    compute_handicap,
    match_cost,
    recent_match_keys,
    recent_pair_keys,
    schedule_matches,
)

logger = logging.getLogger(__name__)

PAIRING_METHODS = ("heuristic", "exact")


def run_auto_matchmaker(
    selected_player_ids: Sequence[str],
    players: Sequence[Player],
    matches: Sequence[Match],
    rng: Optional[random.Random] = None,
    method: str = "heuristic",
    config: EngineConfig = DEFAULT_CONFIG,
) -> AutoMatchResult:
    """Build teams from the selected players and pair the teams into matches.

    Args:
        selected_player_ids: Players attending the session. Ids missing from
            the roster are ignored.
        players: Full roster.
        matches: Full match history.
        rng: Random source for the local search (heuristic method only).
        method: "heuristic" (greedy + local swaps) or "exact" (CP-SAT).
        config: Engine constants.

    Raises:
        ValueError: if the number of selected players is odd, or ``method``
            is unknown. Nothing is computed in that case.
    """
    if method not in PAIRING_METHODS:
        raise ValueError(f"Unknown pairing method {method!r}; expected one of {PAIRING_METHODS}.")

    selected = {str(pid) for pid in selected_player_ids}
    roster = [p for p in players if p.id in selected]
    if len(roster) % 2 != 0:
        raise ValueError(
            f"An even number of players is required to build teams (got {len(roster)})."
        )

    forms = learn_forms(players, matches, config)
    synergy = learn_synergy(matches)
    pool = [forms[p.id] for p in roster]

    recent_pairs = recent_pair_keys(matches, config.matchmaker_recent_window)
    recent_matches = recent_match_keys(matches, config.matchmaker_recent_window)

    if method == "exact":
        pairs = solve_exact_pairs(pool, synergy, recent_pairs, config)
    else:
        pairs = optimize_pairs(pool, synergy, recent_pairs, rng=rng, config=config)
    proposals = schedule_matches(pairs, recent_matches, synergy, config)

    logger.info(
        "Matchmaker: %d players -> %d teams -> %d matches (%s)",
        len(pool), len(pairs), len(proposals), method,
    )
    return AutoMatchResult(players=pool, pairs=pairs, matches=proposals)


def _ranking_key(proposal: MatchProposal):
    points = proposal.handicap_points
    return (points > 0, points, proposal.match_cost)


def find_top_matchups_for_team(
    fixed_team_ids: Sequence[str],
    pool_ids: Sequence[str],
    players: Sequence[Player],
    matches: Sequence[Match],
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[MatchProposal]:
    """Best opponent teams for a fixed partnership.

    Every two-player combination of the pool is scored, so the work grows
    with the square of the pool size; pools above ``max_brute_force_pool``
    (about 50 players) are slow and get a warning.

    Returns:
        Up to ``top_matchups`` proposals: even matches first, then by fewer
        handicap points, then by lower match cost. Empty if either fixed
        player is unknown.
    """
    forms = learn_forms(players, matches, config)
    synergy = learn_synergy(matches)

    fixed_ids = [str(pid) for pid in fixed_team_ids[:2]]
    if len(fixed_ids) < 2 or any(pid not in forms for pid in fixed_ids):
        logger.debug("Fixed team %s cannot be resolved", fixed_ids)
        return []
    fixed = Pair(player1=forms[fixed_ids[0]], player2=forms[fixed_ids[1]])

    pool: List[PlayerForm] = []
    seen = set(fixed_ids)
    for pid in map(str, pool_ids):
        if pid in seen or pid not in forms:
            continue
        seen.add(pid)
        pool.append(forms[pid])

    if len(pool) > config.max_brute_force_pool:
        logger.warning(
            "Opponent pool of %d players exceeds %d; scoring all %d pairs",
            len(pool), config.max_brute_force_pool, len(pool) * (len(pool) - 1) // 2,
        )

    recent_matches = recent_match_keys(matches, config.query_recent_window)

    proposals: List[MatchProposal] = []
    for i in range(len(pool)):
        for j in range(i + 1, len(pool)):
            candidate = make_pair(pool[i], pool[j], synergy, set(), config)
            cost = match_cost(fixed, candidate, recent_matches, config)
            cost += config.candidate_cost_weight * candidate.cost
            proposals.append(
                MatchProposal(
                    team1=fixed,
                    team2=candidate,
                    match_cost=cost,
                    handicap=compute_handicap(fixed, candidate, config),
                    analysis=analyze(fixed, candidate, max(0.0, 100 - cost), synergy, config),
                )
            )

    proposals.sort(key=_ranking_key)
    return proposals[: config.top_matchups]


def _build_team(ids: Sequence[str], forms: Dict[str, PlayerForm]) -> Optional[Pair]:
    if not ids:
        return None
    first = forms.get(str(ids[0]))
    if first is None:
        return None
    # An unknown partner leaves a singles team.
    second = forms.get(str(ids[1])) if len(ids) > 1 else None
    return Pair(player1=first, player2=second)


def predict_match_outcome(
    team1_ids: Sequence[str],
    team2_ids: Sequence[str],
    players: Sequence[Player],
    matches: Sequence[Match],
    config: EngineConfig = DEFAULT_CONFIG,
) -> Optional[MatchProposal]:
    """Handicap and quality for an arbitrary singles or doubles match.

    Quality here is ``100 - 50 * strength gap`` (floored at 0), which is not
    on the same scale as the scheduler's ``100 - match cost``.
    Returns None if either team is empty or its first player is unknown.
    """
    forms = learn_forms(players, matches, config)
    team1 = _build_team(team1_ids, forms)
    team2 = _build_team(team2_ids, forms)
    if team1 is None or team2 is None:
        return None

    diff = abs(team1.strength - team2.strength)
    synergy = learn_synergy(matches)
    return MatchProposal(
        team1=team1,
        team2=team2,
        match_cost=0.0,
        handicap=compute_handicap(team1, team2, config),
        analysis=analyze(team1, team2, max(0.0, 100 - diff * 50), synergy, config),
    )
