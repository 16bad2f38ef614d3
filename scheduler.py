import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set

from config import DEFAULT_CONFIG, EngineConfig
from models import Handicap, Match, MatchAnalysis, MatchProposal, Pair, match_key, pair_key
from ratings import expected_score, most_recent

logger = logging.getLogger(__name__)

# Upper bounds of the strength-gap bands; a gap above the last bound is 4 points.
HANDICAP_BANDS = (0.3, 0.6, 0.9, 1.2)


# ---------------------------------------------------------------------------
# Recency context
# ---------------------------------------------------------------------------

def recent_pair_keys(matches: Iterable[Match], window: int) -> Set[str]:
    """Partnerships that appeared in the ``window`` most recent matches."""
    keys: Set[str] = set()
    for m in most_recent(matches, window):
        for team in (m.team1, m.team2):
            if len(team) == 2:
                keys.add(pair_key(*team))
    return keys


def recent_match_keys(matches: Iterable[Match], window: int) -> Set[str]:
    """Four-player line-ups of the ``window`` most recent doubles matches."""
    return {
        match_key(m.team1 + m.team2)
        for m in most_recent(matches, window)
        if m.is_doubles
    }


# ---------------------------------------------------------------------------
# Costs, handicap and analysis
# ---------------------------------------------------------------------------

def match_cost(
    team1: Pair,
    team2: Pair,
    recent_matches: Set[str],
    config: EngineConfig = DEFAULT_CONFIG,
) -> float:
    """Imbalance of a proposed match (lower is better).

    Strength gap and structure gap are both squared; the structure term
    makes "carry" teams meet other "carry" teams and balanced teams meet
    balanced ones.
    """
    cost = config.strength_weight * (team1.strength - team2.strength) ** 2
    cost += config.structure_weight * (team1.structure - team2.structure) ** 2
    if match_key(team1.ids + team2.ids) in recent_matches:
        cost += config.repeat_match_penalty
    return cost


def handicap_points(diff: float) -> int:
    for points, upper in enumerate(HANDICAP_BANDS):
        if diff <= upper:
            return points
    return len(HANDICAP_BANDS)


def compute_handicap(
    team1: Pair,
    team2: Pair,
    config: EngineConfig = DEFAULT_CONFIG,
) -> Optional[Handicap]:
    """Points awarded to the weaker team, or None for an even match.

    The strength gap maps onto 0-4 points; a weaker team that includes a
    support player gets one extra point.
    """
    diff = abs(team1.strength - team2.strength)
    points = handicap_points(diff)
    if points == 0:
        return None

    weaker_side = 1 if team1.strength < team2.strength else 2
    weaker = team1 if weaker_side == 1 else team2
    if any(p.effective_rating < config.support_cutoff for p in weaker.members):
        points += 1

    return Handicap(team=weaker_side, points=points, reason=f"Strength gap {diff:.2f}")


def analyze(
    team1: Pair,
    team2: Pair,
    quality_score: float,
    synergy: Optional[Dict[str, float]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> MatchAnalysis:
    team2_synergy = 0.0
    if synergy and not team2.is_singles:
        team2_synergy = synergy.get(pair_key(*team2.ids), 0.0)
    return MatchAnalysis(
        team2_synergy=team2_synergy,
        team2_form=team2.form,
        quality_score=quality_score,
        team1_win_probability=expected_score(team1.strength, team2.strength, config),
    )


# ---------------------------------------------------------------------------
# Match scheduler
# ---------------------------------------------------------------------------

def schedule_matches(
    pairs: Sequence[Pair],
    recent_matches: Set[str],
    synergy: Optional[Dict[str, float]] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[MatchProposal]:
    """Pair teams into matches, strongest team first.

    Each round the strongest remaining team takes the opponent with the
    lowest ``match_cost``. With an odd number of teams the last one is left
    out (and a warning logged).
    """
    pool = sorted(pairs, key=lambda p: p.strength, reverse=True)
    proposals: List[MatchProposal] = []

    while len(pool) >= 2:
        team1 = pool.pop(0)

        best_idx = 0
        best_cost = float("inf")
        for idx, team2 in enumerate(pool):
            cost = match_cost(team1, team2, recent_matches, config)
            if cost < best_cost:
                best_cost = cost
                best_idx = idx

        team2 = pool.pop(best_idx)
        proposals.append(
            MatchProposal(
                team1=team1,
                team2=team2,
                match_cost=best_cost,
                handicap=compute_handicap(team1, team2, config),
                analysis=analyze(team1, team2, max(0.0, 100 - best_cost), synergy, config),
            )
        )

    if pool:
        logger.warning("Odd number of teams: %s left without a match", "/".join(pool[0].ids))

    return proposals
