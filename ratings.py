import logging
import math
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from config import DEFAULT_CONFIG, EngineConfig
from models import Match, Player, PlayerForm, pair_key

logger = logging.getLogger(__name__)


def normalize_rating(raw: Optional[float], config: EngineConfig = DEFAULT_CONFIG) -> float:
    """Map a stored rating onto the skill scale.

    Values above ``legacy_rating_threshold`` come from the old points system
    and collapse to ``default_rating``, as do missing and non-positive values.
    """
    if raw is None:
        return config.default_rating
    raw = float(raw)
    if math.isnan(raw) or raw <= 0 or raw > config.legacy_rating_threshold:
        return config.default_rating
    return raw


def expected_score(rating1: float, rating2: float, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """Probability that side 1 beats side 2 under the logistic model."""
    return 1.0 / (1.0 + 10 ** ((rating2 - rating1) / config.sensitivity))


def chronological(matches: Iterable[Match]) -> List[Match]:
    return sorted(matches, key=lambda m: m.date)


def most_recent(matches: Iterable[Match], limit: int) -> List[Match]:
    return sorted(matches, key=lambda m: m.date, reverse=True)[:limit]


# ---------------------------------------------------------------------------
# Form learner
# ---------------------------------------------------------------------------

def learn_forms(
    players: Iterable[Player],
    matches: Iterable[Match],
    config: EngineConfig = DEFAULT_CONFIG,
) -> Dict[str, PlayerForm]:
    """Replay the match log in date order and learn each player's form.

    Each doubles match moves ``k_factor * (actual - expected)`` of form from
    the losing side to the winning side, split evenly between teammates.
    Matches that are not two-a-side, or that reference a player missing from
    the roster, are skipped without touching anyone's form.

    Returns:
        Mapping player id -> PlayerForm with effective rating rounded to
        two decimals.
    """
    base: Dict[str, float] = {}
    for p in players:
        base[p.id] = normalize_rating(p.raw_rating, config)
    form: Dict[str, float] = {pid: 0.0 for pid in base}

    skipped = 0
    for m in chronological(matches):
        if not m.is_doubles:
            skipped += 1
            continue
        if any(pid not in base for pid in m.team1 + m.team2):
            skipped += 1
            continue

        eff1 = sum(base[pid] + form[pid] for pid in m.team1)
        eff2 = sum(base[pid] + form[pid] for pid in m.team2)
        expected1 = expected_score(eff1, eff2, config)
        actual1 = 1.0 if m.winner == 1 else 0.0

        share = config.k_factor * (actual1 - expected1) / 2
        for pid in m.team1:
            form[pid] += share
        for pid in m.team2:
            form[pid] -= share

    if skipped:
        logger.debug("Form learner skipped %d malformed or unresolvable matches", skipped)

    return {
        pid: PlayerForm(
            id=pid,
            base_rating=base[pid],
            form=form[pid],
            effective_rating=round(base[pid] + form[pid], 2),
        )
        for pid in base
    }


# ---------------------------------------------------------------------------
# Synergy estimator
# ---------------------------------------------------------------------------

def smoothed_synergy(games: int, wins: int) -> float:
    """Shrunken log-odds of a partnership winning.

    The win rate gets a (2, 2) prior, and the logit is damped by
    ``games / (games + 6)`` so a handful of games cannot produce an extreme
    score.
    """
    p = (wins + 2) / (games + 4)
    p = max(0.01, min(0.99, p))
    return math.log(p / (1 - p)) * (games / (games + 6))


def learn_synergy(matches: Iterable[Match]) -> Dict[str, float]:
    """Synergy score per partnership key, for pairs that have played together."""
    record: Dict[str, Tuple[int, int]] = defaultdict(lambda: (0, 0))
    for m in matches:
        if not m.is_doubles:
            continue
        for team, side in ((m.team1, 1), (m.team2, 2)):
            key = pair_key(*team)
            games, wins = record[key]
            record[key] = (games + 1, wins + (1 if m.winner == side else 0))

    return {key: smoothed_synergy(games, wins) for key, (games, wins) in record.items()}
