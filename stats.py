"""Per-player statistics, tournament rating and monthly championships.

Everything is recomputed from the match log on each call.
"""

import dataclasses
import functools
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Sequence, Tuple

import pandas as pd

from models import Match, Player, match_key

# Matches before this date leave the tournament rating untouched.
RATING_START_DATE = datetime(2024, 12, 16)

MAX_RATING = 6.0
MIN_RATING = 2.0
RATING_STEP = 0.1
DEFAULT_INITIAL_POINTS = 1000.0

LEADERBOARD_SORTS: Dict[str, List[str]] = {
    "points": ["total_ranking_points", "wins", "point_diff"],
    "wins": ["wins", "point_diff"],
    "win_rate": ["win_rate", "point_diff"],
}


@dataclass
class PlayerStats:
    id: str
    name: str
    initial_points: float
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    points_scored: float = 0.0
    points_conceded: float = 0.0
    total_ranking_points: float = 0.0
    tournament_rating: float = 0.0
    championships: int = 0

    @property
    def point_diff(self) -> float:
        return self.points_scored - self.points_conceded

    @property
    def win_rate(self) -> float:
        return self.wins / self.matches_played if self.matches_played else 0.0


def repaired_scores(match: Match) -> Tuple[float, float]:
    """Scores with the winner guaranteed to be ahead by at least one."""
    s1 = float(match.score1 or 0)
    s2 = float(match.score2 or 0)
    if s1 != s1:  # NaN
        s1 = 0.0
    if s2 != s2:
        s2 = 0.0
    if match.winner == 1 and s1 <= s2:
        s1 = s2 + 1
    elif match.winner == 2 and s2 <= s1:
        s2 = s1 + 1
    return s1, s2


def _unique(ids: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(ids))


def _step_rating(current: float, won: bool) -> float:
    if won:
        current = min(current + RATING_STEP, MAX_RATING)
    elif current > MIN_RATING:
        current = max(current - RATING_STEP, MIN_RATING)
    return round(current, 2)


def calculate_player_stats(
    players: Sequence[Player],
    matches: Sequence[Match],
    rating_start: datetime = RATING_START_DATE,
) -> List[PlayerStats]:
    """Replay the match log and return fresh statistics for every player."""
    table: Dict[str, PlayerStats] = {}
    for p in players:
        initial = p.initial_points if p.initial_points is not None else DEFAULT_INITIAL_POINTS
        table[p.id] = PlayerStats(
            id=p.id, name=p.name, initial_points=initial, tournament_rating=initial,
        )

    for m in sorted(matches, key=lambda m: m.date):
        is_betting = m.match_type == "betting" or not m.match_type
        stake = float(m.ranking_points or 0) if is_betting else 0.0
        apply_rating = m.date >= rating_start
        s1, s2 = repaired_scores(m)

        sides = ((m.team1, m.winner == 1, s1, s2), (m.team2, m.winner != 1, s2, s1))
        for team, won, scored, conceded in sides:
            for pid in _unique(team):
                st = table.get(pid)
                if st is None:
                    continue
                st.matches_played += 1
                st.points_scored += scored
                st.points_conceded += conceded
                if won:
                    st.wins += 1
                    st.total_ranking_points += stake
                else:
                    st.losses += 1
                    st.total_ranking_points -= stake
                if apply_rating:
                    current = st.tournament_rating or st.initial_points or 0
                    st.tournament_rating = _step_rating(current, won)

    for champion_ids in monthly_champions(matches).values():
        for pid in champion_ids:
            if pid in table:
                table[pid].championships += 1

    return list(table.values())


# ---------------------------------------------------------------------------
# Championships
# ---------------------------------------------------------------------------

@dataclass
class _PairRecord:
    key: str
    player_ids: Tuple[str, ...]
    wins: int = 0
    losses: int = 0
    points_scored: float = 0.0
    points_conceded: float = 0.0


def _month_standings(month_matches: Sequence[Match]) -> List[_PairRecord]:
    records: Dict[str, _PairRecord] = {}
    h2h: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    for m in month_matches:
        if len(m.team1) < 2 or len(m.team2) < 2:
            continue
        k1, k2 = match_key(m.team1), match_key(m.team2)
        s1, s2 = repaired_scores(m)
        r1 = records.setdefault(k1, _PairRecord(key=k1, player_ids=m.team1))
        r2 = records.setdefault(k2, _PairRecord(key=k2, player_ids=m.team2))

        r1.points_scored += s1
        r1.points_conceded += s2
        r2.points_scored += s2
        r2.points_conceded += s1
        if m.winner == 1:
            r1.wins += 1
            r2.losses += 1
            h2h[k1][k2] += 1
            h2h[k2][k1] -= 1
        else:
            r1.losses += 1
            r2.wins += 1
            h2h[k1][k2] -= 1
            h2h[k2][k1] += 1

    def compare(a: _PairRecord, b: _PairRecord) -> int:
        net_a, net_b = a.wins - a.losses, b.wins - b.losses
        if net_a != net_b:
            return net_b - net_a
        head = h2h[a.key][b.key]
        if head != 0:
            return -head
        diff_a = a.points_scored - a.points_conceded
        diff_b = b.points_scored - b.points_conceded
        if diff_a != diff_b:
            return -1 if diff_a > diff_b else 1
        if a.points_scored != b.points_scored:
            return -1 if a.points_scored > b.points_scored else 1
        return 0

    standings = [r for r in records.values() if r.wins + r.losses > 0]
    return sorted(standings, key=functools.cmp_to_key(compare))


def monthly_champions(matches: Sequence[Match]) -> Dict[str, Tuple[str, ...]]:
    """Winning partnership of each month's tournament doubles, keyed "YYYY-MM"."""
    by_month: Dict[str, List[Match]] = defaultdict(list)
    for m in matches:
        if m.match_type == "tournament":
            by_month[m.date.strftime("%Y-%m")].append(m)

    champions: Dict[str, Tuple[str, ...]] = {}
    for month, month_matches in by_month.items():
        standings = _month_standings(month_matches)
        if standings:
            champions[month] = standings[0].player_ids
    return champions


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

def leaderboard(stats: Sequence[PlayerStats], sort_by: str = "points") -> pd.DataFrame:
    """Ranked table of players who have played at least once."""
    if sort_by not in LEADERBOARD_SORTS:
        raise ValueError(f"Unknown leaderboard sort {sort_by!r}; expected one of {list(LEADERBOARD_SORTS)}.")

    rows = []
    for st in stats:
        if st.matches_played == 0:
            continue
        row = dataclasses.asdict(st)
        row["point_diff"] = st.point_diff
        row["win_rate"] = st.win_rate
        rows.append(row)

    columns = [f.name for f in dataclasses.fields(PlayerStats)] + ["point_diff", "win_rate"]
    table = pd.DataFrame(rows, columns=columns)
    keys = LEADERBOARD_SORTS[sort_by]
    table = table.sort_values(keys, ascending=[False] * len(keys), kind="mergesort")
    table = table.reset_index(drop=True)
    table.index = table.index + 1
    table.index.name = "rank"
    return table


def players_with_tournament_ratings(
    players: Sequence[Player],
    stats: Sequence[PlayerStats],
) -> List[Player]:
    """Roster copies carrying the recomputed tournament rating."""
    ratings = {st.id: st.tournament_rating for st in stats}
    return [
        dataclasses.replace(p, tournament_rating=ratings.get(p.id, p.tournament_rating))
        for p in players
    ]
