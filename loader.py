import re
from typing import Any, List, Optional, Tuple

import numpy as np
import pandas as pd

from models import Match, Player

PLAYER_COLUMNS = ["id"]
MATCH_COLUMNS = ["id", "date", "team1", "team2", "winner"]

DEFAULT_INITIAL_POINTS = 1000.0
DEFAULT_RANKING_POINTS = 50.0
DEFAULT_MATCH_TYPE = "betting"

_TEAM_SPLIT = re.compile(r"[;,]")


def _require_columns(df: pd.DataFrame, required: List[str], what: str) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{what} table is missing column(s): {', '.join(missing)}")


def _optional_float(value: Any):
    return None if pd.isna(value) else float(value)


def canonical_id(value: Any) -> Optional[str]:
    """Cell -> player/match id string, or None when blank.

    Integral floats (what pandas makes of a numeric column with a blank row)
    lose their ".0" so roster ids and team cells agree.
    """
    if value is None:
        return None
    if isinstance(value, (float, np.floating)):
        if np.isnan(value):
            return None
        if float(value).is_integer():
            value = int(value)
    text = str(value).strip()
    if not text or text == "nan":
        return None
    return text


def parse_team(value: Any) -> Tuple[str, ...]:
    """Team cell -> tuple of player ids.

    Accepts list-likes (as stored in JSON) or strings such as "3,7" / "3; 7".
    """
    if isinstance(value, (list, tuple, np.ndarray)):
        items = list(value)
    elif value is None or (isinstance(value, float) and np.isnan(value)):
        items = []
    else:
        items = _TEAM_SPLIT.split(str(value))
    ids = (canonical_id(v) for v in items)
    return tuple(i for i in ids if i)


def players_from_frame(df: pd.DataFrame) -> List[Player]:
    """Roster table -> Player records.

    Columns: id (required), name, initial_points, tournament_rating.
    Rows with a blank id are dropped.
    """
    _require_columns(df, PLAYER_COLUMNS, "Player")
    roster = df.dropna(subset=["id"]).copy()

    roster["id"] = roster["id"].map(canonical_id)
    roster = roster.dropna(subset=["id"])

    if "name" not in roster.columns:
        roster["name"] = ""
    roster["name"] = roster["name"].fillna("").astype(str).str.strip()

    for col in ["initial_points", "tournament_rating"]:
        if col not in roster.columns:
            roster[col] = np.nan
        roster[col] = pd.to_numeric(roster[col], errors="coerce")
    roster["initial_points"] = roster["initial_points"].fillna(DEFAULT_INITIAL_POINTS)

    return [
        Player(
            id=row["id"],
            name=row["name"],
            tournament_rating=_optional_float(row["tournament_rating"]),
            initial_points=float(row["initial_points"]),
        )
        for _, row in roster.iterrows()
    ]


def matches_from_frame(df: pd.DataFrame) -> List[Match]:
    """Match log table -> Match records.

    Columns: id, date, team1, team2, winner (required); score1, score2,
    type, ranking_points. Rows whose date cannot be parsed are dropped;
    a winner other than 1 or 2 is read as 1.
    """
    _require_columns(df, MATCH_COLUMNS, "Match")
    log = df.copy()
    log["id"] = log["id"].map(canonical_id).fillna("")

    # ISO strings with and without offsets land on naive UTC
    log["date"] = pd.to_datetime(log["date"], errors="coerce", utc=True, format="ISO8601")
    log["date"] = log["date"].dt.tz_localize(None)
    log = log.dropna(subset=["date"])

    winner = pd.to_numeric(log["winner"], errors="coerce")
    log["winner"] = winner.where(winner.isin([1, 2]), 1).astype(int)

    for col in ["score1", "score2"]:
        if col not in log.columns:
            log[col] = 0
        log[col] = pd.to_numeric(log[col], errors="coerce").fillna(0)

    if "type" not in log.columns:
        log["type"] = DEFAULT_MATCH_TYPE
    log["type"] = log["type"].fillna(DEFAULT_MATCH_TYPE).astype(str).str.strip().str.lower()
    log["type"] = log["type"].replace({"": DEFAULT_MATCH_TYPE})

    if "ranking_points" not in log.columns:
        log["ranking_points"] = np.nan
    log["ranking_points"] = pd.to_numeric(log["ranking_points"], errors="coerce").fillna(
        DEFAULT_RANKING_POINTS
    )

    return [
        Match(
            id=row["id"],
            date=row["date"].to_pydatetime(),
            team1=parse_team(row["team1"]),
            team2=parse_team(row["team2"]),
            winner=int(row["winner"]),
            score1=float(row["score1"]),
            score2=float(row["score2"]),
            match_type=row["type"],
            ranking_points=float(row["ranking_points"]),
        )
        for _, row in log.iterrows()
    ]
