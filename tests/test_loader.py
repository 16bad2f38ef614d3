"""Tests for roster / match-log ingestion."""

from datetime import datetime

import numpy as np
import pandas as pd
import pytest

from loader import canonical_id, matches_from_frame, parse_team, players_from_frame
from ratings import learn_forms


def test_parse_team_variants():
    assert parse_team(["1", 2]) == ("1", "2")
    assert parse_team("3,7") == ("3", "7")
    assert parse_team(" 3 ; 7 ") == ("3", "7")
    assert parse_team(np.nan) == ()
    assert parse_team(None) == ()


def test_players_from_frame():
    df = pd.DataFrame(
        {
            "id": [1, 2, " 3 ", None],
            "name": ["An", None, "Chi", "Nobody"],
            "initial_points": [1000, None, 3.5, 2.0],
            "tournament_rating": [4.2, "n/a", None, 3.0],
        }
    )
    players = players_from_frame(df)

    assert [p.id for p in players] == ["1", "2", "3"]
    assert players[0].tournament_rating == 4.2
    assert players[1].name == ""
    assert players[1].tournament_rating is None
    assert players[1].initial_points == 1000.0
    assert players[2].raw_rating == 3.5


def test_players_without_rating_columns():
    players = players_from_frame(pd.DataFrame({"id": ["a", "b"]}))
    assert [p.initial_points for p in players] == [1000.0, 1000.0]
    assert all(p.tournament_rating is None for p in players)


def test_players_missing_id_column():
    with pytest.raises(ValueError, match="id"):
        players_from_frame(pd.DataFrame({"name": ["An"]}))


def test_matches_from_frame():
    df = pd.DataFrame(
        {
            "id": [10, 11, 12, 13],
            "date": ["2024-12-20T10:00:00.000Z", "2024-12-21", "not a date", "2024-12-22T09:30:00"],
            "team1": ["1,2", ["1", "3"], "1,2", "4"],
            "team2": ["3;4", ["2", "4"], "3,4", "5"],
            "score1": [11, "x", 5, 11],
            "score2": [9, 11, 11, 7],
            "winner": [1, "2", 2, 7],
            "type": ["tournament", None, "betting", "Betting"],
        }
    )
    matches = matches_from_frame(df)

    assert [m.id for m in matches] == ["10", "11", "13"]
    first, second, third = matches

    assert first.date == datetime(2024, 12, 20, 10, 0)
    assert first.team1 == ("1", "2")
    assert first.team2 == ("3", "4")
    assert first.match_type == "tournament"
    assert first.ranking_points == 50.0
    assert first.is_doubles

    assert second.winner == 2
    assert second.score1 == 0.0
    assert second.match_type == "betting"

    assert third.winner == 1
    assert third.match_type == "betting"
    assert not third.is_doubles


def test_matches_missing_columns():
    with pytest.raises(ValueError, match="winner"):
        matches_from_frame(pd.DataFrame({"id": [1], "date": ["2025-01-01"], "team1": ["1,2"], "team2": ["3,4"]}))


def test_canonical_id():
    assert canonical_id(7.0) == "7"
    assert canonical_id(np.float64(3.0)) == "3"
    assert canonical_id(2.5) == "2.5"
    assert canonical_id(" p1 ") == "p1"
    assert canonical_id(np.nan) is None
    assert canonical_id("") is None


def test_numeric_ids_with_blank_row_match_team_cells():
    roster = players_from_frame(pd.DataFrame({"id": [1, 2, 3, 4, np.nan], "tournament_rating": 3.0}))
    log = matches_from_frame(
        pd.DataFrame(
            {
                "id": [1],
                "date": ["2025-01-10"],
                "team1": [[1, 2]],
                "team2": [[3.0, 4.0]],
                "winner": [1],
            }
        )
    )

    assert [p.id for p in roster] == ["1", "2", "3", "4"]
    assert log[0].team1 == ("1", "2")
    assert log[0].team2 == ("3", "4")

    forms = learn_forms(roster, log)
    assert forms["1"].form > 0
    assert forms["3"].form < 0
