from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Tuple


def pair_key(id1: str, id2: str) -> str:
    """Order-independent key for a partnership."""
    return "-".join(sorted([str(id1), str(id2)]))


def match_key(ids: Iterable[str]) -> str:
    """Order-independent key for the players on court in one match."""
    return "-".join(sorted(str(i) for i in ids))


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Player:
    id: str
    name: str = ""
    tournament_rating: Optional[float] = None
    initial_points: Optional[float] = None

    def __post_init__(self):
        # "1" and 1 must be the same player, never two.
        object.__setattr__(self, "id", str(self.id))

    @property
    def raw_rating(self) -> float:
        return self.tournament_rating or self.initial_points or 0


@dataclass(frozen=True)
class Match:
    id: str
    date: datetime
    team1: Tuple[str, ...]
    team2: Tuple[str, ...]
    winner: int
    score1: float = 0
    score2: float = 0
    match_type: str = "betting"
    ranking_points: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "id", str(self.id))
        for side in ("team1", "team2"):
            members = getattr(self, side)
            if members is None:
                members = ()
            object.__setattr__(self, side, tuple(str(p) for p in members))
        object.__setattr__(self, "winner", int(self.winner))

    @property
    def is_doubles(self) -> bool:
        return len(self.team1) == 2 and len(self.team2) == 2


# ---------------------------------------------------------------------------
# Derived
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlayerForm:
    id: str
    base_rating: float
    form: float
    effective_rating: float


@dataclass(frozen=True)
class Pair:
    """A team of one (singles) or two (doubles) players.

    ``strength`` and ``structure`` are derived from the members so a
    re-paired team can never carry stale numbers.
    """

    player1: PlayerForm
    player2: Optional[PlayerForm] = None
    cost: float = 0.0

    @property
    def is_singles(self) -> bool:
        return self.player2 is None

    @property
    def members(self) -> Tuple[PlayerForm, ...]:
        if self.player2 is None:
            return (self.player1,)
        return (self.player1, self.player2)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(p.id for p in self.members)

    @property
    def strength(self) -> float:
        return sum(p.effective_rating for p in self.members)

    @property
    def structure(self) -> float:
        if self.player2 is None:
            return 0.0
        return abs(self.player1.effective_rating - self.player2.effective_rating)

    @property
    def form(self) -> float:
        return sum(p.form for p in self.members)


@dataclass(frozen=True)
class Handicap:
    team: int  # 1 or 2, the weaker side receiving the points
    points: int
    reason: str


@dataclass(frozen=True)
class MatchAnalysis:
    team2_synergy: float
    team2_form: float
    quality_score: float
    team1_win_probability: float


@dataclass(frozen=True)
class MatchProposal:
    team1: Pair
    team2: Pair
    match_cost: float
    handicap: Optional[Handicap]
    analysis: MatchAnalysis

    @property
    def handicap_points(self) -> int:
        return self.handicap.points if self.handicap else 0

    @property
    def ids(self) -> Tuple[str, ...]:
        return self.team1.ids + self.team2.ids


@dataclass(frozen=True)
class AutoMatchResult:
    players: List[PlayerForm] = field(default_factory=list)
    pairs: List[Pair] = field(default_factory=list)
    matches: List[MatchProposal] = field(default_factory=list)
