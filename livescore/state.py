# Match state shared by the clocks, the command processor and the broadcaster
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class Team(str, Enum):
    A = "A"
    B = "B"

    @classmethod
    def parse(cls, value) -> Optional["Team"]:
        """Return the Team for a wire code ("A" / "B"), None for anything else"""
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                return None
        return None


def _per_team() -> Dict[Team, int]:
    return {Team.A: 0, Team.B: 0}


@dataclass
class ClockState:
    minutes: int = 10
    seconds: int = 0
    running: bool = False

    @property
    def at_zero(self) -> bool:
        return self.minutes == 0 and self.seconds == 0


@dataclass
class PossessionState:
    team: Optional[Team] = None
    remaining: int = 12
    running: bool = False


@dataclass(frozen=True)
class ClockView:
    min: int
    sec: int
    running: bool


@dataclass(frozen=True)
class PossessionView:
    team: Optional[str]
    time: int
    running: bool


@dataclass(frozen=True)
class Snapshot:
    """Immutable projection of the match, sent to observers as state:update"""
    team_a: str
    team_b: str
    score_a: int
    score_b: int
    foul_a: int
    foul_b: int
    quarter: int
    overtime: bool
    clock: ClockView
    possession: PossessionView

    def to_dict(self) -> dict:
        return {
            "teamA": self.team_a,
            "teamB": self.team_b,
            "scoreA": self.score_a,
            "scoreB": self.score_b,
            "foulA": self.foul_a,
            "foulB": self.foul_b,
            "quarter": self.quarter,
            "overtime": self.overtime,
            "clock": {
                "min": self.clock.min,
                "sec": self.clock.sec,
                "running": self.clock.running,
            },
            "possession": {
                "team": self.possession.team,
                "time": self.possession.time,
                "running": self.possession.running,
            },
        }


@dataclass
class MatchState:
    """
    Authoritative record of one live event.

    Scores and fouls are keyed by Team so no field name is ever built from
    client input. The clock and possession sub-states are mutated only by
    GameClock / PossessionClock.
    """
    team_a: str = "TEAM A"
    team_b: str = "TEAM B"
    scores: Dict[Team, int] = field(default_factory=_per_team)
    fouls: Dict[Team, int] = field(default_factory=_per_team)
    quarter: int = 1
    overtime: bool = False
    default_quarter_time: int = 10
    clock: ClockState = field(default_factory=ClockState)
    possession: PossessionState = field(default_factory=PossessionState)

    def reset(self, team_a: str, team_b: str, quarter_minutes: int, possession_seconds: int = 12):
        """Back to the start of a match. Clocks must already be stopped."""
        self.team_a = team_a
        self.team_b = team_b
        self.scores = _per_team()
        self.fouls = _per_team()
        self.quarter = 1
        self.overtime = False
        self.default_quarter_time = quarter_minutes
        self.clock.minutes = quarter_minutes
        self.clock.seconds = 0
        self.clock.running = False
        self.possession.team = None
        self.possession.remaining = possession_seconds
        self.possession.running = False

    def adjust_score(self, team: Team, delta: int) -> int:
        self.scores[team] = max(0, self.scores[team] + delta)
        return self.scores[team]

    def adjust_foul(self, team: Team, delta: int) -> int:
        self.fouls[team] = max(0, self.fouls[team] + delta)
        return self.fouls[team]

    def snapshot(self) -> Snapshot:
        possession_team = self.possession.team.value if self.possession.team else None
        return Snapshot(
            team_a=self.team_a,
            team_b=self.team_b,
            score_a=self.scores[Team.A],
            score_b=self.scores[Team.B],
            foul_a=self.fouls[Team.A],
            foul_b=self.fouls[Team.B],
            quarter=self.quarter,
            overtime=self.overtime,
            clock=ClockView(self.clock.minutes, self.clock.seconds, self.clock.running),
            possession=PossessionView(possession_team, self.possession.remaining, self.possession.running),
        )
