"""
Command processor: validates inbound commands and applies them.

Wire commands (see COMMANDS) are fire-and-forget. Anything malformed raises
InvalidCommand inside the processor, is logged at DEBUG and dropped, and the
sender never hears about it. Every handler returns True when a snapshot has
to be published.
"""
import logging
from typing import Any, Callable, Dict, Optional

from livescore.clock import GameClock, PossessionClock
from livescore.config import Settings, get_settings
from livescore.exceptions import InvalidCommand
from livescore.state import MatchState, Team

logger = logging.getLogger(__name__)

SCORE_STEPS = (1, 2)
FOUL_STEP = 1


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class CommandProcessor:
    """Applies commands to one MatchState and its two clocks"""

    def __init__(self, match: MatchState, game_clock: GameClock,
                 possession_clock: PossessionClock, settings: Optional[Settings] = None):
        self.match = match
        self.game_clock = game_clock
        self.possession_clock = possession_clock
        self.settings = settings or get_settings()

        self._handlers: Dict[str, Callable[[Dict[str, Any]], bool]] = {
            "match:init": self._on_match_init,
            "clock:start": lambda data: self.start_clock(),
            "clock:stop": lambda data: self.stop_clock(),
            "quarter:next": lambda data: self.advance_quarter(),
            "overtime:start": lambda data: self.start_overtime(),
            "score:add": lambda data: self._on_score(data, sign=1),
            "score:sub": lambda data: self._on_score(data, sign=-1),
            "foul:add": lambda data: self._on_foul(data, sign=1),
            "foul:sub": lambda data: self._on_foul(data, sign=-1),
            "possession:start": self._on_possession_start,
            "possession:stop": lambda data: self.stop_possession(),
            "possession:reset": self._on_possession_reset,
        }

    @property
    def commands(self):
        return tuple(self._handlers)

    def apply(self, command: str, payload: Any = None) -> bool:
        """
        Apply one wire command.

        Returns True if the match changed and a snapshot must go out, False if
        the command was dropped or was a no-op.
        """
        handler = self._handlers.get(command) if isinstance(command, str) else None
        if handler is None:
            logger.debug(f"Dropped unknown command {command!r}")
            return False

        if payload is None:
            payload = {}
        try:
            if not isinstance(payload, dict):
                raise InvalidCommand(command, "payload must be an object")
            return handler(payload)
        except InvalidCommand as e:
            logger.debug(f"Dropped invalid command: {e}")
            return False

    # ============ Operations ============

    def init_match(self, team_a: Any = None, team_b: Any = None, quarter_time: Any = None) -> bool:
        self.game_clock.stop()
        self.possession_clock.reset()

        minutes = self._quarter_minutes(quarter_time)
        self.match.reset(
            self._team_name(team_a, self.settings.default_team_a),
            self._team_name(team_b, self.settings.default_team_b),
            minutes,
            self.settings.possession_seconds,
        )
        logger.info(f"Match initialised: {self.match.team_a} vs {self.match.team_b}, {minutes} min quarters")
        return True

    def adjust_score(self, team: Any, delta: Any) -> bool:
        side = self._team("score", team)
        if not _is_int(delta) or abs(delta) not in SCORE_STEPS:
            raise InvalidCommand("score", f"delta must be one of ±1, ±2, got {delta!r}")
        self.match.adjust_score(side, delta)
        return True

    def adjust_foul(self, team: Any, delta: Any) -> bool:
        side = self._team("foul", team)
        if not _is_int(delta) or abs(delta) != FOUL_STEP:
            raise InvalidCommand("foul", f"delta must be ±1, got {delta!r}")
        self.match.adjust_foul(side, delta)
        return True

    def advance_quarter(self) -> bool:
        self.game_clock.reset(self.match.default_quarter_time)
        self.match.quarter += 1
        logger.info(f"Quarter {self.match.quarter}")
        return True

    def start_overtime(self) -> bool:
        self.game_clock.reset(self.settings.overtime_minutes)
        if not self.match.overtime:
            self.match.overtime = True
            logger.info("Overtime")
        return True

    def start_clock(self) -> bool:
        return self.game_clock.start()

    def stop_clock(self) -> bool:
        return self.game_clock.stop()

    def start_possession(self, team: Any) -> bool:
        self.possession_clock.start(self._team("possession:start", team))
        return True

    def stop_possession(self) -> bool:
        return self.possession_clock.stop()

    def reset_possession(self, team: Any = None) -> bool:
        side = None if team is None else self._team("possession:reset", team)
        self.possession_clock.reset(side)
        return True

    # ============ Wire handlers ============

    def _on_match_init(self, data):
        return self.init_match(data.get("teamA"), data.get("teamB"), data.get("quarterTime"))

    def _on_score(self, data, sign):
        pts = data.get("pts")
        if not _is_int(pts) or pts not in SCORE_STEPS:
            raise InvalidCommand("score", f"pts must be 1 or 2, got {pts!r}")
        return self.adjust_score(data.get("team"), sign * pts)

    def _on_foul(self, data, sign):
        return self.adjust_foul(data.get("team"), sign * FOUL_STEP)

    def _on_possession_start(self, data):
        return self.start_possession(data.get("team"))

    def _on_possession_reset(self, data):
        return self.reset_possession(data.get("team"))

    # ============ Validation ============

    @staticmethod
    def _team(command, value) -> Team:
        team = Team.parse(value)
        if team is None:
            raise InvalidCommand(command, f"unknown team {value!r}")
        return team

    def _team_name(self, value, default: str) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()[:self.settings.name_max_length]
        return default

    def _quarter_minutes(self, value) -> int:
        """Positive whole minutes from an int, an integral float or a digit string"""
        minutes = None
        if _is_int(value):
            minutes = value
        elif isinstance(value, float) and value.is_integer():
            minutes = int(value)
        elif isinstance(value, str) and value.strip().isdecimal():
            minutes = int(value.strip())

        if minutes is None or minutes <= 0:
            return self.settings.default_quarter_minutes
        return minutes
