"""
Countdown clocks: the period (game) clock and the possession (shot) clock.

Each clock drives its own asyncio task that sleeps `interval` seconds and then
ticks. The task is reachable only through a TickToken held by the clock, so
start/stop never depend on shared state:

- start() on a running clock is a no-op; there is never a second task.
- stop() kills the token and cancels the task before returning. A task that
  wakes up after that sees a dead token and exits without ticking.

Coupling policy:
- Stopping the period clock (stop, expiry, reset) also stops possession.
- Possession only ticks while the period clock runs. A possession started
  while the period clock is stopped, or halted by clock:stop, is pending and
  starts ticking with the next period-clock start.
- A period ending (expiry or reset for the next quarter/overtime) stops the
  possession for good; team and remaining stay visible but nothing resumes.

Ticks mutate state synchronously and then call the tick listener once, so
each tick produces one snapshot no matter how much cascaded.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from livescore.exceptions import ClockFault
from livescore.state import ClockState, MatchState, PossessionState, Team

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
TickListener = Callable[[], None]


class TickToken:
    """Liveness handle of one tick task"""

    __slots__ = ("alive", "task")

    def __init__(self):
        self.alive = True
        self.task: Optional[asyncio.Task] = None

    def cancel(self):
        self.alive = False
        task, self.task = self.task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # a task releasing its own token just falls out of its loop
        if task is not current:
            task.cancel()


class _Countdown(ABC):
    name = "clock"

    def __init__(self, match: MatchState, interval: float = 1.0, sleep: Optional[Sleep] = None):
        self._match = match
        self.interval = interval
        self._sleep = sleep or asyncio.sleep
        self._token: Optional[TickToken] = None
        self._listener: Optional[TickListener] = None

    def on_tick(self, listener: TickListener):
        self._listener = listener

    @property
    def ticking(self) -> bool:
        """True while a live tick task exists"""
        return self._token is not None and self._token.alive

    @abstractmethod
    def tick(self) -> bool:
        """Advance one interval; True when observable state changed"""

    @abstractmethod
    def _fail_closed(self):
        """Force the clock to Stopped after a failed tick"""

    def _spawn(self):
        self._release()
        token = TickToken()
        token.task = asyncio.get_running_loop().create_task(self._run(token))
        self._token = token

    def _release(self):
        if self._token is not None:
            self._token.cancel()
            self._token = None

    async def _run(self, token: TickToken):
        while token.alive:
            await self._sleep(self.interval)
            if not token.alive:
                return
            try:
                changed = self.tick()
            except Exception:
                logger.exception(f"{self.name} tick failed, forcing it to stop")
                self._fail_closed()
                changed = True
            if changed and self._listener is not None:
                self._listener()


class GameClock(_Countdown):
    """Period countdown, MM:SS"""

    name = "game clock"

    def __init__(self, match: MatchState, interval: float = 1.0, sleep: Optional[Sleep] = None):
        super().__init__(match, interval, sleep)
        self._possession: Optional["PossessionClock"] = None

    def couple(self, possession: "PossessionClock"):
        self._possession = possession

    @property
    def state(self) -> ClockState:
        return self._match.clock

    @property
    def running(self) -> bool:
        return self._match.clock.running

    def start(self) -> bool:
        """Stopped -> Running. Returns False when nothing changed."""
        clock = self.state
        if clock.running:
            return False
        if clock.at_zero:
            logger.debug("Game clock is at 00:00, not starting")
            return False

        self._spawn()
        clock.running = True
        if self._possession is not None:
            self._possession.resume()
        return True

    def stop(self) -> bool:
        """Running -> Stopped, cascading to possession. Idempotent."""
        return self._halt(end_of_period=False)

    def reset(self, minutes: int):
        """Seed a new period; the old possession does not carry over"""
        self._halt(end_of_period=True)
        self.state.minutes = minutes
        self.state.seconds = 0

    def tick(self) -> bool:
        clock = self.state
        if not clock.running:
            return False
        if not 0 <= clock.seconds <= 59 or clock.minutes < 0:
            raise ClockFault(f"game clock out of range: {clock.minutes}:{clock.seconds}")

        if clock.seconds > 0:
            clock.seconds -= 1
        elif clock.minutes > 0:
            clock.minutes -= 1
            clock.seconds = 59

        if clock.at_zero:
            self._halt(end_of_period=True)
            logger.info(f"Period expired (quarter {self._match.quarter})")
        return True

    def _fail_closed(self):
        self.stop()

    def _halt(self, end_of_period: bool) -> bool:
        was_running = self.state.running
        self._release()
        self.state.running = False
        if self._possession is not None:
            if end_of_period:
                self._possession.stop()
            else:
                self._possession.halt()
        return was_running


class PossessionClock(_Countdown):
    """Shot clock owned by one team, coupled to the period clock"""

    name = "possession clock"

    def __init__(self, match: MatchState, period: GameClock, duration: int = 12,
                 interval: float = 1.0, sleep: Optional[Sleep] = None):
        super().__init__(match, interval, sleep)
        self.duration = duration
        self._period = period
        self._pending = False
        period.couple(self)

    @property
    def state(self) -> PossessionState:
        return self._match.possession

    @property
    def running(self) -> bool:
        return self._match.possession.running

    @property
    def pending(self) -> bool:
        """Waiting for the period clock to start ticking"""
        return self._pending

    def start(self, team: Team):
        # a new possession always replaces the current one
        self._release()
        possession = self.state
        possession.team = team
        possession.remaining = self.duration
        possession.running = False
        self._pending = True
        if self._period.running:
            self._begin()

    def resume(self):
        possession = self.state
        if not self._pending or possession.running:
            return
        if possession.team is None or possession.remaining <= 0:
            self._pending = False
            return
        self._begin()

    def halt(self):
        """Cascade stop from the period clock; keeps team, remaining and pending"""
        was_running = self.state.running
        self._release()
        self.state.running = False
        self._pending = self._pending or was_running

    def stop(self) -> bool:
        was_running = self.state.running
        self._release()
        self.state.running = False
        self._pending = False
        return was_running

    def reset(self, team: Optional[Team] = None):
        self.stop()
        self.state.team = team
        self.state.remaining = self.duration

    def tick(self) -> bool:
        possession = self.state
        if not possession.running:
            return False
        if not self._period.running:
            raise ClockFault("possession clock ticking while the game clock is stopped")

        possession.remaining = max(0, possession.remaining - 1)
        if possession.remaining == 0:
            self.stop()
            team = possession.team.value if possession.team else "-"
            logger.info(f"Shot clock violation (team {team})")
        return True

    def _begin(self):
        self._spawn()
        self.state.running = True
        self._pending = False

    def _fail_closed(self):
        self.halt()
