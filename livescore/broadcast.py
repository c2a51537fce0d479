"""
Broadcast coordinator: owns one live event and fans out its snapshots.

Every external event goes through the same pipeline:

    command or tick -> state transition -> publish()

publish() runs once per accepted command and once per tick, after any
cascading clock changes, so observers see exactly one snapshot per event.
Delivery is synchronous; subscribers queue the snapshot themselves and a
subscriber that fails is dropped without touching anyone else.
"""
import logging
from typing import List, Optional, Protocol

from livescore.clock import GameClock, PossessionClock, Sleep
from livescore.commands import CommandProcessor
from livescore.config import Settings, get_settings
from livescore.state import MatchState, Snapshot

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    def deliver(self, snapshot: Snapshot) -> None:
        ...


class BroadcastCoordinator:
    def __init__(self, settings: Optional[Settings] = None, sleep: Optional[Sleep] = None):
        self.settings = settings or get_settings()

        self.match = MatchState()
        self.match.reset(
            self.settings.default_team_a,
            self.settings.default_team_b,
            self.settings.default_quarter_minutes,
            self.settings.possession_seconds,
        )

        interval = self.settings.tick_interval
        self.game_clock = GameClock(self.match, interval=interval, sleep=sleep)
        self.possession_clock = PossessionClock(
            self.match, self.game_clock,
            duration=self.settings.possession_seconds, interval=interval, sleep=sleep,
        )
        self.game_clock.on_tick(self.publish)
        self.possession_clock.on_tick(self.publish)

        self.processor = CommandProcessor(self.match, self.game_clock, self.possession_clock, self.settings)
        self._subscribers: List[Subscriber] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def snapshot(self) -> Snapshot:
        return self.match.snapshot()

    def dispatch(self, command: str, payload=None) -> bool:
        """Apply a command and publish one snapshot if it was accepted"""
        try:
            changed = self.processor.apply(command, payload)
        except Exception:
            # the state may be half-applied; push it so observers match the server
            logger.exception(f"Command {command!r} failed")
            changed = True
        if changed:
            self.publish()
        return changed

    def publish(self):
        try:
            snapshot = self.snapshot()
        except Exception:
            logger.exception("Could not build snapshot")
            return

        for subscriber in list(self._subscribers):
            self._deliver(subscriber, snapshot)

    def subscribe(self, subscriber: Subscriber) -> bool:
        """Send the current snapshot to a new subscriber, then add it to the fan-out"""
        if subscriber in self._subscribers:
            return True
        if not self._deliver(subscriber, self.snapshot()):
            return False
        self._subscribers.append(subscriber)
        return True

    def unsubscribe(self, subscriber: Subscriber):
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def close(self):
        self.game_clock.stop()
        self.possession_clock.stop()
        self._subscribers.clear()

    def _deliver(self, subscriber: Subscriber, snapshot: Snapshot) -> bool:
        try:
            subscriber.deliver(snapshot)
            return True
        except Exception:
            logger.warning(f"Dropping subscriber {subscriber!r}: delivery failed", exc_info=True)
            self.unsubscribe(subscriber)
            return False
