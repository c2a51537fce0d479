import asyncio

import pytest
import pytest_asyncio

from livescore.broadcast import BroadcastCoordinator
from livescore.config import Settings


async def settle(rounds: int = 5):
    """Let every ready task run until it blocks again"""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeSleep:
    """
    Stand-in for asyncio.sleep driven by the test.

    Every clock task parks on a future; advance() releases all parked tasks
    once per simulated second.
    """

    def __init__(self):
        self._waiters = []

    async def __call__(self, delay):
        fut = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        await fut

    @property
    def sleeping(self) -> int:
        return sum(1 for fut in self._waiters if not fut.done())

    async def advance(self, ticks: int = 1):
        await settle()
        for _ in range(ticks):
            waiters, self._waiters = self._waiters, []
            for fut in waiters:
                if not fut.done():
                    fut.set_result(None)
            await settle()


class Recorder:
    def __init__(self):
        self.snapshots = []

    def deliver(self, snapshot):
        self.snapshots.append(snapshot)

    @property
    def last(self):
        return self.snapshots[-1]


class BrokenSubscriber:
    def __init__(self):
        self.calls = 0

    def deliver(self, snapshot):
        self.calls += 1
        raise ConnectionError("gone")


@pytest.fixture
def settings():
    return Settings(allowed_origins=["*"])


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def coordinator(settings):
    """Coordinator for tests that never start a clock"""
    return BroadcastCoordinator(settings)


@pytest_asyncio.fixture
async def live(settings, fake_sleep):
    """Coordinator whose clocks run on the fake sleep; torn down inside the loop"""
    coordinator = BroadcastCoordinator(settings, sleep=fake_sleep)
    yield coordinator
    coordinator.close()
    await settle()


@pytest.fixture
def recorder():
    return Recorder()


def listen(coordinator, recorder):
    """Subscribe and forget the join snapshot"""
    coordinator.subscribe(recorder)
    recorder.snapshots.clear()
    return recorder
