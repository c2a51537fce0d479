import pytest

from livescore.clock import _Countdown
from livescore.state import MatchState
from tests.conftest import Recorder, listen, settle


def init(coordinator, minutes=8):
    coordinator.dispatch("match:init", {"teamA": "Lions", "teamB": "Tigers", "quarterTime": minutes})


def clock_of(snapshot):
    return snapshot.clock.min, snapshot.clock.sec, snapshot.clock.running


def possession_of(snapshot):
    return snapshot.possession.team, snapshot.possession.time, snapshot.possession.running


async def test_61_ticks_from_eight_minutes(live, fake_sleep):
    init(live)
    recorder = listen(live, Recorder())

    assert live.dispatch("clock:start")
    await fake_sleep.advance(61)

    assert clock_of(live.snapshot()) == (6, 59, True)
    # one snapshot for the start, one per tick
    assert len(recorder.snapshots) == 62


async def test_double_start_keeps_one_tick_source(live, fake_sleep):
    init(live)
    recorder = listen(live, Recorder())

    assert live.dispatch("clock:start")
    assert not live.dispatch("clock:start")
    await fake_sleep.advance(10)

    assert clock_of(live.snapshot()) == (7, 50, True)
    assert fake_sleep.sleeping == 1
    assert len(recorder.snapshots) == 11


async def test_stop_cancels_pending_tick(live, fake_sleep):
    init(live)
    live.dispatch("clock:start")
    await fake_sleep.advance(3)

    assert live.dispatch("clock:stop")
    assert not live.game_clock.ticking
    await fake_sleep.advance(5)

    assert clock_of(live.snapshot()) == (7, 57, False)
    assert fake_sleep.sleeping == 0


async def test_restart_after_stop_continues_countdown(live, fake_sleep):
    init(live)
    live.dispatch("clock:start")
    await fake_sleep.advance(2)
    live.dispatch("clock:stop")
    live.dispatch("clock:start")
    await fake_sleep.advance(2)

    assert clock_of(live.snapshot()) == (7, 56, True)
    assert fake_sleep.sleeping == 1


async def test_possession_runs_out_after_twelve_ticks(live, fake_sleep):
    init(live)
    live.dispatch("clock:start")
    live.dispatch("possession:start", {"team": "A"})
    await fake_sleep.advance(12)

    snapshot = live.snapshot()
    assert possession_of(snapshot) == ("A", 0, False)
    assert clock_of(snapshot) == (7, 48, True)
    assert not live.possession_clock.ticking
    assert not live.possession_clock.pending

    # no auto refill
    await fake_sleep.advance(3)
    assert possession_of(live.snapshot()) == ("A", 0, False)


async def test_new_possession_preempts_current(live, fake_sleep):
    init(live)
    live.dispatch("clock:start")
    live.dispatch("possession:start", {"team": "A"})
    await fake_sleep.advance(5)

    live.dispatch("possession:start", {"team": "B"})
    assert possession_of(live.snapshot()) == ("B", 12, True)
    await fake_sleep.advance(2)

    assert possession_of(live.snapshot()) == ("B", 10, True)
    # game clock + one possession clock
    assert fake_sleep.sleeping == 2


async def test_clock_stop_cascades_to_possession(live, fake_sleep):
    init(live)
    live.dispatch("clock:start")
    live.dispatch("possession:start", {"team": "B"})
    await fake_sleep.advance(4)
    recorder = listen(live, Recorder())

    assert live.dispatch("clock:stop")

    assert len(recorder.snapshots) == 1
    assert possession_of(recorder.last) == ("B", 8, False)
    assert clock_of(recorder.last) == (7, 56, False)

    await fake_sleep.advance(3)
    assert possession_of(live.snapshot()) == ("B", 8, False)


async def test_halted_possession_resumes_with_clock(live, fake_sleep):
    init(live)
    live.dispatch("clock:start")
    live.dispatch("possession:start", {"team": "A"})
    await fake_sleep.advance(2)
    live.dispatch("clock:stop")

    live.dispatch("clock:start")
    await fake_sleep.advance(3)

    assert possession_of(live.snapshot()) == ("A", 7, True)


async def test_possession_waits_for_clock(live, fake_sleep):
    init(live)
    live.dispatch("possession:start", {"team": "A"})
    await fake_sleep.advance(3)
    assert possession_of(live.snapshot()) == ("A", 12, False)

    live.dispatch("clock:start")
    await fake_sleep.advance(1)
    assert possession_of(live.snapshot()) == ("A", 11, True)


async def test_explicit_possession_stop_does_not_resume(live, fake_sleep):
    init(live)
    live.dispatch("clock:start")
    live.dispatch("possession:start", {"team": "A"})
    await fake_sleep.advance(1)
    assert live.dispatch("possession:stop")

    live.dispatch("clock:stop")
    live.dispatch("clock:start")
    await fake_sleep.advance(2)

    assert possession_of(live.snapshot()) == ("A", 11, False)


async def test_period_expiry_single_snapshot(live, fake_sleep):
    init(live)
    live.match.clock.minutes = 0
    live.match.clock.seconds = 1
    live.dispatch("clock:start")
    live.dispatch("possession:start", {"team": "B"})
    await settle()
    recorder = listen(live, Recorder())

    await fake_sleep.advance(1)

    assert len(recorder.snapshots) == 1
    assert clock_of(recorder.last) == (0, 0, False)
    assert possession_of(recorder.last) == ("B", 12, False)
    assert not live.game_clock.ticking
    assert not live.possession_clock.ticking

    await fake_sleep.advance(2)
    assert len(recorder.snapshots) == 1


async def test_minute_rollover(live, fake_sleep):
    init(live, minutes=1)
    live.dispatch("clock:start")
    await fake_sleep.advance(1)
    assert clock_of(live.snapshot()) == (0, 59, True)


async def test_start_at_zero_is_refused(live, fake_sleep):
    init(live)
    live.match.clock.minutes = 0
    recorder = listen(live, Recorder())

    assert not live.dispatch("clock:start")
    assert recorder.snapshots == []
    assert fake_sleep.sleeping == 0


async def test_possession_never_runs_without_clock(live, fake_sleep):
    rng_script = [
        ("clock:start", {}), ("possession:start", {"team": "A"}), ("clock:stop", {}),
        ("possession:start", {"team": "B"}), ("clock:start", {}), ("quarter:next", {}),
        ("possession:reset", {"team": "A"}), ("clock:start", {}), ("overtime:start", {}),
        ("possession:start", {"team": "A"}), ("clock:start", {}), ("possession:stop", {}),
        ("match:init", {"teamA": "X", "teamB": "Y", "quarterTime": 1}),
    ]
    for command, payload in rng_script:
        live.dispatch(command, payload)
        await fake_sleep.advance(1)
        if not live.match.clock.running:
            assert not live.match.possession.running
        assert live.match.clock.running == live.game_clock.ticking
        assert live.match.possession.running == live.possession_clock.ticking


async def test_tick_fault_fails_closed(live, fake_sleep, monkeypatch):
    init(live)
    live.dispatch("clock:start")
    live.dispatch("possession:start", {"team": "A"})
    await settle()
    recorder = listen(live, Recorder())

    def boom():
        raise RuntimeError("tick exploded")

    monkeypatch.setattr(live.game_clock, "tick", boom)
    await fake_sleep.advance(1)

    assert not live.match.clock.running
    assert not live.game_clock.ticking
    assert not live.match.possession.running
    assert not live.possession_clock.ticking
    assert recorder.snapshots
    assert not recorder.last.clock.running


async def test_possession_tick_with_stopped_clock_halts(live, fake_sleep):
    init(live)
    live.dispatch("clock:start")
    live.dispatch("possession:start", {"team": "A"})
    await settle()
    # corrupt the coupling behind the clocks' back
    live.match.clock.running = False
    await fake_sleep.advance(1)

    assert not live.match.possession.running
    assert not live.possession_clock.ticking
    assert live.match.possession.remaining == 12
    # halted like a clock:stop, so it follows the next clock start
    assert live.possession_clock.pending


async def test_stopped_clock_tick_is_noop(live):
    init(live)
    assert live.game_clock.tick() is False
    assert live.possession_clock.tick() is False
    assert live.match.possession.team is None
    assert live.match.clock.minutes == 8


async def test_expired_period_does_not_restart_old_possession(live, fake_sleep):
    init(live)
    live.match.clock.minutes = 0
    live.match.clock.seconds = 3
    live.dispatch("clock:start")
    live.dispatch("possession:start", {"team": "B"})
    await fake_sleep.advance(3)
    assert clock_of(live.snapshot()) == (0, 0, False)
    assert possession_of(live.snapshot()) == ("B", 10, False)

    live.dispatch("quarter:next")
    live.dispatch("clock:start")
    await fake_sleep.advance(1)

    assert clock_of(live.snapshot()) == (7, 59, True)
    assert possession_of(live.snapshot()) == ("B", 10, False)
    assert not live.possession_clock.ticking


async def test_new_period_drops_running_possession(live, fake_sleep):
    init(live)
    live.dispatch("clock:start")
    live.dispatch("possession:start", {"team": "A"})
    await fake_sleep.advance(4)

    live.dispatch("overtime:start")
    assert possession_of(live.snapshot()) == ("A", 8, False)
    assert not live.possession_clock.pending

    live.dispatch("clock:start")
    await fake_sleep.advance(2)
    assert clock_of(live.snapshot()) == (4, 58, True)
    assert possession_of(live.snapshot()) == ("A", 8, False)


def test_countdown_base_is_abstract():
    with pytest.raises(TypeError):
        _Countdown(MatchState())
