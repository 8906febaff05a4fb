from functools import partial

import pytest

from pomodonut.config import DonutConfig
from pomodonut.loop import EventLoop
from pomodonut.timer import Blink, Phase, Quit, Schedule, Tick, new_timer, update

CONFIG = DonutConfig(tick_interval=1.0)


# ---- Helpers ----

class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class ScriptedKeys:
    """Stands in for the terminal: advances the clock instead of blocking."""

    def __init__(self, clock, presses):
        self.clock = clock
        self.presses = sorted(presses)
        self.calls = 0

    def __call__(self, timeout):
        self.calls += 1
        if self.presses:
            at, key = self.presses[0]
            if timeout is None or self.clock.now + timeout >= at:
                self.presses.pop(0)
                self.clock.now = max(self.clock.now, at)
                if key == "^C":
                    raise KeyboardInterrupt
                return key
        if timeout is None:
            raise AssertionError("loop would block forever")
        self.clock.now += timeout
        return None


def make_loop(presses):
    clock = FakeClock()
    sleeps = []
    loop = EventLoop(clock=clock, sleep=sleeps.append)
    return loop, ScriptedKeys(clock, presses), sleeps


def run(total, presses, start=True):
    loop, keys, sleeps = make_loop(presses)
    frames = []
    state, commands = new_timer(total, loop.clock(), CONFIG, start=start)
    state = loop.run(
        state,
        partial(update, config=CONFIG),
        lambda s, now: frames.append((now, s)),
        keys,
        commands,
    )
    return state, frames, loop, sleeps


class TestQueue:
    def test_pops_in_due_order(self):
        loop = EventLoop(clock=FakeClock())
        loop.schedule(Schedule(2.0, Tick, 1))
        loop.schedule(Schedule(0.5, Blink, 0))
        assert loop.timeout(0.0) == 0.5
        assert loop.pop_due(1.0) == [Blink(1.0, 0)]
        assert loop.pop_due(1.5) == []
        assert loop.pop_due(3.0) == [Tick(3.0, 1)]
        assert len(loop) == 0

    def test_no_timers_means_no_timeout(self):
        assert EventLoop(clock=FakeClock()).timeout(0.0) is None

    def test_cancel_all(self):
        loop = EventLoop(clock=FakeClock())
        loop.schedule(Schedule(1.0, Tick, 1))
        loop.cancel_all()
        assert loop.pop_due(10.0) == []

    def test_unknown_command(self):
        loop, keys, _ = make_loop([])
        with pytest.raises(TypeError):
            loop.run(None, lambda s, e: (s, []), lambda s, now: None, keys, ["bogus"])


class TestRun:
    def test_counts_down_and_quits(self):
        state, frames, loop, sleeps = run(3, [(10.0, "q")])
        assert state.phase is Phase.FINISHED
        assert state.elapsed == 3.0
        assert sleeps == [CONFIG.highlight_duration]
        assert len(loop) == 0
        assert all(0.0 <= s.elapsed <= s.total for _, s in frames)

    def test_blinks_after_finish(self):
        _, frames, _, _ = run(2, [(6.0, "q")])
        phases = [s.blink for now, s in frames if s.phase is Phase.FINISHED]
        assert True in phases and False in phases

    def test_pause_holds_progress(self):
        state, frames, _, _ = run(5, [(2.5, "p"), (20.0, "q")])
        assert state.phase is Phase.PAUSED
        assert state.elapsed == pytest.approx(2.5)
        assert frames[-1][1].elapsed == pytest.approx(2.5)

    def test_resume_then_finish(self):
        state, _, _, _ = run(3, [(1.5, "p"), (4.0, "p"), (30.0, "q")])
        assert state.phase is Phase.FINISHED

    def test_reset_restarts_clean(self):
        state, frames, _, _ = run(3, [(5.0, "r"), (6.5, "q")])
        assert state.phase is Phase.RUNNING
        assert state.elapsed == pytest.approx(1.0)
        ticks_after_reset = [now for now, s in frames if now > 5.0 and s.elapsed > 0]
        assert ticks_after_reset

    def test_wait_then_start(self):
        state, _, _, _ = run(2, [(1.0, "p"), (10.0, "q")], start=False)
        assert state.phase is Phase.FINISHED

    def test_interrupt_quits_without_delay(self):
        state, _, loop, sleeps = run(60, [(3.0, "^C")])
        assert state.phase is Phase.RUNNING
        assert sleeps == []
        assert len(loop) == 0

    def test_quit_from_initial_commands(self):
        loop, keys, sleeps = make_loop([])
        loop.run(None, lambda s, e: (s, []), lambda s, now: None, keys, [Quit(0.0)])
        assert keys.calls == 0

    def test_interrupt_outside_wait_still_cancels_timers(self):
        loop, keys, _ = make_loop([])
        state, commands = new_timer(60, loop.clock(), CONFIG)
        calls = []

        def draw(s, now):
            calls.append(now)
            if len(calls) == 3:
                raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            loop.run(state, partial(update, config=CONFIG), draw, keys, commands)
        assert len(loop) == 0

    def test_interrupt_during_quit_delay_cancels_timers(self):
        def sleep(delay):
            raise KeyboardInterrupt

        clock = FakeClock()
        loop = EventLoop(clock=clock, sleep=sleep)
        state, commands = new_timer(60, clock(), CONFIG)
        with pytest.raises(KeyboardInterrupt):
            loop.run(state, partial(update, config=CONFIG), lambda s, now: None, ScriptedKeys(clock, [(2.5, "q")]), commands)
        assert len(loop) == 0
