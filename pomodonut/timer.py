"""Countdown state machine.

``update(state, event, config)`` is a pure transition: it never touches the
clock or the terminal, it only returns the next state and the commands the
event loop should carry out (events to schedule, or quitting). Every timer
that re-arms itself (ticks, blinks, highlight expiry, delayed pause toggles)
carries a generation number, and an event whose generation is no longer
current is dropped, so a pause, reset or finish can never leave a second
tick chain running.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple, Union

from . import timecalc
from .config import DonutConfig

logger = logging.getLogger(__name__)

CONTROL_KEYS = ("q", "r", "p")


class Phase(Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


@dataclass(frozen=True)
class TimerState:
    total: float
    elapsed: float = 0.0
    running: bool = False
    paused: bool = False
    finished: bool = False
    blink: bool = True
    started_at: float = 0.0
    highlight_key: str = ""
    highlight_until: float = 0.0
    pending_pause: bool = False
    tick_generation: int = 0
    blink_generation: int = 0
    highlight_generation: int = 0
    pause_generation: int = 0

    @property
    def phase(self) -> Phase:
        if self.running:
            return Phase.PAUSED if self.paused else Phase.RUNNING
        if self.finished:
            return Phase.FINISHED
        return Phase.STOPPED

    @property
    def remaining(self) -> float:
        return timecalc.remaining(self.elapsed, self.total)

    @property
    def progress(self) -> float:
        return timecalc.progress(self.elapsed, self.total)

    def highlighted(self, now: float) -> str:
        if self.highlight_key and now < self.highlight_until:
            return self.highlight_key
        return ""


@dataclass(frozen=True)
class Tick:
    now: float
    generation: int


@dataclass(frozen=True)
class Blink:
    now: float
    generation: int


@dataclass(frozen=True)
class HighlightExpired:
    now: float
    generation: int


@dataclass(frozen=True)
class PauseToggle:
    now: float
    generation: int


@dataclass(frozen=True)
class Key:
    now: float
    key: str


@dataclass(frozen=True)
class Interrupt:
    now: float


Event = Union[Tick, Blink, HighlightExpired, PauseToggle, Key, Interrupt]


@dataclass(frozen=True)
class Schedule:
    """Deliver ``kind`` after ``delay`` seconds, stamped with ``generation``."""

    delay: float
    kind: type
    generation: int = 0

    def build(self, now: float) -> Event:
        return self.kind(now, self.generation)


@dataclass(frozen=True)
class Quit:
    delay: float = 0.0


Command = Union[Schedule, Quit]


def new_timer(total: float, now: float, config: DonutConfig, start: bool = True) -> Tuple[TimerState, List[Command]]:
    """Create the single timer of this process along with its first commands.

    A started timer schedules its first tick; either way one blink is armed,
    which only keeps blinking once the countdown has finished. A zero length
    timer that is started finishes on the spot.
    """
    state = TimerState(total=float(total))
    commands: List[Command] = [Schedule(config.blink_interval, Blink, state.blink_generation)]
    if start:
        state, start_commands = _start(state, now, config)
        commands.extend(start_commands)
    return state, commands


def _finish(state: TimerState, config: DonutConfig) -> Tuple[TimerState, List[Command]]:
    generation = state.blink_generation + 1
    state = replace(
        state,
        elapsed=state.total,
        running=False,
        paused=False,
        finished=True,
        blink=True,
        pending_pause=False,
        tick_generation=state.tick_generation + 1,
        blink_generation=generation,
    )
    logger.debug("countdown finished after %.2fs", state.total)
    return state, [Schedule(config.blink_interval, Blink, generation)]


def _start(state: TimerState, now: float, config: DonutConfig) -> Tuple[TimerState, List[Command]]:
    if state.elapsed >= state.total:
        return _finish(state, config)
    generation = state.tick_generation + 1
    state = replace(
        state,
        running=True,
        paused=False,
        finished=False,
        started_at=now - state.elapsed,
        tick_generation=generation,
    )
    return state, [Schedule(config.tick_interval, Tick, generation)]


def _pause(state: TimerState, now: float, config: DonutConfig) -> Tuple[TimerState, List[Command]]:
    elapsed = min(state.total, max(state.elapsed, now - state.started_at))
    # past the deadline with the last tick still queued
    if elapsed >= state.total:
        return _finish(state, config)
    return replace(state, paused=True, elapsed=elapsed, tick_generation=state.tick_generation + 1), []


def _toggle_pause(state: TimerState, now: float, config: DonutConfig) -> Tuple[TimerState, List[Command]]:
    phase = state.phase
    if phase is Phase.RUNNING:
        return _pause(state, now, config)
    if phase in (Phase.PAUSED, Phase.STOPPED):
        return _start(state, now, config)
    return state, []


def _reset(state: TimerState, now: float, config: DonutConfig) -> Tuple[TimerState, List[Command]]:
    state = replace(state, elapsed=0.0, finished=False, pending_pause=False, pause_generation=state.pause_generation + 1)
    return _start(state, now, config)


def _highlight(state: TimerState, key: str, now: float, config: DonutConfig) -> Tuple[TimerState, List[Command]]:
    generation = state.highlight_generation + 1
    state = replace(
        state,
        highlight_key=key,
        highlight_until=now + config.highlight_duration,
        highlight_generation=generation,
    )
    return state, [Schedule(config.highlight_duration, HighlightExpired, generation)]


def _defer_pause(state: TimerState, config: DonutConfig) -> Tuple[TimerState, List[Command]]:
    """Arm a delayed toggle, or call off the one already waiting."""
    generation = state.pause_generation + 1
    if state.pending_pause:
        return replace(state, pending_pause=False, pause_generation=generation), []
    state = replace(state, pending_pause=True, pause_generation=generation)
    return state, [Schedule(config.pause_delay, PauseToggle, generation)]


def _on_tick(state: TimerState, event: Tick, config: DonutConfig) -> Tuple[TimerState, List[Command]]:
    if event.generation != state.tick_generation or state.phase is not Phase.RUNNING:
        return state, []
    elapsed = min(state.total, max(state.elapsed, event.now - state.started_at))
    if elapsed >= state.total:
        return _finish(state, config)
    return replace(state, elapsed=elapsed), [Schedule(config.tick_interval, Tick, state.tick_generation)]


def _on_key(state: TimerState, event: Key, config: DonutConfig) -> Tuple[TimerState, List[Command]]:
    key = event.key.lower()
    if key not in CONTROL_KEYS:
        return state, []
    state, commands = _highlight(state, key, event.now, config)
    if key == "q":
        commands.append(Quit(config.highlight_duration))
        return state, commands
    if key == "r":
        state, more = _reset(state, event.now, config)
    elif config.pause_delay > 0:
        state, more = _defer_pause(state, config)
    else:
        state, more = _toggle_pause(state, event.now, config)
    commands.extend(more)
    return state, commands


def update(state: TimerState, event: Event, config: DonutConfig) -> Tuple[TimerState, List[Command]]:
    if isinstance(event, Tick):
        return _on_tick(state, event, config)
    if isinstance(event, Key):
        before = state.phase
        state, commands = _on_key(state, event, config)
        if state.phase is not before:
            logger.debug("key %r: %s -> %s", event.key, before.value, state.phase.value)
        return state, commands
    if isinstance(event, Blink):
        if event.generation != state.blink_generation:
            return state, []
        state = replace(state, blink=not state.blink)
        if state.phase is Phase.FINISHED:
            return state, [Schedule(config.blink_interval, Blink, state.blink_generation)]
        return state, []
    if isinstance(event, HighlightExpired):
        if event.generation != state.highlight_generation:
            return state, []
        return replace(state, highlight_key="", highlight_until=0.0), []
    if isinstance(event, PauseToggle):
        if event.generation != state.pause_generation or not state.pending_pause:
            return state, []
        state = replace(state, pending_pause=False)
        return _toggle_pause(state, event.now, config)
    if isinstance(event, Interrupt):
        return state, [Quit(0.0)]
    raise TypeError(f"unknown event: {event!r}")




def current_elapsed(state: TimerState, now: float) -> float:
    """Elapsed time as of ``now`` without waiting for the next tick."""
    if state.phase is not Phase.RUNNING:
        return state.elapsed
    return min(state.total, max(state.elapsed, now - state.started_at))


def snapshot(state: TimerState, now: Optional[float] = None) -> str:
    elapsed = state.elapsed if now is None else current_elapsed(state, now)
    left = timecalc.format_mmss(timecalc.remaining(elapsed, state.total))
    pct = timecalc.progress(elapsed, state.total) * 100
    return f"{state.phase.value:<8} done: {pct:5.1f}%  remaining: {left}"
