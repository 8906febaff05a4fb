import curses
import logging
import math
import sys
from functools import partial
from typing import Dict, Optional

from . import timecalc
from .config import DonutConfig, minimum_size
from .loop import EventLoop
from .render import Frame, Span, center, render_frame, status_lines
from .timer import TimerState, new_timer, snapshot, update

logger = logging.getLogger(__name__)

CURSES_COLORS = {
    "black": curses.COLOR_BLACK,
    "red": curses.COLOR_RED,
    "green": curses.COLOR_GREEN,
    "yellow": curses.COLOR_YELLOW,
    "blue": curses.COLOR_BLUE,
    "magenta": curses.COLOR_MAGENTA,
    "cyan": curses.COLOR_CYAN,
    "white": curses.COLOR_WHITE,
}


def _init_colors(config: DonutConfig) -> Dict[str, int]:
    if not config.color:
        return {}
    try:
        if not curses.has_colors():
            return {}
        curses.start_color()
        curses.use_default_colors()
        background = -1
    except curses.error:
        background = curses.COLOR_BLACK

    attrs = {}
    for idx, (style, name) in enumerate(sorted(config.palette.items()), start=1):
        color = CURSES_COLORS.get(name)
        if color is None:
            continue
        try:
            curses.init_pair(idx, color, background)
        except curses.error:
            continue
        attr = curses.color_pair(idx)
        if style in ("finished", "highlight"):
            attr |= curses.A_BOLD
        attrs[style] = attr
    return attrs


def decode_key(ch) -> Optional[str]:
    if isinstance(ch, str):
        return ch.lower() if len(ch) == 1 else None
    if isinstance(ch, int) and 0 <= ch <= 255:
        return chr(ch).lower()
    return None


def _compact_frame(state: TimerState, now: float, cols: int) -> Frame:
    clock = timecalc.format_mmss(state.remaining)
    return [center([Span(clock, "clock")], cols)] + status_lines(state, now, cols)


def _paint(stdscr, frame: Frame, attrs: Dict[str, int]) -> None:
    stdscr.erase()
    rows, cols = stdscr.getmaxyx()
    for y, line in enumerate(frame[:rows]):
        x = 0
        for span in line:
            if x >= cols:
                break
            text = span.text[: cols - x]
            try:
                stdscr.addstr(y, x, text, attrs.get(span.style, 0))
            except curses.error:
                pass
            x += len(text)
    stdscr.refresh()


def _make_draw(stdscr, config: DonutConfig, attrs: Dict[str, int]):
    min_rows, min_cols = minimum_size(config)

    def draw(state: TimerState, now: float) -> None:
        rows, cols = stdscr.getmaxyx()
        if rows < min_rows or cols < min_cols:
            frame = _compact_frame(state, now, cols)
        else:
            frame = render_frame(state, config, now)
        _paint(stdscr, frame, attrs)

    return draw


def _make_wait_key(stdscr):
    def wait_key(timeout: Optional[float]) -> Optional[str]:
        if timeout is None:
            stdscr.timeout(-1)
        else:
            stdscr.timeout(max(0, int(math.ceil(timeout * 1000))))
        return decode_key(stdscr.getch())

    return wait_key


def run(total: int, config: DonutConfig, start: bool = True) -> TimerState:
    stdscr = curses.initscr()
    sys.stdout.write("\x1b[?1049h")
    sys.stdout.flush()
    curses.noecho()
    curses.cbreak()
    stdscr.keypad(True)
    try:
        curses.curs_set(0)
    except curses.error:
        pass

    try:
        attrs = _init_colors(config)
        loop = EventLoop()
        state, commands = new_timer(total, loop.clock(), config, start=start)
        logger.debug("timer created: %s", snapshot(state))
        state = loop.run(
            state,
            partial(update, config=config),
            _make_draw(stdscr, config, attrs),
            _make_wait_key(stdscr),
            commands,
        )
        logger.debug("timer closed: %s", snapshot(state, loop.clock()))
        return state
    finally:
        curses.nocbreak()
        stdscr.keypad(False)
        curses.echo()
        curses.endwin()
        sys.stdout.write("\x1b[?1049l")
        sys.stdout.flush()
