import math
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

from . import timecalc
from .config import DonutConfig
from .timer import Phase, TimerState

TWO_PI = 2 * math.pi

ANSI_COLORS = {
    "black": 30,
    "red": 31,
    "green": 32,
    "yellow": 33,
    "blue": 34,
    "magenta": 35,
    "cyan": 36,
    "white": 37,
}

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")


@dataclass(frozen=True)
class Span:
    text: str
    style: str = ""


Line = List[Span]
Frame = List[Line]


def ring_angle(x: float, y: float, cx: float, cy: float) -> float:
    """Angle of (x, y) around (cx, cy): 0 at 12 o'clock, growing clockwise.

    Screen rows grow downwards, so atan2 on (dy, dx) already turns clockwise;
    adding a quarter turn moves zero from 3 o'clock to 12 o'clock.
    """
    angle = math.atan2(y - cy, x - cx) + math.pi / 2
    angle %= TWO_PI
    return angle


def segment_index(angle: float, segments: int) -> int:
    return min(segments - 1, int(angle / TWO_PI * segments))


def filled_segments(progress: float, segments: int) -> int:
    progress = max(0.0, min(1.0, progress))
    return int(math.floor(progress * segments))


def _merge(spans: Sequence[Span]) -> Line:
    merged: Line = []
    for span in spans:
        if merged and merged[-1].style == span.style:
            merged[-1] = Span(merged[-1].text + span.text, span.style)
        else:
            merged.append(span)
    return merged


def draw_donut(progress: float, clock: str, template: Sequence[str], segments: int = 120) -> Frame:
    height = len(template)
    width = max((len(row) for row in template), default=0)
    cx, cy = width // 2, height // 2
    filled = filled_segments(progress, segments)
    clock_start = (width - len(clock)) // 2
    clock_end = clock_start + len(clock)

    rows: Frame = []
    for y, row in enumerate(template):
        cells = []
        for x, ch in enumerate(row.ljust(width)):
            if ch != " ":
                segment = segment_index(ring_angle(x, y, cx, cy), segments)
                style = "elapsed" if segment < filled else "remaining"
                cells.append(Span(ch, style))
            elif y == cy and clock_start <= x < clock_end:
                cells.append(Span(clock[x - clock_start], "clock"))
            else:
                cells.append(Span(" "))
        rows.append(_merge(cells))
    return rows


def visible_width(line) -> int:
    if isinstance(line, str):
        return len(strip_ansi(line))
    return sum(len(span.text) for span in line)


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def center(line: Line, width: int) -> Line:
    """Left-pad a line so its visible text sits in the middle of ``width``.

    Padding is computed on the text between the first and last visible
    characters; any leading or trailing blanks in the spans do not count.
    """
    text = "".join(span.text for span in line)
    stripped = text.strip()
    if not stripped:
        return [Span(" " * width)] if width > 0 else []
    lead = len(text) - len(text.lstrip())
    trimmed = _trim(line, lead, len(stripped))
    padding = max(0, (width - len(stripped)) // 2)
    return _merge([Span(" " * padding)] + trimmed) if padding else trimmed


def _trim(line: Line, start: int, length: int) -> Line:
    out: Line = []
    pos = 0
    end = start + length
    for span in line:
        span_start, span_end = pos, pos + len(span.text)
        pos = span_end
        lo, hi = max(span_start, start), min(span_end, end)
        if lo < hi:
            out.append(Span(span.text[lo - span_start:hi - span_start], span.style))
    return out


def _controls(state: TimerState, highlighted: str) -> Line:
    pause_hint = "un[p]ause" if state.phase is Phase.PAUSED else "[p]ause"
    spans: Line = []
    for key, hint in (("q", "[q]uit"), ("r", "[r]eset"), ("p", pause_hint)):
        if spans:
            spans.append(Span(" "))
        style = "highlight" if highlighted == key else ""
        spans.append(Span(hint, style))
    return _merge(spans)


def status_lines(state: TimerState, now: float, width: int) -> Frame:
    highlighted = state.highlighted(now)
    phase = state.phase
    if phase is Phase.FINISHED:
        message = "Timer finished!"
        if state.blink:
            first = center([Span(message, "finished")], width)
        else:
            # same width as the visible message so nothing shifts
            first = [Span(" " * width)]
    elif phase is Phase.PAUSED:
        first = center([Span("Timer paused.")], width)
    elif phase is Phase.STOPPED:
        first = center([Span("Timer stopped.")], width)
    else:
        first = [Span(" " * width)]
    return [first, center(_controls(state, highlighted), width)]


def render_frame(state: TimerState, config: DonutConfig, now: float) -> Frame:
    clock = timecalc.format_mmss(state.remaining)
    donut = draw_donut(state.progress, clock, config.template, config.segments)
    status = status_lines(state, now, config.width)
    margin = Span(" " * config.margin)
    return [_merge([margin] + line) for line in donut + status]


def frame_text(frame: Frame) -> str:
    return "\n".join("".join(span.text for span in line).rstrip() for line in frame)


def _sgr(style: str, palette: Mapping[str, str]) -> str:
    code = ANSI_COLORS.get(palette.get(style, ""))
    if code is None:
        return ""
    if style in ("finished", "highlight"):
        return f"\x1b[1;{code}m"
    return f"\x1b[{code}m"


def to_ansi(frame: Frame, palette: Dict[str, str]) -> str:
    lines = []
    for line in frame:
        out = []
        for span in line:
            start = _sgr(span.style, palette) if span.style else ""
            if start:
                out.append(f"{start}{span.text}\x1b[0m")
            else:
                out.append(span.text)
        lines.append("".join(out).rstrip())
    return "\n".join(lines)
