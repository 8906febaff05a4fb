import math

MAX_MINUTES = 99
MAX_SECONDS = 59
MAX_DURATION = MAX_MINUTES * 60 + MAX_SECONDS


class DurationError(ValueError):
    pass


def _parse_field(text: str, name: str, upper: int) -> int:
    # str.isdigit accepts superscripts and other unicode digits
    if not text or not all("0" <= ch <= "9" for ch in text):
        raise DurationError(f"{name} must be a number between 0 and {upper}")
    value = int(text)
    if value > upper:
        raise DurationError(f"{name} must be a number between 0 and {upper}")
    return value


def parse_duration(text: str) -> int:
    """Parse ``mm:ss`` into whole seconds.

    Raises DurationError naming the offending field and its valid range.
    """
    parts = text.split(":")
    if len(parts) != 2:
        raise DurationError("invalid format, expected mm:ss")
    minutes = _parse_field(parts[0], "minutes", MAX_MINUTES)
    seconds = _parse_field(parts[1], "seconds", MAX_SECONDS)
    return minutes * 60 + seconds


def format_mmss(seconds: float) -> str:
    # round up so 00:00 shows only once the countdown is over
    total = max(0, int(math.ceil(seconds - 1e-9)))
    minutes = total // 60
    secs = total % 60
    return f"{minutes:02d}:{secs:02d}"


def remaining(elapsed: float, total: float) -> float:
    return max(0.0, total - elapsed)


def progress(elapsed: float, total: float) -> float:
    if total <= 0:
        return 0.0
    if elapsed <= 0:
        return 0.0
    if elapsed >= total:
        return 1.0
    return elapsed / total
