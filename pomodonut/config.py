import logging
import os
import platform
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

DONUT_TEMPLATE = [
    "           *******           ",
    "       ***************       ",
    "    *********************    ",
    "  *********       *********  ",
    " *******             ******* ",
    " ******               ****** ",
    "******                 ******",
    " ******               ****** ",
    " *******             ******* ",
    "  *********       *********  ",
    "    *********************    ",
    "       ***************       ",
    "           *******           ",
]

DEFAULT_PALETTE = {
    "elapsed": "white",
    "remaining": "red",
    "clock": "white",
    "finished": "green",
    "highlight": "yellow",
}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class DonutConfig:
    tick_interval: float = 0.12
    blink_interval: float = 0.8
    highlight_duration: float = 0.15
    pause_delay: float = 0.0
    segments: int = 120
    margin: int = 4
    color: bool = True
    template: List[str] = field(default_factory=lambda: list(DONUT_TEMPLATE))
    palette: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PALETTE))

    @property
    def width(self) -> int:
        return max((len(row) for row in self.template), default=0)

    @property
    def height(self) -> int:
        return len(self.template)


def validate(config: DonutConfig) -> DonutConfig:
    if config.tick_interval <= 0:
        raise ConfigError("tick interval must be greater than 0")
    if config.blink_interval <= 0:
        raise ConfigError("blink interval must be greater than 0")
    if config.highlight_duration < 0:
        raise ConfigError("highlight duration must not be negative")
    if config.pause_delay < 0:
        raise ConfigError("pause delay must not be negative")
    if config.segments < 1:
        raise ConfigError("segment count must be at least 1")
    widths = {len(row) for row in config.template}
    if len(widths) > 1:
        raise ConfigError("template rows must all have the same width")
    return config


def _env_float(environ: Mapping[str, str], name: str) -> Optional[float]:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number of seconds, got {raw!r}") from None


def load_config(environ: Optional[Mapping[str, str]] = None, **overrides) -> DonutConfig:
    """Build the run configuration from the environment plus explicit overrides.

    Overrides with a value of None are ignored so CLI flags that were not
    given fall through to the environment and then to the defaults.
    """
    if environ is None:
        environ = os.environ
    values = {}
    for name, key in (
        ("POMODONUT_TICK", "tick_interval"),
        ("POMODONUT_BLINK", "blink_interval"),
        ("POMODONUT_PAUSE_DELAY", "pause_delay"),
    ):
        value = _env_float(environ, name)
        if value is not None:
            values[key] = value
    if "NO_COLOR" in environ:
        values["color"] = False
    values.update({k: v for k, v in overrides.items() if v is not None})
    config = validate(replace(DonutConfig(), **values))
    logger.debug("config loaded: %s", config)
    return config


def get_state_dir() -> Path:
    system = platform.system().lower()
    if system == "darwin":
        base = Path.home() / "Library" / "Logs"
    elif system == "windows":
        appdata = os.environ.get("LOCALAPPDATA")
        if appdata:
            base = Path(appdata)
        else:
            base = Path.home() / "AppData" / "Local"
    else:
        base = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    return base / "pomodonut"


def debug_enabled(environ: Optional[Mapping[str, str]] = None) -> bool:
    if environ is None:
        environ = os.environ
    return environ.get("POMODONUT_DEBUG") == "1"


def setup_logging(environ: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    """Send package logs to a debug file when POMODONUT_DEBUG=1.

    The terminal is owned by curses while the timer runs, so nothing is ever
    logged to the console. Returns the log path, or None when disabled.
    """
    root = logging.getLogger("pomodonut")
    if not debug_enabled(environ):
        root.addHandler(logging.NullHandler())
        return None
    path = get_state_dir() / "debug.log"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError:
        root.addHandler(logging.NullHandler())
        return None
    handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    return path


def minimum_size(config: DonutConfig, status_lines: int = 2) -> Tuple[int, int]:
    return config.height + status_lines, config.width + config.margin
