import argparse
import logging
import sys

from . import __version__
from .config import ConfigError, DonutConfig, load_config, setup_logging
from .render import render_frame, to_ansi
from .timecalc import DurationError, parse_duration
from .timer import new_timer

logger = logging.getLogger(__name__)

USAGE = "Usage: pomodonut mm:ss"


def _once(total: int, config: DonutConfig, start: bool) -> str:
    state, _ = new_timer(total, 0.0, config, start=start)
    frame = render_frame(state, config, 0.0)
    if not config.color:
        return to_ansi(frame, {})
    return to_ansi(frame, config.palette)


def parse_args(argv=None):
    epilog = "Controls (interactive): q quit, r reset and restart, p pause/resume/start."
    parser = argparse.ArgumentParser(
        prog="pomodonut",
        description="Terminal countdown timer drawn as a donut that fills clockwise",
        epilog=epilog,
    )
    parser.add_argument("duration", nargs="?", help="countdown length as mm:ss (up to 99:59)")
    parser.add_argument("--wait", action="store_true", help="start stopped; press p to begin")
    parser.add_argument("--once", action="store_true", help="print the first frame and exit")
    parser.add_argument("--tick", type=float, default=None, metavar="SECONDS", help="redraw interval while running")
    parser.add_argument(
        "--pause-delay",
        type=float,
        default=None,
        metavar="SECONDS",
        help="apply pause/resume after this delay instead of immediately",
    )
    parser.add_argument("--version", action="version", version=f"pomodonut {__version__}")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.duration is None:
        print(USAGE)
        return 1

    try:
        total = parse_duration(args.duration)
        config = load_config(tick_interval=args.tick, pause_delay=args.pause_delay)
    except (DurationError, ConfigError) as exc:
        print(f"Error: {exc}")
        return 1

    log_path = setup_logging()
    if log_path is not None:
        logger.debug("debug log at %s", log_path)

    start = not args.wait
    if args.once:
        print(_once(total, config, start))
        return 0

    import curses

    from .ui import run

    try:
        run(total, config, start=start)
    except KeyboardInterrupt:
        return 0
    except curses.error as exc:
        logger.exception("terminal failure")
        print(f"Error running program: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
