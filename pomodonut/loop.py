import heapq
import itertools
import logging
import time
from typing import Callable, Iterable, List, Optional, Tuple

from .timer import Event, Interrupt, Key, Quit, Schedule

logger = logging.getLogger(__name__)

Update = Callable[[object, Event], Tuple[object, List]]
Draw = Callable[[object, float], None]
WaitKey = Callable[[Optional[float]], Optional[str]]


class EventLoop:
    """Single-threaded dispatcher for delayed events and key presses.

    Timers are entries in one heap ordered by due time; the only blocking call
    is ``wait_key``, which is given the time left until the next due entry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sleep: Callable[[float], None] = time.sleep) -> None:
        self.clock = clock
        self._sleep = sleep
        self._queue: List[Tuple[float, int, Schedule]] = []
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._queue)

    def schedule(self, command: Schedule, now: Optional[float] = None) -> None:
        if now is None:
            now = self.clock()
        heapq.heappush(self._queue, (now + max(0.0, command.delay), next(self._seq), command))

    def cancel_all(self) -> None:
        self._queue.clear()

    def timeout(self, now: float) -> Optional[float]:
        if not self._queue:
            return None
        return max(0.0, self._queue[0][0] - now)

    def pop_due(self, now: float) -> List[Event]:
        events = []
        while self._queue and self._queue[0][0] <= now:
            _, _, command = heapq.heappop(self._queue)
            events.append(command.build(now))
        return events

    def _execute(self, commands: Iterable, now: float) -> Optional[Quit]:
        quit_command = None
        for command in commands:
            if isinstance(command, Schedule):
                self.schedule(command, now)
            elif isinstance(command, Quit):
                quit_command = command
            else:
                raise TypeError(f"unknown command: {command!r}")
        return quit_command

    def run(self, state, update: Update, draw: Draw, wait_key: WaitKey, commands: Iterable = ()):
        """Dispatch events until a Quit command; returns the final state.

        Pending timers are cancelled however the loop ends, including an
        exception escaping from ``update``, ``draw`` or the quit delay.
        """
        try:
            now = self.clock()
            quit_command = self._execute(commands, now)
            draw(state, now)
            while quit_command is None:
                events: List[Event] = []
                key = None
                try:
                    key = wait_key(self.timeout(self.clock()))
                except KeyboardInterrupt:
                    events.append(Interrupt(self.clock()))
                now = self.clock()
                if key:
                    events.append(Key(now, key))
                events.extend(self.pop_due(now))
                for event in events:
                    state, produced = update(state, event)
                    found = self._execute(produced, now)
                    if found is not None and quit_command is None:
                        quit_command = found
                        logger.debug("quit requested by %r", event)
                draw(state, now)

            # the last frame, highlight included, stays up for the delay
            if quit_command.delay > 0:
                self._sleep(quit_command.delay)
            return state
        finally:
            dropped = len(self._queue)
            self.cancel_all()
            logger.debug("event loop stopped, %d pending timers cancelled", dropped)
