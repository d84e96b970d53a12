from __future__ import annotations
import asyncio
import heapq
import itertools
import logging
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    """The part of ``asyncio.AbstractEventLoop`` a :class:`Clock` relies on."""

    def time(self) -> float: ...

    def call_at(self, when: float, callback: Callable, *args): ...


class Clock:
    """Fire a callback at a fixed interval on a single logical timeline.

    Fire times are ``origin + n * interval`` so late callbacks do not push
    later ones back. The clock binds to ``loop`` when given, otherwise to the
    running asyncio loop at :meth:`start` time.
    """

    def __init__(self, loop: Optional[Scheduler] = None, name: str = "clock") -> None:
        self._loop = loop
        self.name = name
        self.interval: float | None = None
        self._handle = None
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self, interval: float, callback: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.stop()
        loop = self._loop or asyncio.get_running_loop()
        self._generation += 1
        self.interval = interval
        logger.debug("%s started at %.3fs interval", self.name, interval)
        self._arm(loop, self._generation, loop.time(), 1, callback)

    def stop(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            logger.debug("%s stopped", self.name)

    def _arm(
        self,
        loop: Scheduler,
        generation: int,
        origin: float,
        count: int,
        callback: Callable[[], None],
    ) -> None:
        when = origin + count * self.interval
        self._handle = loop.call_at(
            when, self._fire, loop, generation, origin, count, callback
        )

    def _fire(
        self,
        loop: Scheduler,
        generation: int,
        origin: float,
        count: int,
        callback: Callable[[], None],
    ) -> None:
        if generation != self._generation:
            return
        # next fire is armed first so a stop() inside the callback cancels it
        self._arm(loop, generation, origin, count + 1, callback)
        callback()


class ManualHandle:
    """Cancellable entry of a :class:`ManualTimeline`."""

    def __init__(self, when: float, callback: Callable, args: tuple) -> None:
        self.when = when
        self._callback = callback
        self._args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def _run(self) -> None:
        self._callback(*self._args)


class ManualTimeline:
    """Deterministic scheduler whose time only moves through :meth:`advance`.

    Due times are rounded to microseconds so ``0.1 * 3`` lands on ``0.3``.
    Entries due at the same time run in the order they were scheduled.
    """

    PRECISION = 6

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._queue: list[tuple[float, int, ManualHandle]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self.now

    def call_at(self, when: float, callback: Callable, *args) -> ManualHandle:
        handle = ManualHandle(round(when, self.PRECISION), callback, args)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        return handle

    def clock(self, name: str = "clock") -> Clock:
        return Clock(loop=self, name=name)

    def pending(self) -> int:
        return sum(1 for _w, _s, h in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> None:
        """Move time forward by ``seconds`` running every entry that falls due."""
        if seconds < 0:
            raise ValueError("seconds must be non-negative")
        target = round(self.now + seconds, self.PRECISION)
        while self._queue and self._queue[0][0] <= target:
            when, _seq, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = when
            handle._run()
        self.now = target
