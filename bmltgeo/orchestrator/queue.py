"""Admission-controlled queue for outbound geocoding requests."""
from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional, Set

import structlog

from bmltgeo.geocoding.errors import ValidationError
from bmltgeo.geocoding.options import RateLimitOptions

LOGGER = structlog.get_logger(__name__)

TaskFactory = Callable[[], Awaitable[Any]]


@dataclass
class _QueuedTask:
    factory: TaskFactory
    future: "asyncio.Future[Any]"


class RequestQueue:
    """FIFO queue that caps in-flight tasks and task starts per interval.

    Intervals are fixed windows: a window opens at the first start after the
    previous one elapsed and admits at most ``interval_cap`` starts. With
    ``carryover_concurrency_count`` the tasks still running when a window
    opens count against it. An ``interval`` of zero disables the window.

    ``clear()`` drops tasks that have not started. Their futures are never
    resolved, so anything awaiting them waits forever; callers that clear the
    queue must stop awaiting the handles they were given.
    """

    def __init__(
        self,
        *,
        concurrency: int = 1,
        interval_cap: int = 1,
        interval: float = 1.0,
        carryover_concurrency_count: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_cap < 1:
            raise ValidationError("interval_cap must be at least 1", context={"interval_cap": interval_cap})
        if interval < 0:
            raise ValidationError("interval must not be negative", context={"interval": interval})
        self._check_concurrency(concurrency)
        self._concurrency = concurrency
        self._interval_cap = interval_cap
        self._interval = interval
        self._carryover = carryover_concurrency_count
        self._clock = clock
        self._waiting: Deque[_QueuedTask] = deque()
        self._running = 0
        self._window_start: Optional[float] = None
        self._window_count = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: Set["asyncio.Task[None]"] = set()

    @classmethod
    def from_options(cls, options: RateLimitOptions) -> "RequestQueue":
        return cls(
            concurrency=options.concurrency,
            interval_cap=options.interval_cap,
            interval=options.interval,
            carryover_concurrency_count=options.carryover_concurrency_count,
        )

    @staticmethod
    def _check_concurrency(value: int) -> None:
        if value < 1:
            raise ValidationError("concurrency must be at least 1", context={"concurrency": value})

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def enqueue(self, factory: TaskFactory) -> "asyncio.Future[Any]":
        """Admit ``factory`` and return a future for its outcome."""
        loop = asyncio.get_running_loop()
        task = _QueuedTask(factory=factory, future=loop.create_future())
        self._waiting.append(task)
        self._drain()
        return task.future

    def size(self) -> int:
        """Tasks admitted but not yet started, ignoring ones already cancelled."""
        return sum(1 for task in self._waiting if not task.future.cancelled())

    def pending_count(self) -> int:
        """Tasks currently executing."""
        return self._running

    def clear(self) -> None:
        dropped = len(self._waiting)
        self._waiting.clear()
        if dropped:
            LOGGER.warning("queue_cleared", dropped=dropped, running=self._running)

    def set_concurrency(self, concurrency: int) -> None:
        """Change the in-flight cap; running tasks are left alone."""
        self._check_concurrency(concurrency)
        self._concurrency = concurrency
        self._drain()

    def _window_allows_start(self) -> bool:
        if self._interval <= 0:
            return True
        now = self._clock()
        if self._window_start is None or now - self._window_start >= self._interval:
            self._window_start = now
            self._window_count = self._running if self._carryover else 0
        return self._window_count < self._interval_cap

    def _arm_timer(self) -> None:
        if self._timer is not None or self._window_start is None:
            return
        remaining = max(self._window_start + self._interval - self._clock(), 0.0)
        self._timer = asyncio.get_running_loop().call_later(remaining, self._on_window_elapsed)

    def _on_window_elapsed(self) -> None:
        self._timer = None
        self._drain()

    def _drain(self) -> None:
        while self._waiting and self._running < self._concurrency:
            if not self._window_allows_start():
                self._arm_timer()
                return
            task = self._waiting.popleft()
            if task.future.cancelled():
                continue
            self._running += 1
            self._window_count += 1
            runner = asyncio.ensure_future(self._run(task))
            self._tasks.add(runner)
            runner.add_done_callback(self._tasks.discard)

    async def _run(self, task: _QueuedTask) -> None:
        try:
            result = await task.factory()
        except asyncio.CancelledError:
            if not task.future.done():
                task.future.cancel()
            raise
        except Exception as exc:
            if not task.future.done():
                task.future.set_exception(exc)
        else:
            if not task.future.done():
                task.future.set_result(result)
        finally:
            self._running -= 1
            self._drain()
