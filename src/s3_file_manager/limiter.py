"""Counting semaphore with FIFO admission for in-flight transfer calls."""

import threading
from collections import deque
from typing import Callable, Deque, TypeVar

T = TypeVar("T")


class ConcurrencyLimiter:
    """Bounds the number of tasks running at once.

    Waiting callers are admitted strictly in arrival order: a released slot is
    handed directly to the oldest waiter, so a newly arriving caller can never
    overtake a queued one.
    """

    def __init__(self, max_concurrent: int):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self._lock = threading.Lock()
        self._running = 0
        self._waiters: Deque[threading.Event] = deque()

    @property
    def running(self) -> int:
        with self._lock:
            return self._running

    @property
    def waiting(self) -> int:
        with self._lock:
            return len(self._waiters)

    def _acquire(self) -> None:
        with self._lock:
            if self._running < self.max_concurrent and not self._waiters:
                self._running += 1
                return
            ticket = threading.Event()
            self._waiters.append(ticket)
        # The releasing thread transfers its slot before setting the event.
        ticket.wait()

    def _release(self) -> None:
        with self._lock:
            if self._waiters:
                self._waiters.popleft().set()
            else:
                self._running -= 1

    def schedule(self, task: Callable[..., T], *args, **kwargs) -> T:
        """Run ``task`` on the calling thread once a slot is available."""
        self._acquire()
        try:
            return task(*args, **kwargs)
        finally:
            self._release()
