"""
FILE DESCRIPTION: Admission control for capture pipelines.
Bounds how many browser processes may run at once and queues the overflow FIFO.
KEY FUNCTIONS/CLASSES: ConcurrencyGovernor
"""

import threading
import time
from collections import deque
from contextlib import contextmanager

from capture.errors import CapacityExceeded
from capture.logger import get_logger

logger = get_logger("governor")


class ConcurrencyGovernor:
    """
    FLOW: admit() takes a free slot immediately if nobody is queued -> otherwise joins the
    FIFO queue (or fails fast when the queue is full) -> waits until it is at the head and a
    slot frees up, or until queue_timeout elapses -> releases the slot when the block exits.

    INVARIANT: active <= max_concurrency and queued <= max_queue at all times.
    Both counters and the queue are only touched while holding the condition lock.
    """

    def __init__(self, max_concurrency: int, max_queue: int = 0, queue_timeout: float = 0.0):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if max_queue < 0:
            raise ValueError("max_queue must not be negative")
        self._max_concurrency = max_concurrency
        self._max_queue = max_queue
        self._queue_timeout = queue_timeout
        self._cond = threading.Condition()
        self._active = 0
        self._waiters = deque()

    @classmethod
    def from_config(cls, config):
        return cls(config.max_concurrency, config.max_queue, config.queue_timeout)

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def active(self) -> int:
        with self._cond:
            return self._active

    @property
    def queued(self) -> int:
        with self._cond:
            return len(self._waiters)

    def acquire(self) -> None:
        with self._cond:
            if self._active < self._max_concurrency and not self._waiters:
                self._active += 1
                return

            if len(self._waiters) >= self._max_queue:
                logger.warning(
                    f"[GOVERNOR] Rejecting capture: {self._active} active, queue full ({len(self._waiters)})"
                )
                raise CapacityExceeded()

            ticket = object()
            self._waiters.append(ticket)
            deadline = time.monotonic() + self._queue_timeout
            try:
                while not (self._waiters[0] is ticket and self._active < self._max_concurrency):
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        logger.warning(
                            f"[GOVERNOR] Capture waited {self._queue_timeout:.1f}s without a slot; rejecting."
                        )
                        raise CapacityExceeded()
                    self._cond.wait(remaining)
                self._active += 1
            finally:
                self._waiters.remove(ticket)
                # The next waiter may now be at the head with a free slot
                self._cond.notify_all()

    def release(self) -> None:
        with self._cond:
            if self._active <= 0:
                raise RuntimeError("release() called without a matching acquire()")
            self._active -= 1
            self._cond.notify_all()

    @contextmanager
    def admit(self):
        self.acquire()
        try:
            yield
        finally:
            self.release()
