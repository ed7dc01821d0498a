# governor.py
# Bounds how many probes run at once, independent of how many ports are queued

from __future__ import annotations
import concurrent.futures
import contextlib
import logging
import threading
from typing import Any, Callable, Iterator, Optional

logger = logging.getLogger(__name__)


class ConcurrencyGovernor:
    """
    Counting-semaphore gate in front of a worker pool.

    A slot is taken before a probe is submitted and given back when that
    probe's future finishes, on every exit path. The number of pending
    ports never shows up here: callers ask for one slot at a time and
    suspend while all `limit` slots are held.
    """

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError(f"Concurrency limit must be >= 1 (got {limit})")
        self.limit = limit
        self._sem = threading.BoundedSemaphore(limit)
        self._lock = threading.Lock()
        self._in_flight = 0
        self._peak = 0

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def peak(self) -> int:
        with self._lock:
            return self._peak

    def acquire(self, blocking: bool = True, timeout: Optional[float] = None) -> bool:
        if blocking and timeout is not None:
            ok = self._sem.acquire(timeout=timeout)
        else:
            ok = self._sem.acquire(blocking)
        if ok:
            with self._lock:
                self._in_flight += 1
                if self._in_flight > self._peak:
                    self._peak = self._in_flight
        return ok

    def release(self) -> None:
        self._sem.release()
        with self._lock:
            self._in_flight -= 1

    @contextlib.contextmanager
    def slot(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()

    def dispatch(
        self,
        pool: concurrent.futures.Executor,
        fn: Callable[..., Any],
        *args: Any,
        acquired: bool = False,
    ) -> concurrent.futures.Future:
        """
        Submit fn(*args) to pool while holding a slot. Pass acquired=True
        when the caller already took the slot with acquire().
        The slot is released as soon as the returned future is done.
        """
        if not acquired:
            self.acquire()
        try:
            fut = pool.submit(fn, *args)
        except Exception:
            self.release()
            raise
        fut.add_done_callback(self._release_cb)
        return fut

    def _release_cb(self, _fut: concurrent.futures.Future) -> None:
        self.release()
