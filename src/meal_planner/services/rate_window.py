"""In-memory sliding-window burst limiter."""

import math
import threading
import time
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class RateWindow:
    """Allow at most ``max_calls`` per user inside a trailing window.

    State lives in the process only; a restart resets every window. The durable
    daily quota remains the authoritative limit. Users whose window has emptied
    are forgotten, so memory is bounded by users active in the last window.
    """

    max_calls: int = 10
    window_seconds: float = 60.0
    clock: Callable[[], float] = time.monotonic
    _calls: dict[str, deque[float]] = field(default_factory=dict, init=False, repr=False)
    _locks: dict[str, threading.Lock] = field(default_factory=dict, init=False, repr=False)
    _registry_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )
    _last_sweep: float | None = field(default=None, init=False, repr=False)

    def allow(self, user_id: str) -> bool:
        """Record a call and return True if the user is still under the limit."""
        self._sweep(self.clock())
        with self._user_calls(user_id) as calls:
            now = self.clock()
            self._prune(calls, now)
            if len(calls) >= self.max_calls:
                return False
            calls.append(now)
            return True

    def retry_after_seconds(self, user_id: str) -> int:
        """Return seconds until the oldest call in the window expires."""
        with self._user_calls(user_id) as calls:
            now = self.clock()
            self._prune(calls, now)
            if not calls:
                self._forget(user_id)
            if len(calls) < self.max_calls:
                return 0
            return max(1, math.ceil(calls[0] + self.window_seconds - now))

    def reset(self, user_id: str | None = None) -> None:
        """Forget recorded calls for one user or for everyone."""
        if user_id is None:
            with self._registry_lock:
                user_ids = list(self._calls)
            for known_user in user_ids:
                self.reset(known_user)
            return
        with self._user_calls(user_id):
            self._forget(user_id)

    @contextmanager
    def _user_calls(self, user_id: str) -> Iterator[deque[float]]:
        """Hold the user's lock and yield their live call deque."""
        while True:
            with self._registry_lock:
                lock = self._locks.setdefault(user_id, threading.Lock())
            lock.acquire()
            with self._registry_lock:
                if self._locks.get(user_id) is lock:
                    calls = self._calls.setdefault(user_id, deque())
                    break
            # The entry was evicted while we waited; retry with a fresh one.
            lock.release()
        try:
            yield calls
        finally:
            lock.release()

    def _forget(self, user_id: str) -> None:
        # Caller holds the user's lock.
        with self._registry_lock:
            self._calls.pop(user_id, None)
            self._locks.pop(user_id, None)

    def _sweep(self, now: float) -> None:
        """Drop users with no calls in the window, at most once per window."""
        with self._registry_lock:
            if self._last_sweep is not None and now - self._last_sweep < self.window_seconds:
                return
            self._last_sweep = now
            cutoff = now - self.window_seconds
            for user_id, lock in list(self._locks.items()):
                if not lock.acquire(blocking=False):
                    continue
                try:
                    calls = self._calls.get(user_id)
                    if not calls or calls[-1] <= cutoff:
                        self._calls.pop(user_id, None)
                        del self._locks[user_id]
                finally:
                    lock.release()

    def _prune(self, calls: deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while calls and calls[0] <= cutoff:
            calls.popleft()
