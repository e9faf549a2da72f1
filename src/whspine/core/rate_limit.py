"""Rate limiting: pacing for calls to tenant source databases.

Manifesto:
Tenant databases are production systems. Bulk backfills must not hammer
them with back-to-back extraction queries, so consecutive extractions are
separated by a minimum interval. The limiter sits in front of the remote
source (see :class:`whspine.remote.PacedRemoteSource`) rather than inside
the window loop, so pacing applies uniformly to every caller.

ARCHITECTURE
────────────
::

    RateLimiter (ABC)
      └── MinIntervalLimiter     ─ at least N seconds between acquisitions

    Clock and sleep are injectable so tests never wait.

Example::

    limiter = MinIntervalLimiter(interval=1.0)
    limiter.acquire(block=True)     # returns immediately
    limiter.acquire(block=True)     # sleeps ~1s
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field


class RateLimiter(ABC):
    @abstractmethod
    def acquire(self, block: bool = False) -> bool:
        """Take a slot. Without *block*, return False instead of waiting."""

    @abstractmethod
    def get_wait_time(self) -> float:
        """Seconds until the next slot (0 when one is free now)."""


@dataclass
class MinIntervalLimiter(RateLimiter):
    """At least *interval* seconds between consecutive acquisitions.

    The first acquisition is never delayed; ``interval=0`` disables pacing.
    Thread-safe.
    """

    interval: float
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep

    _last: float | None = field(default=None, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def get_wait_time(self) -> float:
        if self._last is None or self.interval <= 0:
            return 0.0
        return max(0.0, self._last + self.interval - self.clock())

    def acquire(self, block: bool = False) -> bool:
        with self._lock:
            wait = self.get_wait_time()
            if wait > 0 and not block:
                return False
            if wait > 0:
                self.sleep(wait)
            self._last = self.clock()
            return True


__all__ = ["RateLimiter", "MinIntervalLimiter"]
