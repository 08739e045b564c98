"""Minimum-spacing pacing gate for outbound exchange calls.

One gate serializes every call made through the client that owns it. The
"time of last call" lives on the instance, so independent clients (and
tests) get independent pacing state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

DEFAULT_MIN_INTERVAL_SECONDS = 1.2


@dataclass
class RateLimitGate:
    """Sleep just long enough to keep calls `min_interval_seconds` apart."""

    min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep
    _last_call: Optional[float] = field(default=None, init=False, repr=False)

    @property
    def last_call(self) -> Optional[float]:
        return self._last_call

    def wait(self) -> float:
        """Block until the next call may go out. Returns seconds slept."""
        slept = 0.0
        if self._last_call is not None:
            elapsed = self.clock() - self._last_call
            if elapsed < self.min_interval_seconds:
                slept = self.min_interval_seconds - elapsed
                self.sleep(slept)
        self._last_call = self.clock()
        return slept
