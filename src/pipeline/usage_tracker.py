"""Usage tracker: process-local gate in front of every AI provider call.

Two ceilings: a running total since construction and a sliding per-minute
window. State lives in memory only and resets on restart. Concurrent callers
may race between ``can_proceed`` and ``record_call``; a small overshoot is
accepted because the gate protects API spend, not correctness.
"""

import logging
import time
from collections import deque
from collections.abc import Callable

from src.core.config import UsageLimits
from src.core.schemas import UsageSnapshot

logger = logging.getLogger(__name__)


class UsageTracker:
    """Enforces total and per-minute ceilings on provider calls.

    Usage::

        tracker = UsageTracker(UsageLimits(max_total_calls=250))
        if tracker.can_proceed():
            tracker.record_call()
            ...  # dispatch the request
    """

    def __init__(
        self,
        limits: UsageLimits | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limits = limits or UsageLimits()
        self._clock = clock
        self._total = 0
        self._window: deque[float] = deque()

    @property
    def limits(self) -> UsageLimits:
        return self._limits

    def can_proceed(self) -> bool:
        """Return True if another provider call fits under both ceilings."""
        if self._total >= self._limits.max_total_calls:
            logger.warning(
                "AI call ceiling reached: %d/%d",
                self._total, self._limits.max_total_calls,
            )
            return False

        self._prune(self._clock())
        if len(self._window) >= self._limits.max_calls_per_minute:
            logger.warning(
                "AI rate limit reached: %d calls in the last %.0fs",
                len(self._window), self._limits.window_seconds,
            )
            return False

        return True

    def record_call(self) -> None:
        """Count a call that is about to be dispatched."""
        self._total += 1
        self._window.append(self._clock())
        logger.info("AI call recorded. Total: %d/%d", self._total, self._limits.max_total_calls)

    def stats(self) -> UsageSnapshot:
        """Snapshot current usage without mutating state."""
        cutoff = self._clock() - self._limits.window_seconds
        in_window = sum(1 for ts in self._window if ts > cutoff)
        return UsageSnapshot(
            total=self._total,
            max=self._limits.max_total_calls,
            remaining=max(0, self._limits.max_total_calls - self._total),
            requests_in_window=in_window,
        )

    def _prune(self, now: float) -> None:
        cutoff = now - self._limits.window_seconds
        while self._window and self._window[0] <= cutoff:
            self._window.popleft()
