"""End-to-end deadline shared by every phase of a publish."""

from __future__ import annotations

import time
from typing import Callable

from raw2ami.errors import PublishTimeoutError


class Deadline:
    """A single time budget threaded through upload, import and registration.

    There are no per-phase timers: a slow upload eats into the time the
    import poll would have had.
    """

    def __init__(self, timeout: float, clock: Callable[[], float] = time.monotonic):
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.timeout = timeout
        self._clock = clock
        self._expires_at = clock() + timeout

    def remaining(self) -> float:
        """Seconds left before the deadline, never negative."""
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self, phase: str) -> None:
        """Raise PublishTimeoutError if the deadline has passed."""
        if self.expired:
            raise PublishTimeoutError(
                f"Deadline of {self.timeout:.0f}s exceeded during {phase}",
                phase=phase,
            )

    def __repr__(self) -> str:
        return f"Deadline(timeout={self.timeout}, remaining={self.remaining():.1f})"
