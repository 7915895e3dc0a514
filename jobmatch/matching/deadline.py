"""Request deadlines propagated from the caller down to the AI call."""

import time
from typing import Callable, Optional


class Deadline:
    """A point in monotonic time after which a request should stop waiting.

    A deadline created with seconds=None is unbounded. Tiers use bound() to cap
    their own timeouts so a short caller deadline abandons a slow AI call early.

    Example:
        >>> deadline = Deadline(5.0)
        >>> deadline.bound(20.0) <= 5.0
        True
    """

    def __init__(self, seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + max(seconds, 0.0)

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> Optional[float]:
        """Seconds left, clipped at 0; None when unbounded."""
        if self._expires_at is None:
            return None
        return max(self._expires_at - self._clock(), 0.0)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def bound(self, timeout: float) -> float:
        """Return min(timeout, remaining time)."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)

    def __repr__(self) -> str:
        remaining = self.remaining()
        if remaining is None:
            return "Deadline(unbounded)"
        return f"Deadline(remaining={remaining:.3f}s)"
