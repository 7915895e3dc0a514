"""Per-tier circuit breakers.

A breaker moves closed -> open after `failure_threshold` consecutive failures
inside the sliding failure window, open -> half_open once the cool-down has
elapsed, and half_open -> closed after `half_open_successes` consecutive
successes. A failure while half_open reopens the circuit.

Breakers are held by a CircuitBreakerRegistry owned by the engine; there is no
module-level state.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Dict, Optional

from jobmatch.logging import get_logger

logger = get_logger(__name__, component="circuit")


class CircuitStatus(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitState:
    """Point-in-time view of one breaker.

    Attributes:
        tier: Tier the breaker guards
        state: closed, open or half_open
        consecutive_failures: Failures counted inside the current window
        opened_at: Monotonic time the circuit last opened (None if never)
        half_open_successes: Successes recorded since entering half_open
    """

    tier: str
    state: str
    consecutive_failures: int
    opened_at: Optional[float]
    half_open_successes: int


class CircuitBreaker:
    """Thread-safe circuit breaker for one tier."""

    def __init__(
        self,
        tier: str,
        failure_threshold: int = 5,
        failure_window_seconds: float = 300,
        cooldown_seconds: float = 60,
        half_open_successes: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.tier = tier
        self.failure_threshold = failure_threshold
        self.failure_window_seconds = failure_window_seconds
        self.cooldown_seconds = cooldown_seconds
        self.required_successes = half_open_successes
        self._clock = clock
        self._lock = threading.Lock()
        self._failures: Deque[float] = deque()
        self._state = CircuitStatus.CLOSED
        self._opened_at: Optional[float] = None
        self._successes = 0

    def allow_request(self) -> bool:
        """Return True if the tier may be called now.

        An open circuit whose cool-down has elapsed moves to half_open and admits
        the call as a trial.
        """
        with self._lock:
            if self._state == CircuitStatus.OPEN:
                if self._clock() - self._opened_at < self.cooldown_seconds:
                    return False
                self._transition(CircuitStatus.HALF_OPEN)
            return True

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitStatus.HALF_OPEN:
                self._successes += 1
                if self._successes >= self.required_successes:
                    self._transition(CircuitStatus.CLOSED)
            elif self._state == CircuitStatus.CLOSED:
                # Failures must be consecutive to trip the breaker
                self._failures.clear()

    def record_failure(self, reason: Optional[str] = None) -> None:
        with self._lock:
            now = self._clock()
            if self._state == CircuitStatus.HALF_OPEN:
                self._transition(CircuitStatus.OPEN, reason=reason)
                return
            if self._state == CircuitStatus.OPEN:
                return

            self._failures.append(now)
            self._prune(now)
            if len(self._failures) >= self.failure_threshold:
                self._transition(CircuitStatus.OPEN, reason=reason)

    def snapshot(self) -> CircuitState:
        with self._lock:
            self._prune(self._clock())
            return CircuitState(
                tier=self.tier,
                state=self._state.value,
                consecutive_failures=len(self._failures),
                opened_at=self._opened_at,
                half_open_successes=self._successes,
            )

    @property
    def state(self) -> str:
        return self.snapshot().state

    def reset(self) -> None:
        with self._lock:
            self._failures.clear()
            self._state = CircuitStatus.CLOSED
            self._opened_at = None
            self._successes = 0

    def _prune(self, now: float) -> None:
        while self._failures and now - self._failures[0] > self.failure_window_seconds:
            self._failures.popleft()

    def _transition(self, new_state: CircuitStatus, reason: Optional[str] = None) -> None:
        """Change state; caller holds the lock."""
        old_state = self._state
        self._state = new_state
        self._successes = 0

        if new_state == CircuitStatus.OPEN:
            self._opened_at = self._clock()
            failures = len(self._failures)
            self._failures.clear()
            logger.warning(
                f"Circuit for tier '{self.tier}' opened",
                extra={
                    "event": "circuit.opened",
                    "tier": self.tier,
                    "from_state": old_state.value,
                    "failures": failures,
                    "reason": reason,
                    "cooldown_seconds": self.cooldown_seconds,
                },
            )
        elif new_state == CircuitStatus.HALF_OPEN:
            logger.info(
                f"Circuit for tier '{self.tier}' half-open, admitting trial calls",
                extra={"event": "circuit.half_open", "tier": self.tier},
            )
        else:
            self._failures.clear()
            logger.info(
                f"Circuit for tier '{self.tier}' closed",
                extra={"event": "circuit.closed", "tier": self.tier, "from_state": old_state.value},
            )


class CircuitBreakerRegistry:
    """Holds one breaker per guarded tier for the lifetime of an engine."""

    def __init__(
        self,
        failure_threshold: int = 5,
        failure_window_seconds: float = 300,
        cooldown_seconds: float = 60,
        half_open_successes: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = {
            "failure_threshold": failure_threshold,
            "failure_window_seconds": failure_window_seconds,
            "cooldown_seconds": cooldown_seconds,
            "half_open_successes": half_open_successes,
            "clock": clock,
        }
        self._lock = threading.Lock()
        self._breakers: Dict[str, CircuitBreaker] = {}

    @classmethod
    def from_config(cls, config, clock: Callable[[], float] = time.monotonic) -> "CircuitBreakerRegistry":
        """Build a registry from a CircuitBreakerConfig."""
        return cls(
            failure_threshold=config.failure_threshold,
            failure_window_seconds=config.failure_window_seconds,
            cooldown_seconds=config.cooldown_seconds,
            half_open_successes=config.half_open_successes,
            clock=clock,
        )

    def get(self, tier: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(tier)
            if breaker is None:
                breaker = CircuitBreaker(tier, **self._settings)
                self._breakers[tier] = breaker
            return breaker

    def states(self) -> Dict[str, CircuitState]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {b.tier: b.snapshot() for b in breakers}

    def reset(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()

    def shutdown(self) -> None:
        with self._lock:
            self._breakers.clear()
