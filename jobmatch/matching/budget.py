"""Daily cost and call budget for the AI tier.

Two limits are enforced before every AI call: a per-user call count and a global
spend ceiling in USD. Both reset when the UTC date changes. Spend is reserved from
an estimate (characters / chars_per_token input tokens plus max_tokens output) and
settled against reported usage after the call.
"""

import math
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, Optional

from jobmatch.logging import get_logger
from jobmatch.utils.timestamps import utc_now

from .exceptions import BudgetExceeded

logger = get_logger(__name__, component="budget")

SCOPE_PER_USER = "per_user"
SCOPE_GLOBAL = "global_daily"


@dataclass(frozen=True)
class BudgetUsage:
    """Counters for the current UTC day."""

    day: date
    spent_usd: float
    calls_by_user: Dict[str, int]


class CostBudget:
    """Thread-safe per-user and global daily AI budget."""

    def __init__(
        self,
        per_user_daily_calls: int = 5,
        daily_cost_limit_usd: float = 10.0,
        input_cost_per_1k_tokens_usd: float = 0.00015,
        output_cost_multiplier: float = 2.0,
        chars_per_token: int = 4,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.per_user_daily_calls = per_user_daily_calls
        self.daily_cost_limit_usd = daily_cost_limit_usd
        self.input_cost_per_1k = input_cost_per_1k_tokens_usd
        self.output_cost_multiplier = output_cost_multiplier
        self.chars_per_token = chars_per_token
        self._clock = clock
        self._lock = threading.Lock()
        self._day = self._clock().date()
        self._spent = 0.0
        self._calls: Dict[str, int] = {}

    @classmethod
    def from_config(cls, config, clock: Callable[[], datetime] = utc_now) -> "CostBudget":
        """Build a budget from a BudgetConfig."""
        return cls(
            per_user_daily_calls=config.per_user_daily_calls,
            daily_cost_limit_usd=config.daily_cost_limit_usd,
            input_cost_per_1k_tokens_usd=config.input_cost_per_1k_tokens_usd,
            output_cost_multiplier=config.output_cost_multiplier,
            chars_per_token=config.chars_per_token,
            clock=clock,
        )

    def estimate_input_tokens(self, prompt_chars: int) -> int:
        return math.ceil(max(prompt_chars, 0) / self.chars_per_token)

    def cost_for_tokens(self, input_tokens: int, output_tokens: int) -> float:
        rate = self.input_cost_per_1k / 1000.0
        return input_tokens * rate + output_tokens * rate * self.output_cost_multiplier

    def estimate_cost(self, prompt_chars: int, max_tokens: int) -> float:
        """Worst-case cost of one call: the whole prompt plus max_tokens of output."""
        return self.cost_for_tokens(self.estimate_input_tokens(prompt_chars), max_tokens)

    def reserve(self, user_email: str, estimated_cost: float) -> float:
        """Reserve one call and its estimated cost.

        Args:
            user_email: User the call is made for
            estimated_cost: Estimated cost in USD

        Returns:
            The reserved amount

        Raises:
            BudgetExceeded: If the user's call count or the global ceiling would be exceeded
        """
        with self._lock:
            self._roll_day()
            used = self._calls.get(user_email, 0)
            if used >= self.per_user_daily_calls:
                raise BudgetExceeded(
                    f"Per-user AI budget exhausted ({used}/{self.per_user_daily_calls} calls today)",
                    scope=SCOPE_PER_USER,
                )
            if self._spent + estimated_cost > self.daily_cost_limit_usd:
                raise BudgetExceeded(
                    f"Daily AI cost ceiling reached (${self._spent:.4f} spent of "
                    f"${self.daily_cost_limit_usd:.2f})",
                    scope=SCOPE_GLOBAL,
                )
            self._calls[user_email] = used + 1
            self._spent += estimated_cost
            return estimated_cost

    def settle(self, reserved_cost: float, actual_cost: Optional[float]) -> None:
        """Replace a reservation with the actual cost once usage is known.

        The call count is kept either way; only spend is adjusted. A reservation
        made on an earlier UTC day is ignored.
        """
        if actual_cost is None:
            return
        with self._lock:
            if self._roll_day():
                return
            self._spent = max(self._spent - reserved_cost + actual_cost, 0.0)

    def usage(self) -> BudgetUsage:
        with self._lock:
            self._roll_day()
            return BudgetUsage(day=self._day, spent_usd=self._spent, calls_by_user=dict(self._calls))

    def reset(self) -> None:
        with self._lock:
            self._day = self._clock().date()
            self._spent = 0.0
            self._calls.clear()

    def _roll_day(self) -> bool:
        """Reset counters on UTC date change; caller holds the lock."""
        today = self._clock().date()
        if today == self._day:
            return False
        logger.info(
            "AI budget counters reset for new UTC day",
            extra={
                "event": "budget.reset",
                "previous_day": self._day.isoformat(),
                "spent_usd": round(self._spent, 6),
            },
        )
        self._day = today
        self._spent = 0.0
        self._calls.clear()
        return True
