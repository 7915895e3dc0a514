"""Exceptions raised inside the matching engine.

None of these escape MatchingEngine.match(): AI scorer errors and budget refusals
become tier failures, cache errors degrade to uncached operation. Callers observe
only result counts and the method/confidence fields.
"""

from typing import Optional


class MatchingError(Exception):
    """Base exception for all matching engine errors."""

    pass


class EligibilityExhausted(MatchingError):
    """No posting in the pool passed the eligibility filter for a user.

    Reported as method="none" with zero results, never raised to callers.
    """

    pass


class AIScorerError(MatchingError):
    """Base class for failures of a single AI scoring call."""

    failure_kind = "error"


class AITimeout(AIScorerError):
    """The AI call did not finish within min(AI timeout, request deadline)."""

    failure_kind = "timeout"


class AIRateLimited(AIScorerError):
    """The provider rejected the call with a rate limit."""

    failure_kind = "rate_limited"

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class AIMalformedResponse(AIScorerError):
    """The provider answered, but no usable per-job scores could be extracted."""

    failure_kind = "malformed"


class AIUnavailable(AIScorerError):
    """The provider could not be reached or is not configured."""

    failure_kind = "unavailable"


class BudgetExceeded(MatchingError):
    """An AI call was refused by the per-user or global daily budget.

    Attributes:
        scope: "per_user" or "global_daily"
    """

    def __init__(self, message: str, scope: str) -> None:
        super().__init__(message)
        self.scope = scope


class CacheUnavailable(MatchingError):
    """The result cache backend failed; the request proceeds uncached."""

    pass


class ValidationClamped(MatchingError):
    """A tier produced an out-of-range score that the validator corrected.

    Recorded on the validation report and logged; never raised to callers.
    """

    def __init__(self, job_hash: str, original_score: float, clamped_score: int) -> None:
        super().__init__(f"Score {original_score} for job {job_hash} clamped to {clamped_score}")
        self.job_hash = job_hash
        self.original_score = original_score
        self.clamped_score = clamped_score
