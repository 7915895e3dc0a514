"""Data models passed between the matching components.

Tier outcomes are a tagged union: a scorer returns either TierSuccess with raw
per-job scores or TierFailure with a FailureKind. Raw scores are not yet
validated; the QualityValidator turns them into MatchResult objects.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from jobmatch.domain.models import MatchResult


class FailureKind(str, Enum):
    """Why a tier produced no usable output."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    MALFORMED = "malformed"
    BUDGET_EXCEEDED = "budget_exceeded"
    UNAVAILABLE = "unavailable"
    ERROR = "error"


@dataclass(frozen=True)
class ScoredJob:
    """Raw score for one posting, as produced by a tier.

    Attributes:
        job_hash: Posting identifier
        score: Raw score (may be out of range until validated)
        reason: Natural-language reason
        confidence: Tier confidence in the score
        method: MatchMethod value of the producing tier
    """

    job_hash: str
    score: float
    reason: str
    confidence: float
    method: str


@dataclass(frozen=True)
class TierSuccess:
    """A tier produced scores."""

    tier: str
    scores: List[ScoredJob] = field(default_factory=list)
    discarded: int = 0

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class TierFailure:
    """A tier failed; the orchestrator falls through to the next tier."""

    tier: str
    kind: FailureKind
    message: str

    @property
    def ok(self) -> bool:
        return False

    @property
    def counts_against_circuit(self) -> bool:
        """Budget refusals are policy decisions, not dependency failures."""
        return self.kind != FailureKind.BUDGET_EXCEEDED


TierOutcome = Union[TierSuccess, TierFailure]


@dataclass
class TierAttempt:
    """Record of what happened to one tier during a request.

    Attributes:
        tier: Tier name
        status: "success", "failed" or "skipped"
        reason: Failure kind or skip reason
        duration_ms: Time spent in the tier
    """

    tier: str
    status: str
    reason: Optional[str] = None
    duration_ms: int = 0


@dataclass
class OrchestrationResult:
    """Output of the fallback orchestrator for one request.

    Attributes:
        method: MatchMethod value of the tier that succeeded ("none" if no jobs)
        scores: Raw scores from the successful tier
        backfill: Rule-based scores used to top up a short result set
        attempts: Per-tier attempt log, in order
    """

    method: str
    scores: List[ScoredJob] = field(default_factory=list)
    backfill: List[ScoredJob] = field(default_factory=list)
    attempts: List[TierAttempt] = field(default_factory=list)

    @property
    def fell_back(self) -> bool:
        return any(a.status != "success" for a in self.attempts)


@dataclass
class ValidationReport:
    """Corrections the quality validator applied to one result set."""

    clamped: int = 0
    dropped_ineligible: int = 0
    dropped_invalid: int = 0
    downgraded: int = 0
    backfilled: int = 0
    rebalanced: int = 0


@dataclass
class MatchResponse:
    """What MatchingEngine.match() returns to the caller.

    Attributes:
        user_email: User the matches are for
        results: Validated, ordered match results
        method: Overall method (tier that produced the set, "cached" or "none")
        eligible_count: Size of the eligible set for this request
        pool_version: Candidate-pool version the request ran against
        fingerprint: Cache key of the request
        attempts: Per-tier attempt log (empty for cache hits)
        cache_hit: Whether results came from the result cache
        duration_ms: Wall-clock time for the request
    """

    user_email: str
    results: List[MatchResult]
    method: str
    eligible_count: int
    pool_version: str
    fingerprint: str
    attempts: List[TierAttempt] = field(default_factory=list)
    cache_hit: bool = False
    duration_ms: int = 0

    @property
    def result_count(self) -> int:
        return len(self.results)

    def to_dict(self) -> dict:
        """Serialize for JSON reports."""
        return {
            "user_email": self.user_email,
            "method": self.method,
            "eligible_count": self.eligible_count,
            "result_count": self.result_count,
            "pool_version": self.pool_version,
            "cache_hit": self.cache_hit,
            "duration_ms": self.duration_ms,
            "attempts": [
                {"tier": a.tier, "status": a.status, "reason": a.reason, "duration_ms": a.duration_ms}
                for a in self.attempts
            ],
            "results": [r.model_dump(mode="json") for r in self.results],
        }
