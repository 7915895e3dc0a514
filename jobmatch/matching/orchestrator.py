"""Tier selection with circuit breakers and a rule-based floor.

Tiers are tried in configured order. A tier whose circuit is open, or any
non-terminal tier once the request deadline has passed, is skipped. A failure
falls through to the next tier. The last tier (rule_based) always runs when
reached, so a non-empty eligible set always produces scores.
"""

import math
import time
from typing import List, Optional, Sequence

from jobmatch.domain.models import JobPosting, MatchMethod, UserProfile
from jobmatch.logging import get_logger

from .circuit import CircuitBreakerRegistry
from .deadline import Deadline
from .models import FailureKind, OrchestrationResult, ScoredJob, TierAttempt, TierFailure, TierOutcome
from .scorers.base import Scorer
from .scorers.rule_based import RuleBasedScorer

logger = get_logger(__name__, component="orchestrator")

GUARDED_TIERS = ("ai", "semantic")


def _usable(score: ScoredJob) -> bool:
    """Whether the validator will keep this entry (non-blank reason, numeric score)."""
    return bool((score.reason or "").strip()) and score.score is not None and not math.isnan(score.score)


class FallbackOrchestrator:
    """Runs scoring tiers in order until one succeeds."""

    def __init__(
        self,
        scorers: Sequence[Scorer],
        breakers: CircuitBreakerRegistry,
        rule_based: Optional[RuleBasedScorer] = None,
        free_matches: int = 5,
        premium_matches: int = 10,
    ):
        """
        Args:
            scorers: Tiers in order; the last one must be rule_based
            breakers: Circuit breakers for the guarded tiers
            rule_based: Scorer used for backfill (the terminal tier if omitted)
            free_matches: Target result count for free users
            premium_matches: Target result count for premium users

        Raises:
            ValueError: If scorers is empty or does not end with rule_based
        """
        if not scorers:
            raise ValueError("At least one scorer is required")
        if scorers[-1].tier != "rule_based":
            raise ValueError(f"Last tier must be rule_based, got '{scorers[-1].tier}'")

        self.scorers = list(scorers)
        self.breakers = breakers
        self.rule_based = rule_based or scorers[-1]
        self.free_matches = free_matches
        self.premium_matches = premium_matches

    @property
    def tier_order(self) -> List[str]:
        return [scorer.tier for scorer in self.scorers]

    def run(self, user: UserProfile, eligible: Sequence[JobPosting], deadline: Deadline) -> OrchestrationResult:
        """Score the eligible set with the first tier that succeeds.

        Args:
            user: User profile snapshot
            eligible: Eligibility Filter output
            deadline: Request deadline

        Returns:
            OrchestrationResult; method "none" without invoking any tier when
            the eligible set is empty
        """
        if not eligible:
            logger.info(
                "No eligible jobs; skipping scoring",
                extra={"event": "orchestrator.no_eligible", "user_email": user.email},
            )
            return OrchestrationResult(method=MatchMethod.NONE.value)

        attempts: List[TierAttempt] = []
        last_index = len(self.scorers) - 1

        for index, scorer in enumerate(self.scorers):
            terminal = index == last_index
            breaker = self.breakers.get(scorer.tier) if scorer.tier in GUARDED_TIERS else None

            if not terminal:
                if breaker is not None and not breaker.allow_request():
                    attempts.append(TierAttempt(tier=scorer.tier, status="skipped", reason="circuit_open"))
                    self._log_skip(user, scorer.tier, "circuit_open")
                    continue
                if deadline.expired:
                    attempts.append(TierAttempt(tier=scorer.tier, status="skipped", reason="deadline_expired"))
                    self._log_skip(user, scorer.tier, "deadline_expired")
                    continue

            start = time.monotonic()
            outcome = self._invoke(scorer, user, eligible, deadline)
            duration_ms = int((time.monotonic() - start) * 1000)

            if outcome.ok:
                if breaker is not None:
                    breaker.record_success()
                attempts.append(TierAttempt(tier=scorer.tier, status="success", duration_ms=duration_ms))
                return self._finish(user, eligible, scorer, outcome.scores, attempts)

            if breaker is not None and outcome.counts_against_circuit:
                breaker.record_failure(outcome.kind.value)
            attempts.append(
                TierAttempt(tier=scorer.tier, status="failed", reason=outcome.kind.value, duration_ms=duration_ms)
            )
            logger.warning(
                f"Tier '{scorer.tier}' failed ({outcome.kind.value}); falling through",
                extra={
                    "event": "orchestrator.tier.failed",
                    "user_email": user.email,
                    "tier": scorer.tier,
                    "failure_kind": outcome.kind.value,
                    "failure_message": outcome.message,
                    "duration_ms": duration_ms,
                },
            )

        # Only reached if a misbehaving terminal tier failed
        logger.error(
            "Terminal tier failed; scoring with rule-based floor",
            extra={"event": "orchestrator.floor_used", "user_email": user.email},
        )
        scores = self.rule_based.score(user, eligible, deadline).scores
        attempts.append(TierAttempt(tier=self.rule_based.tier, status="success"))
        return self._finish(user, eligible, self.rule_based, scores, attempts)

    def _log_skip(self, user: UserProfile, tier: str, reason: str) -> None:
        logger.info(
            f"Skipping tier '{tier}' ({reason})",
            extra={"event": "orchestrator.tier.skipped", "user_email": user.email, "tier": tier, "reason": reason},
        )

    def _invoke(self, scorer: Scorer, user: UserProfile, eligible: Sequence[JobPosting], deadline: Deadline) -> TierOutcome:
        try:
            return scorer.score(user, eligible, deadline)
        except Exception as e:
            logger.error(
                f"Tier '{scorer.tier}' raised unexpectedly: {e}",
                exc_info=True,
                extra={"event": "orchestrator.tier.error", "tier": scorer.tier, "user_email": user.email},
            )
            return TierFailure(tier=scorer.tier, kind=FailureKind.ERROR, message=f"{type(e).__name__}: {e}")

    def _finish(
        self,
        user: UserProfile,
        eligible: Sequence[JobPosting],
        scorer: Scorer,
        scores: List[ScoredJob],
        attempts: List[TierAttempt],
    ) -> OrchestrationResult:
        backfill = self._backfill(user, eligible, scorer, scores)
        result = OrchestrationResult(method=scorer.method, scores=scores, backfill=backfill, attempts=attempts)

        extra = {
            "event": "orchestrator.tier.succeeded",
            "user_email": user.email,
            "tier": scorer.tier,
            "score_count": len(scores),
            "backfill_count": len(backfill),
            "attempted_tiers": ",".join(a.tier for a in attempts),
        }
        if result.fell_back:
            extra["event"] = "orchestrator.fallback"
            logger.info(f"Fell back to tier '{scorer.tier}'", extra=extra)
        else:
            logger.debug(f"Tier '{scorer.tier}' succeeded", extra=extra)
        return result

    def _backfill(
        self, user: UserProfile, eligible: Sequence[JobPosting], scorer: Scorer, scores: List[ScoredJob]
    ) -> List[ScoredJob]:
        """Rule-based scores for eligible jobs the winning tier left unscored."""
        if scorer.tier == self.rule_based.tier:
            return []

        target = self.premium_matches if user.is_premium else self.free_matches
        eligible_hashes = {job.job_hash for job in eligible}
        scored = {s.job_hash for s in scores if s.job_hash in eligible_hashes and _usable(s)}
        if len(scored) >= target:
            return []

        remaining = [job for job in eligible if job.job_hash not in scored]
        if not remaining:
            return []
        return self.rule_based.score(user, remaining).scores
