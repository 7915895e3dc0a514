"""AI scoring tier backed by a language-model provider.

The provider call is the only blocking network operation in the engine. It runs
on a bounded thread pool and is awaited with min(AI timeout, remaining request
deadline); an abandoned call keeps the same timeout on its HTTP request, so it
terminates on its own.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Dict, List, Optional, Sequence, Tuple

from jobmatch.domain.models import JobPosting, MatchMethod, UserProfile
from jobmatch.logging import get_logger
from jobmatch.matching.budget import CostBudget
from jobmatch.matching.deadline import Deadline
from jobmatch.matching.exceptions import (
    AIMalformedResponse,
    AIRateLimited,
    AIScorerError,
    AITimeout,
    AIUnavailable,
    BudgetExceeded,
)
from jobmatch.matching.models import FailureKind, ScoredJob, TierFailure, TierOutcome, TierSuccess
from jobmatch.providers.base import LLMProvider
from jobmatch.providers.schema import (
    AIScoringRequest,
    JobScorePayload,
    JobSummary,
    ProviderErrorResponse,
    UserSummary,
)

from .base import Scorer
from .semantic import SemanticScorer

logger = get_logger(__name__, component="ai_scorer")

_ERROR_CODES = {
    "timeout": AITimeout,
    "rate_limited": AIRateLimited,
    "malformed": AIMalformedResponse,
    "unavailable": AIUnavailable,
}


def build_request(user: UserProfile, jobs: Sequence[JobPosting], max_tokens: int, min_results: int) -> AIScoringRequest:
    """Summarize a user and a batch of postings for the provider."""
    return AIScoringRequest(
        user=UserSummary(
            career_path=list(user.career_path),
            skills=list(user.skills),
            industries=list(user.industries),
            experience_level=user.experience_level,
            target_cities=list(user.target_cities),
            languages_spoken=user.effective_languages,
        ),
        jobs=[
            JobSummary(
                index=position,
                job_hash=job.job_hash,
                title=job.title,
                company=job.company,
                location=job.location_label,
                categories=list(job.categories),
                experience_level=job.experience_level,
                work_environment=job.work_environment,
                description=job.description,
            )
            for position, job in enumerate(jobs, start=1)
        ],
        max_tokens=max_tokens,
        min_results=max(1, min(min_results, len(jobs))),
    )


class AIScorer(Scorer):
    """Scores postings through an LLMProvider under a cost budget."""

    tier = "ai"
    method = MatchMethod.AI.value

    def __init__(
        self,
        provider: LLMProvider,
        budget: CostBudget,
        semantic: Optional[SemanticScorer] = None,
        timeout_seconds: float = 20,
        batch_size: int = 30,
        max_tokens: int = 2500,
        max_workers: int = 8,
        default_confidence: float = 0.85,
        free_matches: int = 5,
        premium_matches: int = 10,
    ):
        """
        Args:
            provider: Language-model provider
            budget: Shared cost budget
            semantic: Scorer used to pre-rank when the eligible set exceeds the batch size
            timeout_seconds: Upper bound for one provider call
            batch_size: Maximum postings per call
            max_tokens: Output token cap per call
            max_workers: Concurrent provider calls across all requests
            default_confidence: Confidence used when the provider reports none
            free_matches: Results a free-tier user receives
            premium_matches: Results a premium user receives
        """
        self.provider = provider
        self.budget = budget
        self.semantic = semantic or SemanticScorer()
        self.timeout_seconds = timeout_seconds
        self.batch_size = batch_size
        self.max_tokens = max_tokens
        self.default_confidence = default_confidence
        self.free_matches = free_matches
        self.premium_matches = premium_matches
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="ai-scorer")

    def score(self, user: UserProfile, jobs: Sequence[JobPosting], deadline: Deadline) -> TierOutcome:
        """Score postings; every provider or budget problem becomes a TierFailure."""
        if not jobs:
            return TierSuccess(tier=self.tier, scores=[])

        try:
            return self._score(user, jobs, deadline)
        except BudgetExceeded as e:
            logger.info(
                f"AI tier skipped, budget exceeded: {e}",
                extra={"event": "budget.exceeded", "user_email": user.email, "scope": e.scope},
            )
            return TierFailure(tier=self.tier, kind=FailureKind.BUDGET_EXCEEDED, message=str(e))
        except AIScorerError as e:
            logger.warning(
                f"AI scoring failed: {e}",
                extra={"event": "ai.call.failed", "user_email": user.email, "failure_kind": e.failure_kind},
            )
            return TierFailure(tier=self.tier, kind=FailureKind(e.failure_kind), message=str(e))

    def _score(self, user: UserProfile, jobs: Sequence[JobPosting], deadline: Deadline) -> TierSuccess:
        batch = list(jobs)
        if len(batch) > self.batch_size:
            batch = self.semantic.rank(user, batch, self.batch_size)

        target = self.premium_matches if user.is_premium else self.free_matches
        request = build_request(user, batch, self.max_tokens, target)

        timeout = deadline.bound(self.timeout_seconds)
        if timeout <= 0:
            raise AITimeout("Request deadline expired before the AI call")

        prompt_chars = len(request.model_dump_json())
        reserved = self.budget.reserve(user.email, self.budget.estimate_cost(prompt_chars, request.max_tokens))

        logger.debug(
            f"Calling provider with {len(batch)} jobs",
            extra={
                "event": "ai.call.started",
                "user_email": user.email,
                "batch_size": len(batch),
                "timeout": round(timeout, 3),
            },
        )
        start = time.monotonic()
        future = self._executor.submit(self.provider.score_batch, request, timeout)
        try:
            response = future.result(timeout=timeout)
        except FuturesTimeoutError as e:
            future.cancel()
            raise AITimeout(f"AI call abandoned after {timeout:.1f}s") from e
        duration_ms = int((time.monotonic() - start) * 1000)

        if isinstance(response, ProviderErrorResponse):
            if response.code == "rate_limited":
                raise AIRateLimited(response.message, retry_after=response.retry_after)
            raise _ERROR_CODES[response.code](response.message)

        if response.tokens_used is not None:
            input_tokens = self.budget.estimate_input_tokens(prompt_chars)
            output_tokens = max(response.tokens_used - input_tokens, 0)
            self.budget.settle(reserved, self.budget.cost_for_tokens(input_tokens, output_tokens))

        scores, discarded = self._collect(response.scores, batch)
        discarded += response.discarded
        if discarded:
            logger.info(
                f"Discarded {discarded} unusable AI score entries",
                extra={"event": "ai.entries_discarded", "user_email": user.email, "discarded": discarded},
            )
        if not scores:
            raise AIMalformedResponse(f"No usable scores in AI response ({discarded} entries discarded)")

        logger.info(
            f"AI scored {len(scores)} of {len(batch)} jobs",
            extra={
                "event": "ai.call.succeeded",
                "user_email": user.email,
                "score_count": len(scores),
                "batch_size": len(batch),
                "duration_ms": duration_ms,
            },
        )
        return TierSuccess(tier=self.tier, scores=scores, discarded=discarded)

    def _collect(self, entries: List[JobScorePayload], batch: List[JobPosting]) -> Tuple[List[ScoredJob], int]:
        """Turn provider entries into scores, discarding bad entries one by one."""
        by_hash: Dict[str, JobPosting] = {job.job_hash: job for job in batch}
        by_index: Dict[int, JobPosting] = {position: job for position, job in enumerate(batch, start=1)}

        scores: List[ScoredJob] = []
        seen = set()
        discarded = 0
        for entry in entries:
            if entry.job_hash:
                job = by_hash.get(entry.job_hash)
            else:
                job = by_index.get(entry.job_index)

            if job is None or job.job_hash in seen:
                discarded += 1
                continue
            if entry.match_score is None or not 0 <= entry.match_score <= 100:
                discarded += 1
                continue
            if not entry.match_reason:
                discarded += 1
                continue

            confidence = entry.confidence
            if confidence is None or not 0.0 <= confidence <= 1.0:
                confidence = self.default_confidence

            seen.add(job.job_hash)
            scores.append(
                ScoredJob(
                    job_hash=job.job_hash,
                    score=entry.match_score,
                    reason=entry.match_reason,
                    confidence=confidence,
                    method=self.method,
                )
            )
        return scores, discarded

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self.provider.close()
