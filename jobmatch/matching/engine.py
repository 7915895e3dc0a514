"""Matching engine: eligibility, cache, tier fallback and validation for one user.

The engine owns the shared services (circuit breakers, cost budget, result
cache) for its lifetime. Build one with MatchingEngine.build() and call
match() from any number of threads.
"""

import time
from typing import List, Optional

from jobmatch.config.environment import EnvironmentConfig
from jobmatch.config.models import AppConfig
from jobmatch.domain.models import CandidatePool, MatchMethod, UserProfile
from jobmatch.logging import get_logger
from jobmatch.persistence import init_database, is_initialized
from jobmatch.providers.base import LLMProvider
from jobmatch.providers.factory import get_provider
from jobmatch.utils.hashing import compute_match_fingerprint

from .budget import CostBudget
from .cache import ResultCache
from .circuit import CircuitBreakerRegistry
from .deadline import Deadline
from .eligibility import EligibilityFilter
from .models import MatchResponse
from .orchestrator import FallbackOrchestrator
from .scorers import AIScorer, RuleBasedScorer, Scorer, SemanticScorer
from .validator import QualityValidator

logger = get_logger(__name__, component="engine")


class MatchingEngine:
    """Produces a validated, ordered match set for a user against a candidate pool."""

    def __init__(
        self,
        orchestrator: FallbackOrchestrator,
        validator: QualityValidator,
        cache: ResultCache,
        breakers: CircuitBreakerRegistry,
        budget: CostBudget,
        eligibility: Optional[EligibilityFilter] = None,
        request_deadline_seconds: Optional[float] = 30,
    ):
        self.orchestrator = orchestrator
        self.validator = validator
        self.cache = cache
        self.breakers = breakers
        self.budget = budget
        self.eligibility = eligibility or EligibilityFilter()
        self.request_deadline_seconds = request_deadline_seconds

    @classmethod
    def build(
        cls,
        app_config: AppConfig,
        env_config: Optional[EnvironmentConfig] = None,
        provider: Optional[LLMProvider] = None,
    ) -> "MatchingEngine":
        """Wire an engine from configuration.

        Args:
            app_config: Application configuration
            env_config: Environment configuration (API key, database URL)
            provider: Provider for the AI tier; built from configuration when None

        Returns:
            MatchingEngine ready for match() calls

        Raises:
            DatabaseConnectionError: If the database cache backend cannot be initialized
        """
        env_config = env_config or EnvironmentConfig()
        limits = app_config.limits

        breakers = CircuitBreakerRegistry.from_config(app_config.circuit_breaker)
        budget = CostBudget.from_config(app_config.budget)

        if app_config.cache.enabled and app_config.cache.backend == "database" and not is_initialized():
            init_database(env_config.database_url)
        cache = ResultCache.from_config(app_config.cache)

        rule_based = RuleBasedScorer()
        semantic = SemanticScorer()
        if provider is None and "ai" in app_config.get_tier_order():
            provider = get_provider(app_config, env_config)

        scorers: List[Scorer] = []
        for tier in app_config.get_tier_order():
            if tier == "ai":
                if provider is None:
                    logger.warning(
                        "AI tier configured but no provider is available; tier removed",
                        extra={"event": "engine.ai_tier_removed"},
                    )
                    continue
                scorers.append(
                    AIScorer(
                        provider=provider,
                        budget=budget,
                        semantic=semantic,
                        timeout_seconds=app_config.ai.timeout_seconds,
                        batch_size=app_config.ai.batch_size,
                        max_tokens=app_config.ai.max_tokens,
                        max_workers=app_config.ai.max_workers,
                        default_confidence=app_config.ai.default_confidence,
                        free_matches=limits.free_matches,
                        premium_matches=limits.premium_matches,
                    )
                )
            elif tier == "semantic":
                scorers.append(semantic)
            else:
                scorers.append(rule_based)

        orchestrator = FallbackOrchestrator(
            scorers,
            breakers,
            rule_based=rule_based,
            free_matches=limits.free_matches,
            premium_matches=limits.premium_matches,
        )
        validator = QualityValidator(
            free_matches=limits.free_matches,
            premium_matches=limits.premium_matches,
            evidence_check=app_config.validation.evidence_check,
            diversity=app_config.validation.diversity,
            max_per_company=app_config.validation.max_per_company,
        )

        logger.info(
            f"Matching engine ready with tiers: {', '.join(orchestrator.tier_order)}",
            extra={
                "event": "engine.built",
                "tiers": ",".join(orchestrator.tier_order),
                "cache_backend": cache.backend.name if cache.enabled else "disabled",
            },
        )
        return cls(
            orchestrator=orchestrator,
            validator=validator,
            cache=cache,
            breakers=breakers,
            budget=budget,
            request_deadline_seconds=app_config.batch.request_deadline_seconds,
        )

    def match(
        self,
        user: UserProfile,
        pool: CandidatePool,
        deadline: Optional[Deadline] = None,
    ) -> MatchResponse:
        """Match one user against a candidate pool.

        Tier failures, budget refusals and cache outages are absorbed; the
        response's method and each result's method/confidence say how the
        results were produced.

        Args:
            user: User profile snapshot
            pool: Versioned candidate pool
            deadline: Request deadline (default: the configured request deadline)

        Returns:
            MatchResponse with validated results
        """
        start = time.monotonic()
        if deadline is None:
            deadline = Deadline(self.request_deadline_seconds)

        fingerprint = compute_match_fingerprint(
            user_email=user.email,
            target_cities=user.target_cities,
            career_path=user.career_path,
            visa_status=user.visa_status,
            pool_version=pool.version,
            subscription_tier=user.subscription_tier,
            languages_spoken=user.languages_spoken,
            experience_level=user.experience_level,
        )

        eligible = self.eligibility.filter(user, pool.jobs)

        def respond(results, method, attempts=None, cache_hit=False) -> MatchResponse:
            response = MatchResponse(
                user_email=user.email,
                results=list(results),
                method=method,
                eligible_count=len(eligible),
                pool_version=pool.version,
                fingerprint=fingerprint,
                attempts=attempts or [],
                cache_hit=cache_hit,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
            logger.info(
                f"Matched {response.result_count} jobs via {method}",
                extra={
                    "event": "engine.match.completed",
                    "user_email": user.email,
                    "method": method,
                    "result_count": response.result_count,
                    "eligible_count": response.eligible_count,
                    "cache_hit": cache_hit,
                    "duration_ms": response.duration_ms,
                },
            )
            return response

        if not eligible:
            return respond([], MatchMethod.NONE.value)

        cached = self.cache.get(fingerprint)
        if cached is not None:
            eligible_hashes = {job.job_hash for job in eligible}
            stale = [r.job_hash for r in cached if r.job_hash not in eligible_hashes]
            if not stale:
                return respond(cached, MatchMethod.CACHED.value, cache_hit=True)
            # Postings changed under an explicit pool version; recompute and overwrite
            logger.warning(
                f"Discarding cached results: {len(stale)} jobs are no longer eligible",
                extra={
                    "event": "engine.cache_stale",
                    "user_email": user.email,
                    "fingerprint": fingerprint,
                    "stale_count": len(stale),
                },
            )

        orchestration = self.orchestrator.run(user, eligible, deadline)
        results, report = self.validator.validate(user, eligible, orchestration.scores, orchestration.backfill)
        if report.clamped or report.dropped_ineligible:
            logger.warning(
                "Validator corrected tier output",
                extra={
                    "event": "engine.output_corrected",
                    "user_email": user.email,
                    "method": orchestration.method,
                    "clamped": report.clamped,
                    "dropped_ineligible": report.dropped_ineligible,
                },
            )

        self.cache.set(fingerprint, results, orchestration.method)
        return respond(results, orchestration.method, attempts=orchestration.attempts)

    def reset(self) -> None:
        """Clear circuit state, budget counters and cached results."""
        self.breakers.reset()
        self.budget.reset()
        self.cache.reset()
        logger.info("Matching engine state reset", extra={"event": "engine.reset"})

    def shutdown(self) -> None:
        """Release scorer executors, provider sessions and the cache."""
        for scorer in self.orchestrator.scorers:
            scorer.shutdown()
        self.cache.shutdown()
        self.breakers.shutdown()
        logger.info("Matching engine shut down", extra={"event": "engine.shutdown"})
