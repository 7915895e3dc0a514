"""Quality validation of raw tier output.

The validator is the last step before results leave the engine. It guarantees
the result invariants regardless of which tier produced the scores: every result
references an eligible job, scores are integers in [0, 100], reasons are
non-empty, and the count matches the user's subscription tier.
"""

import math
from collections import Counter
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from jobmatch.domain.models import JobPosting, MatchMethod, MatchResult, UserProfile
from jobmatch.logging import get_logger
from jobmatch.utils.text import normalize_for_matching
from jobmatch.utils.timestamps import utc_now

from .eligibility import location_matches
from .exceptions import ValidationClamped
from .models import ScoredJob, ValidationReport

logger = get_logger(__name__, component="validator")

# Evidence check: (minimum score, minimum reason words, floor, penalty)
EVIDENCE_RULES = (
    (90, 20, 65, 10),
    (86, 30, 70, 5),
)


def evidence_adjusted_score(score: int, reason: str) -> int:
    """Downgrade very high scores whose reasons are too short to back them up."""
    words = len(reason.split())
    for min_score, min_words, floor, penalty in EVIDENCE_RULES:
        if score >= min_score and words < min_words:
            return max(floor, score - penalty)
    return score


class QualityValidator:
    """Turns raw ScoredJob lists into the final MatchResult list."""

    def __init__(
        self,
        free_matches: int = 5,
        premium_matches: int = 10,
        evidence_check: bool = True,
        diversity: bool = True,
        max_per_company: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.free_matches = free_matches
        self.premium_matches = premium_matches
        self.evidence_check = evidence_check
        self.diversity = diversity
        self.max_per_company = max_per_company
        self._clock = clock

    def target_count(self, user: UserProfile) -> int:
        return self.premium_matches if user.is_premium else self.free_matches

    def validate(
        self,
        user: UserProfile,
        eligible: Sequence[JobPosting],
        scored: Iterable[ScoredJob],
        backfill: Iterable[ScoredJob] = (),
    ) -> Tuple[List[MatchResult], ValidationReport]:
        """Validate, order and truncate scores for one request.

        Args:
            user: User the results are for
            eligible: Eligibility Filter output for this request
            scored: Raw scores from the tier that succeeded
            backfill: Rule-based scores used to fill a shortfall

        Returns:
            Tuple of (results, report). Never raises for bad tier output.
        """
        report = ValidationReport()
        jobs_by_hash: Dict[str, JobPosting] = {job.job_hash: job for job in eligible}
        target = self.target_count(user)
        now = self._clock()
        seen: Set[str] = set()

        primary = self._clean(user, scored, jobs_by_hash, seen, report, now)
        primary = self._select(user, self._order(primary, jobs_by_hash), jobs_by_hash, target, report)

        if len(primary) < target:
            extra = self._clean(user, backfill, jobs_by_hash, seen, report, now)
            extra = self._select(
                user, self._order(extra, jobs_by_hash), jobs_by_hash, target - len(primary), report, taken=primary
            )
            report.backfilled = len(extra)
            primary.extend(extra)

        results = self._order(primary, jobs_by_hash)

        logger.debug(
            f"Validated {len(results)} results",
            extra={
                "event": "validation.completed",
                "user_email": user.email,
                "result_count": len(results),
                "target_count": target,
                "clamped": report.clamped,
                "dropped_ineligible": report.dropped_ineligible,
                "dropped_invalid": report.dropped_invalid,
                "downgraded": report.downgraded,
                "backfilled": report.backfilled,
                "rebalanced": report.rebalanced,
            },
        )
        return results, report

    def _clean(
        self,
        user: UserProfile,
        scored: Iterable[ScoredJob],
        jobs_by_hash: Dict[str, JobPosting],
        seen: Set[str],
        report: ValidationReport,
        now: datetime,
    ) -> List[MatchResult]:
        results = []
        for item in scored:
            if item.job_hash not in jobs_by_hash:
                report.dropped_ineligible += 1
                logger.warning(
                    f"Dropped score for job {item.job_hash} outside the eligible set",
                    extra={"event": "validation.dropped_ineligible", "job_hash": item.job_hash, "method": item.method},
                )
                continue
            reason = (item.reason or "").strip()
            if item.job_hash in seen or not reason or item.score is None or math.isnan(item.score):
                report.dropped_invalid += 1
                continue

            score = self._clamp_score(item, report)
            if self.evidence_check and item.method == MatchMethod.AI:
                adjusted = evidence_adjusted_score(score, reason)
                if adjusted != score:
                    report.downgraded += 1
                    logger.debug(
                        f"Downgraded AI score {score} -> {adjusted} for short reason",
                        extra={"event": "validation.downgraded", "job_hash": item.job_hash},
                    )
                    score = adjusted

            confidence = item.confidence
            if confidence is None or math.isnan(confidence):
                confidence = 0.0
            confidence = min(max(float(confidence), 0.0), 1.0)

            seen.add(item.job_hash)
            results.append(
                MatchResult(
                    job_hash=item.job_hash,
                    user_email=user.email,
                    match_score=score,
                    match_reason=reason,
                    method=item.method,
                    confidence=confidence,
                    matched_at=now,
                )
            )
        return results

    def _clamp_score(self, item: ScoredJob, report: ValidationReport) -> int:
        rounded = int(round(item.score)) if not math.isinf(item.score) else (100 if item.score > 0 else 0)
        clamped = min(max(rounded, 0), 100)
        if clamped != rounded or not 0 <= item.score <= 100:
            report.clamped += 1
            clamp = ValidationClamped(item.job_hash, item.score, clamped)
            logger.warning(
                str(clamp),
                extra={
                    "event": "validation.clamped",
                    "job_hash": item.job_hash,
                    "original_score": item.score,
                    "clamped_score": clamped,
                    "method": item.method,
                },
            )
        return clamped

    def _select(
        self,
        user: UserProfile,
        ranked: List[MatchResult],
        jobs_by_hash: Dict[str, JobPosting],
        count: int,
        report: ValidationReport,
        taken: Sequence[MatchResult] = (),
    ) -> List[MatchResult]:
        """Pick up to `count` results from `ranked`, spread across cities and companies.

        Slots are split evenly over the user's target cities that have candidates,
        and no company may fill more than max_per_company of them (a third of the
        set by default). When the constraints would leave slots empty, the city
        quota is dropped first, then the company cap, so the count never shrinks.
        Results in `taken` were already selected and count toward both limits.
        """
        if not self.diversity or len(ranked) <= count:
            return ranked[:count]

        total = count + len(taken)
        company_cap = self.max_per_company or math.ceil(total / 3)
        targets = list(dict.fromkeys(normalize_for_matching(t) for t in user.target_cities if t.strip()))

        def city_of(result: MatchResult) -> Optional[str]:
            job = jobs_by_hash[result.job_hash]
            return next((t for t in targets if location_matches(job, [t])), None)

        def company_of(result: MatchResult) -> str:
            return normalize_for_matching(jobs_by_hash[result.job_hash].company)

        cities = {r.job_hash: city_of(r) for r in (*taken, *ranked)}
        present = [t for t in targets if t in cities.values()]
        quotas = {
            city: total // len(present) + (1 if i < total % len(present) else 0) for i, city in enumerate(present)
        }
        city_counts = Counter(cities[r.job_hash] for r in taken)
        company_counts = Counter(company_of(r) for r in taken)
        selected: List[MatchResult] = []
        chosen: Set[str] = set()

        for check_city, check_company in ((True, True), (False, True), (False, False)):
            for result in ranked:
                if len(selected) >= count:
                    break
                if result.job_hash in chosen:
                    continue
                city, company = cities[result.job_hash], company_of(result)
                if check_city and city is not None and city_counts[city] >= quotas[city]:
                    continue
                if check_company and company_counts[company] >= company_cap:
                    continue
                selected.append(result)
                chosen.add(result.job_hash)
                city_counts[city] += 1
                company_counts[company] += 1

        rebalanced = len(chosen - {r.job_hash for r in ranked[:count]})
        if rebalanced:
            report.rebalanced += rebalanced
            logger.debug(
                f"Rebalanced {rebalanced} results across cities and companies",
                extra={"event": "validation.rebalanced", "user_email": user.email, "rebalanced": rebalanced},
            )
        return self._order(selected, jobs_by_hash)

    @staticmethod
    def _order(results: List[MatchResult], jobs_by_hash: Dict[str, JobPosting]) -> List[MatchResult]:
        """Descending score, then most recent posted_at, then job_hash."""

        def key(result: MatchResult):
            posted: Optional[datetime] = jobs_by_hash[result.job_hash].posted_at
            recency = -posted.timestamp() if posted else math.inf
            return (-result.match_score, recency, result.job_hash)

        return sorted(results, key=key)
