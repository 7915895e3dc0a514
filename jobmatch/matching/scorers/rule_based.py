"""Deterministic rule-based scoring, the terminal fallback tier.

The score is a weighted sum of feature matches with fixed weights summing to 100.
Every eligible posting is scored, so this tier always produces output for a
non-empty eligible set.
"""

from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from jobmatch.domain.models import FreshnessTier, JobPosting, MatchMethod, UserProfile
from jobmatch.matching.deadline import Deadline
from jobmatch.matching.eligibility import canonical_language
from jobmatch.matching.models import ScoredJob, TierSuccess
from jobmatch.utils.text import normalize_for_matching, token_set
from jobmatch.utils.timestamps import utc_now

from .base import Scorer

CITY_WEIGHT = 25
CAREER_WEIGHT = 25
VISA_WEIGHT = 15
LANGUAGE_WEIGHT = 10
FRESHNESS_WEIGHT = 15
LEVEL_WEIGHT = 10

FRESHNESS_POINTS = {
    FreshnessTier.FRESH: 15,
    FreshnessTier.RECENT: 11,
    FreshnessTier.STALE: 6,
    FreshnessTier.VERY_STALE: 2,
}
UNKNOWN_FRESHNESS_POINTS = 4

# (words in the user's level, words in the posting, reason label)
LEVEL_ALIGNMENT: Sequence[Tuple[Sequence[str], Sequence[str], str]] = (
    (("intern",), ("intern",), "internship"),
    (("graduate", "grad"), ("graduate", "grad"), "graduate role"),
    (("entry", "junior", "trainee", "student"), ("entry", "junior", "graduate", "trainee"), "entry-level role"),
    (("senior", "lead", "director"), ("senior", "lead", "director"), "senior role"),
    (("mid",), ("mid", "intermediate"), "mid-level role"),
)

BASE_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.75


def _city_match(user: UserProfile, job: JobPosting) -> Optional[str]:
    job_city = normalize_for_matching(job.city or "")
    if not job_city:
        return None
    for target in user.target_cities:
        if normalize_for_matching(target) == job_city:
            return job.city
    return None


def _career_match(user: UserProfile, job: JobPosting) -> Tuple[int, Optional[str]]:
    """Full credit for a category overlap, half credit for a title-only overlap."""
    categories = [normalize_for_matching(c) for c in job.categories]
    for path in user.career_path:
        wanted = normalize_for_matching(path)
        if any(wanted in c or c in wanted for c in categories if c):
            return CAREER_WEIGHT, path

    title_tokens = token_set([job.title])
    for path in user.career_path:
        if token_set([path]) & title_tokens:
            return CAREER_WEIGHT // 2, path
    return 0, None


def _language_label(user: UserProfile, job: JobPosting) -> Optional[str]:
    """Name a non-English requirement the user speaks, for the reason text."""
    for requirement in job.language_requirements:
        canonical = canonical_language(requirement)
        if canonical and canonical != "english":
            return requirement
    return None


def _level_points(user: UserProfile, job: JobPosting) -> Tuple[int, Optional[str]]:
    user_level = normalize_for_matching(user.experience_level or "")
    if not user_level:
        return LEVEL_WEIGHT // 2, None

    job_text = normalize_for_matching(" ".join([job.experience_level or "", job.title] + job.categories))
    for user_words, job_words, label in LEVEL_ALIGNMENT:
        if any(w in user_level for w in user_words):
            if any(w in job_text for w in job_words):
                return LEVEL_WEIGHT, label
            break

    if not job.experience_level:
        return LEVEL_WEIGHT // 2, None
    return 2, None


class RuleBasedScorer(Scorer):
    """Scores postings with fixed feature weights; never fails."""

    tier = "rule_based"
    method = MatchMethod.RULE_BASED.value

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        """
        Args:
            clock: Source of "now" for deriving freshness from posted_at
        """
        self._clock = clock

    def score(self, user: UserProfile, jobs: Sequence[JobPosting], deadline: Optional[Deadline] = None) -> TierSuccess:
        """Score every posting; the deadline is ignored since no work blocks."""
        now = self._clock()
        return TierSuccess(tier=self.tier, scores=[self.score_job(user, job, now) for job in jobs])

    def score_job(self, user: UserProfile, job: JobPosting, now: Optional[datetime] = None) -> ScoredJob:
        """Score a single posting.

        Args:
            user: User profile snapshot
            job: Eligible posting
            now: Reference time for freshness (defaults to the scorer clock)

        Returns:
            ScoredJob with a score in [0, 100] and a templated reason
        """
        matched: List[str] = []
        total = 0

        city = _city_match(user, job)
        if city:
            total += CITY_WEIGHT
            matched.append(f"city ({city})")

        career_points, career = _career_match(user, job)
        total += career_points
        if career:
            matched.append(f"career path ({career})")

        # Neutral credit when sponsorship is not needed
        if user.requires_sponsorship:
            if job.visa_friendly:
                total += VISA_WEIGHT
                matched.append("visa sponsorship")
        else:
            total += VISA_WEIGHT

        total += LANGUAGE_WEIGHT
        language = _language_label(user, job)
        if language:
            matched.append(f"language ({language})")

        freshness = job.effective_freshness(now or self._clock())
        if freshness is None:
            total += UNKNOWN_FRESHNESS_POINTS
        else:
            tier = FreshnessTier(freshness)
            total += FRESHNESS_POINTS[tier]
            if tier in (FreshnessTier.FRESH, FreshnessTier.RECENT):
                matched.append(f"{tier.value} posting")

        level_points, level_label = _level_points(user, job)
        total += level_points
        if level_label:
            matched.append(level_label)

        confidence = BASE_CONFIDENCE + (0.1 if city else 0.0) + (0.1 if career_points == CAREER_WEIGHT else 0.0)
        if freshness == FreshnessTier.FRESH:
            confidence += 0.05

        if matched:
            reason = "Matched on " + ", ".join(matched)
        else:
            reason = f"Eligible posting in {job.location_label}; no strong preference signals"

        return ScoredJob(
            job_hash=job.job_hash,
            score=float(min(total, 100)),
            reason=reason,
            confidence=round(min(confidence, MAX_CONFIDENCE), 2),
            method=self.method,
        )
