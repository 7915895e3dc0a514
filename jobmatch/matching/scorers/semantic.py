"""Similarity-based scoring between profile keywords and posting text.

Each dimension measures how much of what the user asked for appears in the
posting. A token-count cosine over the whole profile adds a softer signal.
Dimensions the user left empty are skipped and the remaining weights are
renormalized.
"""

from typing import List, Optional, Sequence, Set, Tuple

from jobmatch.domain.models import JobPosting, MatchMethod, UserProfile
from jobmatch.matching.deadline import Deadline
from jobmatch.matching.models import ScoredJob, TierSuccess
from jobmatch.utils.text import cosine_count_similarity, coverage, token_set, tokenize

from .base import Scorer

CAREER_WEIGHT = 0.4
SKILL_WEIGHT = 0.3
INDUSTRY_WEIGHT = 0.15
TEXT_WEIGHT = 0.15

MIN_CONFIDENCE = 0.4
MAX_CONFIDENCE = 0.7
REASON_TERMS = 3


class _ProfileTerms:
    """Tokenized user attributes, computed once per request."""

    def __init__(self, user: UserProfile):
        self.career = token_set(user.career_path)
        self.skills = token_set(user.skills)
        self.industries = token_set(user.industries)
        self.all_tokens = tokenize(" ".join(user.career_path + user.skills + user.industries))

    @property
    def empty(self) -> bool:
        return not self.all_tokens


def _overlap_terms(wanted: Set[str], available: Set[str]) -> List[str]:
    return sorted(wanted & available)[:REASON_TERMS]


class SemanticScorer(Scorer):
    """Keyword-overlap scorer; synchronous and free of external calls."""

    tier = "semantic"
    method = MatchMethod.SEMANTIC.value

    def score(self, user: UserProfile, jobs: Sequence[JobPosting], deadline: Optional[Deadline] = None) -> TierSuccess:
        """Score every posting. An empty job list yields an empty success."""
        terms = _ProfileTerms(user)
        return TierSuccess(tier=self.tier, scores=[self._score_job(terms, job) for job in jobs])

    def rank(self, user: UserProfile, jobs: Sequence[JobPosting], limit: int) -> List[JobPosting]:
        """Return the `limit` most similar postings, best first (stable on ties)."""
        terms = _ProfileTerms(user)
        scored = [(self._similarity(terms, job)[0], index, job) for index, job in enumerate(jobs)]
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [job for _, _, job in scored[:limit]]

    def _similarity(self, terms: _ProfileTerms, job: JobPosting) -> Tuple[float, List[str]]:
        """Weighted similarity in [0, 1] plus reason fragments."""
        if terms.empty:
            return 0.0, []

        category_tokens = token_set(job.categories) | token_set([job.title])
        text_tokens = token_set([job.description, job.company])
        everything = category_tokens | text_tokens

        dimensions = []
        fragments = []

        if terms.career:
            dimensions.append((CAREER_WEIGHT, coverage(terms.career, category_tokens)))
            shared = _overlap_terms(terms.career, category_tokens)
            if shared:
                fragments.append(f"career focus ({', '.join(shared)})")

        if terms.skills:
            dimensions.append((SKILL_WEIGHT, coverage(terms.skills, everything)))
            shared = _overlap_terms(terms.skills, everything)
            if shared:
                fragments.append(f"skills ({', '.join(shared)})")

        if terms.industries:
            dimensions.append((INDUSTRY_WEIGHT, coverage(terms.industries, everything)))
            shared = _overlap_terms(terms.industries, everything)
            if shared:
                fragments.append(f"industry ({', '.join(shared)})")

        job_tokens = tokenize(" ".join([job.title] + job.categories + [job.description]))
        dimensions.append((TEXT_WEIGHT, cosine_count_similarity(terms.all_tokens, job_tokens)))

        total_weight = sum(weight for weight, _ in dimensions)
        similarity = sum(weight * value for weight, value in dimensions) / total_weight
        return min(max(similarity, 0.0), 1.0), fragments

    def _score_job(self, terms: _ProfileTerms, job: JobPosting) -> ScoredJob:
        similarity, fragments = self._similarity(terms, job)

        if fragments:
            reason = "Similar to your profile: " + "; ".join(fragments)
        elif terms.empty:
            reason = "Eligible posting; your profile lists no career paths, skills or industries to compare"
        else:
            reason = f"Low keyword overlap with your profile ({round(similarity * 100)}% similar)"

        confidence = MIN_CONFIDENCE + (MAX_CONFIDENCE - MIN_CONFIDENCE) * similarity

        return ScoredJob(
            job_hash=job.job_hash,
            score=round(similarity * 100, 1),
            reason=reason,
            confidence=round(confidence, 2),
            method=self.method,
        )
