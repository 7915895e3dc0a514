"""Scorer interface shared by all tiers."""

from abc import ABC, abstractmethod
from typing import Sequence

from jobmatch.domain.models import JobPosting, UserProfile
from jobmatch.matching.deadline import Deadline
from jobmatch.matching.models import TierOutcome


class Scorer(ABC):
    """One scoring tier.

    Subclasses set `tier` (the name used in configuration and circuit breakers)
    and `method` (the MatchMethod value stamped on their results).

    A scorer reports failures by returning TierFailure. Anything it raises is
    treated by the orchestrator as an unexpected tier error.
    """

    tier: str = ""
    method: str = ""

    @abstractmethod
    def score(self, user: UserProfile, jobs: Sequence[JobPosting], deadline: Deadline) -> TierOutcome:
        """Score eligible postings for a user.

        Args:
            user: User profile snapshot
            jobs: Eligible postings (never includes filtered-out jobs)
            deadline: Request deadline; blocking work must finish before it

        Returns:
            TierSuccess with raw scores, or TierFailure
        """

    def shutdown(self) -> None:
        """Release resources held by the scorer (no-op by default)."""
        return None
