"""Domain models for the job match engine."""

from .models import (
    CacheEntry,
    CandidatePool,
    FreshnessTier,
    JobPosting,
    MatchMethod,
    MatchResult,
    SubscriptionTier,
    UserProfile,
    freshness_for_age,
)

__all__ = [
    "JobPosting",
    "UserProfile",
    "CandidatePool",
    "MatchResult",
    "CacheEntry",
    "MatchMethod",
    "SubscriptionTier",
    "FreshnessTier",
    "freshness_for_age",
]
