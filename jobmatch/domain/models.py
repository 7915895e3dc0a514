"""Core domain models for postings, profiles, and match results.

This module defines the data structures that flow through the matching engine:
- JobPosting: a candidate job from the upstream collector (read-only snapshot)
- UserProfile: a subscriber's matching preferences (read-only snapshot)
- CandidatePool: a versioned set of postings matched against in one run
- MatchResult: one scored job returned to the caller
- CacheEntry: a stored match set keyed by request fingerprint
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator

from jobmatch.utils.hashing import compute_pool_version
from jobmatch.utils.text import normalize_for_matching
from jobmatch.utils.timestamps import age_in_days, ensure_utc, format_timestamp


class SubscriptionTier(str, Enum):
    """Subscription tiers; the tier decides how many matches a user receives."""

    FREE = "free"
    PREMIUM = "premium"


class MatchMethod(str, Enum):
    """How a match result was produced."""

    AI = "ai"
    SEMANTIC = "semantic"
    RULE_BASED = "rule_based"
    CACHED = "cached"
    NONE = "none"


class FreshnessTier(str, Enum):
    """Recency bucket assigned to a posting by the collector."""

    FRESH = "fresh"
    RECENT = "recent"
    STALE = "stale"
    VERY_STALE = "very_stale"


# Collector aliases seen in the wild, mapped onto the canonical buckets
_FRESHNESS_ALIASES = {
    "ultra_fresh": FreshnessTier.FRESH,
    "ultra-fresh": FreshnessTier.FRESH,
    "very-stale": FreshnessTier.VERY_STALE,
}

_ENTRY_LEVEL_WORDS = ("entry", "junior", "graduate", "grad", "intern", "student", "trainee")
_SENIOR_TAG_PATTERN = re.compile(r"\b(senior|lead|director)\b")
_NEGATION_PATTERN = re.compile(r"\b(no|not|without|don't|doesn't|do not|does not)\b")
_SPONSORSHIP_HINTS = ("sponsor", "visa required", "requires visa", "require visa", "needs visa", "need visa")
_SPONSORSHIP_STATUSES = {"non-eu", "non eu", "non-uk", "non uk", "needs-visa", "visa-required"}


def freshness_for_age(days: float) -> FreshnessTier:
    """Bucket a posting age in days into a freshness tier.

    Example:
        >>> freshness_for_age(0.5).value
        'fresh'
        >>> freshness_for_age(12).value
        'stale'
    """
    if days < 1:
        return FreshnessTier.FRESH
    if days < 7:
        return FreshnessTier.RECENT
    if days < 30:
        return FreshnessTier.STALE
    return FreshnessTier.VERY_STALE


def _clean_list(values: Optional[Iterable[str]]) -> List[str]:
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    cleaned = []
    for value in values:
        if value is None:
            continue
        stripped = str(value).strip()
        if stripped:
            cleaned.append(stripped)
    return cleaned


class JobPosting(BaseModel):
    """Candidate job posting supplied by the collector.

    Postings are frozen snapshots: the engine never mutates them and no tier
    takes a lock on them. `job_hash` also accepts `id` on input.
    """

    job_hash: str = Field(
        ...,
        validation_alias=AliasChoices("job_hash", "id"),
        description="Stable posting identifier",
    )
    title: str = Field(..., description="Job title")
    company: str = Field(..., description="Company name")
    city: Optional[str] = Field(None, description="City the job is located in")
    country: Optional[str] = Field(None, description="Country the job is located in")
    location: Optional[str] = Field(None, description="Raw location string from the source")
    description: str = Field("", description="Job description text")
    categories: List[str] = Field(default_factory=list, description="Career-path categories")
    experience_level: Optional[str] = Field(None, description="Seniority tag, e.g. graduate, senior")
    work_environment: Optional[str] = Field(None, description="on-site, hybrid or remote")
    visa_friendly: bool = Field(False, description="Whether the employer sponsors visas")
    language_requirements: List[str] = Field(
        default_factory=list, description="Languages the role requires"
    )
    posted_at: Optional[datetime] = Field(None, description="When the job was posted (UTC)")
    freshness_tier: Optional[FreshnessTier] = Field(None, description="Recency bucket")
    active: bool = Field(True, description="False once the collector has expired the posting")

    @field_validator("job_hash", "title", "company")
    @classmethod
    def strip_required(cls, v: str) -> str:
        """Strip whitespace from required string fields."""
        if not v or not str(v).strip():
            raise ValueError("Field cannot be empty or whitespace-only")
        return str(v).strip()

    @field_validator("city", "country", "location", "experience_level", "work_environment")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        """Strip whitespace from optional fields, mapping blanks to None."""
        if v is None:
            return None
        stripped = str(v).strip()
        return stripped if stripped else None

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v: Optional[str]) -> str:
        """Treat a missing description as empty text."""
        return "" if v is None else str(v).strip()

    @field_validator("categories", "language_requirements", mode="before")
    @classmethod
    def clean_lists(cls, v):
        """Accept a single string or list, dropping blank entries."""
        return _clean_list(v)

    @field_validator("posted_at")
    @classmethod
    def ensure_posted_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)

    @field_validator("freshness_tier", mode="before")
    @classmethod
    def normalize_freshness(cls, v):
        """Map collector spellings onto FreshnessTier; unknown values become None."""
        if v is None or isinstance(v, FreshnessTier):
            return v
        key = str(v).strip().lower()
        if key in _FRESHNESS_ALIASES:
            return _FRESHNESS_ALIASES[key]
        try:
            return FreshnessTier(key)
        except ValueError:
            return None

    def effective_freshness(self, now: Optional[datetime] = None) -> Optional[FreshnessTier]:
        """Return the assigned freshness tier, deriving it from posted_at if absent."""
        if self.freshness_tier is not None:
            return FreshnessTier(self.freshness_tier)
        days = age_in_days(self.posted_at, now)
        if days is None:
            return None
        return freshness_for_age(days)

    @property
    def is_senior(self) -> bool:
        """Whether the posting is tagged senior, lead or director."""
        tags = [self.experience_level or ""] + self.categories
        return any(_SENIOR_TAG_PATTERN.search(normalize_for_matching(tag)) for tag in tags)

    def version_record(self) -> Tuple[Any, ...]:
        """Fields hashed into a derived pool version; covers everything eligibility reads."""
        return (
            self.job_hash,
            format_timestamp(self.posted_at) if self.posted_at else None,
            self.city,
            self.country,
            self.location,
            self.visa_friendly,
            ",".join(sorted(self.language_requirements)),
            ",".join(sorted(self.categories)),
            self.experience_level,
            self.active,
        )

    @property
    def location_label(self) -> str:
        """Human-readable location for reasons and prompts."""
        parts = [p for p in (self.city, self.country) if p]
        if parts:
            return ", ".join(parts)
        return self.location or "Unspecified"

    model_config = {
        "frozen": True,
        "use_enum_values": True,
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "job_hash": "a1b2c3d4",
                "title": "Graduate Data Analyst",
                "company": "Example Corp",
                "city": "London",
                "country": "United Kingdom",
                "description": "Join our analytics team working with Python and SQL...",
                "categories": ["data", "analytics"],
                "experience_level": "graduate",
                "work_environment": "hybrid",
                "visa_friendly": True,
                "language_requirements": ["English"],
                "posted_at": "2025-11-01T12:00:00Z",
                "freshness_tier": "fresh",
                "active": True,
            }
        },
    }


class UserProfile(BaseModel):
    """Subscriber preferences used to filter and rank postings."""

    email: EmailStr = Field(..., description="Subscriber email address")
    target_cities: List[str] = Field(default_factory=list, description="Cities the user targets")
    languages_spoken: List[str] = Field(default_factory=list, description="Languages the user speaks")
    visa_status: Optional[str] = Field(None, description="Free-text visa status")
    career_path: List[str] = Field(default_factory=list, description="Career paths of interest")
    experience_level: Optional[str] = Field(None, description="e.g. internship, graduate, entry")
    subscription_tier: SubscriptionTier = Field(SubscriptionTier.FREE, description="free or premium")
    skills: List[str] = Field(default_factory=list, description="Skills the user lists")
    industries: List[str] = Field(default_factory=list, description="Industries of interest")

    @field_validator(
        "target_cities", "languages_spoken", "career_path", "skills", "industries", mode="before"
    )
    @classmethod
    def clean_lists(cls, v):
        """Accept a single string or list, dropping blank entries."""
        return _clean_list(v)

    @field_validator("visa_status", "experience_level")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        """Strip whitespace from optional fields, mapping blanks to None."""
        if v is None:
            return None
        stripped = v.strip()
        return stripped if stripped else None

    @field_validator("subscription_tier", mode="before")
    @classmethod
    def normalize_tier(cls, v):
        """Accept tier names case-insensitively."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def requires_sponsorship(self) -> bool:
        """Whether the visa status says the user needs employer sponsorship.

        Statuses containing a negation ("no sponsorship needed") never require it.
        """
        status = normalize_for_matching(self.visa_status or "")
        if not status or _NEGATION_PATTERN.search(status):
            return False
        if status in _SPONSORSHIP_STATUSES:
            return True
        return any(hint in status for hint in _SPONSORSHIP_HINTS)

    @property
    def is_entry_level(self) -> bool:
        """Whether the user is an intern, graduate or other entry-level candidate."""
        level = normalize_for_matching(self.experience_level or "")
        return any(word in level for word in _ENTRY_LEVEL_WORDS)

    @property
    def effective_languages(self) -> List[str]:
        """Languages to check requirements against; English when none are listed."""
        return self.languages_spoken or ["English"]

    @property
    def is_premium(self) -> bool:
        return self.subscription_tier == SubscriptionTier.PREMIUM

    model_config = {
        "frozen": True,
        "use_enum_values": True,
        "json_schema_extra": {
            "example": {
                "email": "alex@example.com",
                "target_cities": ["London", "Dublin"],
                "languages_spoken": ["English", "Spanish"],
                "visa_status": "EU citizen",
                "career_path": ["data", "analytics"],
                "experience_level": "graduate",
                "subscription_tier": "free",
                "skills": ["python", "sql"],
                "industries": ["fintech"],
            }
        },
    }


class CandidatePool(BaseModel):
    """A versioned snapshot of active postings.

    The version identifies the snapshot in match fingerprints; when omitted it is
    derived from the postings so identical pools share cache entries.
    """

    version: str = Field(..., min_length=1, description="Pool version identifier")
    jobs: Tuple[JobPosting, ...] = Field(default_factory=tuple, description="Postings in the pool")

    @classmethod
    def from_jobs(cls, jobs: Iterable[JobPosting], version: Optional[str] = None) -> "CandidatePool":
        """Build a pool, computing its version from the postings if not given."""
        jobs = tuple(jobs)
        if not version:
            version = compute_pool_version(job.version_record() for job in jobs)
        return cls(version=version, jobs=jobs)

    def __len__(self) -> int:
        return len(self.jobs)

    model_config = {"frozen": True}


class MatchResult(BaseModel):
    """One scored posting returned to the caller.

    `method` and `confidence` always disclose how the result was produced.
    """

    job_hash: str = Field(..., description="Posting identifier from the eligible set")
    user_email: str = Field(..., description="Email of the user the match is for")
    match_score: int = Field(..., ge=0, le=100, description="Score in [0, 100]")
    match_reason: str = Field(..., min_length=1, description="Why the job matched")
    method: MatchMethod = Field(..., description="Tier that produced the score")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence in [0, 1]")
    matched_at: datetime = Field(..., description="When the match was produced (UTC)")

    @field_validator("matched_at")
    @classmethod
    def ensure_matched_utc(cls, v: datetime) -> datetime:
        """Ensure datetime is timezone-aware and in UTC."""
        return ensure_utc(v)

    model_config = {
        "frozen": True,
        "use_enum_values": True,
        "json_schema_extra": {
            "example": {
                "job_hash": "a1b2c3d4",
                "user_email": "alex@example.com",
                "match_score": 82,
                "match_reason": "Matched on city (London), career path (data), fresh posting",
                "method": "rule_based",
                "confidence": 0.7,
                "matched_at": "2025-11-04T10:30:00Z",
            }
        },
    }


class CacheEntry(BaseModel):
    """A stored match set keyed by request fingerprint.

    Results are stored with the method of the tier that produced them; the
    cache rewrites the method to "cached" on read.
    """

    fingerprint: str = Field(..., min_length=1, description="Match fingerprint (cache key)")
    results: Tuple[MatchResult, ...] = Field(..., description="Validated results")
    source_method: MatchMethod = Field(..., description="Tier that produced the results")
    created_at: datetime = Field(..., description="When the entry was stored (UTC)")
    expires_at: datetime = Field(..., description="When the entry stops being served (UTC)")

    @field_validator("created_at", "expires_at")
    @classmethod
    def ensure_entry_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    def is_expired(self, now: datetime) -> bool:
        return ensure_utc(now) >= self.expires_at

    model_config = {"frozen": True, "use_enum_values": True}
