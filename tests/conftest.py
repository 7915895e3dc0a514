"""Shared fixtures for Job Match Engine tests."""

import itertools
from datetime import timedelta

import pytest

from jobmatch.domain.models import CandidatePool, JobPosting, MatchResult, UserProfile
from jobmatch.persistence import close_database, init_database
from tests.helpers.clock import REFERENCE_NOW, ManualClock


@pytest.fixture
def manual_clock():
    """A ManualClock starting at 2025-11-04 12:00 UTC."""
    return ManualClock()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Clear engine-related environment variables and set a test environment."""
    for name in ("OPENAI_API_KEY", "OPENAI_BASE_URL", "LOG_LEVEL", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENVIRONMENT", "test")


@pytest.fixture
def make_job():
    """Factory for JobPosting objects with sensible London defaults."""
    counter = itertools.count(1)

    def _make(**overrides) -> JobPosting:
        number = next(counter)
        data = {
            "job_hash": f"job-{number:03d}",
            "title": "Graduate Data Analyst",
            "company": f"Company {number}",
            "city": "London",
            "country": "United Kingdom",
            "description": "Analyse data with Python and SQL for our fintech product teams.",
            "categories": ["data", "analytics"],
            "experience_level": "graduate",
            "work_environment": "hybrid",
            "visa_friendly": True,
            "language_requirements": ["English"],
            "posted_at": REFERENCE_NOW - timedelta(days=2),
        }
        data.update(overrides)
        return JobPosting(**data)

    return _make


@pytest.fixture
def make_user():
    """Factory for UserProfile objects (free tier, London, English)."""

    def _make(**overrides) -> UserProfile:
        data = {
            "email": "alex@example.com",
            "target_cities": ["London"],
            "languages_spoken": ["English"],
            "visa_status": "UK citizen",
            "career_path": ["data"],
            "experience_level": "graduate",
            "subscription_tier": "free",
            "skills": ["python", "sql"],
            "industries": ["fintech"],
        }
        data.update(overrides)
        return UserProfile(**data)

    return _make


@pytest.fixture
def make_pool():
    """Factory for CandidatePool objects."""

    def _make(jobs, version: str = "pool-v1") -> CandidatePool:
        return CandidatePool.from_jobs(jobs, version=version)

    return _make


@pytest.fixture
def temp_database():
    """Initialize an in-memory SQLite database for the test and close it afterwards."""
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def make_result():
    """Factory for validated MatchResult objects."""

    def _make(job_hash: str = "job-001", **overrides) -> MatchResult:
        data = {
            "job_hash": job_hash,
            "user_email": "alex@example.com",
            "match_score": 80,
            "match_reason": "Matched on city (London), career path (data)",
            "method": "ai",
            "confidence": 0.85,
            "matched_at": REFERENCE_NOW,
        }
        data.update(overrides)
        return MatchResult(**data)

    return _make
