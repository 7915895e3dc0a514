"""Tests for candidate pool and user profile loading."""

import json

import pytest

from jobmatch.pool import PoolLoadError, load_pool, load_profiles

POOL_YAML = """
version: pool-2025-11-04
jobs:
  - job_hash: job-1
    title: Graduate Data Analyst
    company: Example Corp
    city: London
    country: United Kingdom
    categories: [data, analytics]
    visa_friendly: true
    posted_at: "2025-11-01T12:00:00Z"
  - id: job-2
    title: Junior Backend Engineer
    company: Other Ltd
    city: Dublin
    freshness_tier: ultra_fresh
"""

USERS_YAML = """
users:
  - email: alex@example.com
    target_cities: [London]
    career_path: data
    subscription_tier: Premium
  - email: sam@example.com
"""


class TestLoadPool:
    """Test load_pool."""

    def test_mapping_layout(self, tmp_path):
        """Test a mapping with version and jobs."""
        path = tmp_path / "pool.yaml"
        path.write_text(POOL_YAML)

        pool = load_pool(path)

        assert pool.version == "pool-2025-11-04"
        assert len(pool) == 2
        assert pool.jobs[0].visa_friendly is True
        assert pool.jobs[1].job_hash == "job-2"
        assert pool.jobs[1].freshness_tier == "fresh"

    def test_list_layout_json(self, tmp_path):
        """Test a bare JSON list; the version is derived from the postings."""
        records = [
            {"job_hash": "job-1", "title": "Analyst", "company": "A"},
            {"job_hash": "job-2", "title": "Engineer", "company": "B"},
        ]
        path = tmp_path / "pool.json"
        path.write_text(json.dumps(records))

        pool = load_pool(path)

        assert len(pool) == 2
        assert len(pool.version) == 16

        reordered = tmp_path / "reordered.json"
        reordered.write_text(json.dumps(list(reversed(records))))
        assert load_pool(reordered).version == pool.version

    def test_version_override(self, tmp_path):
        path = tmp_path / "pool.yaml"
        path.write_text(POOL_YAML)

        assert load_pool(path, version="manual").version == "manual"

    def test_numeric_file_version(self, tmp_path):
        path = tmp_path / "pool.yaml"
        path.write_text("version: 7\njobs: []\n")

        pool = load_pool(path)

        assert pool.version == "7"
        assert len(pool) == 0

    def test_empty_file(self, tmp_path):
        """Test that an empty file gives an empty pool."""
        path = tmp_path / "pool.yaml"
        path.write_text("")

        assert len(load_pool(path)) == 0

    def test_invalid_record(self, tmp_path):
        """Test that an invalid posting reports its index and field."""
        path = tmp_path / "pool.yaml"
        path.write_text(
            "- job_hash: ok\n  title: Analyst\n  company: A\n"
            "- job_hash: broken\n  company: B\n"
        )

        with pytest.raises(PoolLoadError) as exc_info:
            load_pool(path)

        error = exc_info.value
        assert error.record_index == 1
        assert error.path == str(path)
        assert any("title" in message for message in error.errors)
        assert "index 1" in str(error)

    def test_missing_file(self, tmp_path):
        with pytest.raises(PoolLoadError) as exc_info:
            load_pool(tmp_path / "missing.yaml")

        assert "not found" in str(exc_info.value).lower()

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "pool.yaml"
        path.write_text("jobs: [unclosed\n")

        with pytest.raises(PoolLoadError) as exc_info:
            load_pool(path)

        assert "parse" in str(exc_info.value).lower()

    def test_wrong_shape(self, tmp_path):
        """Test that a scalar or non-list jobs value is rejected."""
        path = tmp_path / "pool.yaml"
        path.write_text("jobs: not-a-list\n")

        with pytest.raises(PoolLoadError) as exc_info:
            load_pool(path)

        assert "'jobs'" in str(exc_info.value)


class TestLoadProfiles:
    """Test load_profiles."""

    def test_mapping_layout(self, tmp_path):
        """Test a mapping with a users list."""
        path = tmp_path / "users.yaml"
        path.write_text(USERS_YAML)

        users = load_profiles(path)

        assert [u.email for u in users] == ["alex@example.com", "sam@example.com"]
        assert users[0].career_path == ["data"]
        assert users[0].is_premium
        assert users[1].subscription_tier == "free"

    def test_list_layout_json(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text(json.dumps([{"email": "alex@example.com", "target_cities": ["London"]}]))

        users = load_profiles(path)

        assert len(users) == 1
        assert users[0].target_cities == ["London"]

    def test_invalid_email(self, tmp_path):
        """Test that an invalid email reports the profile index."""
        path = tmp_path / "users.yaml"
        path.write_text("- email: alex@example.com\n- email: not-an-email\n")

        with pytest.raises(PoolLoadError) as exc_info:
            load_profiles(path)

        assert exc_info.value.record_index == 1
        assert any("email" in message for message in exc_info.value.errors)
