"""Unit tests for the batch match runner.

Tests the BatchMatchRunner orchestration including:
- Matching every user against a shared engine
- Error isolation (one user's failure doesn't stop others)
- Lock behavior (prevents concurrent runs)
- Aggregation of per-user statistics
"""

import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from jobmatch.config.environment import EnvironmentConfig
from jobmatch.config.models import AppConfig
from jobmatch.matching import MatchingEngine
from jobmatch.pipeline import BatchMatchRunner, BatchRunResult, UserRunStats
from tests.helpers import ScriptedProvider


@pytest.fixture
def engine():
    """Real engine with a scripted AI provider."""
    engine = MatchingEngine.build(AppConfig(), EnvironmentConfig(), provider=ScriptedProvider())
    yield engine
    engine.shutdown()


@pytest.fixture
def users(make_user):
    return [
        make_user(email="alex@example.com"),
        make_user(email="sam@example.com", subscription_tier="premium"),
        make_user(email="kim@example.com", target_cities=["Tokyo"]),
    ]


@pytest.fixture
def pool(make_job, make_pool):
    return make_pool([make_job() for _ in range(12)])


class TestBatchMatchRunner:
    """Test suite for BatchMatchRunner."""

    def test_run_once_basic_flow(self, engine, users, pool):
        """Test matching several users in one run."""
        runner = BatchMatchRunner(engine, max_concurrent_users=2)

        result = runner.run_once(users, pool)

        assert not result.skipped
        assert not result.had_errors
        assert result.total_users == 3
        assert result.total_results == 15
        assert result.method_counts == {"ai": 2, "none": 1}
        assert result.pool_version == pool.version
        assert result.run_id
        assert [r["user_email"] for r in result.responses] == [u.email for u in users]

        stats = {s.user_email: s for s in result.user_stats}
        assert stats["sam@example.com"].result_count == 10
        assert stats["kim@example.com"].eligible_count == 0

    def test_second_run_served_from_cache(self, engine, users, pool):
        runner = BatchMatchRunner(engine)
        runner.run_once(users, pool)

        result = runner.run_once(users, pool)

        assert result.method_counts == {"cached": 2, "none": 1}

    def test_run_once_isolates_user_errors(self, users, pool):
        """Test that one failing user doesn't stop the others."""
        engine = Mock()
        good_response = Mock(method="rule_based", result_count=5, eligible_count=9)
        good_response.to_dict.return_value = {"user_email": "ok"}

        def match(user, pool):
            if user.email == "sam@example.com":
                raise RuntimeError("engine bug")
            return good_response

        engine.match.side_effect = match
        runner = BatchMatchRunner(engine)

        result = runner.run_once(users, pool)

        assert result.had_errors
        assert result.failed_users == 1
        assert result.total_users == 3
        assert result.total_results == 10
        assert result.method_counts == {"rule_based": 2}
        assert len(result.responses) == 2

        failed = [s for s in result.user_stats if s.had_errors]
        assert failed[0].user_email == "sam@example.com"
        assert "engine bug" in failed[0].error_message
        assert result.to_dict()["errors"] == [{"user_email": "sam@example.com", "error": "engine bug"}]

    def test_run_once_prevents_concurrent_runs(self, users, pool):
        """Test that concurrent runs are prevented by the lock."""
        started = threading.Event()
        release = threading.Event()
        engine = Mock()

        def slow_match(user, pool):
            started.set()
            release.wait(5)
            return Mock(method="rule_based", result_count=1, eligible_count=1, to_dict=Mock(return_value={}))

        engine.match.side_effect = slow_match
        runner = BatchMatchRunner(engine, max_concurrent_users=1)

        result1 = [None]

        def run_first():
            result1[0] = runner.run_once(users[:1], pool)

        thread = threading.Thread(target=run_first)
        thread.start()
        assert started.wait(5)

        result2 = runner.run_once(users, pool)
        release.set()
        thread.join()

        assert result2.skipped
        assert result2.total_users == 0
        assert not result1[0].skipped
        assert result1[0].total_users == 1

        # Lock is released after the run
        assert not runner.run_once(users[:1], pool).skipped

    def test_run_with_no_users(self, engine, pool):
        """Test an empty run."""
        result = BatchMatchRunner(engine).run_once([], pool)

        assert result.total_users == 0
        assert result.total_results == 0
        assert not result.had_errors
        assert result.responses == []

    def test_report_serialization(self, engine, users, pool):
        data = BatchMatchRunner(engine).run_once(users, pool).to_dict()

        assert data["total_users"] == 3
        assert data["skipped"] is False
        assert data["errors"] == []
        assert len(data["users"]) == 3
        assert data["users"][0]["results"][0]["method"] == "ai"
        datetime.fromisoformat(data["run_started_at"])


class TestBatchRunResult:
    """Test suite for BatchRunResult model."""

    def test_auto_aggregation_on_init(self):
        """Test that BatchRunResult auto-aggregates from user stats."""
        now = datetime.now(timezone.utc)

        result = BatchRunResult(
            run_started_at=now,
            run_finished_at=now,
            user_stats=[
                UserRunStats(user_email="a@example.com", method="ai", result_count=5),
                UserRunStats(user_email="b@example.com", method="ai", result_count=3),
                UserRunStats(user_email="c@example.com", method="rule_based", result_count=5),
                UserRunStats(user_email="d@example.com", had_errors=True, error_message="boom"),
            ],
        )

        assert result.total_users == 4
        assert result.total_results == 13
        assert result.failed_users == 1
        assert result.method_counts == {"ai": 2, "rule_based": 1}
        assert result.had_errors

    def test_duration_computation(self):
        """Test that duration is computed from timestamps."""
        now = datetime.now(timezone.utc)

        result = BatchRunResult(run_started_at=now, run_finished_at=now + timedelta(seconds=5.5))

        assert 5.0 <= result.total_duration_seconds <= 6.0


class TestUserRunStats:
    """Test suite for UserRunStats model."""

    def test_user_stats_defaults(self):
        """Test that UserRunStats has sensible defaults."""
        stats = UserRunStats(user_email="a@example.com")

        assert stats.method is None
        assert stats.result_count == 0
        assert stats.eligible_count == 0
        assert stats.duration_seconds == 0.0
        assert not stats.had_errors
        assert stats.error_message is None
