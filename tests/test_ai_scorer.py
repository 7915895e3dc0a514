"""Unit tests for the AI scoring tier.

Tests cover:
- Successful scoring and per-entry discards
- Provider error codes mapped onto tier failures
- Budget refusal and settlement
- Timeouts bounded by the request deadline
- Semantic pre-ranking of large eligible sets
"""

import time

import pytest

from jobmatch.matching.budget import CostBudget
from jobmatch.matching.deadline import Deadline
from jobmatch.matching.models import FailureKind
from jobmatch.matching.scorers import AIScorer
from jobmatch.providers.schema import JobScorePayload, ProviderErrorResponse, ScoreBatchResponse
from tests.helpers import FailingProvider, ScriptedProvider, SlowProvider


@pytest.fixture
def budget():
    return CostBudget(per_user_daily_calls=5, daily_cost_limit_usd=10.0)


@pytest.fixture
def make_scorer(budget):
    scorers = []

    def _make(provider, **kwargs):
        kwargs.setdefault("budget", budget)
        scorer = AIScorer(provider=provider, **kwargs)
        scorers.append(scorer)
        return scorer

    yield _make
    for scorer in scorers:
        scorer.shutdown()


def _batch(*entries, tokens_used=None):
    return ScoreBatchResponse(scores=[JobScorePayload(**e) for e in entries], tokens_used=tokens_used)


class TestAIScorerSuccess:
    """Tests for successful AI calls."""

    def test_scores_every_job(self, make_scorer, make_user, make_job):
        """Test that scripted scores become ScoredJob entries with method ai."""
        jobs = [make_job(), make_job(), make_job()]
        provider = ScriptedProvider()
        outcome = make_scorer(provider).score(make_user(), jobs, Deadline(10))

        assert outcome.ok
        assert [s.job_hash for s in outcome.scores] == [j.job_hash for j in jobs]
        assert {s.method for s in outcome.scores} == {"ai"}
        assert provider.call_count == 1

    def test_resolves_by_index_and_hash(self, make_scorer, make_user, make_job):
        """Test that entries may reference jobs by hash or 1-based index."""
        jobs = [make_job(job_hash="a"), make_job(job_hash="b")]
        provider = ScriptedProvider(
            [
                _batch(
                    {"job_index": 2, "match_score": 70, "match_reason": "Second job"},
                    {"job_hash": "a", "match_score": 60, "match_reason": "First job"},
                )
            ]
        )
        outcome = make_scorer(provider).score(make_user(), jobs, Deadline(10))
        assert {s.job_hash: s.score for s in outcome.scores} == {"b": 70, "a": 60}

    def test_bad_entries_discarded(self, make_scorer, make_user, make_job):
        """Test that unknown, duplicate, out-of-range and reasonless entries are dropped."""
        jobs = [make_job(job_hash="a"), make_job(job_hash="b")]
        provider = ScriptedProvider(
            [
                _batch(
                    {"job_hash": "a", "match_score": 80, "match_reason": "Good"},
                    {"job_hash": "a", "match_score": 90, "match_reason": "Duplicate"},
                    {"job_hash": "ghost", "match_score": 90, "match_reason": "Invented"},
                    {"job_index": 9, "match_score": 90, "match_reason": "Out of batch"},
                    {"job_hash": "b", "match_score": 140, "match_reason": "Too high"},
                    {"job_hash": "b", "match_score": 50},
                )
            ]
        )
        outcome = make_scorer(provider).score(make_user(), jobs, Deadline(10))

        assert outcome.ok
        assert [s.job_hash for s in outcome.scores] == ["a"]
        assert outcome.discarded == 5

    def test_default_confidence(self, make_scorer, make_user, make_job):
        """Test that missing or out-of-range confidence falls back to the default."""
        jobs = [make_job(job_hash="a"), make_job(job_hash="b")]
        provider = ScriptedProvider(
            [
                _batch(
                    {"job_hash": "a", "match_score": 80, "match_reason": "Good"},
                    {"job_hash": "b", "match_score": 80, "match_reason": "Good", "confidence": 3},
                )
            ]
        )
        outcome = make_scorer(provider, default_confidence=0.85).score(make_user(), jobs, Deadline(10))
        assert {s.confidence for s in outcome.scores} == {0.85}

    def test_empty_jobs_skip_provider(self, make_scorer, make_user):
        """Test that an empty eligible set makes no call."""
        provider = ScriptedProvider()
        outcome = make_scorer(provider).score(make_user(), [], Deadline(10))
        assert outcome.ok
        assert provider.call_count == 0

    def test_large_set_pre_ranked(self, make_scorer, make_user, make_job):
        """Test that only batch_size jobs are sent, chosen by semantic similarity."""
        user = make_user(career_path=["data"], skills=["python"])
        relevant = make_job(job_hash="relevant", title="Data Engineer", description="Python pipelines")
        others = [
            make_job(title="Chef", categories=["hospitality"], description="Cook meals") for _ in range(4)
        ]
        provider = ScriptedProvider()
        make_scorer(provider, batch_size=2).score(user, others + [relevant], Deadline(10))

        sent = provider.requests[0].jobs
        assert len(sent) == 2
        assert sent[0].job_hash == "relevant"

    def test_min_results_follows_subscription(self, make_scorer, make_user, make_job):
        """Test that premium users ask for more results."""
        jobs = [make_job() for _ in range(12)]
        provider = ScriptedProvider()
        scorer = make_scorer(provider, free_matches=5, premium_matches=10)
        scorer.score(make_user(), jobs, Deadline(10))
        scorer.score(make_user(subscription_tier="premium"), jobs, Deadline(10))
        assert [r.min_results for r in provider.requests] == [5, 10]


class TestAIScorerFailures:
    """Tests for AI call failures becoming tier failures."""

    @pytest.mark.parametrize(
        "code, kind",
        [
            ("timeout", FailureKind.TIMEOUT),
            ("rate_limited", FailureKind.RATE_LIMITED),
            ("malformed", FailureKind.MALFORMED),
            ("unavailable", FailureKind.UNAVAILABLE),
        ],
    )
    def test_error_codes(self, make_scorer, make_user, make_job, code, kind):
        """Test that each provider error code maps to its failure kind."""
        outcome = make_scorer(FailingProvider(code)).score(make_user(), [make_job()], Deadline(10))
        assert not outcome.ok
        assert outcome.kind == kind
        assert outcome.counts_against_circuit

    def test_no_usable_entries_is_malformed(self, make_scorer, make_user, make_job):
        """Test that a batch where every entry is discarded is malformed."""
        provider = ScriptedProvider([_batch({"job_hash": "ghost", "match_score": 50, "match_reason": "?"})])
        outcome = make_scorer(provider).score(make_user(), [make_job()], Deadline(10))
        assert outcome.kind == FailureKind.MALFORMED

    def test_budget_exceeded(self, make_scorer, make_user, make_job):
        """Test that a budget refusal makes no call and does not count against the circuit."""
        provider = ScriptedProvider()
        budget = CostBudget(per_user_daily_calls=0)
        outcome = make_scorer(provider, budget=budget).score(make_user(), [make_job()], Deadline(10))

        assert outcome.kind == FailureKind.BUDGET_EXCEEDED
        assert not outcome.counts_against_circuit
        assert provider.call_count == 0

    def test_budget_charged_per_call(self, make_scorer, make_user, make_job, budget):
        """Test that a call is counted against the user and settled from usage."""
        provider = ScriptedProvider([_batch({"job_index": 1, "match_score": 50, "match_reason": "ok"}, tokens_used=0)])
        make_scorer(provider).score(make_user(), [make_job()], Deadline(10))

        usage = budget.usage()
        assert usage.calls_by_user == {"alex@example.com": 1}
        # Reported usage replaces the max_tokens reservation
        assert 0 < usage.spent_usd < budget.cost_for_tokens(0, 2500)

    def test_slow_provider_abandoned_at_deadline(self, make_scorer, make_user, make_job):
        """Test that the wait is bounded by the request deadline, not the AI timeout."""
        provider = SlowProvider(delay=5)
        scorer = make_scorer(provider, timeout_seconds=20)

        start = time.monotonic()
        outcome = scorer.score(make_user(), [make_job()], Deadline(0.2))
        elapsed = time.monotonic() - start
        provider.release.set()

        assert outcome.kind == FailureKind.TIMEOUT
        assert elapsed < 2

    def test_expired_deadline_makes_no_call(self, make_scorer, make_user, make_job):
        """Test that an already expired deadline fails without calling the provider."""
        provider = ScriptedProvider()
        outcome = make_scorer(provider).score(make_user(), [make_job()], Deadline(0))
        assert outcome.kind == FailureKind.TIMEOUT
        assert provider.call_count == 0

    def test_provider_timeout_uses_bounded_value(self, make_scorer, make_user, make_job):
        """Test that the provider receives min(AI timeout, remaining deadline)."""
        provider = ScriptedProvider()
        make_scorer(provider, timeout_seconds=20).score(make_user(), [make_job()], Deadline(3))
        assert 0 < provider.timeouts[0] <= 3

    def test_rate_limit_carries_retry_after_message(self, make_scorer, make_user, make_job):
        """Test that rate-limit failures keep the provider message."""
        provider = ScriptedProvider([ProviderErrorResponse(code="rate_limited", message="HTTP 429", retry_after=5)])
        outcome = make_scorer(provider).score(make_user(), [make_job()], Deadline(10))
        assert outcome.kind == FailureKind.RATE_LIMITED
        assert "429" in outcome.message


class TestAIScorerShutdown:
    """Tests for AIScorer.shutdown."""

    def test_closes_provider(self, budget):
        """Test that shutdown closes the provider."""
        provider = ScriptedProvider()
        AIScorer(provider=provider, budget=budget).shutdown()
        assert provider.closed
