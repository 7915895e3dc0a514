"""Unit tests for the quality validator.

Tests cover:
- Score clamping and rounding
- Dropping ineligible, duplicate and reasonless entries
- Evidence-based downgrades of very high AI scores
- Ordering, truncation to the subscription count and backfill
- Spreading the selection across target cities and companies
"""

import math
from datetime import timedelta

import pytest

from jobmatch.matching.models import ScoredJob
from jobmatch.matching.validator import QualityValidator, evidence_adjusted_score
from tests.helpers import LONG_REASON, REFERENCE_NOW


@pytest.fixture
def validator():
    return QualityValidator(free_matches=3, premium_matches=5, clock=lambda: REFERENCE_NOW)


def _scored(job_hash, score, reason=LONG_REASON, method="ai", confidence=0.9):
    return ScoredJob(job_hash=job_hash, score=score, reason=reason, confidence=confidence, method=method)


class TestEvidenceAdjustedScore:
    """Tests for evidence_adjusted_score."""

    def test_short_reason_downgraded(self):
        """Test the two downgrade rules and their floors."""
        assert evidence_adjusted_score(95, "Great fit") == 85
        assert evidence_adjusted_score(90, "Great fit") == 80
        assert evidence_adjusted_score(88, " ".join(["word"] * 25)) == 83
        assert evidence_adjusted_score(86, "short") == 81

    def test_long_reason_kept(self):
        """Test that well-evidenced scores are unchanged."""
        assert evidence_adjusted_score(95, LONG_REASON) == 95
        assert evidence_adjusted_score(85, "short") == 85


class TestQualityValidator:
    """Tests for QualityValidator.validate."""

    def test_clamps_out_of_range_scores(self, validator, make_user, make_job):
        """Test that scores outside [0, 100] are clamped and reported."""
        jobs = [make_job(job_hash="hi"), make_job(job_hash="lo"), make_job(job_hash="inf")]
        results, report = validator.validate(
            make_user(), jobs, [_scored("hi", 130, method="rule_based"), _scored("lo", -4), _scored("inf", math.inf)]
        )

        scores = {r.job_hash: r.match_score for r in results}
        assert scores["hi"] == 100
        assert scores["lo"] == 0
        assert scores["inf"] == 100
        assert report.clamped == 3

    def test_rounds_fractional_scores(self, validator, make_user, make_job):
        """Test that fractional scores become integers."""
        results, report = validator.validate(make_user(), [make_job(job_hash="a")], [_scored("a", 72.6)])
        assert results[0].match_score == 73
        assert isinstance(results[0].match_score, int)
        assert report.clamped == 0

    def test_drops_ineligible_jobs(self, validator, make_user, make_job):
        """Test that scores for jobs outside the eligible set are dropped."""
        results, report = validator.validate(
            make_user(), [make_job(job_hash="a")], [_scored("a", 70), _scored("intruder", 99)]
        )
        assert [r.job_hash for r in results] == ["a"]
        assert report.dropped_ineligible == 1

    def test_drops_invalid_entries(self, validator, make_user, make_job):
        """Test that duplicates, blank reasons and NaN scores are dropped."""
        jobs = [make_job(job_hash="a"), make_job(job_hash="b"), make_job(job_hash="c")]
        results, report = validator.validate(
            make_user(), jobs, [_scored("a", 70), _scored("a", 75), _scored("b", 60, reason="  "), _scored("c", math.nan)]
        )
        assert [r.job_hash for r in results] == ["a"]
        assert results[0].match_score == 70
        assert report.dropped_invalid == 3

    def test_evidence_check_only_for_ai(self, validator, make_user, make_job):
        """Test that short reasons downgrade AI scores but not other tiers."""
        jobs = [make_job(job_hash="ai"), make_job(job_hash="sem")]
        results, report = validator.validate(
            make_user(), jobs, [_scored("ai", 95, reason="Perfect"), _scored("sem", 95, reason="Perfect", method="semantic")]
        )
        scores = {r.job_hash: r.match_score for r in results}
        assert scores == {"ai": 85, "sem": 95}
        assert report.downgraded == 1

    def test_evidence_check_disabled(self, make_user, make_job):
        """Test that the downgrade can be turned off."""
        validator = QualityValidator(evidence_check=False)
        results, _ = validator.validate(make_user(), [make_job(job_hash="a")], [_scored("a", 95, reason="Perfect")])
        assert results[0].match_score == 95

    def test_confidence_clamped(self, validator, make_user, make_job):
        """Test that confidence is clamped into [0, 1]."""
        jobs = [make_job(job_hash="a"), make_job(job_hash="b")]
        results, _ = validator.validate(
            make_user(), jobs, [_scored("a", 70, confidence=1.4), _scored("b", 60, confidence=-0.2)]
        )
        assert {r.job_hash: r.confidence for r in results} == {"a": 1.0, "b": 0.0}

    def test_orders_by_score_then_recency_then_hash(self, validator, make_user, make_job):
        """Test the result ordering and its tie-breaks."""
        jobs = [
            make_job(job_hash="old", posted_at=REFERENCE_NOW - timedelta(days=10)),
            make_job(job_hash="new", posted_at=REFERENCE_NOW - timedelta(days=1)),
            make_job(job_hash="b-undated", posted_at=None),
            make_job(job_hash="a-undated", posted_at=None),
        ]
        scored = [_scored("old", 80), _scored("new", 80), _scored("b-undated", 80), _scored("a-undated", 90)]
        premium = make_user(subscription_tier="premium")

        results, _ = validator.validate(premium, jobs, scored)

        assert [r.job_hash for r in results] == ["a-undated", "new", "old", "b-undated"]

    def test_truncates_to_subscription_count(self, validator, make_user, make_job):
        """Test that free and premium users get their configured counts."""
        jobs = [make_job() for _ in range(8)]
        scored = [_scored(job.job_hash, 50 + i) for i, job in enumerate(jobs)]

        free, _ = validator.validate(make_user(), jobs, scored)
        premium, _ = validator.validate(make_user(subscription_tier="premium"), jobs, scored)

        assert len(free) == 3
        assert len(premium) == 5
        assert [r.match_score for r in free] == [57, 56, 55]

    def test_backfill_fills_shortfall(self, validator, make_user, make_job):
        """Test that backfill tops up a short primary set without duplicates."""
        jobs = [make_job(job_hash=h) for h in ("a", "b", "c", "d")]
        primary = [_scored("a", 90)]
        backfill = [
            _scored("a", 40, method="rule_based"),
            _scored("b", 60, method="rule_based"),
            _scored("c", 70, method="rule_based"),
            _scored("d", 20, method="rule_based"),
        ]

        results, report = validator.validate(make_user(), jobs, primary, backfill)

        assert [(r.job_hash, r.method) for r in results] == [("a", "ai"), ("c", "rule_based"), ("b", "rule_based")]
        assert report.backfilled == 2

    def test_backfill_unused_when_full(self, validator, make_user, make_job):
        """Test that backfill is ignored when the primary set is full."""
        jobs = [make_job(job_hash=h) for h in ("a", "b", "c", "d")]
        primary = [_scored(h, 80) for h in ("a", "b", "c")]
        results, report = validator.validate(make_user(), jobs, primary, [_scored("d", 99, method="rule_based")])
        assert "d" not in [r.job_hash for r in results]
        assert report.backfilled == 0

    def test_results_stamped(self, validator, make_user, make_job):
        """Test that results carry the user email and validation time."""
        results, _ = validator.validate(make_user(), [make_job(job_hash="a")], [_scored("a", 70)])
        assert results[0].user_email == "alex@example.com"
        assert results[0].matched_at == REFERENCE_NOW


class TestDiversity:
    """Tests for spreading the selection across cities and companies."""

    @pytest.fixture
    def validator(self):
        return QualityValidator(free_matches=5, premium_matches=10, clock=lambda: REFERENCE_NOW)

    @pytest.fixture
    def two_city_user(self, make_user):
        return make_user(target_cities=["London", "Dublin"])

    def _dublin(self, make_job, **overrides):
        return make_job(city="Dublin", country="Ireland", **overrides)

    def test_balances_two_target_cities(self, validator, two_city_user, make_job):
        """Test that a two-city user gets both cities even when one outscores the other."""
        london = [make_job(job_hash=f"lon-{i}") for i in range(5)]
        dublin = [self._dublin(make_job, job_hash=f"dub-{i}") for i in range(2)]
        scored = [_scored(job.job_hash, 90 - i) for i, job in enumerate(london)]
        scored += [_scored("dub-0", 60), _scored("dub-1", 55)]

        results, report = validator.validate(two_city_user, london + dublin, scored)

        assert [r.job_hash for r in results] == ["lon-0", "lon-1", "lon-2", "dub-0", "dub-1"]
        assert report.rebalanced == 2

    def test_short_city_quota_filled_from_other_city(self, validator, two_city_user, make_job):
        """Test that a city with too few candidates gives its slots back."""
        london = [make_job(job_hash=f"lon-{i}") for i in range(6)]
        dublin = [self._dublin(make_job, job_hash="dub-0")]
        scored = [_scored(job.job_hash, 90 - i) for i, job in enumerate(london)] + [_scored("dub-0", 40)]

        results, _ = validator.validate(two_city_user, london + dublin, scored)

        assert len(results) == 5
        assert [r.job_hash for r in results] == ["lon-0", "lon-1", "lon-2", "lon-3", "dub-0"]

    def test_caps_results_per_company(self, make_user, make_job):
        """Test that one company cannot fill the set while others are available."""
        validator = QualityValidator(free_matches=5, max_per_company=2, clock=lambda: REFERENCE_NOW)
        acme = [make_job(job_hash=f"acme-{i}", company="Acme") for i in range(4)]
        others = [make_job(job_hash=h, company=h.title()) for h in ("beta", "gamma", "delta")]
        scored = [_scored(job.job_hash, 99 - i) for i, job in enumerate(acme)]
        scored += [_scored("beta", 50), _scored("gamma", 40), _scored("delta", 30)]

        results, _ = validator.validate(make_user(), acme + others, scored)

        assert [r.job_hash for r in results] == ["acme-0", "acme-1", "beta", "gamma", "delta"]

    def test_company_cap_relaxed_to_keep_count(self, validator, make_user, make_job):
        """Test that a single-company pool still yields the full count."""
        jobs = [make_job(job_hash=f"acme-{i}", company="Acme") for i in range(7)]
        scored = [_scored(job.job_hash, 80 - i) for i, job in enumerate(jobs)]

        results, report = validator.validate(make_user(), jobs, scored)

        assert [r.match_score for r in results] == [80, 79, 78, 77, 76]
        assert report.rebalanced == 0

    def test_output_sorted_by_score(self, validator, two_city_user, make_job):
        """Test that the diversified selection keeps the ordering rule."""
        jobs = [make_job(job_hash=f"lon-{i}") for i in range(4)]
        jobs += [self._dublin(make_job, job_hash=f"dub-{i}") for i in range(4)]
        scored = [_scored(job.job_hash, 50 + i * 5) for i, job in enumerate(jobs)]

        results, _ = validator.validate(two_city_user, jobs, scored)

        scores = [r.match_score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert len(results) == 5

    def test_disabled_keeps_plain_top_n(self, two_city_user, make_job):
        """Test that diversity=False truncates by score alone."""
        validator = QualityValidator(free_matches=5, diversity=False, clock=lambda: REFERENCE_NOW)
        london = [make_job(job_hash=f"lon-{i}") for i in range(5)]
        dublin = [self._dublin(make_job, job_hash="dub-0")]
        scored = [_scored(job.job_hash, 90 - i) for i, job in enumerate(london)] + [_scored("dub-0", 60)]

        results, report = validator.validate(two_city_user, london + dublin, scored)

        assert [r.job_hash for r in results] == [f"lon-{i}" for i in range(5)]
        assert report.rebalanced == 0

    def test_backfill_respects_primary_cities(self, validator, two_city_user, make_job):
        """Test that backfill counts the primary results toward the city quotas."""
        london = [make_job(job_hash=f"lon-{i}") for i in range(5)]
        dublin = [self._dublin(make_job, job_hash=f"dub-{i}") for i in range(2)]
        primary = [_scored("lon-0", 90), _scored("lon-1", 88), _scored("lon-2", 86)]
        backfill = [_scored(f"lon-{i}", 70, method="rule_based") for i in range(3, 5)]
        backfill += [_scored(f"dub-{i}", 50, method="rule_based") for i in range(2)]

        results, report = validator.validate(two_city_user, london + dublin, primary, backfill)

        assert [r.job_hash for r in results] == ["lon-0", "lon-1", "lon-2", "dub-0", "dub-1"]
        assert report.backfilled == 2
