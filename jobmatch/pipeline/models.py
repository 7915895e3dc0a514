"""Data models for batch run tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class UserRunStats:
    """
    Statistics for a single user's match request within a batch run.

    Attributes:
        user_email: User the request was for
        method: Overall method of the response (ai, semantic, rule_based, cached, none)
        result_count: Number of results returned
        eligible_count: Size of the user's eligible set
        duration_seconds: Time spent matching this user
        had_errors: Whether the request raised instead of returning a response
        error_message: Optional error message if the request failed
    """

    user_email: str
    method: Optional[str] = None
    result_count: int = 0
    eligible_count: int = 0
    duration_seconds: float = 0.0
    had_errors: bool = False
    error_message: Optional[str] = None


@dataclass
class BatchRunResult:
    """
    Aggregate results from a complete batch run.

    Attributes:
        run_id: Identifier shared by every log line of the run
        run_started_at: UTC timestamp when the run began
        run_finished_at: UTC timestamp when the run completed
        pool_version: Candidate-pool version matched against
        total_duration_seconds: Total time for the entire run
        total_users: Users processed
        total_results: Results returned across all users
        failed_users: Users whose request raised
        method_counts: Number of users served by each method
        user_stats: Per-user statistics
        responses: Serialized match responses, in user order
        had_errors: Whether any user request failed
        skipped: Whether the run was skipped (lock already held)
    """

    run_started_at: datetime
    run_finished_at: datetime
    run_id: str = ""
    pool_version: Optional[str] = None
    total_duration_seconds: float = 0.0
    total_users: int = 0
    total_results: int = 0
    failed_users: int = 0
    method_counts: Dict[str, int] = field(default_factory=dict)
    user_stats: List[UserRunStats] = field(default_factory=list)
    responses: List[dict] = field(default_factory=list)
    had_errors: bool = False
    skipped: bool = False

    def __post_init__(self):
        """Compute aggregate statistics from user stats if not already set."""
        if self.user_stats and self.total_users == 0:
            self.total_users = len(self.user_stats)
            self.total_results = sum(s.result_count for s in self.user_stats)
            self.failed_users = sum(1 for s in self.user_stats if s.had_errors)
            self.had_errors = self.failed_users > 0
            counts: Dict[str, int] = {}
            for stats in self.user_stats:
                if stats.method:
                    counts[stats.method] = counts.get(stats.method, 0) + 1
            self.method_counts = counts

        if self.total_duration_seconds == 0.0:
            delta = self.run_finished_at - self.run_started_at
            self.total_duration_seconds = delta.total_seconds()

    def to_dict(self) -> dict:
        """Serialize for the JSON report."""
        return {
            "run_id": self.run_id,
            "run_started_at": self.run_started_at.isoformat(),
            "run_finished_at": self.run_finished_at.isoformat(),
            "pool_version": self.pool_version,
            "duration_seconds": round(self.total_duration_seconds, 3),
            "total_users": self.total_users,
            "total_results": self.total_results,
            "failed_users": self.failed_users,
            "method_counts": self.method_counts,
            "skipped": self.skipped,
            "users": self.responses,
            "errors": [
                {"user_email": s.user_email, "error": s.error_message}
                for s in self.user_stats
                if s.had_errors
            ],
        }
