"""Batch matching of many users against one candidate pool."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple
from uuid import uuid4

from jobmatch.domain.models import CandidatePool, UserProfile
from jobmatch.logging import get_logger
from jobmatch.logging.context import log_context
from jobmatch.matching.engine import MatchingEngine
from jobmatch.matching.models import MatchResponse
from jobmatch.utils.timestamps import utc_now

from .models import BatchRunResult, UserRunStats

logger = get_logger(__name__, component="pipeline")


class BatchMatchRunner:
    """
    Matches a list of users against a candidate pool.

    Users are matched concurrently on a bounded thread pool. Overlapping runs
    are skipped rather than queued.
    """

    def __init__(self, engine: MatchingEngine, max_concurrent_users: int = 4):
        """
        Args:
            engine: Matching engine shared by all users of a run
            max_concurrent_users: Users matched in parallel
        """
        self.engine = engine
        self.max_concurrent_users = max_concurrent_users
        self._lock = threading.Lock()

    def run_once(self, users: Sequence[UserProfile], pool: CandidatePool) -> BatchRunResult:
        """
        Match every user once.

        Returns:
            BatchRunResult with per-user stats and serialized responses

        Raises:
            No exceptions are raised for user-level failures; they are captured
            in the result.
        """
        run_started_at = utc_now()
        run_id = uuid4().hex

        if not self._lock.acquire(blocking=False):
            with log_context(run_id=run_id):
                logger.warning(
                    "Batch run skipped: previous run still in progress",
                    extra={"event": "batch.run.skipped", "reason": "lock_held"},
                )
            return BatchRunResult(
                run_started_at=run_started_at,
                run_finished_at=utc_now(),
                run_id=run_id,
                pool_version=pool.version,
                skipped=True,
            )

        try:
            with log_context(run_id=run_id):
                logger.info(
                    f"Batch run started for {len(users)} users",
                    extra={
                        "event": "batch.run.started",
                        "user_count": len(users),
                        "pool_size": len(pool),
                        "pool_version": pool.version,
                    },
                )

                if users:
                    workers = min(self.max_concurrent_users, len(users))
                    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="batch-user") as executor:
                        outcomes = list(executor.map(lambda user: self._match_user(user, pool, run_id), users))
                else:
                    outcomes = []

                result = BatchRunResult(
                    run_started_at=run_started_at,
                    run_finished_at=utc_now(),
                    run_id=run_id,
                    pool_version=pool.version,
                    user_stats=[stats for stats, _ in outcomes],
                    responses=[response.to_dict() for _, response in outcomes if response is not None],
                )

                logger.info(
                    "Batch run completed",
                    extra={
                        "event": "batch.run.completed",
                        "duration_ms": int(result.total_duration_seconds * 1000),
                        "total_users": result.total_users,
                        "total_results": result.total_results,
                        "failed_users": result.failed_users,
                        "method_counts": result.method_counts,
                    },
                )
                return result

        finally:
            self._lock.release()

    def _match_user(
        self, user: UserProfile, pool: CandidatePool, run_id: str
    ) -> Tuple[UserRunStats, Optional[MatchResponse]]:
        """Match one user; an unexpected error is recorded on the stats."""
        user_start = time.monotonic()
        stats = UserRunStats(user_email=user.email)
        response: Optional[MatchResponse] = None

        # Worker threads start with an empty context
        with log_context(run_id=run_id, user_email=user.email):
            try:
                response = self.engine.match(user, pool)
                stats.method = response.method
                stats.result_count = response.result_count
                stats.eligible_count = response.eligible_count

            except Exception as e:
                stats.had_errors = True
                stats.error_message = str(e)
                logger.error(
                    f"Unexpected error matching user: {e}",
                    extra={"event": "batch.user.failed", "error": str(e)},
                    exc_info=True,
                )

            finally:
                stats.duration_seconds = time.monotonic() - user_start
                logger.debug(
                    "User matching completed",
                    extra={
                        "event": "batch.user.completed",
                        "duration_seconds": stats.duration_seconds,
                        "had_errors": stats.had_errors,
                    },
                )

        return stats, response
