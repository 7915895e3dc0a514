"""Scheduler service for periodic batch match runs."""

import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from jobmatch.logging import get_logger

logger = get_logger(__name__, component="scheduler")

JOB_ID = "batch-match"


class SchedulerService:
    """
    Runs a batch callable on a fixed interval with APScheduler.

    The BackgroundScheduler runs jobs on its own thread so the main thread stays
    free to handle signals and coordinate shutdown. At most one run is active
    at a time and delayed runs are coalesced into one.
    """

    def __init__(
        self,
        run_callable: Callable[[], object],
        interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
        run_immediately: bool = True,
    ):
        """
        Args:
            run_callable: Function called on each scheduled run
            interval_seconds: Interval between runs in seconds
            shutdown_event: Optional event set on shutdown for coordination
            run_immediately: Whether the first run starts right after start()
        """
        self.run_callable = run_callable
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event
        self.run_immediately = run_immediately

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )
        self.scheduler.add_listener(self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MISSED)

    def start(self) -> None:
        """Register the batch job and start the scheduler thread."""
        trigger = IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc)

        job_options = {}
        if self.run_immediately:
            job_options["next_run_time"] = datetime.now(timezone.utc)

        self.scheduler.add_job(
            func=self.run_callable,
            trigger=trigger,
            id=JOB_ID,
            name="Batch match run",
            replace_existing=True,
            **job_options,
        )
        self.scheduler.start()

        next_run = self.get_next_run_time()
        logger.info(
            f"Scheduler started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "scheduler.started",
                "interval_seconds": self.interval_seconds,
                "next_run_time": next_run.isoformat() if next_run else None,
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Stop the scheduler.

        Args:
            wait: If True, wait for a running batch to finish before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self) -> object:
        """Run the batch callable synchronously in the current thread."""
        logger.info("Triggering immediate batch run", extra={"event": "scheduler.trigger_now"})
        return self.run_callable()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self) -> Optional[datetime]:
        """Next scheduled run time, or None if the job is not scheduled."""
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def _on_job_event(self, event: JobExecutionEvent) -> None:
        if event.code == EVENT_JOB_MISSED:
            logger.warning(
                "Scheduled batch run missed",
                extra={"event": "scheduler.run_missed", "scheduled_run_time": str(event.scheduled_run_time)},
            )
            return
        logger.error(
            f"Scheduled batch run raised: {event.exception}",
            extra={"event": "scheduler.run_failed", "error_type": type(event.exception).__name__},
        )
