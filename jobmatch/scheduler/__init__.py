"""Periodic execution of batch match runs."""

from .service import JOB_ID, SchedulerService

__all__ = ["SchedulerService", "JOB_ID"]
