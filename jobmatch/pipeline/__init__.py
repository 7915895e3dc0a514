"""Batch matching runs."""

from .models import BatchRunResult, UserRunStats
from .runner import BatchMatchRunner

__all__ = ["BatchMatchRunner", "BatchRunResult", "UserRunStats"]
