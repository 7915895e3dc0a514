"""Test helper utilities for Job Match Engine tests."""

from .clock import REFERENCE_NOW, ManualClock
from .scorers import StubScorer
from .providers import (
    LONG_REASON,
    FailingProvider,
    RaisingProvider,
    ScriptedProvider,
    SlowProvider,
    score_everything,
)

__all__ = [
    "REFERENCE_NOW",
    "ManualClock",
    "ScriptedProvider",
    "FailingProvider",
    "SlowProvider",
    "RaisingProvider",
    "score_everything",
    "LONG_REASON",
    "StubScorer",
]
