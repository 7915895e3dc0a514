"""Scoring tiers, from highest quality to the always-available floor."""

from .ai import AIScorer, build_request
from .base import Scorer
from .rule_based import RuleBasedScorer
from .semantic import SemanticScorer

__all__ = ["Scorer", "AIScorer", "SemanticScorer", "RuleBasedScorer", "build_request"]
