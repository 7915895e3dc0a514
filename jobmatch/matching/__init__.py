"""Job matching engine: eligibility, tiered scoring, validation and caching."""

from .budget import CostBudget
from .cache import CacheBackend, InMemoryCacheBackend, ResultCache, SqlCacheBackend
from .circuit import CircuitBreaker, CircuitBreakerRegistry, CircuitState, CircuitStatus
from .deadline import Deadline
from .eligibility import EligibilityFilter
from .engine import MatchingEngine
from .exceptions import (
    AIMalformedResponse,
    AIRateLimited,
    AIScorerError,
    AITimeout,
    AIUnavailable,
    BudgetExceeded,
    CacheUnavailable,
    EligibilityExhausted,
    MatchingError,
    ValidationClamped,
)
from .models import (
    FailureKind,
    MatchResponse,
    OrchestrationResult,
    ScoredJob,
    TierAttempt,
    TierFailure,
    TierOutcome,
    TierSuccess,
    ValidationReport,
)
from .orchestrator import FallbackOrchestrator
from .scorers import AIScorer, RuleBasedScorer, Scorer, SemanticScorer
from .validator import QualityValidator

__all__ = [
    "MatchingEngine",
    "EligibilityFilter",
    "FallbackOrchestrator",
    "QualityValidator",
    "ResultCache",
    "CacheBackend",
    "InMemoryCacheBackend",
    "SqlCacheBackend",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitState",
    "CircuitStatus",
    "CostBudget",
    "Deadline",
    "Scorer",
    "AIScorer",
    "SemanticScorer",
    "RuleBasedScorer",
    "FailureKind",
    "ScoredJob",
    "TierSuccess",
    "TierFailure",
    "TierOutcome",
    "TierAttempt",
    "OrchestrationResult",
    "ValidationReport",
    "MatchResponse",
    "MatchingError",
    "EligibilityExhausted",
    "AIScorerError",
    "AITimeout",
    "AIRateLimited",
    "AIMalformedResponse",
    "AIUnavailable",
    "BudgetExceeded",
    "CacheUnavailable",
    "ValidationClamped",
]
