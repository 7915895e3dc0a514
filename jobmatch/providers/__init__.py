"""Language-model providers used by the AI scoring tier."""

from .base import HTTPProvider, LLMProvider
from .exceptions import (
    ProviderConfigurationError,
    ProviderError,
    ProviderHTTPError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from .factory import get_provider
from .openai_compat import ChatCompletionsProvider
from .prompts import PromptRenderer
from .schema import (
    AIScoringRequest,
    JobScorePayload,
    JobSummary,
    ProviderErrorResponse,
    ProviderResponse,
    ScoreBatchResponse,
    UserSummary,
    parse_score_content,
    provider_response_adapter,
)

__all__ = [
    "LLMProvider",
    "HTTPProvider",
    "ChatCompletionsProvider",
    "PromptRenderer",
    "get_provider",
    "AIScoringRequest",
    "UserSummary",
    "JobSummary",
    "JobScorePayload",
    "ScoreBatchResponse",
    "ProviderErrorResponse",
    "ProviderResponse",
    "provider_response_adapter",
    "parse_score_content",
    "ProviderError",
    "ProviderHTTPError",
    "ProviderTimeoutError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "ProviderConfigurationError",
]
