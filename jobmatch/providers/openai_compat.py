"""Provider for OpenAI-compatible chat completion endpoints.

API: POST {base_url}/chat/completions with a JSON response format. The model's
message content is parsed into a ScoreBatchResponse; every transport or parsing
problem is returned as a ProviderErrorResponse.
"""

from typing import Any, Dict, Optional

from jobmatch.logging import get_logger

from .base import HTTPProvider
from .exceptions import (
    ProviderConfigurationError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from .prompts import PromptRenderer
from .schema import AIScoringRequest, ProviderErrorResponse, ProviderResponse, parse_score_content

logger = get_logger(__name__, component="provider")


class ChatCompletionsProvider(HTTPProvider):
    """Scores job batches with a chat-completions model."""

    name = "chat_completions"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        temperature: float = 0.4,
        user_agent: str = "JobMatchEngine/1.0",
        renderer: Optional[PromptRenderer] = None,
    ) -> None:
        """
        Args:
            api_key: Bearer token for the endpoint
            model: Model name
            base_url: API base URL without trailing slash
            temperature: Sampling temperature
            user_agent: User-Agent header
            renderer: Prompt renderer (default templates when None)

        Raises:
            ProviderConfigurationError: If api_key or base_url is missing
        """
        super().__init__(user_agent=user_agent)
        if not api_key or not api_key.strip():
            raise ProviderConfigurationError("api_key is required for the chat completions provider")
        if not base_url:
            raise ProviderConfigurationError("base_url is required for the chat completions provider")

        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.renderer = renderer or PromptRenderer()
        self._auth_header = {"Authorization": f"Bearer {api_key.strip()}"}

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def build_payload(self, request: AIScoringRequest) -> Dict[str, Any]:
        """Build the chat completion request body."""
        return {
            "model": self.model,
            "messages": self.renderer.render_messages(request),
            "temperature": self.temperature,
            "max_tokens": request.max_tokens,
            "response_format": {"type": "json_object"},
        }

    def score_batch(self, request: AIScoringRequest, timeout: float) -> ProviderResponse:
        """Score a batch; see LLMProvider.score_batch."""
        try:
            data = self._make_request(
                self.endpoint,
                timeout=timeout,
                headers=self._auth_header,
                json_data=self.build_payload(request),
            )
            content = _message_content(data)
            batch = parse_score_content(content)
            usage = data.get("usage") or {}
            tokens_used = usage.get("total_tokens") if isinstance(usage, dict) else None
            if isinstance(tokens_used, int) and tokens_used >= 0:
                batch = batch.model_copy(update={"tokens_used": tokens_used})

            logger.info(
                f"Provider scored {len(batch.scores)} of {len(request.jobs)} jobs",
                extra={
                    "event": "provider.score_batch.succeeded",
                    "model": self.model,
                    "job_count": len(request.jobs),
                    "score_count": len(batch.scores),
                    "discarded": batch.discarded,
                    "tokens_used": batch.tokens_used,
                },
            )
            return batch

        except ProviderRateLimitError as e:
            return ProviderErrorResponse(code="rate_limited", message=str(e), retry_after=e.retry_after)
        except ProviderTimeoutError as e:
            return ProviderErrorResponse(code="timeout", message=str(e))
        except ProviderResponseError as e:
            logger.warning(
                f"Malformed provider response: {e}",
                extra={"event": "provider.score_batch.malformed", "model": self.model},
            )
            return ProviderErrorResponse(code="malformed", message=str(e))
        except ProviderError as e:
            # HTTP errors, connection failures and prompt rendering problems
            return ProviderErrorResponse(code="unavailable", message=str(e))


def _message_content(data: Any) -> str:
    """Extract choices[0].message.content from a chat completion body."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ProviderResponseError(f"Chat completion body has no message content: {e}") from e
    if not isinstance(content, str):
        raise ProviderResponseError("Chat completion message content is not text")
    return content
