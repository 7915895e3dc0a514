"""Base provider classes for language-model scoring.

This module provides the abstract interface every provider implements and an
HTTP base class with shared request handling that maps transport problems onto
the provider exception hierarchy.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from jobmatch.logging import get_logger

from .exceptions import (
    ProviderConfigurationError,
    ProviderHTTPError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from .schema import AIScoringRequest, ProviderResponse

logger = get_logger(__name__, component="provider")

# Statuses that mean the upstream gave up waiting
TIMEOUT_STATUSES = {408, 504}


class LLMProvider(ABC):
    """Interface for anything that can score a batch of jobs for a user."""

    name: str = "provider"

    @abstractmethod
    def score_batch(self, request: AIScoringRequest, timeout: float) -> ProviderResponse:
        """Score a batch of jobs.

        Implementations never raise for provider-side problems: timeouts, rate
        limits, malformed output and unreachable endpoints are all returned as
        ProviderErrorResponse.

        Args:
            request: User summary, job batch and token cap
            timeout: Seconds the call may take

        Returns:
            ScoreBatchResponse or ProviderErrorResponse
        """

    def close(self) -> None:
        """Release network resources (no-op by default)."""
        return None


class HTTPProvider(LLMProvider):
    """Provider base class with a shared requests Session.

    Attributes:
        user_agent: User-Agent header for HTTP requests
    """

    def __init__(self, user_agent: str = "JobMatchEngine/1.0") -> None:
        """
        Args:
            user_agent: User-Agent header for requests

        Raises:
            ProviderConfigurationError: If user_agent is empty
        """
        if not user_agent or not user_agent.strip():
            raise ProviderConfigurationError("user_agent cannot be empty")

        self.user_agent = user_agent.strip()
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": self.user_agent, "Content-Type": "application/json"})

    def close(self) -> None:
        self._session.close()

    def _make_request(
        self,
        url: str,
        timeout: float,
        method: str = "POST",
        headers: Optional[Dict[str, str]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make HTTP request with error handling.

        Args:
            url: URL to request
            timeout: Request timeout in seconds
            method: HTTP method (default "POST")
            headers: Additional headers (merged with session defaults)
            json_data: JSON body

        Returns:
            Parsed JSON response

        Raises:
            ProviderRateLimitError: On HTTP 429
            ProviderTimeoutError: On client timeout or HTTP 408/504
            ProviderHTTPError: On other 4xx/5xx statuses or connection failures
            ProviderResponseError: On a body that is not JSON
        """
        request_headers = self._session.headers.copy()
        if headers:
            request_headers.update(headers)

        try:
            logger.debug(
                f"HTTP {method} request to {url}",
                extra={
                    "event": "provider.request.started",
                    "method": method,
                    "url": url,
                    "timeout": round(timeout, 3),
                },
            )

            response = self._session.request(
                method=method,
                url=url,
                headers=request_headers,
                json=json_data,
                timeout=timeout,
            )

            if response.status_code == 429:
                retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                logger.warning(
                    f"Rate limited by {url}",
                    extra={
                        "event": "provider.request.rate_limited",
                        "status_code": 429,
                        "url": url,
                        "retry_after_seconds": retry_after,
                    },
                )
                raise ProviderRateLimitError(f"HTTP 429 from {url}", url=url, retry_after=retry_after)

            if response.status_code in TIMEOUT_STATUSES:
                logger.warning(
                    f"Upstream timeout HTTP {response.status_code} from {url}",
                    extra={"event": "provider.request.timeout", "status_code": response.status_code, "url": url},
                )
                raise ProviderTimeoutError(f"HTTP {response.status_code} from {url}", url=url)

            if response.status_code >= 400:
                is_retryable = response.status_code >= 500
                logger.log(
                    logging.WARNING if is_retryable else logging.ERROR,
                    f"HTTP {response.status_code} error from {url}",
                    extra={
                        "event": "provider.request.retryable_error" if is_retryable else "provider.request.error",
                        "status_code": response.status_code,
                        "url": url,
                    },
                )
                raise ProviderHTTPError(
                    f"HTTP {response.status_code}: {response.reason}",
                    status_code=response.status_code,
                    url=url,
                )

            try:
                data = response.json()
            except ValueError as e:
                logger.error(
                    f"Failed to parse JSON response from {url}",
                    extra={"event": "provider.request.error", "error_type": "JSONDecodeError", "url": url},
                )
                raise ProviderResponseError(f"Failed to parse JSON response from {url}: {e}") from e

            logger.debug(
                "HTTP request succeeded",
                extra={"event": "provider.request.succeeded", "status_code": response.status_code, "url": url},
            )
            return data

        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {timeout:.1f} seconds",
                extra={"event": "provider.request.timeout", "error_type": "Timeout", "url": url},
            )
            raise ProviderTimeoutError(
                f"Request to {url} timed out after {timeout:.1f} seconds", url=url
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Request to {url} failed: {e}",
                extra={"event": "provider.request.error", "error_type": type(e).__name__, "url": url},
            )
            raise ProviderHTTPError(f"Request to {url} failed: {e}", status_code=0, url=url) from e


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None
