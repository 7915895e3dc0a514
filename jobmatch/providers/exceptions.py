"""Custom exceptions for language-model providers."""

from typing import Optional


class ProviderError(Exception):
    """Base exception for all provider errors.

    Providers convert these into ProviderErrorResponse values at the boundary,
    so they never reach the scoring tiers.
    """

    pass


class ProviderHTTPError(ProviderError):
    """HTTP request failed with an error status or a transport error (status 0)."""

    def __init__(self, message: str, status_code: int, url: str) -> None:
        """
        Args:
            message: Human-readable error message
            status_code: HTTP status code (0 for connection failures)
            url: URL that failed
        """
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class ProviderTimeoutError(ProviderError):
    """The provider did not answer within the call timeout."""

    def __init__(self, message: str, url: str) -> None:
        super().__init__(message)
        self.url = url


class ProviderRateLimitError(ProviderError):
    """The provider answered HTTP 429."""

    def __init__(self, message: str, url: str, retry_after: Optional[float] = None) -> None:
        """
        Args:
            message: Human-readable error message
            url: URL that was rate limited
            retry_after: Seconds from the Retry-After header, if present
        """
        super().__init__(message)
        self.url = url
        self.retry_after = retry_after


class ProviderResponseError(ProviderError):
    """The provider answered but the body could not be parsed or validated."""

    pass


class ProviderConfigurationError(ProviderError):
    """Invalid provider configuration (missing key, bad URL, bad timeout)."""

    pass
