"""Factory for the language-model provider."""

from typing import Optional

from jobmatch.config.environment import EnvironmentConfig
from jobmatch.config.models import AppConfig
from jobmatch.logging import get_logger

from .base import LLMProvider
from .openai_compat import ChatCompletionsProvider

logger = get_logger(__name__, component="provider")


def get_provider(app_config: AppConfig, env_config: EnvironmentConfig) -> Optional[LLMProvider]:
    """Build the configured provider.

    Args:
        app_config: Application configuration (ai and advanced sections)
        env_config: Environment configuration holding the API key

    Returns:
        Provider instance, or None when AI is disabled or no API key is set

    Raises:
        ProviderConfigurationError: If the settings are present but invalid
    """
    if not app_config.ai.enabled:
        logger.info("AI tier disabled in configuration", extra={"event": "provider.disabled"})
        return None

    if not env_config.ai_credentials_present:
        logger.warning(
            "OPENAI_API_KEY not set; AI tier will be skipped",
            extra={"event": "provider.credentials_missing"},
        )
        return None

    base_url = env_config.openai_base_url or app_config.ai.base_url
    provider = ChatCompletionsProvider(
        api_key=env_config.openai_api_key,
        model=app_config.ai.model,
        base_url=base_url,
        temperature=app_config.ai.temperature,
        user_agent=app_config.advanced.user_agent,
    )

    logger.info(
        f"Using chat completions provider with model {app_config.ai.model}",
        extra={"event": "provider.created", "model": app_config.ai.model, "base_url": base_url},
    )
    return provider
