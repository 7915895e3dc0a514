"""Environment variable loading and validation."""

import os
from typing import Optional

from .exceptions import ConfigurationError

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        openai_api_key: Optional[str] = None,
        openai_base_url: Optional[str] = None,
        log_level: Optional[str] = None,
        database_url: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        """Initialize environment configuration."""
        self.openai_api_key = openai_api_key
        self.openai_base_url = openai_base_url
        self.log_level = log_level
        self.database_url = database_url or "sqlite:///./data/job_match.db"
        self.environment = environment or "local"

    @property
    def ai_credentials_present(self) -> bool:
        return bool(self.openai_api_key)


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    All variables are optional:
    - OPENAI_API_KEY: API key for the AI tier (AI falls back when absent)
    - OPENAI_BASE_URL: Override for the provider base URL
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - DATABASE_URL: Database URL for the database cache backend
      (default: sqlite:///./data/job_match.db)
    - ENVIRONMENT: Environment label added to every log record (default: local)

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If any variable is set to an invalid value
    """
    errors = []

    openai_api_key = os.getenv("OPENAI_API_KEY")
    openai_base_url = os.getenv("OPENAI_BASE_URL")
    log_level = os.getenv("LOG_LEVEL")
    database_url = os.getenv("DATABASE_URL")
    environment = os.getenv("ENVIRONMENT")

    if openai_api_key is not None and not openai_api_key.strip():
        errors.append("OPENAI_API_KEY is set but empty. Unset it to disable the AI tier.")

    if openai_base_url and not openai_base_url.startswith(("http://", "https://")):
        errors.append(
            f"Invalid OPENAI_BASE_URL: '{openai_base_url}'. Must start with http:// or https://."
        )

    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    if database_url and "://" not in database_url:
        errors.append(
            f"Invalid DATABASE_URL: '{database_url}'. Expected a URL like sqlite:///./data/job_match.db"
        )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your values",
                "Unset variables you do not need; all of them are optional",
            ],
        )

    return EnvironmentConfig(
        openai_api_key=openai_api_key.strip() if openai_api_key else None,
        openai_base_url=openai_base_url.rstrip("/") if openai_base_url else None,
        log_level=log_level.upper() if log_level else None,
        database_url=database_url,
        environment=environment,
    )
