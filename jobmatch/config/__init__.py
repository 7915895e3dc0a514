"""Configuration management module for the Job Match Engine."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, validate_config_file
from .models import (
    AdvancedConfig,
    AIConfig,
    AppConfig,
    BatchConfig,
    BudgetConfig,
    CacheBackendType,
    CacheConfig,
    CircuitBreakerConfig,
    LimitsConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    ScorerTier,
    TierConfig,
    ValidationConfig,
)

__all__ = [
    # Main loader functions
    "load_config",
    "validate_config_file",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "TierConfig",
    "LimitsConfig",
    "AIConfig",
    "CircuitBreakerConfig",
    "BudgetConfig",
    "CacheConfig",
    "ValidationConfig",
    "BatchConfig",
    "LoggingConfig",
    "AdvancedConfig",
    "EnvironmentConfig",
    # Enums
    "ScorerTier",
    "CacheBackendType",
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
]
