"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range


class ScorerTier(str, Enum):
    """Scoring tiers the orchestrator can run, in the order configured."""

    AI = "ai"
    SEMANTIC = "semantic"
    RULE_BASED = "rule_based"


class CacheBackendType(str, Enum):
    """Result cache storage backends."""

    MEMORY = "memory"
    DATABASE = "database"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


def _check_duration(value: str, min_seconds: int, max_seconds: int, label: str) -> str:
    try:
        seconds = parse_duration(value)
        validate_duration_range(seconds, min_seconds=min_seconds, max_seconds=max_seconds, label=label)
    except DurationParseError as e:
        raise ValueError(str(e)) from e
    return value.strip()


class TierConfig(BaseModel):
    """Ordered list of scoring tiers; rule_based must be the terminal tier."""

    order: List[ScorerTier] = Field(
        default_factory=lambda: [ScorerTier.AI, ScorerTier.SEMANTIC, ScorerTier.RULE_BASED],
        min_length=1,
        description="Tiers tried in order until one succeeds",
    )

    @field_validator("order")
    @classmethod
    def validate_order(cls, v: List[ScorerTier]) -> List[ScorerTier]:
        """Require unique tiers ending with rule_based."""
        values = [ScorerTier(t) for t in v]
        duplicates = sorted({t.value for t in values if values.count(t) > 1})
        if duplicates:
            raise ValueError(f"Duplicate tiers in order: {', '.join(duplicates)}")
        if values[-1] != ScorerTier.RULE_BASED:
            raise ValueError("rule_based must be the last tier in order (it is the terminal fallback)")
        return values

    model_config = {"use_enum_values": True}


class LimitsConfig(BaseModel):
    """Per-subscription result counts."""

    free_matches: int = Field(5, ge=1, le=50, description="Results returned to free-tier users")
    premium_matches: int = Field(10, ge=1, le=100, description="Maximum results for premium users")

    @model_validator(mode="after")
    def validate_premium_not_smaller(self):
        """Premium users never receive fewer matches than free users."""
        if self.premium_matches < self.free_matches:
            raise ValueError(
                f"premium_matches ({self.premium_matches}) must be >= free_matches ({self.free_matches})"
            )
        return self


class AIConfig(BaseModel):
    """Language-model provider settings for the AI tier."""

    enabled: bool = Field(True, description="Whether the AI tier may be used at all")
    model: str = Field("gpt-4o-mini", min_length=1, description="Chat model name")
    base_url: str = Field("https://api.openai.com/v1", description="OpenAI-compatible API base URL")
    timeout: str = Field("20s", description="Hard timeout for one scoring call")
    max_tokens: int = Field(2500, ge=100, le=16000, description="Maximum completion tokens")
    temperature: float = Field(0.4, ge=0.0, le=2.0, description="Sampling temperature")
    batch_size: int = Field(30, ge=1, le=100, description="Maximum jobs sent per call")
    max_workers: int = Field(8, ge=1, le=64, description="Concurrent AI calls across all users")
    default_confidence: float = Field(
        0.85, ge=0.0, le=1.0, description="Confidence when the provider does not report one"
    )

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: str) -> str:
        """Validate the AI call timeout (1 second to 2 minutes)."""
        return _check_duration(v, 1, 120, "AI timeout")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL without a trailing slash."""
        stripped = v.strip().rstrip("/")
        if not stripped.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got: {v}")
        return stripped

    @property
    def timeout_seconds(self) -> int:
        return parse_duration(self.timeout)


class CircuitBreakerConfig(BaseModel):
    """Circuit-breaker thresholds shared by the ai and semantic tiers."""

    failure_threshold: int = Field(
        5, ge=1, le=100, description="Consecutive failures (K) that open the circuit"
    )
    failure_window: str = Field("5m", description="Sliding window the failures must fall within")
    cooldown: str = Field("60s", description="How long an open circuit rejects calls")
    half_open_successes: int = Field(
        2, ge=1, le=20, description="Consecutive trial successes (M) that close the circuit"
    )

    @field_validator("failure_window")
    @classmethod
    def validate_failure_window(cls, v: str) -> str:
        """Validate the failure window (1 second to 1 day)."""
        return _check_duration(v, 1, 86400, "Failure window")

    @field_validator("cooldown")
    @classmethod
    def validate_cooldown(cls, v: str) -> str:
        """Validate the cool-down (1 second to 1 day)."""
        return _check_duration(v, 1, 86400, "Circuit cool-down")

    @property
    def failure_window_seconds(self) -> int:
        return parse_duration(self.failure_window)

    @property
    def cooldown_seconds(self) -> int:
        return parse_duration(self.cooldown)


class BudgetConfig(BaseModel):
    """AI cost controls enforced before every AI call."""

    per_user_daily_calls: int = Field(
        5, ge=0, le=1000, description="AI calls allowed per user per UTC day"
    )
    daily_cost_limit_usd: float = Field(10.0, ge=0.0, description="Global AI spend ceiling per UTC day")
    input_cost_per_1k_tokens_usd: float = Field(
        0.00015, ge=0.0, description="Price of 1,000 prompt tokens"
    )
    output_cost_multiplier: float = Field(
        2.0, ge=1.0, le=10.0, description="Completion token price relative to prompt tokens"
    )
    chars_per_token: int = Field(4, ge=1, le=10, description="Characters per token for estimates")


class CacheConfig(BaseModel):
    """Result cache settings."""

    enabled: bool = Field(True, description="Whether match sets are cached")
    backend: CacheBackendType = Field(CacheBackendType.MEMORY, description="memory or database")
    ttl: str = Field("30m", description="How long a cached match set stays valid")
    max_entries: int = Field(10000, ge=1, le=1_000_000, description="In-memory LRU capacity")

    @field_validator("ttl")
    @classmethod
    def validate_ttl(cls, v: str) -> str:
        """Validate the cache TTL (1 second to 7 days)."""
        return _check_duration(v, 1, 7 * 86400, "Cache TTL")

    @property
    def ttl_seconds(self) -> int:
        return parse_duration(self.ttl)

    model_config = {"use_enum_values": True}


class ValidationConfig(BaseModel):
    """Quality validator settings."""

    evidence_check: bool = Field(
        True, description="Downgrade very high AI scores backed by short reasons"
    )
    diversity: bool = Field(
        True, description="Spread results across target cities and companies"
    )
    max_per_company: Optional[int] = Field(
        None, ge=1, le=100, description="Most results one company may fill (default: a third of the set)"
    )


class BatchConfig(BaseModel):
    """Batch runner and scheduler settings."""

    max_concurrent_users: int = Field(4, ge=1, le=64, description="Users matched in parallel")
    request_deadline: str = Field("30s", description="Deadline for a single user's match request")
    run_interval: str = Field("1h", description="Interval between scheduled batch runs")

    @field_validator("request_deadline")
    @classmethod
    def validate_request_deadline(cls, v: str) -> str:
        """Validate the per-request deadline (1 second to 10 minutes)."""
        return _check_duration(v, 1, 600, "Request deadline")

    @field_validator("run_interval")
    @classmethod
    def validate_run_interval(cls, v: str) -> str:
        """Validate the batch interval (5 minutes to 1 day)."""
        return _check_duration(v, 300, 86400, "Run interval")

    @property
    def request_deadline_seconds(self) -> int:
        return parse_duration(self.request_deadline)

    @property
    def run_interval_seconds(self) -> int:
        return parse_duration(self.run_interval)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AdvancedConfig(BaseModel):
    """Advanced runtime settings."""

    user_agent: str = Field(
        "JobMatchEngine/1.0",
        min_length=1,
        description="User-Agent string for provider HTTP requests",
    )

    @field_validator("user_agent")
    @classmethod
    def strip_user_agent(cls, v: str) -> str:
        """Strip whitespace from user agent."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("user_agent cannot be empty")
        return stripped


class AppConfig(BaseModel):
    """Root configuration object for the Job Match Engine."""

    tiers: TierConfig = Field(default_factory=TierConfig, description="Scoring tier order")
    limits: LimitsConfig = Field(default_factory=LimitsConfig, description="Result counts")
    ai: AIConfig = Field(default_factory=AIConfig, description="AI provider settings")
    circuit_breaker: CircuitBreakerConfig = Field(
        default_factory=CircuitBreakerConfig, description="Circuit-breaker thresholds"
    )
    budget: BudgetConfig = Field(default_factory=BudgetConfig, description="AI cost controls")
    cache: CacheConfig = Field(default_factory=CacheConfig, description="Result cache")
    validation: ValidationConfig = Field(
        default_factory=ValidationConfig, description="Quality validator settings"
    )
    batch: BatchConfig = Field(default_factory=BatchConfig, description="Batch runner settings")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    advanced: AdvancedConfig = Field(
        default_factory=AdvancedConfig, description="Advanced runtime settings"
    )

    def get_tier_order(self) -> List[str]:
        """Tier order with the AI tier removed when AI is disabled."""
        order = [str(ScorerTier(t).value) for t in self.tiers.order]
        if not self.ai.enabled:
            order = [t for t in order if t != ScorerTier.AI.value]
        return order
