"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration


def _seconds_or_none(value: Any):
    if not isinstance(value, str):
        return None
    try:
        return parse_duration(value)
    except DurationParseError:
        return None


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for settings that are valid but probably unintended.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    tiers = config_dict.get("tiers", {})
    order = tiers.get("order", []) if isinstance(tiers, dict) else []
    ai = config_dict.get("ai", {})
    ai = ai if isinstance(ai, dict) else {}

    if "ai" in order and ai.get("enabled") is False:
        warning_messages.append("The ai tier is listed in tiers.order but ai.enabled is false; it will be skipped")

    if isinstance(order, list) and order == ["rule_based"]:
        warning_messages.append("Only the rule_based tier is configured; AI and semantic scoring are off")

    # AI calls are cut short by the request deadline when it is the smaller bound
    batch = config_dict.get("batch", {})
    batch = batch if isinstance(batch, dict) else {}
    ai_timeout = _seconds_or_none(ai.get("timeout", "20s"))
    deadline = _seconds_or_none(batch.get("request_deadline", "30s"))
    if ai_timeout and deadline and ai_timeout >= deadline:
        warning_messages.append(
            f"ai.timeout ({ai.get('timeout', '20s')}) is not shorter than batch.request_deadline "
            f"({batch.get('request_deadline', '30s')}); slow AI calls will consume the whole deadline"
        )

    budget = config_dict.get("budget", {})
    if isinstance(budget, dict):
        if budget.get("per_user_daily_calls") == 0 or budget.get("daily_cost_limit_usd") == 0:
            warning_messages.append("AI budget is zero; every request will fall back to cheaper tiers")

    cache = config_dict.get("cache", {})
    if isinstance(cache, dict):
        ttl = _seconds_or_none(cache.get("ttl", "30m"))
        if ttl and ttl > 86400:
            warning_messages.append(
                f"Long cache.ttl ({cache.get('ttl')}) may serve matches from an outdated candidate pool"
            )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
