"""Configuration for the chart generation engine.

This module provides configuration settings for the generation backend
calls made by the chart generation gateway.

Environment Variables:
    ANTHROPIC_MODEL: Claude model used for chart, insight and agent
        generation. Defaults to "claude-sonnet-4-20250514".
    EPESI_GENERATION_TIMEOUT: Seconds before a generation call is
        abandoned and treated as a backend failure. Defaults to 45.
    EPESI_MAX_TOKENS: Response token ceiling. Defaults to 4096.
    EPESI_TEMPERATURE: Sampling temperature. Defaults to 0.3.
"""

import logging
import os

logger = logging.getLogger(__name__)

# Default model - can be overridden via ANTHROPIC_MODEL env var
DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_TIMEOUT_SECONDS = 45.0
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.3

# Bounds applied to EPESI_GENERATION_TIMEOUT
_MIN_TIMEOUT_SECONDS = 5.0
_MAX_TIMEOUT_SECONDS = 120.0


def get_model() -> str:
    """Get the Claude model to use for chart generation.

    Returns:
        Claude model identifier string.

    Example:
        >>> import os
        >>> os.environ["ANTHROPIC_MODEL"] = "claude-haiku-4-5-20251001"
        >>> get_model()
        'claude-haiku-4-5-20251001'
    """
    return os.environ.get("ANTHROPIC_MODEL", DEFAULT_MODEL)


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


def get_generation_timeout() -> float:
    """Get the per-call generation timeout in seconds, clamped to [5, 120]."""
    timeout = _float_env("EPESI_GENERATION_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
    return min(max(timeout, _MIN_TIMEOUT_SECONDS), _MAX_TIMEOUT_SECONDS)


def get_max_tokens() -> int:
    """Get the response token ceiling for generation calls."""
    return int(_float_env("EPESI_MAX_TOKENS", DEFAULT_MAX_TOKENS))


def get_temperature() -> float:
    """Get the sampling temperature for generation calls."""
    return _float_env("EPESI_TEMPERATURE", DEFAULT_TEMPERATURE)
