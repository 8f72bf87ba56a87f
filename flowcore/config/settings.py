"""
Settings access.

Settings are read from the environment once and cached:

    FLOWCORE_DEFAULT_MAX_STEPS          (default 50)
    FLOWCORE_ABORT_ON_ERROR             (default "true")
    FLOWCORE_DEFAULT_LLM_MODEL          (default "llama-3.1-8b-instant")
    FLOWCORE_DEFAULT_MAX_TOTAL_TOKENS   (default 5000, 0 = unlimited)
    FLOWCORE_DEFAULT_MAX_EXECUTION_MS   (default 30000, 0 = unlimited)
    FLOWCORE_LOG_LEVEL                  (default "INFO")
    FLOWCORE_JSON_LOGS                  (default "false")
    FLOWCORE_METRICS_ENABLED            (default "true")

Tests that change the environment call ``reset_settings()``.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from flowcore.schemas import AgentScopes
from flowcore.schemas.scopes import DEFAULT_MAX_EXECUTION_TIME_MS, DEFAULT_MAX_TOTAL_TOKENS

from .schemas import EngineSettings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@lru_cache()
def get_settings() -> EngineSettings:
    """
    Get runtime settings from environment.

    Uses lru_cache for singleton pattern.
    """
    return EngineSettings(
        # Engine
        default_max_steps=int(os.getenv("FLOWCORE_DEFAULT_MAX_STEPS", "50")),
        abort_on_error=_env_bool("FLOWCORE_ABORT_ON_ERROR", "true"),
        # Executors
        default_llm_model=os.getenv("FLOWCORE_DEFAULT_LLM_MODEL", "llama-3.1-8b-instant"),
        # Budgets
        default_scopes=AgentScopes(
            max_total_tokens=int(
                os.getenv("FLOWCORE_DEFAULT_MAX_TOTAL_TOKENS", str(DEFAULT_MAX_TOTAL_TOKENS))
            ),
            max_execution_time_ms=int(
                os.getenv("FLOWCORE_DEFAULT_MAX_EXECUTION_MS", str(DEFAULT_MAX_EXECUTION_TIME_MS))
            ),
        ),
        # Observability
        log_level=os.getenv("FLOWCORE_LOG_LEVEL", "INFO"),
        json_logs=_env_bool("FLOWCORE_JSON_LOGS", "false"),
        metrics_enabled=_env_bool("FLOWCORE_METRICS_ENABLED", "true"),
    )


def reset_settings() -> None:
    """Drop cached settings (for testing)."""
    get_settings.cache_clear()


def configure_logging(settings: EngineSettings | None = None) -> None:
    """
    Configure stdlib logging for an application embedding the runtime.

    With ``json_logs`` enabled, records are emitted as bare messages so the
    JSON produced by ``flowcore.observability.JSONLogger`` stays parseable.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(message)s" if settings.json_logs else LOG_FORMAT,
        force=True,
    )
    logger.debug(f"[config] Logging configured at {settings.log_level}")
