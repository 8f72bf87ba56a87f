"""
Configuration Schemas for flowcore.

Pydantic models for runtime settings. Values come from ``FLOWCORE_*``
environment variables (see ``flowcore.config.settings``).
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from flowcore.schemas import AgentScopes

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class EngineSettings(BaseModel):
    """
    Runtime settings model.

    Used for type-safe settings access by the engine and executors.
    """

    # Engine
    default_max_steps: int = Field(default=50, ge=1, description="Step cap when a run sets none")
    abort_on_error: bool = Field(default=True, description="Stop a run at the first step error")

    # Executors
    default_llm_model: str = Field(
        default="llama-3.1-8b-instant",
        description="Model used by llm and router steps that name none",
    )

    # Budgets applied when the caller passes no scopes
    default_scopes: AgentScopes = Field(default_factory=AgentScopes)

    # Observability
    log_level: LogLevel = "INFO"
    json_logs: bool = False
    metrics_enabled: bool = True

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value
