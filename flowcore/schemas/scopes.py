"""
Agent Scope Schema.

The resource and permission budget a single flow run may not exceed.
Captured once when the ScopeEnforcer is constructed and immutable for
the run.

Semantics:
    - allowed_models / allowed_tools: empty list = allow all
    - max_total_tokens / max_execution_time_ms: 0 (or less) = unlimited
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

DEFAULT_MAX_TOTAL_TOKENS = 5000
DEFAULT_MAX_EXECUTION_TIME_MS = 30000


class AgentScopes(BaseModel):
    """
    Per-run budget: model/tool whitelists, token ceiling, time ceiling.

    Defaults match the defaults of stored agent definitions.
    """

    allowed_models: list[str] = Field(default_factory=list, description="Model whitelist")
    max_total_tokens: int = Field(default=DEFAULT_MAX_TOTAL_TOKENS, description="Token ceiling")
    max_execution_time_ms: int = Field(
        default=DEFAULT_MAX_EXECUTION_TIME_MS,
        description="Wall-clock ceiling in milliseconds",
    )
    allowed_tools: list[str] = Field(default_factory=list, description="Tool whitelist")
    can_create_sub_agents: bool = Field(default=False, description="Sub-agent permission")

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True

    @classmethod
    def unlimited(cls) -> AgentScopes:
        """Scopes with no whitelist and no budget."""
        return cls(
            allowed_models=[],
            max_total_tokens=0,
            max_execution_time_ms=0,
            allowed_tools=[],
            can_create_sub_agents=True,
        )
