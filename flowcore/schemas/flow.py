"""
Flow Definition Schema.

JSON-serializable schema for agent flows as they are stored by the
external agent registry and loaded for a single execution.

Design Principle:
    A flow is a plain graph description. It contains everything the engine
    needs to walk the steps, and nothing about how the steps are executed.
    Step configs are opaque per-type maps interpreted by the executor that
    owns the step type.

Wire format:
    Stored definitions use camelCase keys (``entryPoint``). Models accept
    both camelCase and snake_case and dump to camelCase with
    ``model_dump(by_alias=True)``.

Usage:
    flow = AgentFlow.model_validate({
        "entryPoint": "classify",
        "steps": [
            {
                "id": "classify",
                "type": "llm",
                "config": {"model": "gpt-4o-mini", "responseFormat": "json"},
                "inputs": {"message": "{{ trigger.content }}"},
                "next": "route",
            },
            {
                "id": "route",
                "type": "router",
                "config": {
                    "routes": [
                        {"condition": "{{ classify.intent == 'complaint' }}", "target": "escalate"},
                    ],
                    "defaultTarget": "reply",
                },
            },
        ],
    })
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from .scopes import AgentScopes

# Step types known to the stored-definition schema. Executors may register
# further types at startup; "human-in-loop" has no built-in executor.
KNOWN_STEP_TYPES: tuple[str, ...] = (
    "llm",
    "rag",
    "deterministic",
    "tool",
    "router",
    "human-in-loop",
    "transform",
)


class AgentFlowStep(BaseModel):
    """
    One node in an agent flow.

    Attributes:
        id: Unique step identifier within the flow (kebab-case allowed)
        type: Executor key (llm, rag, deterministic, tool, router, transform)
        config: Opaque per-type configuration
        inputs: Input name -> template string resolved against the context bus
        condition: Optional template; the step is skipped when it is false
        next: Static graph edge(s). A string continues a linear chain, a list
            fans out one level. Mapping-form edges are carried for routers
            but do not affect queue construction.
    """

    id: str = Field(..., min_length=1, description="Step ID, unique within the flow")
    type: str = Field(..., min_length=1, description="Executor type key")
    config: dict[str, Any] = Field(default_factory=dict, description="Per-type config")
    inputs: dict[str, str] | None = Field(default=None, description="Input templates")
    condition: str | None = Field(default=None, description="Condition template")
    next: str | list[str] | dict[str, str] | None = Field(
        default=None,
        description="Next step ID(s)",
    )

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "allow"

    @field_validator("config", mode="before")
    @classmethod
    def _config_default(cls, value: Any) -> Any:
        return {} if value is None else value


class AgentFlow(BaseModel):
    """
    A directed graph of steps executed once per trigger.

    Read-only to the engine for the duration of an execution.
    """

    steps: list[AgentFlowStep] = Field(default_factory=list, description="Flow steps")
    entry_point: str | None = Field(default=None, description="Entry step ID")

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def get_step(self, step_id: str) -> AgentFlowStep | None:
        """Get a step by ID (last definition wins on duplicates)."""
        found = None
        for step in self.steps:
            if step.id == step_id:
                found = step
        return found

    def step_ids(self) -> list[str]:
        """Step IDs in array order."""
        return [step.id for step in self.steps]

    def index_of(self, step_id: str) -> int:
        """Array position of the first step with this ID, or -1."""
        for idx, step in enumerate(self.steps):
            if step.id == step_id:
                return idx
        return -1


class FlowDefinition(BaseModel):
    """
    A named flow together with the scopes it runs under.

    This is the record shape returned by flow loaders.
    """

    name: str = Field(..., description="Flow name")
    description: str = Field(default="", description="Human-readable description")
    agent_id: str | None = Field(default=None, description="Owning agent ID")
    flow: AgentFlow = Field(default_factory=AgentFlow, description="Flow graph")
    scopes: AgentScopes = Field(default_factory=AgentScopes, description="Run budget")

    class Config:
        alias_generator = to_camel
        populate_by_name = True
