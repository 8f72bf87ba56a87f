"""
Step Executor abstraction.

Every step type is handled by one AgentExecutor. The engine looks the
executor up by ``step.type`` in the executor registry and awaits it.

Contract:
    execute(step, bus, enforcer, deps) -> StepResult

Design Principles:
    - Executors only read the bus; the engine writes their result
    - Failures are returned in ``StepResult.error``, not raised
    - Scope checks that depend on step config (model, tool) are run by the
      executor through ``enforcer.pre_step_check``
    - Exceptions that do escape are caught by the engine and turned into
      a step error

Subclasses must implement:
    - type: Step type key, e.g. "llm"
    - execute(): The step logic
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from flowcore.runtime.context import TokenUsage
from flowcore.runtime.expressions import resolve_template, to_plain

if TYPE_CHECKING:
    from flowcore.runtime.context import ContextBus
    from flowcore.runtime.scopes import ScopeEnforcer
    from flowcore.schemas import AgentFlowStep

    from .dependencies import ExecutorDependencies

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StepResult:
    """
    What an executor hands back to the engine.

    Attributes:
        output: Value written to the bus under the step ID
        token_usage: Tokens spent by the step, if any
        error: Failure message; the step is traced as an error when set
        next_branch: Router steps only, the step ID to continue with
        meta: Extra details copied into the step trace
    """

    output: Any = None
    token_usage: TokenUsage | None = None
    error: str | None = None
    next_branch: str | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def failure(cls, error: str, output: Any = None) -> StepResult:
        return cls(output=output, error=error)


class AgentExecutor(ABC):
    """
    Base class for step executors.

    Example:
        class EchoExecutor(AgentExecutor):
            type = "echo"

            async def execute(self, step, bus, enforcer, deps) -> StepResult:
                return StepResult(output=resolve_inputs(step.inputs, bus))
    """

    type: str = ""

    @abstractmethod
    async def execute(
        self,
        step: AgentFlowStep,
        bus: ContextBus,
        enforcer: ScopeEnforcer,
        deps: ExecutorDependencies,
    ) -> StepResult:
        """
        Run one step.

        Args:
            step: Step definition
            bus: Context bus with the outputs of earlier steps
            enforcer: Scope enforcer for this run
            deps: Injected capabilities

        Returns:
            StepResult with output, usage and optional error
        """
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} type={self.type!r}>"


# =============================================================================
# Helpers shared by executors
# =============================================================================


def resolve_inputs(inputs: dict[str, str] | None, bus: ContextBus) -> dict[str, Any]:
    """Resolve each input template against the bus."""
    if not inputs:
        return {}
    ctx = bus.to_resolution_context()
    return {key: resolve_template(template, ctx) for key, template in inputs.items()}


def format_inputs(inputs: dict[str, Any]) -> str:
    """Render resolved inputs as ``key: value`` lines for a user message."""
    lines = []
    for key, value in inputs.items():
        if isinstance(value, str):
            text = value
        else:
            text = json.dumps(to_plain(value), separators=(",", ":"), ensure_ascii=False, default=str)
        lines.append(f"{key}: {text}")
    return "\n".join(lines)


def config_number(config: dict[str, Any], key: str, default: float) -> Any:
    """Numeric config value, or ``default`` when missing or not a number."""
    value = config.get(key)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return default


def error_message(exc: BaseException, fallback: str) -> str:
    """Exception text, or ``fallback`` when the exception has none."""
    return str(exc) or fallback
