"""
Tool step executor.

Runs one named tool through the injected ``execute_tool`` capability.

Config:
    tool / toolName   Tool to run (required)
    params            Static arguments; string values are templates

The tool input is the resolved params overlaid with the resolved step
inputs, so inputs win on key collisions. A tool that reports an error
fails the step but its output is still written to the bus.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from flowcore.runtime.expressions import resolve_template

from .base import AgentExecutor, StepResult, error_message, resolve_inputs

if TYPE_CHECKING:
    from flowcore.runtime.context import ContextBus
    from flowcore.runtime.scopes import ScopeEnforcer
    from flowcore.schemas import AgentFlowStep

    from .dependencies import ExecutorDependencies

logger = logging.getLogger(__name__)


class ToolExecutor(AgentExecutor):
    type = "tool"

    async def execute(
        self,
        step: AgentFlowStep,
        bus: ContextBus,
        enforcer: ScopeEnforcer,
        deps: ExecutorDependencies,
    ) -> StepResult:
        cfg = step.config
        tool_name = cfg.get("tool") or cfg.get("toolName") or ""
        if not tool_name:
            return StepResult.failure("No tool name specified in step config")

        violation = enforcer.pre_step_check(bus, tools=[tool_name])
        if violation:
            return StepResult.failure(violation.message)

        inputs = resolve_inputs(step.inputs, bus)
        ctx = bus.to_resolution_context()
        params: dict[str, Any] = {
            key: resolve_template(value, ctx) if isinstance(value, str) else value
            for key, value in (cfg.get("params") or {}).items()
        }

        try:
            result = await deps.execute_tool(
                tool_name=tool_name,
                input={**params, **inputs},
                account_id=deps.account_id,
            )
        except Exception as e:
            logger.warning(f"[tool_executor] Tool '{tool_name}' raised: {e}")
            return StepResult.failure(error_message(e, f'Tool "{tool_name}" execution failed'))

        if result.error:
            logger.info(f"[tool_executor] Tool '{tool_name}' reported error: {result.error}")
            return StepResult(output=result.output, error=result.error)

        return StepResult(output=result.output, meta={"tool": tool_name})
