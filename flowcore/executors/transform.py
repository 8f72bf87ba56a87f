"""
Transform step executor.

Reshapes data without calling out.

Operations:
    passthrough (default)  The single input value when there is exactly
                           one input, otherwise all inputs as a dict
    extract                The input named by ``field`` (default "value")
    merge                  All inputs as a dict
    format                 ``template`` resolved against the bus namespace
                           merged with the inputs
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flowcore.runtime.expressions import resolve_template

from .base import AgentExecutor, StepResult, error_message, resolve_inputs

if TYPE_CHECKING:
    from flowcore.runtime.context import ContextBus
    from flowcore.runtime.scopes import ScopeEnforcer
    from flowcore.schemas import AgentFlowStep

    from .dependencies import ExecutorDependencies


class TransformExecutor(AgentExecutor):
    type = "transform"

    async def execute(
        self,
        step: AgentFlowStep,
        bus: ContextBus,
        enforcer: ScopeEnforcer,
        deps: ExecutorDependencies,
    ) -> StepResult:
        cfg = step.config
        operation = cfg.get("operation") or "passthrough"
        inputs = resolve_inputs(step.inputs, bus)

        try:
            output = self._apply(operation, cfg, inputs, bus)
        except Exception as e:
            return StepResult.failure(error_message(e, "Transform failed"))

        return StepResult(output=output, meta={"operation": operation})

    def _apply(
        self,
        operation: str,
        cfg: dict[str, Any],
        inputs: dict[str, Any],
        bus: ContextBus,
    ) -> Any:
        if operation == "extract":
            return inputs.get(cfg.get("field") or "value")

        if operation == "merge":
            return dict(inputs)

        if operation == "format":
            ctx = {**bus.to_resolution_context(), **inputs}
            return resolve_template(cfg.get("template") or "", ctx)

        # passthrough, and any unknown operation
        if len(inputs) == 1:
            return next(iter(inputs.values()))
        return inputs
