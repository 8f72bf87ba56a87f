"""
Deterministic step executor.

Rules-based if/then: evaluates an ordered list of checks and returns the
action of the first rule that holds.

Config:
    checks: [{"rule": "{{ ... }}", "action": "...", "value": ...}, ...]

Rules are evaluated against the bus namespace merged with the step's
resolved inputs (inputs win on key collisions). When nothing matches the
action is "pass" with no value. No scope checks apply.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flowcore.runtime.expressions import evaluate_condition

from .base import AgentExecutor, StepResult, resolve_inputs

if TYPE_CHECKING:
    from flowcore.runtime.context import ContextBus
    from flowcore.runtime.scopes import ScopeEnforcer
    from flowcore.schemas import AgentFlowStep

    from .dependencies import ExecutorDependencies

DEFAULT_ACTION = "pass"


class DeterministicExecutor(AgentExecutor):
    type = "deterministic"

    async def execute(
        self,
        step: AgentFlowStep,
        bus: ContextBus,
        enforcer: ScopeEnforcer,
        deps: ExecutorDependencies,
    ) -> StepResult:
        checks: list[dict[str, Any]] = step.config.get("checks") or []

        eval_ctx = {**bus.to_resolution_context(), **resolve_inputs(step.inputs, bus)}

        evaluations: list[dict[str, Any]] = []
        action = DEFAULT_ACTION
        value: Any = None

        for check in checks:
            rule = check.get("rule") or ""
            matched = evaluate_condition(rule, eval_ctx)
            evaluations.append({"rule": rule, "matched": matched, "action": check.get("action")})
            if matched:
                action = check.get("action")
                value = check.get("value")
                break

        return StepResult(
            output={"action": action, "value": value, "evaluations": evaluations},
            meta={"checksCount": len(checks), "matchedAction": action},
        )
