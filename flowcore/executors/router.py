"""
Router step executor.

Decides which branch of the flow runs next. The engine appends the chain
starting at ``next_branch`` to the tail of the execution queue.

Routing modes:

    condition (default)
        routes: [{"condition": "{{ ... }}", "target": "step-id"}, ...]
        defaultTarget: "step-id"

        The first route whose condition holds wins. With no match the
        default target is used and the result is flagged as a fallback.

    llm
        branches: [{"id": "step-id", "description": "..."}, ...]
        model, temperature (default 0.1)

        A model picks one branch ID from the list. Quotes are stripped
        from the reply; a reply that names no known branch is used as-is.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from flowcore.config import get_settings
from flowcore.runtime.expressions import evaluate_condition

from .base import (
    AgentExecutor,
    StepResult,
    config_number,
    error_message,
    format_inputs,
    resolve_inputs,
)

if TYPE_CHECKING:
    from flowcore.runtime.context import ContextBus
    from flowcore.runtime.scopes import ScopeEnforcer
    from flowcore.schemas import AgentFlowStep

    from .dependencies import ExecutorDependencies

logger = logging.getLogger(__name__)

ROUTER_TEMPERATURE = 0.1
ROUTER_MAX_TOKENS = 50

ROUTER_PROMPT = (
    "You are a router. Based on the input, select exactly one branch from the list below.\n"
    "Respond with ONLY the branch ID, nothing else.\n"
    "\n"
    "Available branches:\n"
    "{branches}"
)


def build_router_prompt(branches: list[dict[str, Any]]) -> str:
    """System prompt listing each branch as ``- "id": description``."""
    lines = [
        f'- "{branch.get("id")}": {branch.get("description") or branch.get("id")}'
        for branch in branches
    ]
    return ROUTER_PROMPT.format(branches="\n".join(lines))


class RouterExecutor(AgentExecutor):
    type = "router"

    async def execute(
        self,
        step: AgentFlowStep,
        bus: ContextBus,
        enforcer: ScopeEnforcer,
        deps: ExecutorDependencies,
    ) -> StepResult:
        if step.config.get("routingMode", "condition") == "llm":
            return await self._route_by_llm(step, bus, enforcer, deps)
        return self._route_by_condition(step, bus)

    def _route_by_condition(self, step: AgentFlowStep, bus: ContextBus) -> StepResult:
        cfg = step.config
        routes: list[dict[str, Any]] = cfg.get("routes") or []
        default_target = cfg.get("defaultTarget") or None

        ctx = bus.to_resolution_context()
        for route in routes:
            if evaluate_condition(route.get("condition") or "", ctx):
                target = route.get("target")
                logger.debug(f"[router_executor] Step '{step.id}' matched route -> {target}")
                return StepResult(
                    output={"selectedRoute": target, "matchedCondition": route.get("condition")},
                    next_branch=target,
                    meta={"routingMode": "condition", "selectedRoute": target},
                )

        logger.debug(f"[router_executor] Step '{step.id}' no route matched, default -> {default_target}")
        return StepResult(
            output={"selectedRoute": default_target, "matchedCondition": None},
            next_branch=default_target,
            meta={"routingMode": "condition", "selectedRoute": default_target, "fallback": True},
        )

    async def _route_by_llm(
        self,
        step: AgentFlowStep,
        bus: ContextBus,
        enforcer: ScopeEnforcer,
        deps: ExecutorDependencies,
    ) -> StepResult:
        cfg = step.config
        model = cfg.get("model") or get_settings().default_llm_model
        branches: list[dict[str, Any]] = cfg.get("branches") or []
        temperature = config_number(cfg, "temperature", ROUTER_TEMPERATURE)

        violation = enforcer.pre_step_check(bus, model=model)
        if violation:
            return StepResult.failure(violation.message)

        inputs = resolve_inputs(step.inputs, bus)

        try:
            completion = await deps.call_llm(
                model=model,
                system_prompt=build_router_prompt(branches),
                messages=[{"role": "user", "content": format_inputs(inputs)}],
                temperature=temperature,
                max_tokens=ROUTER_MAX_TOKENS,
                provider_order=deps.provider_order,
            )
        except Exception as e:
            logger.warning(f"[router_executor] Step '{step.id}' model call failed: {e}")
            return StepResult.failure(error_message(e, "Router LLM call failed"))

        selected = completion.content.strip().replace('"', "").replace("'", "")
        known = {branch.get("id") for branch in branches}
        if selected not in known:
            logger.info(f"[router_executor] Step '{step.id}' model chose unknown branch '{selected}'")

        return StepResult(
            output={"selectedRoute": selected, "raw": completion.content},
            next_branch=selected or None,
            token_usage=completion.usage,
            meta={"routingMode": "llm", "model": model, "selectedRoute": selected},
        )
