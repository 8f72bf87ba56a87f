"""
LLM step executor.

Calls a language model with a templated system prompt and the step's
resolved inputs as the user message.

Config:
    model           Model ID (default from settings)
    systemPrompt    Template resolved against the bus
    temperature     Default 0.7
    maxTokens       Default 256
    responseFormat  "json" or "text" (default "text")
    outputSchema    When set, the response is parsed as JSON as well

JSON parsing is best-effort: the whole response, or a response that is a
single fenced block, is parsed. Anything else (including JSON wrapped in
prose) is kept as text and the step still completes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flowcore.config import get_settings
from flowcore.runtime.expressions import resolve_template, stringify
from flowcore.utils.json_parser import try_parse_json

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

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 256


class LLMExecutor(AgentExecutor):
    """Single model call per step."""

    type = "llm"

    async def execute(
        self,
        step: AgentFlowStep,
        bus: ContextBus,
        enforcer: ScopeEnforcer,
        deps: ExecutorDependencies,
    ) -> StepResult:
        cfg = step.config
        model = cfg.get("model") or get_settings().default_llm_model
        system_prompt = cfg.get("systemPrompt") or ""
        temperature = config_number(cfg, "temperature", DEFAULT_TEMPERATURE)
        max_tokens = config_number(cfg, "maxTokens", DEFAULT_MAX_TOKENS)
        response_format = "json" if cfg.get("responseFormat") == "json" else "text"

        violation = enforcer.pre_step_check(bus, model=model)
        if violation:
            return StepResult.failure(violation.message)

        inputs = resolve_inputs(step.inputs, bus)
        user_message = format_inputs(inputs)
        resolved_prompt = resolve_template(system_prompt, bus.to_resolution_context())

        try:
            completion = await deps.call_llm(
                model=model,
                system_prompt=stringify(resolved_prompt),
                messages=[{"role": "user", "content": user_message}],
                temperature=temperature,
                max_tokens=max_tokens,
                response_format=response_format,
                provider_order=deps.provider_order,
            )
        except Exception as e:
            logger.warning(f"[llm_executor] Step '{step.id}' model call failed: {e}")
            return StepResult.failure(error_message(e, "LLM call failed"))

        output = completion.content
        if response_format == "json" or cfg.get("outputSchema"):
            parsed, value = try_parse_json(output, lenient=False)
            if parsed:
                output = value
            else:
                logger.debug(f"[llm_executor] Step '{step.id}' returned non-JSON content")

        return StepResult(
            output=output,
            token_usage=completion.usage,
            meta={
                "model": model,
                "temperature": temperature,
                "maxTokens": max_tokens,
                "responseFormat": response_format,
            },
        )
