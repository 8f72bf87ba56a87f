"""
Flow Engine (graph walker).

Executes an AgentFlow step by step:
1. Build the execution queue from the flow definition
2. For each step: check the time budget, evaluate the condition, dispatch
   to the executor for the step type, write the result to the context bus
3. Re-check the token budget after every executed step
4. Append router-selected branches to the tail of the queue
5. Return a FlowExecutionResult with one trace per step

Design Principles:
    - Steps run strictly one at a time; each executor is awaited before
      the next step starts
    - Step-level failures never raise: they become traces and, when
      ``abort_on_error`` is set, end the run
    - Time and token violations detected by the engine always end the run
    - ``max_steps`` bounds the work done by cyclic graphs and routers
    - A new ContextBus and ScopeEnforcer are created for every run

Usage:
    result = await execute_flow(
        flow={"steps": [...], "entryPoint": "classify"},
        scopes=AgentScopes(allowed_models=["gpt-4o-mini"]),
        trigger=TriggerData(type="message_received", content="Hi"),
        deps=ExecutorDependencies(call_llm=..., search_knowledge=...,
                                  execute_tool=..., account_id="acc-1"),
    )

    if result.success:
        print(result.output)
    else:
        print(f"Failed: {result.error}")

    for trace in result.steps:
        print(f"{trace.step_id}: {trace.status.value}")
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from flowcore.config import EngineSettings, get_settings
from flowcore.executors.base import StepResult
from flowcore.executors.registry import ExecutorRegistry, get_executor_registry
from flowcore.observability import FlowLogger, FlowMetrics, Tracer, get_metrics, get_tracer
from flowcore.schemas import AgentFlow, AgentScopes, FlowDefinition, TriggerData

from .context import ContextBus, ContextEntry
from .expressions import ExpressionError, evaluate_condition
from .queue import build_chain_from, build_execution_queue, build_step_map
from .result import (
    FlowExecutionResult,
    StepStatus,
    StepTrace,
    empty_flow_result,
    instant_trace,
)
from .scopes import ScopeEnforcer

if TYPE_CHECKING:
    from flowcore.executors.dependencies import ExecutorDependencies

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class FlowDefinitionError(Exception):
    """Raised when a flow, scopes or trigger given as a dict fails validation."""

    pass


def _now_ms() -> float:
    return time.time() * 1000


def _coerce(model_cls: type[ModelT], value: Any, what: str) -> ModelT:
    if isinstance(value, model_cls):
        return value
    try:
        return model_cls.model_validate(value)
    except ValidationError as e:
        raise FlowDefinitionError(f"Invalid {what}: {e}") from e


class FlowEngine:
    """
    Executes agent flows against a step executor registry.

    The engine holds no per-run state and can be shared between
    concurrent runs.

    Example:
        engine = FlowEngine()
        result = await engine.execute(flow, scopes, trigger, deps, flow_name="support")

        # Custom step types
        registry = ExecutorRegistry(builtin_executors())
        registry.register(MyExecutor())
        engine = FlowEngine(registry=registry)
    """

    def __init__(
        self,
        registry: ExecutorRegistry | None = None,
        settings: EngineSettings | None = None,
        *,
        metrics: FlowMetrics | None = None,
        tracer: Tracer | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the engine.

        Args:
            registry: Executor registry (default: the global registry)
            settings: Runtime settings (default: from environment)
            metrics: Metrics sink (default: the global metrics)
            tracer: Tracer (default: the global tracer)
            clock: Seconds source for the time budget
        """
        self._registry = registry if registry is not None else get_executor_registry()
        self._settings = settings or get_settings()
        self._metrics = metrics
        self._tracer = tracer
        self._clock = clock

    @property
    def registry(self) -> ExecutorRegistry:
        return self._registry

    async def execute(
        self,
        flow: AgentFlow | dict[str, Any],
        scopes: AgentScopes | dict[str, Any] | None,
        trigger: TriggerData | dict[str, Any],
        deps: ExecutorDependencies,
        *,
        agent_id: str | None = None,
        flow_name: str | None = None,
        abort_on_error: bool | None = None,
        max_steps: int | None = None,
    ) -> FlowExecutionResult:
        """
        Run a flow to completion.

        Args:
            flow: Flow definition (model or stored dict)
            scopes: Budget for the run (None uses the configured defaults)
            trigger: What started the run
            deps: Injected capabilities
            agent_id: Owning agent, exposed as ``context.agentId``
            flow_name: Name used in traces and logs
            abort_on_error: Stop at the first step error (default from settings)
            max_steps: Executed-step cap (default from settings)

        Returns:
            FlowExecutionResult with output, traces and usage

        Raises:
            FlowDefinitionError: If a dict argument fails validation
        """
        flow = _coerce(AgentFlow, flow, "flow")
        scopes = _coerce(AgentScopes, scopes, "scopes") if scopes is not None else self._settings.default_scopes
        trigger = _coerce(TriggerData, trigger, "trigger")
        if abort_on_error is None:
            abort_on_error = self._settings.abort_on_error
        max_steps = max_steps or self._settings.default_max_steps

        tracer = self._tracer or get_tracer()
        span = tracer.start_span(
            "flow.execute",
            {
                "flow.name": flow_name or "",
                "flow.agent_id": agent_id or "",
                "flow.step_count": len(flow.steps),
            },
        )

        try:
            result = await self._run(
                flow,
                scopes,
                trigger,
                deps,
                agent_id=agent_id,
                flow_name=flow_name,
                abort_on_error=abort_on_error,
                max_steps=max_steps,
            )
            span.set_attribute("flow.success", result.success)
            span.set_attribute("flow.steps", len(result.steps))
            span.set_attribute("flow.total_tokens", result.total_token_usage.total)
            span.set_status("ok" if result.success else "error", result.error)
        except asyncio.CancelledError:
            logger.info(f"[flow_engine] Execution of '{flow_name or 'flow'}' cancelled")
            span.set_status("error", "cancelled")
            raise
        finally:
            span.end()

        if self._settings.metrics_enabled:
            metrics = self._metrics or get_metrics()
            for trace in result.steps:
                metrics.record_step(trace.type, trace.status.value, trace.duration_ms)
            metrics.record_execution(
                result.success,
                result.total_duration_ms,
                result.total_token_usage.total,
            )

        return result

    async def execute_definition(
        self,
        definition: FlowDefinition,
        trigger: TriggerData | dict[str, Any],
        deps: ExecutorDependencies,
        **options: Any,
    ) -> FlowExecutionResult:
        """Run a loaded FlowDefinition with its own scopes, name and agent ID."""
        options.setdefault("agent_id", definition.agent_id)
        options.setdefault("flow_name", definition.name)
        return await self.execute(definition.flow, definition.scopes, trigger, deps, **options)

    async def _run(
        self,
        flow: AgentFlow,
        scopes: AgentScopes,
        trigger: TriggerData,
        deps: ExecutorDependencies,
        *,
        agent_id: str | None,
        flow_name: str | None,
        abort_on_error: bool,
        max_steps: int,
    ) -> FlowExecutionResult:
        engine_started = self._clock()

        def elapsed_ms() -> float:
            return (self._clock() - engine_started) * 1000

        step_map = build_step_map(flow)

        if not flow.steps:
            logger.info(f"[flow_engine] Flow '{flow_name or 'flow'}' has no steps")
            return empty_flow_result(
                duration_ms=elapsed_ms(),
                agent_id=agent_id,
                flow_name=flow_name,
            )

        bus = ContextBus(trigger, {"accountId": deps.account_id, "agentId": agent_id})
        enforcer = ScopeEnforcer(scopes, clock=self._clock)
        queue = build_execution_queue(flow, step_map)
        log = FlowLogger(
            run_id=str(uuid4()),
            flow_name=flow_name or "",
            agent_id=agent_id,
            json_format=self._settings.json_logs,
        )

        traces: list[StepTrace] = []
        last_output: Any = None
        flow_error: str | None = None
        steps_executed = 0

        log.flow_started(
            step_count=len(flow.steps),
            entry_point=flow.entry_point,
            queue=queue.pending(),
            max_steps=max_steps,
        )

        for step_id in queue:
            if steps_executed >= max_steps:
                flow_error = f"Max steps limit reached ({max_steps})"
                logger.warning(f"[flow_engine] {flow_error}")
                break

            step = step_map.get(step_id)
            if step is None:
                error = f'Step "{step_id}" not found in flow definition'
                traces.append(instant_trace(step_id, "unknown", StepStatus.ERROR, _now_ms(), error=error))
                log.step_failed(step_id, "unknown", error)
                if abort_on_error:
                    flow_error = f'Step "{step_id}" not found'
                    break
                continue

            # A branch chain may re-queue a step that has already run
            if bus.has_step(step.id):
                traces.append(
                    instant_trace(
                        step.id,
                        step.type,
                        StepStatus.SKIPPED,
                        _now_ms(),
                        meta={"reason": "already_executed"},
                    )
                )
                logger.debug(f"[flow_engine] Step '{step.id}' already executed, not re-run")
                continue

            violation = enforcer.check_time()
            if violation:
                traces.append(
                    instant_trace(
                        step.id,
                        step.type,
                        StepStatus.SCOPE_VIOLATION,
                        _now_ms(),
                        error=violation.message,
                        meta={"violationType": violation.type.value},
                    )
                )
                log.scope_violation(step.id, violation.type.value, violation.message)
                flow_error = violation.message
                break

            if step.condition:
                diagnostics: list[ExpressionError] = []
                if not evaluate_condition(step.condition, bus.to_resolution_context(), diagnostics):
                    meta: dict[str, Any] = {"condition": step.condition, "result": False}
                    if diagnostics:
                        meta["diagnostics"] = [str(d) for d in diagnostics]
                    traces.append(
                        instant_trace(step.id, step.type, StepStatus.SKIPPED, _now_ms(), meta=meta)
                    )
                    log.step_skipped(step.id, step.condition)
                    continue

            executor = self._registry.get(step.type)
            if executor is None:
                error = f'No executor registered for type "{step.type}"'
                traces.append(instant_trace(step.id, step.type, StepStatus.ERROR, _now_ms(), error=error))
                log.step_failed(step.id, step.type, error)
                if abort_on_error:
                    flow_error = error
                    break
                continue

            step_started = _now_ms()
            try:
                result = await executor.execute(step, bus, enforcer, deps)
            except Exception as e:
                logger.error(f"[flow_engine] Executor for step '{step.id}' raised: {e}", exc_info=True)
                result = StepResult(output=None, error=str(e) or "Executor threw an exception")
            step_completed = _now_ms()

            bus.write(
                ContextEntry(
                    step_id=step.id,
                    type=step.type,
                    output=result.output,
                    started_at=step_started,
                    completed_at=step_completed,
                    token_usage=result.token_usage,
                    error=result.error,
                )
            )

            trace = StepTrace(
                step_id=step.id,
                type=step.type,
                status=StepStatus.ERROR if result.error else StepStatus.COMPLETED,
                started_at=step_started,
                completed_at=step_completed,
                output=result.output,
                error=result.error,
                token_usage=result.token_usage,
                meta=result.meta,
            )
            traces.append(trace)

            if result.error:
                log.step_failed(step.id, step.type, result.error)
            else:
                last_output = result.output
                log.step_completed(
                    step.id,
                    step.type,
                    trace.duration_ms,
                    result.token_usage.total if result.token_usage else 0,
                )

            steps_executed += 1

            violation = enforcer.post_step_check(bus)
            if violation:
                traces.append(
                    instant_trace(
                        step.id,
                        step.type,
                        StepStatus.SCOPE_VIOLATION,
                        _now_ms(),
                        error=violation.message,
                        meta={"violationType": violation.type.value},
                    )
                )
                log.scope_violation(step.id, violation.type.value, violation.message)
                flow_error = violation.message
                break

            if step.type == "router" and result.next_branch and result.next_branch in step_map:
                branch = [
                    branch_id
                    for branch_id in build_chain_from(result.next_branch, flow, step_map)
                    if branch_id in step_map and not bus.has_step(branch_id)
                ]
                queue.extend_tail(branch)
                log.routing_decision(step.id, result.next_branch, branch)

            if result.error and abort_on_error:
                flow_error = result.error
                break

        total_usage = bus.total_token_usage()
        duration_ms = elapsed_ms()
        log.flow_completed(
            success=flow_error is None,
            duration_ms=duration_ms,
            steps_executed=steps_executed,
            total_tokens=total_usage.total,
            error=flow_error,
        )

        return FlowExecutionResult(
            success=flow_error is None,
            output=last_output,
            steps=tuple(traces),
            total_token_usage=total_usage,
            total_duration_ms=duration_ms,
            error=flow_error,
            context_snapshot=bus.snapshot(),
            agent_id=agent_id,
            flow_name=flow_name,
        )


async def execute_flow(
    flow: AgentFlow | dict[str, Any],
    scopes: AgentScopes | dict[str, Any] | None,
    trigger: TriggerData | dict[str, Any],
    deps: ExecutorDependencies,
    *,
    agent_id: str | None = None,
    flow_name: str | None = None,
    abort_on_error: bool | None = None,
    max_steps: int | None = None,
    registry: ExecutorRegistry | None = None,
) -> FlowExecutionResult:
    """
    Run a flow with a default FlowEngine.

    See FlowEngine.execute for the arguments.
    """
    engine = FlowEngine(registry=registry)
    return await engine.execute(
        flow,
        scopes,
        trigger,
        deps,
        agent_id=agent_id,
        flow_name=flow_name,
        abort_on_error=abort_on_error,
        max_steps=max_steps,
    )
