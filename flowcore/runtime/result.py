"""
Flow Execution Result.

This module defines the trace and result structures returned by the
flow engine. Every step the engine looks at produces exactly one
StepTrace, so a run can be diagnosed from the trace alone.

Usage:
    result = await execute_flow(flow, scopes, trigger, deps)

    if result.success:
        print(result.output)
    else:
        print(f"Failed: {result.error}")

    # Audit: inspect every step
    for trace in result.steps:
        print(f"{trace.step_id}: {trace.status.value}")
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .context import TokenUsage


class StepStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    ERROR = "error"
    SCOPE_VIOLATION = "scope_violation"


@dataclass(frozen=True, slots=True)
class StepTrace:
    """
    Execution record for one step.

    Timestamps are epoch milliseconds. ``meta`` carries executor-specific
    details (model used, routing decision, skip condition).
    """

    step_id: str
    type: str
    status: StepStatus
    started_at: float
    completed_at: float
    output: Any = None
    error: str | None = None
    token_usage: TokenUsage | None = None
    meta: dict[str, Any] | None = None

    @property
    def duration_ms(self) -> float:
        return self.completed_at - self.started_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "stepId": self.step_id,
            "type": self.type,
            "status": self.status.value,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "durationMs": self.duration_ms,
            "output": self.output,
            "error": self.error,
            "tokenUsage": self.token_usage.to_dict() if self.token_usage else None,
            "meta": self.meta,
        }


@dataclass(frozen=True, slots=True)
class FlowExecutionResult:
    """
    Result of one flow run.

    Contains:
    - success: False whenever the run stopped with an error
    - output: Output of the last step that completed without error
    - steps: One trace per step, in execution order
    - total_token_usage: Usage summed over every step written to the bus
    - context_snapshot: Final bus state (absent for empty flows)

    Example:
        result = await execute_flow(flow, scopes, trigger, deps)

        if not result.success:
            failed = [t for t in result.steps if t.status is not StepStatus.COMPLETED]
            print(result.error, failed)
    """

    success: bool
    output: Any = None
    steps: tuple[StepTrace, ...] = ()
    total_token_usage: TokenUsage = TokenUsage()
    total_duration_ms: float = 0.0
    error: str | None = None
    context_snapshot: dict[str, Any] | None = None
    agent_id: str | None = None
    flow_name: str | None = None

    @property
    def completed_steps(self) -> list[str]:
        """IDs of steps that completed without error."""
        return [t.step_id for t in self.steps if t.status is StepStatus.COMPLETED]

    def get_step(self, step_id: str) -> StepTrace | None:
        """First trace recorded for a step ID, if any."""
        for trace in self.steps:
            if trace.step_id == step_id:
                return trace
        return None

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to dictionary for serialization.

        Keys are camelCase to match the stored definition format.
        """
        return {
            "success": self.success,
            "agentId": self.agent_id,
            "flowName": self.flow_name,
            "output": self.output,
            "steps": [t.to_dict() for t in self.steps],
            "totalTokenUsage": self.total_token_usage.to_dict(),
            "totalDurationMs": self.total_duration_ms,
            "error": self.error,
            "contextSnapshot": self.context_snapshot,
        }


# =============================================================================
# Factory Functions
# =============================================================================


def instant_trace(
    step_id: str,
    step_type: str,
    status: StepStatus,
    at: float,
    *,
    error: str | None = None,
    meta: dict[str, Any] | None = None,
) -> StepTrace:
    """
    Create a zero-duration trace.

    Used for steps that never reach an executor: missing steps, skipped
    conditions, missing executors and time violations.
    """
    return StepTrace(
        step_id=step_id,
        type=step_type,
        status=status,
        started_at=at,
        completed_at=at,
        error=error,
        meta=meta,
    )


def empty_flow_result(
    *,
    duration_ms: float = 0.0,
    agent_id: str | None = None,
    flow_name: str | None = None,
) -> FlowExecutionResult:
    """
    Create the result for a flow with no steps.

    Returns:
        FlowExecutionResult with success=True, no output and no traces
    """
    return FlowExecutionResult(
        success=True,
        output=None,
        steps=(),
        total_token_usage=TokenUsage(),
        total_duration_ms=duration_ms,
        agent_id=agent_id,
        flow_name=flow_name,
    )
