"""
Scope Enforcer for flow execution.

Validates that each step of a run stays within the AgentScopes budget:

    - Allowed models (whitelist, empty = allow all)
    - Allowed tools (whitelist, empty = allow all)
    - Max total tokens across all steps (0 = unlimited)
    - Max execution time (0 = unlimited)
    - Sub-agent creation permission

Enforcement is cooperative. Time is checked at step boundaries only and
token usage is checked after a step has reported it, because cost is not
known before the call. Checks return a ScopeViolation or None; they never
raise. The engine decides what a violation means for the run.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from flowcore.schemas import AgentScopes

    from .context import ContextBus

logger = logging.getLogger(__name__)


class ViolationType(str, Enum):
    MODEL_NOT_ALLOWED = "model_not_allowed"
    TOKEN_LIMIT_EXCEEDED = "token_limit_exceeded"
    TIME_LIMIT_EXCEEDED = "time_limit_exceeded"
    TOOL_NOT_ALLOWED = "tool_not_allowed"
    SUB_AGENT_DENIED = "sub_agent_denied"


@dataclass(frozen=True, slots=True)
class ScopeViolation:
    """A step (or run) that went outside its scope."""

    type: ViolationType
    message: str
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "message": self.message, "detail": dict(self.detail)}


def _format_list(values: Iterable[str]) -> str:
    return "[" + ", ".join(values) + "]"


class ScopeEnforcer:
    """
    Per-run budget checks.

    Created fresh for every execution; the start time is captured at
    construction.

    Example:
        enforcer = ScopeEnforcer(AgentScopes(allowed_models=["m1"]))

        enforcer.check_model("m1")   # None
        enforcer.check_model("m2")   # ScopeViolation(type=MODEL_NOT_ALLOWED, ...)
    """

    def __init__(
        self,
        scopes: AgentScopes,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            scopes: Budget for this run
            clock: Seconds source, injectable for tests
        """
        self._scopes = scopes
        self._clock = clock
        self._started_at = clock()

    @property
    def scopes(self) -> AgentScopes:
        return self._scopes

    # =========================================================================
    # Individual checks
    # =========================================================================

    def check_model(self, model: str) -> ScopeViolation | None:
        """Check a model against the whitelist."""
        allowed = self._scopes.allowed_models
        if not allowed or model in allowed:
            return None
        return ScopeViolation(
            type=ViolationType.MODEL_NOT_ALLOWED,
            message=f'Model "{model}" is not in the allowed list: {_format_list(allowed)}',
            detail={"model": model, "allowed": list(allowed)},
        )

    def check_tool(self, tool_name: str) -> ScopeViolation | None:
        """Check a tool against the whitelist."""
        allowed = self._scopes.allowed_tools
        if not allowed or tool_name in allowed:
            return None
        return ScopeViolation(
            type=ViolationType.TOOL_NOT_ALLOWED,
            message=f'Tool "{tool_name}" is not in the allowed list: {_format_list(allowed)}',
            detail={"tool": tool_name, "allowed": list(allowed)},
        )

    def check_time(self) -> ScopeViolation | None:
        """Check elapsed wall-clock time against the limit."""
        limit = self._scopes.max_execution_time_ms
        if limit <= 0:
            return None
        elapsed = self.get_elapsed_ms()
        if elapsed <= limit:
            return None
        return ScopeViolation(
            type=ViolationType.TIME_LIMIT_EXCEEDED,
            message=f"Execution time exceeded: {elapsed}ms > {limit}ms",
            detail={"elapsed": elapsed, "limit": limit},
        )

    def check_tokens(self, bus: ContextBus, additional: int) -> ScopeViolation | None:
        """Check whether spending ``additional`` tokens would exceed the limit."""
        limit = self._scopes.max_total_tokens
        if limit <= 0:
            return None
        current = bus.total_token_usage().total
        projected = current + additional
        if projected <= limit:
            return None
        return ScopeViolation(
            type=ViolationType.TOKEN_LIMIT_EXCEEDED,
            message=(
                f"Token limit exceeded: {projected} > {limit} "
                f"(current: {current}, additional: {additional})"
            ),
            detail={
                "current": current,
                "additional": additional,
                "projected": projected,
                "limit": limit,
            },
        )

    def check_sub_agent(self) -> ScopeViolation | None:
        if self._scopes.can_create_sub_agents:
            return None
        return ScopeViolation(
            type=ViolationType.SUB_AGENT_DENIED,
            message="This agent scope does not allow creating sub-agents.",
        )

    # =========================================================================
    # Step boundaries
    # =========================================================================

    def pre_step_check(
        self,
        bus: ContextBus,
        model: str | None = None,
        tools: Iterable[str] | None = None,
    ) -> ScopeViolation | None:
        """
        Run the checks that apply before a step calls out.

        Order: time, then model, then each tool. Stops at the first
        violation. Tokens are not pre-checked.
        """
        violation = self.check_time()
        if violation:
            return self._report(violation)

        if model:
            violation = self.check_model(model)
            if violation:
                return self._report(violation)

        for tool_name in tools or ():
            violation = self.check_tool(tool_name)
            if violation:
                return self._report(violation)

        return None

    def post_step_check(self, bus: ContextBus) -> ScopeViolation | None:
        """Re-check cumulative token usage once a step has reported it."""
        limit = self._scopes.max_total_tokens
        total = bus.total_token_usage().total
        if limit > 0 and total > limit:
            return self._report(
                ScopeViolation(
                    type=ViolationType.TOKEN_LIMIT_EXCEEDED,
                    message=f"Token limit exceeded after step: {total} > {limit}",
                    detail={"current": total, "limit": limit},
                )
            )
        return None

    # =========================================================================
    # Remaining budget
    # =========================================================================

    def get_elapsed_ms(self) -> int:
        return int((self._clock() - self._started_at) * 1000)

    def get_remaining_time_ms(self) -> float:
        """Milliseconds left, ``math.inf`` when unlimited."""
        limit = self._scopes.max_execution_time_ms
        if limit <= 0:
            return math.inf
        return max(0, limit - self.get_elapsed_ms())

    def get_remaining_tokens(self, bus: ContextBus) -> float:
        """Tokens left, ``math.inf`` when unlimited."""
        limit = self._scopes.max_total_tokens
        if limit <= 0:
            return math.inf
        return max(0, limit - bus.total_token_usage().total)

    def _report(self, violation: ScopeViolation) -> ScopeViolation:
        logger.warning(f"[scope_enforcer] {violation.type.value}: {violation.message}")
        return violation
