"""
Observability for flow execution.

Provides structured logging, metrics, and tracing support for
monitoring and debugging flow runs.

Design Philosophy:
- Structured logging through stdlib logging (JSON or key=value text)
- Process-wide metrics with a cheap in-memory default
- OpenTelemetry-compatible tracer interface, no-op unless replaced
- Minimal overhead when not enabled

The engine writes its lifecycle events through FlowLogger only, in the
format chosen by the json_logs setting. It records each run in the global
FlowMetrics and wraps each run in a span from the global tracer.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


# =============================================================================
# Log Levels
# =============================================================================


class LogLevel(Enum):
    """Standard log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# =============================================================================
# Structured Logger Protocol
# =============================================================================


class StructuredLogger(Protocol):
    """
    Protocol for structured logging implementations.

    Structured loggers emit logs as key-value pairs rather than
    plain strings, enabling better searchability and analysis.
    """

    def debug(self, message: str, **context: Any) -> None: ...

    def info(self, message: str, **context: Any) -> None: ...

    def warning(self, message: str, **context: Any) -> None: ...

    def error(self, message: str, **context: Any) -> None: ...


# =============================================================================
# JSON Logger Implementation
# =============================================================================


@dataclass
class JSONLogger:
    """
    Structured logger that outputs JSON-formatted log messages.

    Each log entry includes:
    - timestamp (ISO 8601)
    - level
    - message
    - context fields
    - optional run_id for correlation

    Example output:
        {"timestamp": "2026-01-02T10:30:00+00:00", "level": "info",
         "message": "Flow started", "run_id": "abc-123", "step_count": 3}
    """

    name: str = "flowcore"
    run_id: str | None = None
    extra_context: dict[str, Any] = field(default_factory=dict)
    _python_logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._python_logger = logging.getLogger(self.name)

    def _log(self, level: LogLevel, message: str, context: dict[str, Any]) -> None:
        log_method = getattr(self._python_logger, level.value)
        if not self._python_logger.isEnabledFor(getattr(logging, level.name)):
            return

        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.value,
            "message": message,
            **self.extra_context,
            **context,
        }
        if self.run_id:
            record["run_id"] = self.run_id

        log_method(json.dumps(record, default=str))

    def debug(self, message: str, **context: Any) -> None:
        self._log(LogLevel.DEBUG, message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, context)

    def error(self, message: str, **context: Any) -> None:
        self._log(LogLevel.ERROR, message, context)

    def with_context(self, **extra: Any) -> JSONLogger:
        """Create a new logger with additional context."""
        return JSONLogger(
            name=self.name,
            run_id=self.run_id,
            extra_context={**self.extra_context, **extra},
        )


# =============================================================================
# Text Logger Implementation
# =============================================================================


@dataclass
class TextLogger:
    """
    Plain-text counterpart of JSONLogger.

    Context fields are appended to the message as key=value pairs:
        [flow] Flow started run_id=abc-123 step_count=3
    """

    name: str = "flowcore"
    run_id: str | None = None
    extra_context: dict[str, Any] = field(default_factory=dict)
    _python_logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._python_logger = logging.getLogger(self.name)

    def _log(self, level: LogLevel, message: str, context: dict[str, Any]) -> None:
        if not self._python_logger.isEnabledFor(getattr(logging, level.name)):
            return

        fields: dict[str, Any] = {}
        if self.run_id:
            fields["run_id"] = self.run_id
        fields.update(self.extra_context)
        fields.update(context)
        pairs = " ".join(f"{key}={value}" for key, value in fields.items())
        getattr(self._python_logger, level.value)(f"[flow] {message} {pairs}".rstrip())

    def debug(self, message: str, **context: Any) -> None:
        self._log(LogLevel.DEBUG, message, context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, context)

    def error(self, message: str, **context: Any) -> None:
        self._log(LogLevel.ERROR, message, context)


# =============================================================================
# Flow Logger
# =============================================================================


@dataclass
class FlowLogger:
    """
    Specialized logger for flow execution.

    Provides convenience methods for the events of a run:
    - Flow start/end
    - Step completion, skip and failure
    - Scope violations
    - Routing decisions

    Example:
        log = FlowLogger(run_id="abc-123", flow_name="support")
        log.flow_started(step_count=3, entry_point="classify")
        log.step_completed(step_id="classify", step_type="llm", duration_ms=812.4)
        log.flow_completed(success=True, duration_ms=1500.0, steps_executed=3)

    With ``json_format=False`` the same events are written as key=value text.
    """

    run_id: str
    flow_name: str = ""
    agent_id: str | None = None
    json_format: bool = True
    inner: StructuredLogger = field(default_factory=JSONLogger)

    def __post_init__(self) -> None:
        if isinstance(self.inner, JSONLogger):
            extra: dict[str, Any] = {}
            if self.flow_name:
                extra["flow"] = self.flow_name
            if self.agent_id:
                extra["agent_id"] = self.agent_id
            backend = JSONLogger if self.json_format else TextLogger
            self.inner = backend(name="flowcore.flow", run_id=self.run_id, extra_context=extra)

    # Flow lifecycle
    def flow_started(
        self,
        step_count: int,
        entry_point: str | None,
        queue: list[str],
        max_steps: int | None = None,
    ) -> None:
        self.inner.info(
            "Flow started",
            step_count=step_count,
            entry_point=entry_point,
            queue=queue,
            max_steps=max_steps,
        )

    def flow_completed(
        self,
        success: bool,
        duration_ms: float,
        steps_executed: int,
        total_tokens: int,
        error: str | None = None,
    ) -> None:
        if success:
            self.inner.info(
                "Flow completed",
                success=True,
                duration_ms=round(duration_ms, 2),
                steps_executed=steps_executed,
                total_tokens=total_tokens,
            )
        else:
            self.inner.error(
                "Flow failed",
                success=False,
                duration_ms=round(duration_ms, 2),
                steps_executed=steps_executed,
                total_tokens=total_tokens,
                error=error,
            )

    # Step lifecycle
    def step_completed(
        self,
        step_id: str,
        step_type: str,
        duration_ms: float,
        tokens: int = 0,
    ) -> None:
        self.inner.debug(
            "Step completed",
            step_id=step_id,
            step_type=step_type,
            duration_ms=round(duration_ms, 2),
            tokens=tokens,
        )

    def step_skipped(self, step_id: str, condition: str) -> None:
        self.inner.debug("Step skipped", step_id=step_id, condition=condition)

    def step_failed(self, step_id: str, step_type: str, error: str) -> None:
        self.inner.warning("Step failed", step_id=step_id, step_type=step_type, error=error)

    def scope_violation(self, step_id: str, violation_type: str, message: str) -> None:
        self.inner.warning(
            "Scope violation",
            step_id=step_id,
            violation_type=violation_type,
            error=message,
        )

    # Routing
    def routing_decision(self, router_id: str, selected_branch: str, appended: list[str]) -> None:
        self.inner.debug(
            "Routing decision",
            router=router_id,
            selected_branch=selected_branch,
            appended=appended,
        )


# =============================================================================
# Metrics
# =============================================================================


@dataclass
class FlowMetrics:
    """
    Flow execution metrics.

    Tracks:
    - Execution counts
    - Step outcomes by status
    - Token spend
    - Duration histograms, overall and per step type

    Can be exported to Prometheus, StatsD, or other systems.
    """

    # Counters
    executions_total: int = 0
    executions_success: int = 0
    executions_failed: int = 0
    steps_by_status: dict[str, int] = field(default_factory=dict)
    scope_violations: int = 0
    tokens_total: int = 0

    # Histograms (simplified as lists)
    execution_durations_ms: list[float] = field(default_factory=list)
    step_durations_ms: dict[str, list[float]] = field(default_factory=dict)

    max_histogram_entries: int = 1000

    def record_execution(self, success: bool, duration_ms: float, tokens: int = 0) -> None:
        """Record a flow run."""
        self.executions_total += 1
        if success:
            self.executions_success += 1
        else:
            self.executions_failed += 1
        self.tokens_total += tokens

        self.execution_durations_ms.append(duration_ms)
        self._trim_histogram(self.execution_durations_ms)

    def record_step(self, step_type: str, status: str, duration_ms: float) -> None:
        """Record one step trace."""
        self.steps_by_status[status] = self.steps_by_status.get(status, 0) + 1
        if status == "scope_violation":
            self.scope_violations += 1

        durations = self.step_durations_ms.setdefault(step_type, [])
        durations.append(duration_ms)
        self._trim_histogram(durations)

    def _trim_histogram(self, histogram: list[float]) -> None:
        if len(histogram) > self.max_histogram_entries:
            del histogram[: len(histogram) - self.max_histogram_entries]

    def get_stats(self) -> dict[str, Any]:
        """Get summary statistics."""

        def percentile(data: list[float], p: float) -> float | None:
            if not data:
                return None
            sorted_data = sorted(data)
            k = (len(sorted_data) - 1) * p
            f = int(k)
            c = f + 1 if f + 1 < len(sorted_data) else f
            return sorted_data[f] + (k - f) * (sorted_data[c] - sorted_data[f])

        return {
            "executions": {
                "total": self.executions_total,
                "success": self.executions_success,
                "failed": self.executions_failed,
                "success_rate": (
                    self.executions_success / self.executions_total
                    if self.executions_total > 0
                    else None
                ),
            },
            "duration_ms": {
                "p50": percentile(self.execution_durations_ms, 0.5),
                "p95": percentile(self.execution_durations_ms, 0.95),
                "p99": percentile(self.execution_durations_ms, 0.99),
            },
            "steps": dict(self.steps_by_status),
            "step_duration_p50_ms": {
                step_type: percentile(values, 0.5)
                for step_type, values in self.step_durations_ms.items()
            },
            "scope_violations": self.scope_violations,
            "tokens_total": self.tokens_total,
        }

    def reset(self) -> None:
        """Reset all metrics."""
        self.executions_total = 0
        self.executions_success = 0
        self.executions_failed = 0
        self.steps_by_status.clear()
        self.scope_violations = 0
        self.tokens_total = 0
        self.execution_durations_ms.clear()
        self.step_durations_ms.clear()


# Global metrics instance (can be replaced with actual metrics backend)
_global_metrics = FlowMetrics()


def get_metrics() -> FlowMetrics:
    """Get the global metrics instance."""
    return _global_metrics


def reset_metrics() -> None:
    """Reset global metrics (useful for testing)."""
    _global_metrics.reset()


# =============================================================================
# Span/Trace Support (OpenTelemetry-compatible interface)
# =============================================================================


class Span(Protocol):
    """Protocol for trace spans (OpenTelemetry-compatible)."""

    def set_attribute(self, key: str, value: Any) -> None: ...

    def set_status(self, status: str, description: str | None = None) -> None: ...

    def record_exception(self, exception: BaseException) -> None: ...

    def end(self) -> None: ...


@dataclass
class NoOpSpan:
    """No-op span implementation when tracing is disabled."""

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_status(self, status: str, description: str | None = None) -> None:
        pass

    def record_exception(self, exception: BaseException) -> None:
        pass

    def end(self) -> None:
        pass


class Tracer(Protocol):
    """Protocol for trace creation (OpenTelemetry-compatible)."""

    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Span: ...


@dataclass
class NoOpTracer:
    """No-op tracer implementation when tracing is disabled."""

    def start_span(self, name: str, attributes: dict[str, Any] | None = None) -> Span:
        return NoOpSpan()


# Global tracer (can be replaced with OpenTelemetry tracer)
_global_tracer: Tracer = NoOpTracer()


def get_tracer() -> Tracer:
    """Get the global tracer."""
    return _global_tracer


def set_tracer(tracer: Tracer) -> None:
    """Set the global tracer (for OpenTelemetry integration)."""
    global _global_tracer
    _global_tracer = tracer


__all__ = [
    # Logging
    "LogLevel",
    "StructuredLogger",
    "JSONLogger",
    "TextLogger",
    "FlowLogger",
    # Metrics
    "FlowMetrics",
    "get_metrics",
    "reset_metrics",
    # Tracing
    "Span",
    "Tracer",
    "NoOpSpan",
    "NoOpTracer",
    "get_tracer",
    "set_tracer",
]
