"""
Context Bus for flow execution.

Shared state between the steps of one flow run. The bus is immutable and
append-only: each step writes its output exactly once, keyed by step ID,
and later steps read it back through template expressions.

The bus also carries the trigger that started the run and global metadata
(account ID, agent ID). Both are frozen at construction.

Resolution namespace:
    {
        "trigger": {...},            # camelCase trigger fields
        "context": {...},            # global metadata
        "<step-id>": <step output>,  # one key per written step
    }

A new bus is created for every execution and discarded when it returns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from flowcore.schemas import TriggerData

logger = logging.getLogger(__name__)


class ContextWriteError(Exception):
    """Raised when a step ID is written to the bus a second time."""

    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(
            f'[ContextBus] Step "{step_id}" already has an entry. Context is append-only.'
        )


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """Token counts reported for a step or accumulated for a run."""

    prompt: int = 0
    completion: int = 0
    total: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            prompt=self.prompt + other.prompt,
            completion=self.completion + other.completion,
            total=self.total + other.total,
        )

    def to_dict(self) -> dict[str, int]:
        return {"prompt": self.prompt, "completion": self.completion, "total": self.total}


@dataclass(frozen=True, slots=True)
class ContextEntry:
    """
    One step's record on the bus.

    Timestamps are epoch milliseconds.
    """

    step_id: str
    type: str
    output: Any
    started_at: float
    completed_at: float
    token_usage: TokenUsage | None = None
    error: str | None = None

    @property
    def duration_ms(self) -> float:
        return self.completed_at - self.started_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "stepId": self.step_id,
            "type": self.type,
            "output": self.output,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "tokenUsage": self.token_usage.to_dict() if self.token_usage else None,
            "error": self.error,
        }


class ContextBus:
    """
    Append-only ledger of step outputs for one flow run.

    Example:
        bus = ContextBus(TriggerData.manual("hi"), {"accountId": "acc-1"})
        bus.write(ContextEntry(step_id="greet", type="transform", output="hello",
                               started_at=0, completed_at=1))

        bus.get_output("greet")          # "hello"
        bus.to_resolution_context()      # {"trigger": {...}, "context": {...}, "greet": "hello"}
    """

    def __init__(
        self,
        trigger: TriggerData,
        global_meta: Mapping[str, Any] | None = None,
    ):
        self._trigger = trigger
        self._trigger_view: Mapping[str, Any] = MappingProxyType(trigger.to_context_dict())
        self._global_meta: Mapping[str, Any] = MappingProxyType(dict(global_meta or {}))
        self._entries: dict[str, ContextEntry] = {}

    def write(self, entry: ContextEntry) -> None:
        """
        Write a step's output.

        Raises:
            ContextWriteError: If the step already has an entry
        """
        if entry.step_id in self._entries:
            raise ContextWriteError(entry.step_id)
        self._entries[entry.step_id] = entry
        logger.debug(f"[context_bus] Wrote entry for step '{entry.step_id}'")

    def read(self, step_id: str) -> ContextEntry | None:
        """Get a step's entry, or None if it has not run."""
        return self._entries.get(step_id)

    def get_output(self, step_id: str) -> Any:
        """Get a step's output, or None if it has not run."""
        entry = self._entries.get(step_id)
        return entry.output if entry else None

    def get_trigger(self) -> TriggerData:
        return self._trigger

    def get_global_meta(self) -> Mapping[str, Any]:
        return self._global_meta

    def has_step(self, step_id: str) -> bool:
        return step_id in self._entries

    def completed_steps(self) -> list[str]:
        """Step IDs in the order they were written."""
        return list(self._entries)

    def total_token_usage(self) -> TokenUsage:
        """Token usage accumulated across all entries."""
        usage = TokenUsage()
        for entry in self._entries.values():
            if entry.token_usage:
                usage = usage + entry.token_usage
        return usage

    def total_elapsed_ms(self) -> float:
        """Sum of individual step durations."""
        return sum(entry.duration_ms for entry in self._entries.values())

    def to_resolution_context(self) -> dict[str, Any]:
        """Build the namespace expressions are resolved against."""
        ctx: dict[str, Any] = {
            "trigger": self._trigger_view,
            "context": self._global_meta,
        }
        for step_id, entry in self._entries.items():
            ctx[step_id] = entry.output
        return ctx

    def snapshot(self) -> dict[str, Any]:
        """Plain-dict copy of the bus state for traces and debugging."""
        return {
            "trigger": dict(self._trigger_view),
            "globalMeta": dict(self._global_meta),
            "entries": [entry.to_dict() for entry in self._entries.values()],
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<ContextBus steps={self.completed_steps()}>"
