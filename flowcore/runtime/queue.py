"""
Execution queue construction.

The engine walks an explicit work-list of step IDs. The initial list is
built from the flow definition; router steps append branch chains at the
tail while the run is in progress.

Queue rules:
    - entry point set and present: follow ``next`` pointers from it
    - no entry point: every step in array order, ``next`` ignored
    - string ``next`` continues the chain
    - list ``next`` appends its targets and stops following (one level)
    - no ``next`` continues with the following step in array order
    - a visited set breaks cycles
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from flowcore.schemas import AgentFlow, AgentFlowStep


class ExecutionQueue:
    """
    Append-only work-list of step IDs with a read cursor.

    Items are consumed in insertion order. Items appended while iterating
    are visited after everything that was already queued.

    Example:
        queue = ExecutionQueue(["a", "b"])
        for step_id in queue:
            if step_id == "a":
                queue.enqueue("c")
        # visits a, b, c
    """

    def __init__(self, step_ids: Iterable[str] = ()):
        self._items: list[str] = list(step_ids)
        self._position = 0

    def enqueue(self, step_id: str) -> None:
        """Add a step ID at the tail."""
        self._items.append(step_id)

    def extend_tail(self, step_ids: Iterable[str]) -> None:
        """Add several step IDs at the tail, keeping their order."""
        self._items.extend(step_ids)

    def pending(self) -> list[str]:
        """Step IDs not yet consumed."""
        return self._items[self._position :]

    def __iter__(self) -> Iterator[str]:
        while self._position < len(self._items):
            step_id = self._items[self._position]
            self._position += 1
            yield step_id

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"<ExecutionQueue pending={self.pending()}>"


def build_step_map(flow: AgentFlow) -> dict[str, AgentFlowStep]:
    """Map step IDs to steps. On duplicate IDs the last definition wins."""
    return {step.id: step for step in flow.steps}


def build_chain_from(
    start_id: str,
    flow: AgentFlow,
    step_map: Mapping[str, AgentFlowStep],
) -> list[str]:
    """
    Follow ``next`` pointers from ``start_id``.

    The chain may end with an ID that is not in ``step_map``; the engine
    reports it when it gets there.
    """
    chain: list[str] = []
    visited: set[str] = set()
    current: str | None = start_id

    while current and current not in visited:
        visited.add(current)
        chain.append(current)

        step = step_map.get(current)
        if step is None:
            break

        if isinstance(step.next, str):
            current = step.next
        elif isinstance(step.next, list) and step.next:
            for next_id in step.next:
                if next_id not in visited:
                    chain.append(next_id)
                    visited.add(next_id)
            break
        else:
            idx = flow.index_of(current)
            if 0 <= idx < len(flow.steps) - 1:
                current = flow.steps[idx + 1].id
            else:
                break

    return chain


def build_execution_queue(
    flow: AgentFlow,
    step_map: Mapping[str, AgentFlowStep],
) -> ExecutionQueue:
    """Build the initial queue for a run."""
    if flow.entry_point and flow.entry_point in step_map:
        return ExecutionQueue(build_chain_from(flow.entry_point, flow, step_map))
    return ExecutionQueue(step.id for step in flow.steps)
