"""
Static checks for flow definitions.

Pure, side-effect-free functions that look for authoring mistakes before
a flow is run. The engine never calls these: an invalid flow still runs
and records its problems in the step trace. Use ``validate_flow`` when a
definition is saved or loaded to surface problems early.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from .flow import AgentFlow


@dataclass(frozen=True, slots=True)
class FlowIssue:
    """A single problem found in a flow definition."""

    code: str
    message: str
    step_id: str | None = None

    def __str__(self) -> str:
        where = f"[{self.step_id}] " if self.step_id else ""
        return f"{where}{self.code}: {self.message}"


def validate_flow(
    flow: AgentFlow,
    known_types: Iterable[str] | None = None,
) -> list[FlowIssue]:
    """
    Check a flow for structural problems.

    Args:
        flow: Flow to check
        known_types: Step types that have an executor. Defaults to the
            types in the process-wide executor registry.

    Returns:
        List of issues, empty when the flow looks valid
    """
    if known_types is None:
        from flowcore.executors.registry import get_executor_registry

        known_types = get_executor_registry().types()
    types = set(known_types)

    issues: list[FlowIssue] = []
    ids = {step.id for step in flow.steps}

    for step_id, count in Counter(step.id for step in flow.steps).items():
        if count > 1:
            issues.append(
                FlowIssue("duplicate_step", f"Step ID used {count} times", step_id)
            )

    if flow.entry_point and flow.entry_point not in ids:
        issues.append(
            FlowIssue("unknown_entry_point", f'Entry point "{flow.entry_point}" does not exist')
        )

    for step in flow.steps:
        if step.type not in types:
            issues.append(
                FlowIssue("unknown_type", f'No executor registered for type "{step.type}"', step.id)
            )

        for target in _edge_targets(step.next):
            if target not in ids:
                issues.append(
                    FlowIssue("unknown_next", f'Next step "{target}" does not exist', step.id)
                )

        if step.type == "router":
            for target in _router_targets(step.config):
                if target not in ids:
                    issues.append(
                        FlowIssue("unknown_branch", f'Branch target "{target}" does not exist', step.id)
                    )

    return issues


def _edge_targets(next_value: str | list[str] | dict[str, str] | None) -> list[str]:
    if next_value is None:
        return []
    if isinstance(next_value, str):
        return [next_value]
    if isinstance(next_value, dict):
        return list(next_value.values())
    return list(next_value)


def _router_targets(config: dict) -> list[str]:
    targets: list[str] = []
    if config.get("routingMode", "condition") == "llm":
        for branch in config.get("branches") or []:
            if isinstance(branch, dict) and branch.get("id"):
                targets.append(branch["id"])
    else:
        for route in config.get("routes") or []:
            if isinstance(route, dict) and route.get("target"):
                targets.append(route["target"])
        if config.get("defaultTarget"):
            targets.append(config["defaultTarget"])
    return targets
