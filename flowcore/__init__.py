"""
flowcore - An agent flow runtime.

flowcore executes agent flows: directed graphs of typed steps that share
an append-only context bus and run inside a per-run budget. Features:

- **Flow Engine**: Walks the step graph, with conditions and router branches
- **Expression Language**: ``{{ step.field == 'x' }}`` templates and conditions
- **Scope Enforcement**: Model and tool whitelists, token and time budgets
- **Pluggable Executors**: llm, rag, deterministic, tool, router, transform
- **Injected Capabilities**: Model calls, knowledge search and tools are
  supplied by the caller

Quick Start:
    >>> from flowcore import AgentScopes, ExecutorDependencies, TriggerData, execute_flow
    >>>
    >>> flow = {
    ...     "steps": [
    ...         {"id": "echo", "type": "transform",
    ...          "config": {"operation": "passthrough"},
    ...          "inputs": {"v": "{{ trigger.content }}"}},
    ...     ],
    ... }
    >>> result = await execute_flow(flow, AgentScopes(), TriggerData.manual("hi"), deps)
    >>> result.output
    'hi'
"""

__version__ = "0.1.0"

# Runtime first: executors are imported while the engine module loads
from flowcore.runtime import (
    ContextBus,
    FlowEngine,
    FlowExecutionResult,
    ScopeEnforcer,
    StepStatus,
    StepTrace,
    execute_flow,
)
from flowcore.executors import (
    AgentExecutor,
    ExecutorDependencies,
    StepResult,
    get_executor_registry,
    register_executor,
)
from flowcore.schemas import AgentFlow, AgentFlowStep, AgentScopes, FlowDefinition, TriggerData

__all__ = [
    "__version__",
    # Definitions
    "AgentFlow",
    "AgentFlowStep",
    "AgentScopes",
    "FlowDefinition",
    "TriggerData",
    # Runtime
    "ContextBus",
    "FlowEngine",
    "FlowExecutionResult",
    "ScopeEnforcer",
    "StepStatus",
    "StepTrace",
    "execute_flow",
    # Executors
    "AgentExecutor",
    "ExecutorDependencies",
    "StepResult",
    "get_executor_registry",
    "register_executor",
]
