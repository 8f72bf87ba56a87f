"""
Agent Flow Runtime.

The runtime walks an AgentFlow one step at a time:

- expressions: the ``{{ ... }}`` template and condition language
- context: the append-only ContextBus shared by the steps of a run
- scopes: the ScopeEnforcer that keeps a run inside its budget
- queue: execution queue construction
- engine: FlowEngine and execute_flow
- loaders: file and in-memory flow definition sources

Usage:
    from flowcore.runtime import execute_flow

    result = await execute_flow(flow, scopes, trigger, deps)
"""

# Order matters: executors import context, expressions and scopes while
# the engine module is being imported.
from .context import ContextBus, ContextEntry, ContextWriteError, TokenUsage
from .expressions import (
    EvaluationResult,
    ExpressionError,
    evaluate_condition,
    evaluate_expression,
    resolve_template,
    tokenize,
    try_evaluate,
)
from .scopes import ScopeEnforcer, ScopeViolation, ViolationType
from .result import FlowExecutionResult, StepStatus, StepTrace
from .queue import ExecutionQueue, build_chain_from, build_execution_queue, build_step_map
from .engine import FlowDefinitionError, FlowEngine, execute_flow
from .loaders import FileFlowLoader, FlowLoader, FlowLoaderError, MemoryFlowLoader

__all__ = [
    # Context
    "ContextBus",
    "ContextEntry",
    "ContextWriteError",
    "TokenUsage",
    # Expressions
    "EvaluationResult",
    "ExpressionError",
    "evaluate_condition",
    "evaluate_expression",
    "resolve_template",
    "tokenize",
    "try_evaluate",
    # Scopes
    "ScopeEnforcer",
    "ScopeViolation",
    "ViolationType",
    # Results
    "FlowExecutionResult",
    "StepStatus",
    "StepTrace",
    # Queue
    "ExecutionQueue",
    "build_chain_from",
    "build_execution_queue",
    "build_step_map",
    # Engine
    "FlowDefinitionError",
    "FlowEngine",
    "execute_flow",
    # Loaders
    "FileFlowLoader",
    "FlowLoader",
    "FlowLoaderError",
    "MemoryFlowLoader",
]
