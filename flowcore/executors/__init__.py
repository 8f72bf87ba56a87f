"""
Step Executors.

One executor per step type:
- llm: Model call with templated prompt and inputs
- rag: Knowledge search
- deterministic: First-match rule evaluation
- tool: Named tool call
- router: Branch selection by condition or by model
- transform: Data reshaping

Executors receive the capabilities they call out to through
ExecutorDependencies.
"""

from .base import AgentExecutor, StepResult, format_inputs, resolve_inputs
from .dependencies import (
    ExecutorDependencies,
    KnowledgeChunk,
    KnowledgeSearchResult,
    LLMCompletion,
    ToolExecution,
)
from .deterministic import DeterministicExecutor
from .llm import LLMExecutor
from .rag import RAGExecutor
from .registry import (
    ExecutorRegistry,
    ExecutorRegistryError,
    builtin_executors,
    get_executor,
    get_executor_registry,
    register_executor,
    reset_executor_registry,
)
from .router import RouterExecutor
from .tool import ToolExecutor
from .transform import TransformExecutor

__all__ = [
    # Contract
    "AgentExecutor",
    "StepResult",
    "resolve_inputs",
    "format_inputs",
    # Dependencies
    "ExecutorDependencies",
    "LLMCompletion",
    "KnowledgeChunk",
    "KnowledgeSearchResult",
    "ToolExecution",
    # Executors
    "LLMExecutor",
    "RAGExecutor",
    "DeterministicExecutor",
    "ToolExecutor",
    "RouterExecutor",
    "TransformExecutor",
    # Registry
    "ExecutorRegistry",
    "ExecutorRegistryError",
    "builtin_executors",
    "get_executor",
    "get_executor_registry",
    "register_executor",
    "reset_executor_registry",
]
