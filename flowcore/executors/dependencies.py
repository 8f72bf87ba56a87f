"""
Executor Dependencies.

The runtime never talks to a model provider, a vector store or a tool
backend directly. The caller injects three async capabilities and the
executors call them with keyword arguments:

    call_llm(*, model, system_prompt, messages, temperature=None,
             max_tokens=None, response_format=None, provider_order=None)
        -> LLMCompletion

    search_knowledge(*, query, vector_store_ids, top_k=None,
                     min_score=None, account_id)
        -> KnowledgeSearchResult

    execute_tool(*, tool_name, input, account_id)
        -> ToolExecution

Capabilities may raise. Executors convert exceptions into step errors.

Usage:
    deps = ExecutorDependencies(
        call_llm=llm_capability(provider),
        search_knowledge=my_search,
        execute_tool=tool_capability(tools),
        account_id="acc-123",
    )
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from flowcore.runtime.context import TokenUsage

# =============================================================================
# Capability payloads
# =============================================================================


@dataclass(frozen=True, slots=True)
class LLMCompletion:
    """Text returned by a model call and what it cost."""

    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass(frozen=True, slots=True)
class KnowledgeChunk:
    content: str
    score: float
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "score": self.score, "source": self.source}


@dataclass(frozen=True, slots=True)
class KnowledgeSearchResult:
    chunks: tuple[KnowledgeChunk, ...] = ()
    total_tokens: int = 0


@dataclass(frozen=True, slots=True)
class ToolExecution:
    """
    Outcome of a tool call.

    A non-empty ``error`` marks the call as failed; ``output`` is kept
    either way.
    """

    output: Any = None
    error: str | None = None


# =============================================================================
# Capability signatures
# =============================================================================


class CallLLM(Protocol):
    def __call__(
        self,
        *,
        model: str,
        system_prompt: str,
        messages: list[dict[str, str]],
        temperature: float | None = None,
        max_tokens: int | None = None,
        response_format: str | None = None,
        provider_order: Sequence[Any] | None = None,
    ) -> Awaitable[LLMCompletion]: ...


class SearchKnowledge(Protocol):
    def __call__(
        self,
        *,
        query: str,
        vector_store_ids: list[str],
        top_k: int | None = None,
        min_score: float | None = None,
        account_id: str,
    ) -> Awaitable[KnowledgeSearchResult]: ...


class ExecuteTool(Protocol):
    def __call__(
        self,
        *,
        tool_name: str,
        input: dict[str, Any],
        account_id: str,
    ) -> Awaitable[ToolExecution]: ...


@dataclass
class ExecutorDependencies:
    """
    Everything executors need from the outside world for one run.

    Attributes:
        call_llm: Model completion capability
        search_knowledge: Vector search capability
        execute_tool: Named tool capability
        account_id: Account the run is executed for
        provider_order: Opaque provider preference passed to call_llm
    """

    call_llm: CallLLM | Callable[..., Awaitable[LLMCompletion]]
    search_knowledge: SearchKnowledge | Callable[..., Awaitable[KnowledgeSearchResult]]
    execute_tool: ExecuteTool | Callable[..., Awaitable[ToolExecution]]
    account_id: str
    provider_order: Sequence[Any] | None = None
