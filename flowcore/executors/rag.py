"""
RAG step executor.

Searches the configured vector stores and joins the matching chunks into
a context string for later steps.

Config:
    vectorStoreIds  Stores to search
    topK            Default 5
    minScore        Default 0.3

The query is taken from the first truthy of ``inputs.query``,
``inputs.user_message`` and the trigger content. Without a query the step
returns an empty result together with an error.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from flowcore.runtime.context import TokenUsage
from flowcore.runtime.expressions import is_truthy, stringify

from .base import AgentExecutor, StepResult, config_number, error_message, resolve_inputs

if TYPE_CHECKING:
    from flowcore.runtime.context import ContextBus
    from flowcore.runtime.scopes import ScopeEnforcer
    from flowcore.schemas import AgentFlowStep

    from .dependencies import ExecutorDependencies

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
DEFAULT_MIN_SCORE = 0.3


def _empty_output() -> dict[str, Any]:
    return {"chunks": [], "context": ""}


class RAGExecutor(AgentExecutor):
    """Knowledge search per step."""

    type = "rag"

    async def execute(
        self,
        step: AgentFlowStep,
        bus: ContextBus,
        enforcer: ScopeEnforcer,
        deps: ExecutorDependencies,
    ) -> StepResult:
        cfg = step.config
        vector_store_ids = cfg.get("vectorStoreIds") or []
        if isinstance(vector_store_ids, str):
            vector_store_ids = [vector_store_ids]
        vector_store_ids = list(vector_store_ids)
        top_k = config_number(cfg, "topK", DEFAULT_TOP_K)
        min_score = config_number(cfg, "minScore", DEFAULT_MIN_SCORE)

        violation = enforcer.pre_step_check(bus)
        if violation:
            return StepResult.failure(violation.message)

        inputs = resolve_inputs(step.inputs, bus)
        query = next(
            (
                candidate
                for candidate in (
                    inputs.get("query"),
                    inputs.get("user_message"),
                    bus.get_trigger().content,
                )
                if is_truthy(candidate)
            ),
            None,
        )
        if query is None:
            return StepResult.failure("No query provided for RAG search", output=_empty_output())

        try:
            result = await deps.search_knowledge(
                query=stringify(query),
                vector_store_ids=vector_store_ids,
                top_k=top_k,
                min_score=min_score,
                account_id=deps.account_id,
            )
        except Exception as e:
            logger.warning(f"[rag_executor] Step '{step.id}' search failed: {e}")
            return StepResult.failure(error_message(e, "RAG search failed"), output=_empty_output())

        chunks = [chunk.to_dict() for chunk in result.chunks]
        context = "\n\n".join(chunk.content for chunk in result.chunks)

        return StepResult(
            output={
                "chunks": chunks,
                "context": context,
                "chunksFound": len(chunks),
                "totalTokens": result.total_tokens,
            },
            token_usage=TokenUsage(total=result.total_tokens),
            meta={
                "vectorStoreIds": vector_store_ids,
                "topK": top_k,
                "minScore": min_score,
                "chunksFound": len(chunks),
            },
        )
