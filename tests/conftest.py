"""
Pytest configuration and fixtures for flowcore tests.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from flowcore.runtime import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from flowcore.config import reset_settings  # noqa: E402
from flowcore.executors import (  # noqa: E402
    ExecutorDependencies,
    KnowledgeChunk,
    KnowledgeSearchResult,
    LLMCompletion,
    ToolExecution,
    reset_executor_registry,
)
from flowcore.observability import reset_metrics  # noqa: E402
from flowcore.runtime import ContextBus, ContextEntry, TokenUsage  # noqa: E402
from flowcore.schemas import TriggerData  # noqa: E402


class MockCapabilities:
    """
    Records every capability call and answers with canned results.

    Set ``llm_replies`` / ``llm_error`` / ``chunks`` / ``tool_result`` /
    ``tool_error`` before running a flow to shape the responses.
    """

    def __init__(self):
        self.llm_calls: list[dict] = []
        self.search_calls: list[dict] = []
        self.tool_calls: list[dict] = []

        self.llm_replies: list[str] = ["ok"]
        self.llm_usage = TokenUsage(prompt=10, completion=5, total=15)
        self.llm_error: Exception | None = None

        self.chunks: list[KnowledgeChunk] = []
        self.search_tokens = 0
        self.search_error: Exception | None = None

        self.tool_result = ToolExecution(output={"ok": True})
        self.tool_error: Exception | None = None

    async def call_llm(self, **kwargs) -> LLMCompletion:
        self.llm_calls.append(kwargs)
        if self.llm_error:
            raise self.llm_error
        index = min(len(self.llm_calls), len(self.llm_replies)) - 1
        return LLMCompletion(content=self.llm_replies[index], usage=self.llm_usage)

    async def search_knowledge(self, **kwargs) -> KnowledgeSearchResult:
        self.search_calls.append(kwargs)
        if self.search_error:
            raise self.search_error
        return KnowledgeSearchResult(chunks=tuple(self.chunks), total_tokens=self.search_tokens)

    async def execute_tool(self, **kwargs) -> ToolExecution:
        self.tool_calls.append(kwargs)
        if self.tool_error:
            raise self.tool_error
        return self.tool_result

    def deps(self, account_id: str = "acc-1") -> ExecutorDependencies:
        return ExecutorDependencies(
            call_llm=self.call_llm,
            search_knowledge=self.search_knowledge,
            execute_tool=self.execute_tool,
            account_id=account_id,
        )


class FakeClock:
    """Manually advanced seconds clock for time-budget tests."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class UnreadableRecord:
    """Step output whose ``status`` attribute raises when read."""

    @property
    def status(self):
        raise RuntimeError("status unavailable")


@pytest.fixture(autouse=True)
def _reset_globals(monkeypatch):
    """Give every test fresh global state and default settings."""
    for name in (
        "FLOWCORE_DEFAULT_MAX_STEPS",
        "FLOWCORE_ABORT_ON_ERROR",
        "FLOWCORE_DEFAULT_LLM_MODEL",
        "FLOWCORE_METRICS_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    reset_executor_registry()
    reset_metrics()
    yield
    reset_settings()
    reset_executor_registry()
    reset_metrics()


@pytest.fixture
def capabilities():
    """Recording capabilities."""
    return MockCapabilities()


@pytest.fixture
def deps(capabilities):
    """ExecutorDependencies backed by the recording capabilities."""
    return capabilities.deps()


@pytest.fixture
def trigger():
    """A message trigger."""
    return TriggerData(
        type="message_received",
        content="Where is my order?",
        conversation_id="conv-1",
        sender_account_id="acc-sender",
    )


@pytest.fixture
def bus(trigger):
    """Empty context bus for the message trigger."""
    return ContextBus(trigger, {"accountId": "acc-1", "agentId": "agent-1"})


def write_output(bus: ContextBus, step_id: str, output, step_type: str = "transform", usage=None):
    """Write a finished step to a bus."""
    bus.write(
        ContextEntry(
            step_id=step_id,
            type=step_type,
            output=output,
            started_at=0,
            completed_at=1,
            token_usage=usage,
        )
    )
