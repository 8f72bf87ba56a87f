"""
LLM Provider Protocol and capability adapter.

Defines the interface for Large Language Model providers and builds the
``call_llm`` capability of ExecutorDependencies from one or more of them.

Provider fallback:
    ``llm_capability`` accepts several providers. A call tries them in
    ``provider_order`` (provider names) when the step run passes one,
    otherwise in the order given, and moves on when a provider raises.

Usage:
    deps = ExecutorDependencies(
        call_llm=llm_capability([groq, openai]),
        ...
    )
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from flowcore.executors.dependencies import LLMCompletion
from flowcore.runtime.context import TokenUsage

logger = logging.getLogger(__name__)


class MessageRole(str, Enum):
    """Role of a message in the conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """
    A message in the LLM conversation.

    Attributes:
        role: Role of the message sender
        content: Text content of the message
    """

    role: MessageRole
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> Message:
        return cls(role=MessageRole(data.get("role", "user")), content=data.get("content", ""))


@dataclass
class LLMResponse:
    """
    Response from LLM completion.

    Attributes:
        content: The generated text content
        model: Model used for generation
        usage: Token usage statistics (input_tokens / output_tokens)
        finish_reason: Why generation stopped
        provider: Name of the provider
    """

    content: str
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)
    finish_reason: str = "stop"
    provider: str = ""

    @property
    def input_tokens(self) -> int:
        return self.usage.get("input_tokens", 0)

    @property
    def output_tokens(self) -> int:
        return self.usage.get("output_tokens", 0)

    @property
    def total_tokens(self) -> int:
        return self.usage.get("total_tokens", self.input_tokens + self.output_tokens)

    def to_token_usage(self) -> TokenUsage:
        return TokenUsage(
            prompt=self.input_tokens,
            completion=self.output_tokens,
            total=self.total_tokens,
        )


@dataclass
class LLMConfig:
    """
    Configuration for LLM requests.

    Attributes:
        model: Model identifier
        temperature: Sampling temperature
        max_tokens: Maximum tokens to generate
        response_format: "json" for JSON mode, None for text
    """

    model: str | None = None
    temperature: float = 0.7
    max_tokens: int = 1024
    response_format: str | None = None


@runtime_checkable
class LLMProvider(Protocol):
    """
    Protocol for LLM providers.

    Implementations must provide:
    - complete(): Generate text from messages
    - name: Provider identifier
    """

    @property
    def name(self) -> str: ...

    async def complete(
        self,
        messages: list[Message],
        config: LLMConfig | None = None,
    ) -> LLMResponse: ...


def _ordered(providers: Sequence[LLMProvider], order: Sequence[Any] | None) -> list[LLMProvider]:
    if not order:
        return list(providers)
    by_name = {provider.name: provider for provider in providers}
    ranked = [by_name[name] for name in order if isinstance(name, str) and name in by_name]
    return ranked + [provider for provider in providers if provider not in ranked]


def llm_capability(
    providers: LLMProvider | Sequence[LLMProvider],
) -> Callable[..., Awaitable[LLMCompletion]]:
    """
    Build a ``call_llm`` capability from LLM providers.

    Args:
        providers: One provider, or several to fall back across

    Returns:
        Async callable matching the call_llm signature

    Raises:
        ValueError: If no provider is given
    """
    pool = [providers] if isinstance(providers, LLMProvider) else list(providers)
    if not pool:
        raise ValueError("llm_capability needs at least one provider")

    async def call_llm(
        *,
        model: str,
        system_prompt: str,
        messages: list[dict[str, str]],
        temperature: float | None = None,
        max_tokens: int | None = None,
        response_format: str | None = None,
        provider_order: Sequence[Any] | None = None,
    ) -> LLMCompletion:
        conversation = [Message.system(system_prompt)] if system_prompt else []
        conversation.extend(Message.from_dict(m) for m in messages)

        config = LLMConfig(model=model, response_format="json" if response_format == "json" else None)
        if temperature is not None:
            config.temperature = temperature
        if max_tokens is not None:
            config.max_tokens = max_tokens

        last_error: Exception | None = None
        for provider in _ordered(pool, provider_order):
            try:
                response = await provider.complete(conversation, config)
            except Exception as e:
                logger.warning(f"[llm_capability] Provider '{provider.name}' failed: {e}")
                last_error = e
                continue
            return LLMCompletion(content=response.content, usage=response.to_token_usage())

        raise last_error or RuntimeError("No LLM provider available")

    return call_llm
