"""
Provider adapters.

Turns concrete model providers into the ``call_llm`` capability.
"""

from .llm import LLMConfig, LLMProvider, LLMResponse, Message, MessageRole, llm_capability

__all__ = [
    "LLMConfig",
    "LLMProvider",
    "LLMResponse",
    "Message",
    "MessageRole",
    "llm_capability",
]
