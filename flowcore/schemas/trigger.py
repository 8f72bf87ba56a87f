"""
Trigger Schema.

Describes what started a flow run. Frozen when the ContextBus is built
and exposed to templates as ``trigger`` (camelCase keys, e.g.
``{{ trigger.conversationId }}``).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

TriggerType = Literal["message_received", "manual", "scheduled", "webhook"]


class TriggerData(BaseModel):
    """Event that started the flow run."""

    type: TriggerType = Field(..., description="Trigger kind")
    content: str | None = Field(default=None, description="Message text, if any")
    message_id: str | None = None
    conversation_id: str | None = None
    sender_account_id: str | None = None
    recipient_account_id: str | None = None
    metadata: dict[str, Any] | None = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True

    def to_context_dict(self) -> dict[str, Any]:
        """camelCase dict used by the expression namespace."""
        return self.model_dump(by_alias=True)

    @classmethod
    def manual(cls, content: str | None = None, **extra: Any) -> TriggerData:
        """Shortcut for a manually started run."""
        return cls(type="manual", content=content, **extra)
