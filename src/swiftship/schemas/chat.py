"""Request schema for the agent processing endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.swiftship.agents.schemas import Message


class ChatRequest(BaseModel):
    """Inbound chat turn.

    Accepts the camelCase field names sent by the web client
    (conversationHistory, agentType) as well as snake_case.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    conversation_history: list[Message] = Field(default_factory=list, alias="conversationHistory")
    agent_type: str | None = Field(default=None, alias="agentType")
    metadata: dict[str, Any] | None = None

    def requested_agent(self) -> str | None:
        if self.agent_type is None or not self.agent_type.strip():
            return None
        return self.agent_type

    def to_conversation(self) -> list[Message]:
        """History plus the new message as the latest user turn."""
        conversation = list(self.conversation_history)
        if self.message.strip():
            conversation.append(Message(role="user", content=self.message))
        return conversation
