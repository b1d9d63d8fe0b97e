"""Shared types for the agent layer.

Exports:
    AgentType: Closed set of agents the dispatcher knows about.
    Message: One conversation turn.
    RoutingDecision: Router output for the current turn.
    AgentResponse: What every agent returns to the stream encoder.
    parse_agent_type: Lenient token -> AgentType conversion.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

MessageRole = Literal["system", "user", "assistant"]


class AgentType(str, Enum):
    """Dispatch key for every agent."""

    ROUTER = "router"
    QUOTE = "quote"
    DOCS = "docs"
    SUPPORT = "support"
    SHIPMENTS = "shipments"

    @property
    def wire_name(self) -> str:
        """Name used in router prompts and response metadata, e.g. QUOTE_AGENT."""
        return f"{self.name}_AGENT"


ROUTABLE_AGENTS: tuple[AgentType, ...] = (
    AgentType.QUOTE,
    AgentType.DOCS,
    AgentType.SUPPORT,
    AgentType.SHIPMENTS,
)


def parse_agent_type(token: str | None) -> AgentType | None:
    """Map a loosely formatted agent token to an AgentType.

    Accepts "quote", "QUOTE", "QUOTE_AGENT", "quote-agent". Returns None
    for anything unrecognised so callers choose between fallback and
    rejection.
    """
    if not token or not isinstance(token, str):
        return None
    normalized = token.strip().upper().replace("-", "_").replace(" ", "_")
    if normalized.endswith("_AGENT"):
        normalized = normalized[: -len("_AGENT")]
    try:
        return AgentType[normalized]
    except KeyError:
        return None


class Message(BaseModel):
    """One conversation turn. Treated as immutable once appended."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str = ""
    metadata: dict[str, Any] | None = None

    def to_llm(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class RoutingDecision(BaseModel):
    """Result of classifying the latest user turn.

    Attributes:
        agent: Agent that should handle the turn.
        reason: Why it was chosen; contains "fallback" when the default was used.
        fallback: True when the LLM answer could not be used.
    """

    agent: AgentType
    reason: str
    fallback: bool = False


class AgentResponse(BaseModel):
    """Output of one agent invocation, consumed by the stream encoder."""

    content: str
    metadata: dict[str, Any] | None = None
    sources: list[dict[str, Any]] | None = None
    debug_logs: list[str] | None = Field(default=None, alias="debugLogs")

    model_config = ConfigDict(populate_by_name=True)


def last_user_message(conversation: list[Message]) -> Message | None:
    """Most recent user turn with non-blank content."""
    for message in reversed(conversation):
        if message.role == "user" and message.content.strip():
            return message
    return None
