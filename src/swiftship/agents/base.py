"""Base agent abstractions for the agent layer.

Defines the registration metadata every agent carries, the per-request
AgentContext, and the abstract base class. BaseAgent.invoke() wraps
execute() with structured logging and metrics.

Agents are built once at startup and shared by concurrent requests, so an
agent instance holds no per-request state; everything request-scoped lives
on the AgentContext.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import structlog

from src.swiftship.agents.schemas import AgentResponse, AgentType, Message, last_user_message
from src.swiftship.core.monitoring import record_agent_invocation

logger = structlog.get_logger(__name__)


# ── Agent Capability ─────────────────────────────────────────────────────────


@dataclass
class AgentCapability:
    """A capability an agent offers.

    The description is included in the router prompt so the model can reason
    about which agent fits the user's message.

    Attributes:
        name: Machine-readable capability identifier (e.g., "price_quote").
        description: Human-readable description used for routing.
    """

    name: str
    description: str


# ── Agent Registration ───────────────────────────────────────────────────────


@dataclass
class AgentRegistration:
    """Metadata describing a registered agent.

    Attributes:
        agent_type: Dispatch key.
        name: Human-readable name (e.g., "Quote Agent").
        description: What this agent does, shown to the router.
        capabilities: Capabilities this agent provides.
    """

    agent_type: AgentType
    name: str
    description: str
    capabilities: list[AgentCapability] = field(default_factory=list)


# ── Agent Context ────────────────────────────────────────────────────────────


@dataclass
class AgentContext:
    """Everything an agent needs for one request.

    Attributes:
        conversation: Full conversation, latest user turn last.
        metadata: Caller-supplied request metadata (customer identity etc.).
        debug_logs: Diagnostics collected during this request only.
    """

    conversation: list[Message]
    metadata: dict[str, Any] = field(default_factory=dict)
    debug_logs: list[str] = field(default_factory=list)

    @property
    def latest_user_message(self) -> Message | None:
        return last_user_message(self.conversation)

    @property
    def query(self) -> str:
        message = self.latest_user_message
        return message.content if message else ""

    def debug(self, event: str, **fields: Any) -> None:
        """Record a diagnostic line for the debug stream event."""
        logger.debug(event, **fields)
        if fields:
            details = ", ".join(f"{key}={value}" for key, value in fields.items())
            self.debug_logs.append(f"{event}: {details}")
        else:
            self.debug_logs.append(event)


# ── Base Agent ───────────────────────────────────────────────────────────────


class BaseAgent(ABC):
    """Abstract base class for all agents.

    Subclasses implement execute(). External callers use invoke(), which adds
    logging, metrics and attaches the context's debug logs to the response.
    """

    def __init__(self, registration: AgentRegistration) -> None:
        self.registration = registration
        self._logger = structlog.get_logger(__name__).bind(agent=registration.agent_type.value)

    @property
    def agent_type(self) -> AgentType:
        return self.registration.agent_type

    @property
    def capabilities(self) -> list[AgentCapability]:
        return self.registration.capabilities

    @abstractmethod
    async def execute(self, context: AgentContext) -> AgentResponse:
        """Produce a response for the conversation in ``context``."""
        ...

    async def invoke(self, context: AgentContext) -> AgentResponse:
        """Invoke the agent with logging, metrics and error capture.

        Raises:
            Exception: Anything raised by execute() is logged and re-raised.
        """
        start = time.monotonic()
        self._logger.info("agent_invoked", turns=len(context.conversation))

        try:
            response = await self.execute(context)
        except Exception as exc:
            record_agent_invocation(self.agent_type.value, "error")
            self._logger.error(
                "agent_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
            raise

        record_agent_invocation(self.agent_type.value, "success")
        self._logger.info(
            "agent_completed",
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
        if context.debug_logs and response.debug_logs is None:
            response = response.model_copy(update={"debug_logs": list(context.debug_logs)})
        return response

    def to_routing_info(self) -> dict[str, Any]:
        """Serialize agent metadata for the router prompt."""
        return {
            "agent": self.agent_type.wire_name,
            "name": self.registration.name,
            "description": self.registration.description,
            "capabilities": [cap.description for cap in self.capabilities],
        }
