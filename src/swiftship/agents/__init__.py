"""Agent framework: base classes, registry, router and dispatcher.

Exports:
    AgentType, Message, AgentResponse, RoutingDecision: shared schemas.
    BaseAgent, AgentContext, AgentRegistration, AgentCapability: agent base.
    AgentRegistry, UnknownAgentTypeError: type -> agent lookup.
    RouterAgent: LLM classifier choosing the specialist.
    AgentDispatcher: routes (when needed) and invokes the specialist.
"""

from src.swiftship.agents.base import (
    AgentCapability,
    AgentContext,
    AgentRegistration,
    BaseAgent,
)
from src.swiftship.agents.dispatcher import AgentDispatcher
from src.swiftship.agents.registry import AgentRegistry, UnknownAgentTypeError
from src.swiftship.agents.router import RouterAgent
from src.swiftship.agents.schemas import (
    AgentResponse,
    AgentType,
    Message,
    RoutingDecision,
)

__all__ = [
    "AgentCapability",
    "AgentContext",
    "AgentDispatcher",
    "AgentRegistration",
    "AgentRegistry",
    "AgentResponse",
    "AgentType",
    "BaseAgent",
    "Message",
    "RouterAgent",
    "RoutingDecision",
    "UnknownAgentTypeError",
]
