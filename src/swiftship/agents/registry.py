"""Agent registry: the typed dispatch table.

Maps each AgentType to the single agent instance built at startup. Lookups
for a type that is not registered raise UnknownAgentTypeError; there is no
silent fallback at this layer.
"""

from __future__ import annotations

import structlog

from src.swiftship.agents.base import BaseAgent
from src.swiftship.agents.schemas import AgentType, parse_agent_type

logger = structlog.get_logger(__name__)


class UnknownAgentTypeError(LookupError):
    """Requested agent type is not part of the dispatch table."""

    def __init__(self, agent_type: object) -> None:
        super().__init__(f"Unknown agent type: {agent_type!r}")
        self.agent_type = agent_type


class AgentRegistry:
    """Registry of agent instances keyed by AgentType.

    Built once during application startup and only read afterwards.
    """

    def __init__(self) -> None:
        self._agents: dict[AgentType, BaseAgent] = {}

    def register(self, agent: BaseAgent) -> None:
        """Register an agent under its registration's agent type.

        Raises:
            ValueError: If an agent of the same type is already registered.
        """
        if agent.agent_type in self._agents:
            raise ValueError(f"Agent already registered: {agent.agent_type.value}")
        self._agents[agent.agent_type] = agent
        logger.info(
            "agent_registered",
            agent=agent.agent_type.value,
            agent_name=agent.registration.name,
            capabilities=[c.name for c in agent.capabilities],
        )

    def resolve(self, agent_type: AgentType | str) -> BaseAgent:
        """Return the agent for ``agent_type``.

        Accepts an AgentType or a token such as "quote" / "QUOTE_AGENT".

        Raises:
            UnknownAgentTypeError: For unparseable tokens and unregistered types.
        """
        resolved = agent_type if isinstance(agent_type, AgentType) else parse_agent_type(agent_type)
        if resolved is None or resolved not in self._agents:
            raise UnknownAgentTypeError(agent_type)
        return self._agents[resolved]

    def list_agents(self, exclude: tuple[AgentType, ...] = ()) -> list[dict]:
        """Routing info for every registered agent, for the router prompt."""
        return [
            agent.to_routing_info()
            for agent_type, agent in self._agents.items()
            if agent_type not in exclude
        ]

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_type: object) -> bool:
        return agent_type in self._agents
