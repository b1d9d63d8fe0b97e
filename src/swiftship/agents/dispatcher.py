"""Single entry point for every agent invocation.

When the caller names an agent type it is resolved directly (unknown types
are rejected). Otherwise the router agent classifies the latest turn and its
decision picks the agent within the same request.
"""

from __future__ import annotations

import structlog

from src.swiftship.agents.base import AgentContext, BaseAgent
from src.swiftship.agents.registry import AgentRegistry
from src.swiftship.agents.router import RouterAgent
from src.swiftship.agents.schemas import AgentResponse, AgentType

logger = structlog.get_logger(__name__)


class AgentDispatcher:
    """Resolve and invoke agents.

    Args:
        registry: Typed dispatch table.
        router: Router agent used when no agent type is supplied.
    """

    def __init__(self, registry: AgentRegistry, router: RouterAgent) -> None:
        self._registry = registry
        self._router = router

    def resolve(self, agent_type: AgentType | str) -> BaseAgent:
        return self._registry.resolve(agent_type)

    async def dispatch(
        self,
        context: AgentContext,
        agent_type: AgentType | None = None,
    ) -> AgentResponse:
        """Run one request through the selected agent.

        Args:
            context: Conversation and request metadata.
            agent_type: Explicit target; None triggers routing.

        Returns:
            The agent's response with ``agent`` (and ``routing`` when the
            router picked the agent) added to its metadata.

        Raises:
            UnknownAgentTypeError: If ``agent_type`` is not registered.
        """
        routing = None
        if agent_type is None:
            routing = await self._router.route(context.conversation)
            agent_type = routing.agent
            context.debug(
                "request_routed",
                agent=agent_type.wire_name,
                reason=routing.reason,
                fallback=routing.fallback,
            )

        agent = self.resolve(agent_type)
        logger.info(
            "request_dispatched",
            agent=agent_type.value,
            routed=routing is not None,
        )
        response = await agent.invoke(context)

        metadata = dict(response.metadata or {})
        metadata["agent"] = agent_type.wire_name
        if routing is not None:
            metadata["routing"] = routing.model_dump(mode="json")
        return response.model_copy(update={"metadata": metadata})
