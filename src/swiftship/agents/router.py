"""Router agent: classify the latest user turn into an agent type.

One LLM call per turn, answered as JSON ``{"agent": ..., "reason": ...}``.
Routing never fails a conversation: unparseable output, unknown agent names
and missing user messages all fall back to the support agent with a reason
that says so.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from src.swiftship.agents.base import AgentCapability, AgentContext, AgentRegistration, BaseAgent
from src.swiftship.agents.registry import AgentRegistry
from src.swiftship.agents.schemas import (
    ROUTABLE_AGENTS,
    AgentResponse,
    AgentType,
    Message,
    RoutingDecision,
    last_user_message,
    parse_agent_type,
)
from src.swiftship.services.llm import LLMGateway

logger = structlog.get_logger(__name__)

DEFAULT_AGENT = AgentType.SUPPORT


def create_router_registration() -> AgentRegistration:
    return AgentRegistration(
        agent_type=AgentType.ROUTER,
        name="Router Agent",
        description="Decides which specialised agent handles a message",
        capabilities=[AgentCapability(name="route", description="Classify a user message")],
    )


def build_router_prompt(agents: list[dict[str, Any]]) -> str:
    """Router system prompt listing ``agents`` (AgentRegistry.list_agents() entries)."""
    lines = [
        "You are a router agent responsible for analyzing user queries and "
        "determining which specialized agent should handle them.",
        "Available agents:",
    ]
    for index, info in enumerate(agents, start=1):
        line = f"{index}. {info['agent']} - {info['description']}"
        if info.get("capabilities"):
            line += f" (can: {'; '.join(info['capabilities'])})"
        lines.append(line)
    lines.append("")
    lines.append(
        "Respond with the name of the most appropriate agent and a brief explanation "
        "of why you chose it."
    )
    lines.append('Format your response as JSON only: {"agent": "AGENT_NAME", "reason": "explanation"}')
    return "\n".join(lines)


def parse_routing_response(content: str) -> dict[str, Any] | None:
    """Parse the router's JSON answer, tolerating prose or code fences around it."""
    content = (content or "").strip()
    if not content:
        return None
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        start = content.find("{")
        end = content.rfind("}") + 1
        if start < 0 or end <= start:
            return None
        try:
            parsed = json.loads(content[start:end])
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


class RouterAgent(BaseAgent):
    """Classifies conversations for the dispatcher.

    Args:
        llm: Gateway used for the single classification call.
        registry: Agents the router may choose from; the prompt is built
            from their registrations on each call.
        registration: Optional override of the default registration.
    """

    def __init__(
        self,
        llm: LLMGateway,
        registry: AgentRegistry,
        registration: AgentRegistration | None = None,
    ) -> None:
        super().__init__(registration or create_router_registration())
        self._llm = llm
        self._registry = registry

    async def route(self, conversation: list[Message]) -> RoutingDecision:
        """Pick the agent for the latest user turn.

        Returns:
            RoutingDecision; ``fallback`` is True whenever the default agent
            was used instead of the model's answer.
        """
        message = last_user_message(conversation)
        if message is None:
            return self._fallback("no user message")

        content = await self._llm.complete(
            [
                {"role": "system", "content": build_router_prompt(self._candidates())},
                {"role": "user", "content": message.content},
            ],
            model="fast",
            temperature=0.0,
            max_tokens=200,
        )

        parsed = parse_routing_response(content)
        if parsed is None:
            logger.warning("router_response_unparseable", preview=content[:200])
            return self._fallback("router response was not valid JSON")

        agent_type = parse_agent_type(parsed.get("agent"))
        if agent_type not in ROUTABLE_AGENTS or agent_type not in self._registry:
            logger.warning("router_unknown_agent", agent=parsed.get("agent"))
            return self._fallback(f"router chose unknown agent {parsed.get('agent')!r}")

        reason = str(parsed.get("reason") or "no reason given")
        decision = RoutingDecision(agent=agent_type, reason=reason)
        logger.info("message_routed", agent=agent_type.value, fallback=False)
        return decision

    async def execute(self, context: AgentContext) -> AgentResponse:
        decision = await self.route(context.conversation)
        context.debug("routing_decision", agent=decision.agent.wire_name, fallback=decision.fallback)
        payload = {"agent": decision.agent.wire_name, "reason": decision.reason}
        return AgentResponse(
            content=json.dumps(payload),
            metadata={
                "routedAgent": decision.agent.wire_name,
                "reason": decision.reason,
                "fallback": decision.fallback,
            },
        )

    def _candidates(self) -> list[dict[str, Any]]:
        excluded = tuple(t for t in AgentType if t not in ROUTABLE_AGENTS)
        return self._registry.list_agents(exclude=excluded)

    @staticmethod
    def _fallback(reason: str) -> RoutingDecision:
        logger.info("message_routed", agent=DEFAULT_AGENT.value, fallback=True, reason=reason)
        return RoutingDecision(
            agent=DEFAULT_AGENT,
            reason=f"fallback to {DEFAULT_AGENT.wire_name}: {reason}",
            fallback=True,
        )
