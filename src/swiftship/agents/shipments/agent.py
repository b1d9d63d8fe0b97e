"""Shipments agent: logistics questions answered with policy context."""

from __future__ import annotations

import structlog

from src.knowledge.retriever import KnowledgeRetriever
from src.swiftship.agents.base import AgentCapability, AgentContext, AgentRegistration, BaseAgent
from src.swiftship.agents.docs.prompts import format_documentation
from src.swiftship.agents.schemas import AgentResponse, AgentType
from src.swiftship.agents.shipments.prompts import SHIPMENTS_SYSTEM_PROMPT
from src.swiftship.services.llm import LLMGateway

logger = structlog.get_logger(__name__)

CONTEXT_LIMIT = 3


def create_shipments_registration() -> AgentRegistration:
    return AgentRegistration(
        agent_type=AgentType.SHIPMENTS,
        name="Shipments Agent",
        description="Existing shipments, shipment planning, logistics and delivery scheduling",
        capabilities=[
            AgentCapability(name="shipment_planning", description="Plan and schedule shipments"),
        ],
    )


class ShipmentsAgent(BaseAgent):
    def __init__(
        self,
        llm: LLMGateway,
        retriever: KnowledgeRetriever,
        registration: AgentRegistration | None = None,
    ) -> None:
        super().__init__(registration or create_shipments_registration())
        self._llm = llm
        self._retriever = retriever

    async def execute(self, context: AgentContext) -> AgentResponse:
        query = context.query
        if not query:
            return AgentResponse(
                content=(
                    "I apologize, but I couldn't find your message. "
                    "Could you please repeat your question about shipments?"
                )
            )

        matches = await self._retriever.search(query, limit=CONTEXT_LIMIT)
        context.debug("shipment_context", count=len(matches))

        system = SHIPMENTS_SYSTEM_PROMPT.format(context=format_documentation(matches))
        history = [m.to_llm() for m in context.conversation if m.role != "system"]
        content = await self._llm.complete([{"role": "system", "content": system}, *history])
        return AgentResponse(content=content)
