"""Support agent: similar-issue lookup, escalation check, then an answer."""

from __future__ import annotations

import structlog

from src.knowledge.retriever import KnowledgeRetriever
from src.swiftship.agents.base import AgentCapability, AgentContext, AgentRegistration, BaseAgent
from src.swiftship.agents.schemas import AgentResponse, AgentType
from src.swiftship.agents.support.prompts import (
    ESCALATE,
    NEEDS_HUMAN_PROMPT,
    SELF_SERVE,
    SUPPORT_SYSTEM_PROMPT,
    format_similar_issues,
)
from src.swiftship.services.llm import LLMGateway

logger = structlog.get_logger(__name__)

SIMILAR_ISSUE_LIMIT = 2


def create_support_registration() -> AgentRegistration:
    return AgentRegistration(
        agent_type=AgentType.SUPPORT,
        name="Support Agent",
        description="Account problems, technical support, troubleshooting and bug reports",
        capabilities=[
            AgentCapability(name="troubleshoot", description="Diagnose and resolve user issues"),
            AgentCapability(name="escalate", description="Decide when a human needs to step in"),
        ],
    )


class SupportAgent(BaseAgent):
    def __init__(
        self,
        llm: LLMGateway,
        retriever: KnowledgeRetriever,
        registration: AgentRegistration | None = None,
    ) -> None:
        super().__init__(registration or create_support_registration())
        self._llm = llm
        self._retriever = retriever

    async def execute(self, context: AgentContext) -> AgentResponse:
        message = context.latest_user_message
        if message is None:
            return AgentResponse(content="How can I help you with your technical issue?")

        similar = await self._retriever.search(message.content, limit=SIMILAR_ISSUE_LIMIT)
        context.debug("similar_issues", count=len(similar))

        needs_human = await self._needs_human(message.content)
        context.debug("escalation_check", needs_human=needs_human)

        system = SUPPORT_SYSTEM_PROMPT.format(
            similar_issues=format_similar_issues(similar),
            escalation=ESCALATE if needs_human else SELF_SERVE,
        )
        content = await self._llm.complete(
            [{"role": "system", "content": system}, message.to_llm()]
        )

        return AgentResponse(
            content=content,
            metadata={
                "needsHumanIntervention": needs_human,
                "similarIssuesFound": len(similar),
            },
        )

    async def _needs_human(self, text: str) -> bool:
        answer = await self._llm.complete(
            [
                {"role": "system", "content": NEEDS_HUMAN_PROMPT},
                {"role": "user", "content": text},
            ],
            model="fast",
            temperature=0.0,
            max_tokens=5,
        )
        return "true" in answer.lower()
