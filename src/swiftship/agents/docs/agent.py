"""Documentation agent: retrieval-grounded answers with citations."""

from __future__ import annotations

import structlog

from src.knowledge.retriever import KnowledgeRetriever
from src.swiftship.agents.base import AgentCapability, AgentContext, AgentRegistration, BaseAgent
from src.swiftship.agents.docs.prompts import DOCS_SYSTEM_PROMPT, format_documentation
from src.swiftship.agents.schemas import AgentResponse, AgentType
from src.swiftship.services.llm import LLMGateway

logger = structlog.get_logger(__name__)

MATCH_LIMIT = 3
HISTORY_TURNS = 5


def create_docs_registration() -> AgentRegistration:
    return AgentRegistration(
        agent_type=AgentType.DOCS,
        name="Documentation Agent",
        description="Questions about documentation, how-tos and general product information",
        capabilities=[
            AgentCapability(name="doc_search", description="Search help articles"),
            AgentCapability(name="how_to", description="Explain product features and procedures"),
        ],
    )


class DocsAgent(BaseAgent):
    def __init__(
        self,
        llm: LLMGateway,
        retriever: KnowledgeRetriever,
        registration: AgentRegistration | None = None,
    ) -> None:
        super().__init__(registration or create_docs_registration())
        self._llm = llm
        self._retriever = retriever

    async def execute(self, context: AgentContext) -> AgentResponse:
        query = context.query
        if not query:
            return AgentResponse(content="I need a question to help you with.")

        matches = await self._retriever.search(query, limit=MATCH_LIMIT)
        context.debug("docs_matches", count=len(matches), titles=[m.title for m in matches])

        system = DOCS_SYSTEM_PROMPT.format(context=format_documentation(matches))
        history = [m.to_llm() for m in context.conversation if m.role != "system"][-HISTORY_TURNS:]
        content = await self._llm.complete([{"role": "system", "content": system}, *history])

        return AgentResponse(
            content=content,
            sources=[m.to_source() for m in matches] or None,
        )
