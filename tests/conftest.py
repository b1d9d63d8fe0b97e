"""Shared fixtures for agent, streaming and API tests.

Provides:
- FakeLLM: scripted stand-in for the LLM gateway (no provider calls)
- An in-memory Qdrant article store and retriever
- A FastAPI app with the dispatcher wired to the fakes
- Async HTTP client for API testing
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from qdrant_client import QdrantClient

from src.knowledge import KnowledgeArticle, KnowledgeBaseConfig, KnowledgeRetriever, QdrantKnowledgeStore
from src.swiftship.config import ExtractionMode, Settings
from src.swiftship.main import build_dispatcher, create_app
from src.swiftship.services.llm import LLMResponseFormatError

TODAY = date(2026, 10, 19)
DIMENSIONS = 4


class FakeLLM:
    """Scripted LLM gateway.

    ``replies`` are returned by complete() in order; an Exception instance
    in the list is raised instead. When the script runs out, "ok" is returned.
    """

    def __init__(self, replies: list[Any] | None = None, vector: list[float] | None = None) -> None:
        self.replies = list(replies or [])
        self.vector = vector or [1.0, 0.0, 0.0, 0.0]
        self.calls: list[dict[str, Any]] = []
        self.embedded: list[str] = []

    async def complete(
        self,
        messages: list[dict[str, str]],
        *,
        model: str = "chat",
        temperature: float = 0.3,
        max_tokens: int = 1024,
        response_format: dict[str, Any] | None = None,
    ) -> str:
        self.calls.append({"messages": messages, "model": model, "temperature": temperature})
        if not self.replies:
            return "ok"
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def embed(self, text: str) -> list[float]:
        self.embedded.append(text)
        return list(self.vector)

    async def extract(self, messages, response_model, *, model: str = "fast"):
        raise LLMResponseFormatError("structured extraction not scripted", operation="extract")


def make_store(articles: list[KnowledgeArticle] | None = None) -> QdrantKnowledgeStore:
    config = KnowledgeBaseConfig(qdrant_path=":memory:", embedding_dimensions=DIMENSIONS)
    store = QdrantKnowledgeStore(config, client=QdrantClient(location=":memory:"))
    store.initialize_collection()
    if articles:
        store.upsert_articles(articles)
    return store


def make_retriever(llm: FakeLLM, articles: list[KnowledgeArticle] | None = None) -> KnowledgeRetriever:
    config = KnowledgeBaseConfig(qdrant_path=":memory:", embedding_dimensions=DIMENSIONS)
    return KnowledgeRetriever(make_store(articles), llm, config)


HELP_ARTICLES = [
    KnowledgeArticle(
        id="kb-track",
        title="Tracking a shipment",
        content="Open the Shipments tab and select the shipment to see its live status.",
        url="https://help.swiftship.example/tracking",
        embedding=[1.0, 0.0, 0.0, 0.0],
    ),
    KnowledgeArticle(
        id="kb-reset",
        title="Resetting your password",
        content="Use 'Forgot password' on the login page to receive a reset link.",
        url="https://help.swiftship.example/password",
        embedding=[0.9, 0.1, 0.0, 0.0],
    ),
    KnowledgeArticle(
        id="kb-invoices",
        title="Downloading invoices",
        content="Invoices are available under Billing > History.",
        url=None,
        embedding=[0.0, 0.0, 1.0, 0.0],
    ),
]


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        QUOTE_EXTRACTION_MODE=ExtractionMode.pattern,
        GEOCODING_API_KEY="",
        TICKETING_BASE_URL="",
    )


@pytest.fixture
def app(fake_llm, test_settings):
    """FastAPI app with the dispatcher wired to FakeLLM and an in-memory store."""
    application = create_app()
    retriever = make_retriever(fake_llm, HELP_ARTICLES)
    application.state.dispatcher = build_dispatcher(test_settings, fake_llm, retriever)
    application.state.knowledge_store = None
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing the API."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
