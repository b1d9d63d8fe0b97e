"""Knowledge retriever: embed a query, return the closest articles.

Exports:
    KnowledgeRetriever: search(query, threshold, limit) -> list[KnowledgeMatch].
    Embedder: Protocol for anything that turns text into a vector.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from src.knowledge.config import KnowledgeBaseConfig
from src.knowledge.models import KnowledgeMatch
from src.knowledge.qdrant_client import QdrantKnowledgeStore

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class KnowledgeRetriever:
    """Similarity search over the article store.

    Embedding errors (rate limit, timeout) propagate to the caller; an empty
    result is a valid answer, not an error.

    Args:
        store: Article vector store.
        embedder: Usually the LLM gateway.
        config: Supplies default threshold and limit.
    """

    def __init__(
        self,
        store: QdrantKnowledgeStore,
        embedder: Embedder,
        config: KnowledgeBaseConfig | None = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._config = config or KnowledgeBaseConfig()

    async def search(
        self,
        query: str,
        threshold: float | None = None,
        limit: int | None = None,
    ) -> list[KnowledgeMatch]:
        """Find articles similar to ``query``.

        Args:
            query: Free-text question.
            threshold: Minimum similarity (defaults to config.match_threshold).
            limit: Maximum matches (defaults to config.match_limit).

        Returns:
            Matches ordered by descending similarity, possibly empty.
        """
        if not query or not query.strip():
            return []

        threshold = self._config.match_threshold if threshold is None else threshold
        limit = self._config.match_limit if limit is None else limit

        vector = await self._embedder.embed(query)
        # qdrant-client is synchronous; keep the event loop free.
        matches = await asyncio.to_thread(self._store.match, vector, threshold, limit)

        logger.info(
            "Knowledge search returned %d matches (threshold=%.2f, limit=%d)",
            len(matches),
            threshold,
            limit,
        )
        return matches
