"""Qdrant-backed article store with thresholded nearest-neighbour search.

Wraps the Qdrant Python client to provide:
- Collection bootstrap with a single cosine dense vector
- Upsert of articles with precomputed embeddings (used to seed local stores)
- match(): query_points with a score threshold and limit, ranked by score

The store is read-only at request time; population happens offline.
"""

from __future__ import annotations

import logging
import uuid

from qdrant_client import QdrantClient
from qdrant_client.models import Distance, PointStruct, VectorParams

from src.knowledge.config import KnowledgeBaseConfig
from src.knowledge.models import KnowledgeArticle, KnowledgeMatch

logger = logging.getLogger(__name__)

_ARTICLE_NAMESPACE = uuid.UUID("6f1b5f0e-3c43-4f4e-9a55-7a4a1c2b9e10")


def _point_id(article_id: str) -> str:
    """Qdrant ids must be UUIDs or integers; derive a stable UUID otherwise."""
    try:
        return str(uuid.UUID(article_id))
    except ValueError:
        return str(uuid.uuid5(_ARTICLE_NAMESPACE, article_id))


class QdrantKnowledgeStore:
    """Article vector store backed by Qdrant.

    Args:
        config: Knowledge base configuration.
        client: Optional pre-built Qdrant client (tests pass an in-memory one).
    """

    def __init__(self, config: KnowledgeBaseConfig, client: QdrantClient | None = None) -> None:
        self._config = config

        if client is not None:
            self._client = client
        elif config.qdrant_url:
            self._client = QdrantClient(url=config.qdrant_url, api_key=config.qdrant_api_key)
        elif config.qdrant_path == ":memory:":
            self._client = QdrantClient(location=":memory:")
        else:
            self._client = QdrantClient(path=config.qdrant_path)

    @property
    def client(self) -> QdrantClient:
        """Expose the underlying Qdrant client for advanced operations."""
        return self._client

    @property
    def collection(self) -> str:
        return self._config.collection_articles

    def initialize_collection(self) -> None:
        """Create the article collection if it does not already exist."""
        if self._client.collection_exists(self.collection):
            logger.info("Collection %s already exists, skipping creation", self.collection)
            return

        self._client.create_collection(
            collection_name=self.collection,
            vectors_config=VectorParams(
                size=self._config.embedding_dimensions,
                distance=Distance.COSINE,
            ),
        )
        logger.info("Created collection %s", self.collection)

    def upsert_articles(self, articles: list[KnowledgeArticle]) -> int:
        """Insert or replace articles. Returns the number of points written."""
        if not articles:
            return 0

        points = [
            PointStruct(
                id=_point_id(article.id),
                vector=article.embedding,
                payload={
                    "article_id": article.id,
                    "title": article.title,
                    "content": article.content,
                    "url": article.url,
                },
            )
            for article in articles
        ]
        self._client.upsert(collection_name=self.collection, points=points)
        logger.info("Upserted %d articles into %s", len(points), self.collection)
        return len(points)

    def match(self, vector: list[float], threshold: float, limit: int) -> list[KnowledgeMatch]:
        """Nearest articles with similarity >= threshold, best first.

        Args:
            vector: Query embedding.
            threshold: Minimum cosine similarity.
            limit: Maximum number of matches.

        Returns:
            Matches sorted by descending similarity. Empty when nothing
            clears the threshold.
        """
        if limit <= 0:
            return []

        response = self._client.query_points(
            collection_name=self.collection,
            query=vector,
            limit=limit,
            score_threshold=threshold,
            with_payload=True,
        )

        matches: list[KnowledgeMatch] = []
        for point in response.points:
            if point.score < threshold:
                continue
            payload = point.payload or {}
            matches.append(
                KnowledgeMatch(
                    id=str(payload.get("article_id", point.id)),
                    title=payload.get("title", ""),
                    content=payload.get("content", ""),
                    url=payload.get("url"),
                    similarity=min(1.0, max(0.0, float(point.score))),
                )
            )

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    def close(self) -> None:
        self._client.close()
