"""Pydantic models for the Knowledge Base domain.

Articles are what gets stored; matches are what a similarity search returns.
Matches are produced per query and never cached.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class KnowledgeArticle(BaseModel):
    """A help-center article with its precomputed embedding.

    Attributes:
        id: Article identifier from the source system.
        title: Article title.
        content: Article body (plain text or markdown).
        url: Public URL of the article, if it has one.
        embedding: Dense vector for the article body.
    """

    id: str
    title: str
    content: str
    url: str | None = None
    embedding: list[float]


class KnowledgeMatch(BaseModel):
    """One article returned by a similarity search."""

    id: str
    title: str
    content: str
    url: str | None = None
    similarity: float = Field(ge=0.0, le=1.0)

    def to_source(self) -> dict:
        """Client-facing citation: no article body."""
        return {"id": self.id, "title": self.title, "url": self.url, "similarity": self.similarity}
