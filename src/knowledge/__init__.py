"""Knowledge Base module for help-article storage and similarity search.

Provides a Qdrant-backed article store, the retriever used by the docs,
support and shipments agents, and Pydantic models for articles and matches.
"""

from src.knowledge.config import KnowledgeBaseConfig
from src.knowledge.models import KnowledgeArticle, KnowledgeMatch
from src.knowledge.qdrant_client import QdrantKnowledgeStore
from src.knowledge.retriever import KnowledgeRetriever

__all__ = [
    "KnowledgeArticle",
    "KnowledgeBaseConfig",
    "KnowledgeMatch",
    "KnowledgeRetriever",
    "QdrantKnowledgeStore",
]
