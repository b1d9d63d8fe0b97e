"""Knowledge Base configuration via Pydantic BaseSettings.

All settings load from environment variables with the KNOWLEDGE_ prefix.
For example, KNOWLEDGE_QDRANT_PATH sets qdrant_path.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class KnowledgeBaseConfig(BaseSettings):
    """Configuration for the article store and similarity search.

    Attributes:
        qdrant_path: Local filesystem path for Qdrant storage (dev mode), or
            ":memory:" for an ephemeral in-process store.
        qdrant_url: Remote Qdrant server URL (production mode). If set, takes
            precedence over qdrant_path.
        qdrant_api_key: API key for remote Qdrant authentication.
        collection_articles: Name of the help-article collection.
        embedding_dimensions: Dimensionality of stored article embeddings.
        match_threshold: Default minimum similarity for a match.
        match_limit: Default maximum number of matches returned.
    """

    model_config = SettingsConfigDict(
        env_prefix="KNOWLEDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Qdrant connection
    qdrant_path: str = "./qdrant_data"
    qdrant_url: str | None = None
    qdrant_api_key: str | None = None

    # Collection
    collection_articles: str = "knowledge_articles"
    embedding_dimensions: int = 1536

    # Search defaults
    match_threshold: float = 0.5
    match_limit: int = 5
