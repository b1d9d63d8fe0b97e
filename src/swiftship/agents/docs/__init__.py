"""Documentation agent: answers from the help-article knowledge base."""

from __future__ import annotations

from src.swiftship.agents.docs.agent import DocsAgent, create_docs_registration

__all__ = ["DocsAgent", "create_docs_registration"]
