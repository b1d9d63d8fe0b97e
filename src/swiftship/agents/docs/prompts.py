"""Prompt templates for the documentation agent."""

from __future__ import annotations

from src.knowledge.models import KnowledgeMatch

NO_DOCUMENTATION = "No directly relevant documentation found."

DOCS_SYSTEM_PROMPT = """You are Swift Ship's documentation agent. Use the following relevant \
documentation to answer the user's question. Include links to the articles you used. \
If you can't find a relevant answer in the documentation, say so.

Relevant documentation:
{context}"""


def format_documentation(matches: list[KnowledgeMatch]) -> str:
    if not matches:
        return NO_DOCUMENTATION
    sections = []
    for match in matches:
        header = f"From {match.title} ({match.url})" if match.url else f"From {match.title}"
        sections.append(f"{header}:\n{match.content}\n")
    return "\n---\n\n".join(sections)
