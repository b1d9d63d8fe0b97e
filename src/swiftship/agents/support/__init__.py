"""Technical support agent."""

from __future__ import annotations

from src.swiftship.agents.support.agent import SupportAgent, create_support_registration

__all__ = ["SupportAgent", "create_support_registration"]
