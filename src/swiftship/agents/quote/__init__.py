"""Quote agent package.

Exports:
    QuoteAgent: Slot-filling quote dialogue.
    create_quote_registration: Registration factory.
    QuoteDraft, QuoteState, PartialDraft: Core quote types.
    derive_state, merge_draft: Pure state functions.
    create_slot_extractor: Extractor factory for the configured mode.
"""

from __future__ import annotations

from src.swiftship.agents.quote.agent import QuoteAgent
from src.swiftship.agents.quote.capabilities import create_quote_registration
from src.swiftship.agents.quote.extractor import create_slot_extractor
from src.swiftship.agents.quote.schemas import PartialDraft, QuoteDraft, QuoteState
from src.swiftship.agents.quote.state import derive_state, merge_draft

__all__ = [
    "PartialDraft",
    "QuoteAgent",
    "QuoteDraft",
    "QuoteState",
    "create_quote_registration",
    "create_slot_extractor",
    "derive_state",
    "merge_draft",
]
