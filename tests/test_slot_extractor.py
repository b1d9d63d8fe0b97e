"""Slot extraction tests.

The pattern extractor is deterministic, so these tests pin down the
extraction contract: units, type disambiguation, route phrases, dates, and
the "most recent occurrence wins" tie-break.
"""

from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock

from src.swiftship.agents.quote.extractor import (
    HybridSlotExtractor,
    LLMSlotExtractor,
    PatternSlotExtractor,
    create_slot_extractor,
)
from src.swiftship.agents.quote.schemas import PackageType, PartialDraft, QuoteDraft, ServiceLevel
from src.swiftship.agents.schemas import Message
from src.swiftship.config import ExtractionMode
from src.swiftship.services.llm import LLMResponseFormatError

TODAY = date(2026, 10, 19)  # a Monday

SCENARIO = (
    "I need a quote for shipping a 40ft container with electronics from Los Angeles to New York. "
    "The container weighs approximately 15 tons."
)


def _extract(*texts: str) -> PartialDraft:
    conversation = [Message(role="user", content=text) for text in texts]
    return PatternSlotExtractor(today=lambda: TODAY).extract_sync(conversation)


# ── Scenario ─────────────────────────────────────────────────────────────────


def test_scenario_sentence():
    partial = _extract(SCENARIO)

    assert partial.package_type == PackageType.FULL_TRUCKLOAD
    assert partial.weight_tons == 15
    assert partial.origin_address == "Los Angeles"
    assert partial.destination_address == "New York"
    assert partial.pickup_date is None
    assert partial.service_level is None


def test_extraction_is_deterministic():
    assert _extract(SCENARIO) == _extract(SCENARIO)


# ── Package ──────────────────────────────────────────────────────────────────


def test_two_weights_in_one_message_latest_wins():
    assert _extract("It's 10 tons, sorry, actually 12 tons.").weight_tons == 12


def test_weight_correction_in_later_turn_wins():
    assert _extract("About 15 tons of steel", "Correction: it is 18 tons").weight_tons == 18


def test_weight_unit_conversion():
    assert _extract("roughly 2,500 kg").weight_tons == 2.5
    assert _extract("about 1000 lbs").weight_tons == 0.454


def test_ltl_is_not_mistaken_for_full_truckload():
    partial = _extract("This is a less than truckload shipment, 6 pallets, 3 tons")

    assert partial.package_type == PackageType.LESS_THAN_TRUCKLOAD
    assert partial.pallet_count == 6


def test_container_with_sea_qualifier_is_sea_container():
    assert _extract("One container going by ocean vessel").package_type == PackageType.SEA_CONTAINER
    assert _extract("a sea container of furniture").package_type == PackageType.SEA_CONTAINER


def test_bulk_freight():
    assert _extract("bulk grain, 30 tons").package_type == PackageType.BULK_FREIGHT


def test_hazardous_flag_respects_negation():
    assert _extract("contains flammable paint").hazardous is True
    assert _extract("it is non-hazardous").hazardous is False
    assert _extract("not hazardous at all").hazardous is False


def test_volume():
    assert _extract("about 40 cubic meters").volume_m3 == 40


# ── Route ────────────────────────────────────────────────────────────────────


def test_route_with_state_codes_and_trailing_schedule():
    partial = _extract("Ship from Chicago, IL to Houston, TX on Monday")

    assert partial.origin_address == "Chicago, IL"
    assert partial.destination_address == "Houston, TX"


def test_route_from_separate_phrases():
    partial = _extract("Pick up from 12 Harbor Road, Oakland.", "Deliver to Phoenix please")

    assert partial.origin_address == "12 Harbor Road"
    assert partial.destination_address == "Phoenix"


def test_destination_correction_wins():
    partial = _extract("from Los Angeles to New York", "Sorry, the destination is Chicago")
    assert partial.destination_address == "Chicago"
    assert partial.origin_address == "Los Angeles"


def test_assistant_turns_are_ignored():
    conversation = [
        Message(role="user", content="Quote for 5 tons please"),
        Message(role="assistant", content="Shipping from Houston to Phoenix would take 3 days. 99 tons?"),
    ]
    partial = PatternSlotExtractor(today=lambda: TODAY).extract_sync(conversation)

    assert partial.weight_tons == 5
    assert partial.origin_address is None


# ── Schedule ─────────────────────────────────────────────────────────────────


def test_iso_and_month_dates():
    assert _extract("pickup on 2026-11-03").pickup_date == date(2026, 11, 3)
    assert _extract("pickup on November 5th").pickup_date == date(2026, 11, 5)
    assert _extract("pickup on the 7th of December").pickup_date == date(2026, 12, 7)


def test_month_day_in_the_past_rolls_to_next_year():
    assert _extract("pickup on March 2").pickup_date == date(2027, 3, 2)


def test_relative_dates():
    assert _extract("Can you pick it up tomorrow?").pickup_date == date(2026, 10, 20)
    assert _extract("ready in 3 days").pickup_date == date(2026, 10, 22)
    assert _extract("pickup Friday").pickup_date == date(2026, 10, 23)
    assert _extract("pickup next Monday").pickup_date == date(2026, 10, 26)


def test_relative_date_uses_message_timestamp():
    conversation = [
        Message(role="user", content="pickup tomorrow", metadata={"timestamp": "2026-12-01T09:30:00Z"}),
    ]
    partial = PatternSlotExtractor(today=lambda: TODAY).extract_sync(conversation)
    assert partial.pickup_date == date(2026, 12, 2)


def test_delivery_deadline_is_not_a_pickup_date():
    partial = _extract("Pickup on 2026-11-02, it must be delivered by Friday")
    assert partial.pickup_date == date(2026, 11, 2)


def test_pickup_window():
    assert _extract("between 9am and 5pm").pickup_window == "9am-5pm"
    assert _extract("ideally in the morning").pickup_window == "morning"


def test_service_level():
    assert _extract("Let's go with express").service_level == ServiceLevel.EXPRESS
    assert _extract("economy is fine").service_level == ServiceLevel.ECO
    assert _extract("Can I get a standard freight rate?").service_level == ServiceLevel.STANDARD


def test_service_level_ignores_words_outside_a_service_context():
    assert _extract("It's 12 standard pallets of bottled water").service_level is None
    assert _extract("We use eco-friendly packaging").service_level is None
    assert _extract("Goods for our express checkout counters").service_level is None


# ── Strategies ───────────────────────────────────────────────────────────────


async def test_hybrid_patterns_from_latest_turn_override_llm_fields():
    llm_extractor = LLMSlotExtractor(llm=None)
    llm_extractor.extract = AsyncMock(
        return_value=PartialDraft(weight_tons=99, origin_address="Somewhere", hazardous=True)
    )
    hybrid = HybridSlotExtractor(llm_extractor, PatternSlotExtractor(today=lambda: TODAY))

    partial = await hybrid.extract([Message(role="user", content="12 tons from Chicago to Phoenix")], QuoteDraft())

    assert partial.weight_tons == 12
    assert partial.origin_address == "Chicago"
    assert partial.hazardous is True


async def test_hybrid_keeps_llm_correction_over_earlier_pattern_match():
    llm_extractor = LLMSlotExtractor(llm=None)
    llm_extractor.extract = AsyncMock(return_value=PartialDraft(destination_address="Boston"))
    hybrid = HybridSlotExtractor(llm_extractor, PatternSlotExtractor(today=lambda: TODAY))
    conversation = [
        Message(role="user", content="15 tons in a 40ft container from Los Angeles to New York"),
        Message(role="assistant", content="When should we pick it up?"),
        Message(role="user", content="Actually make the destination Boston instead."),
    ]

    partial = await hybrid.extract(conversation, QuoteDraft())

    assert partial.destination_address == "Boston"
    # Fields the LLM left empty still come from earlier turns.
    assert partial.origin_address == "Los Angeles"
    assert partial.weight_tons == 15
    assert partial.package_type == PackageType.FULL_TRUCKLOAD


async def test_hybrid_degrades_to_patterns_on_malformed_llm_output():
    llm_extractor = LLMSlotExtractor(llm=None)
    llm_extractor.extract = AsyncMock(side_effect=LLMResponseFormatError("bad json", operation="extract"))
    hybrid = HybridSlotExtractor(llm_extractor, PatternSlotExtractor(today=lambda: TODAY))

    partial = await hybrid.extract([Message(role="user", content="8 tons")], QuoteDraft())
    assert partial.weight_tons == 8


async def test_llm_extractor_sends_transcript_and_current_draft():
    llm = AsyncMock()
    llm.extract = AsyncMock(return_value=PartialDraft(weight_tons=3))
    extractor = LLMSlotExtractor(llm, today=lambda: TODAY)

    conversation = [
        Message(role="user", content="3 tons please"),
        Message(role="assistant", content="Where from?"),
    ]
    result = await extractor.extract(conversation, QuoteDraft())

    assert result.weight_tons == 3
    messages, model = llm.extract.await_args.args
    assert model is PartialDraft
    assert "2026-10-19" in messages[0]["content"]
    assert messages[1]["content"] == "Customer: 3 tons please\nAssistant: Where from?"


def test_factory_modes():
    assert isinstance(create_slot_extractor(ExtractionMode.pattern, llm=AsyncMock()), PatternSlotExtractor)
    assert isinstance(create_slot_extractor(ExtractionMode.hybrid, llm=None), PatternSlotExtractor)
    assert isinstance(create_slot_extractor(ExtractionMode.llm, llm=AsyncMock()), LLMSlotExtractor)
    assert isinstance(create_slot_extractor(ExtractionMode.hybrid, llm=AsyncMock()), HybridSlotExtractor)
