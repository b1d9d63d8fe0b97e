"""Quote state derivation, draft merging and pricing tests."""

from __future__ import annotations

from datetime import date

import pytest

from src.swiftship.agents.quote.pricing import (
    DEFAULT_DISTANCE_KM,
    add_business_days,
    calculate_price,
    estimate_delivery,
    haversine_km,
    route_distance_km,
    service_options,
)
from src.swiftship.agents.quote.schemas import (
    Coordinates,
    PackageType,
    PartialDraft,
    QuoteDraft,
    QuoteSnapshot,
    QuoteState,
    ServiceLevel,
)
from src.swiftship.agents.quote.state import derive_state, merge_draft, missing_fields
from src.swiftship.agents.schemas import Message

LA = Coordinates(latitude=34.0522, longitude=-118.2437)
NY = Coordinates(latitude=40.7128, longitude=-74.0060)


def _complete_draft(**overrides) -> QuoteDraft:
    partial = PartialDraft(
        package_type=PackageType.FULL_TRUCKLOAD,
        weight_tons=15,
        origin_address="Los Angeles",
        destination_address="New York",
        pickup_date=date(2026, 10, 20),
    )
    return merge_draft(QuoteDraft(), partial.model_copy(update=overrides))


def _priced(draft: QuoteDraft, price: float = 9000.0) -> QuoteDraft:
    service = draft.service.model_copy(
        update={"level": ServiceLevel.STANDARD, "estimated_price": price, "estimated_delivery": date(2026, 10, 27)}
    )
    return draft.model_copy(update={"service": service, "distance_km": 3935.7})


# ── derive_state ─────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "partial, expected",
    [
        (PartialDraft(), QuoteState.COLLECTING_PACKAGE),
        (PartialDraft(package_type=PackageType.BULK_FREIGHT), QuoteState.COLLECTING_PACKAGE),
        (PartialDraft(package_type=PackageType.BULK_FREIGHT, weight_tons=3), QuoteState.COLLECTING_ROUTE),
        (
            PartialDraft(
                package_type=PackageType.BULK_FREIGHT,
                weight_tons=3,
                origin_address="Chicago",
                destination_address="Houston",
            ),
            QuoteState.COLLECTING_SCHEDULE,
        ),
    ],
)
def test_state_follows_first_missing_field(partial, expected):
    assert derive_state(merge_draft(QuoteDraft(), partial)) == expected


def test_route_missing_wins_over_schedule_even_with_date():
    draft = merge_draft(
        QuoteDraft(),
        PartialDraft(package_type=PackageType.FULL_TRUCKLOAD, weight_tons=1, pickup_date=date(2026, 11, 1)),
    )
    assert derive_state(draft) == QuoteState.COLLECTING_ROUTE
    assert [f.name for f in missing_fields(draft)] == ["route.originAddress", "route.destinationAddress"]


def test_complete_unpriced_draft_is_ready_for_price():
    assert derive_state(_complete_draft()) == QuoteState.READY_FOR_PRICE


def test_priced_draft_is_presented_until_confirmed():
    draft = _priced(_complete_draft())
    assert derive_state(draft) == QuoteState.QUOTE_PRESENTED
    assert derive_state(draft, confirmed=True) == QuoteState.TICKET_CREATED


def test_derive_state_is_pure():
    a = _complete_draft()
    b = QuoteDraft.model_validate(a.model_dump(by_alias=True))
    assert derive_state(a) == derive_state(b) == derive_state(a)


# ── merge_draft ──────────────────────────────────────────────────────────────


def test_merge_never_clears_fields_not_mentioned():
    draft = _complete_draft(hazardous=True, pallet_count=4)
    merged = merge_draft(draft, PartialDraft(weight_tons=20))

    assert merged.package.weight == 20
    assert merged.package.type == PackageType.FULL_TRUCKLOAD
    assert merged.package.hazardous is True
    assert merged.package.pallet_count == 4
    assert merged.route.origin_address == "Los Angeles"
    assert merged.route.pickup_date == date(2026, 10, 20)


def test_merge_does_not_mutate_input():
    draft = _complete_draft()
    before = draft.model_dump()
    merge_draft(draft, PartialDraft(weight_tons=1, origin_address="Chicago"))
    assert draft.model_dump() == before


def test_changing_a_pricing_input_clears_the_quote():
    draft = _priced(_complete_draft())
    merged = merge_draft(draft, PartialDraft(weight_tons=20))

    assert merged.service.estimated_price is None
    assert merged.distance_km is None
    assert derive_state(merged) == QuoteState.READY_FOR_PRICE


def test_restating_same_values_keeps_the_quote():
    draft = _priced(_complete_draft())
    merged = merge_draft(draft, PartialDraft(weight_tons=15, origin_address="Los Angeles"))

    assert merged.service.estimated_price == 9000.0
    assert derive_state(merged) == QuoteState.QUOTE_PRESENTED


def test_address_change_drops_its_coordinates():
    draft = _complete_draft()
    route = draft.route.model_copy(update={"origin_coords": LA, "destination_coords": NY})
    draft = draft.model_copy(update={"route": route})

    merged = merge_draft(draft, PartialDraft(destination_address="Chicago"))

    assert merged.route.origin_coords == LA
    assert merged.route.destination_coords is None


# ── Snapshot ─────────────────────────────────────────────────────────────────


def test_snapshot_survives_the_wire():
    draft = _priced(_complete_draft())
    snapshot = QuoteSnapshot(state=QuoteState.QUOTE_PRESENTED, draft=draft)
    conversation = [
        Message(role="user", content="quote please"),
        Message(role="assistant", content="Here it is", metadata={"quote": snapshot.to_wire()}),
    ]

    restored = QuoteSnapshot.latest(conversation)

    assert restored is not None
    assert restored.draft == draft
    assert restored.to_wire()["draft"]["route"]["pickupDate"] == "2026-10-20"


def test_invalid_snapshot_is_skipped():
    conversation = [Message(role="assistant", content="x", metadata={"quote": {"state": "bogus"}})]
    assert QuoteSnapshot.latest(conversation) is None


def test_confirmation_is_sticky():
    confirmed = QuoteSnapshot(state=QuoteState.TICKET_CREATED, draft=_complete_draft(), confirmed=True)
    later = QuoteSnapshot(state=QuoteState.QUOTE_PRESENTED, draft=_complete_draft())
    conversation = [
        Message(role="assistant", content="done", metadata={"quote": confirmed.to_wire()}),
        Message(role="assistant", content="again", metadata={"quote": later.to_wire()}),
    ]
    assert QuoteSnapshot.confirmed_in(conversation) is True


# ── Pricing ──────────────────────────────────────────────────────────────────


def test_haversine_los_angeles_new_york():
    assert 3900 < haversine_km(LA, NY) < 3980


def test_distance_defaults_without_coordinates():
    assert route_distance_km(_complete_draft()) == DEFAULT_DISTANCE_KM


def test_price_formula_and_rounding():
    # (1500 + 1000 * 1.8 + 15 * 15) * 1.0 = 3525 -> 3600
    assert calculate_price(ServiceLevel.STANDARD, 1000, 15) == 3600
    # (2000 + 100 * 2.5 + 0) * 1.5 = 3375 -> 3400 (distance floored at 100 km)
    assert calculate_price(ServiceLevel.EXPRESS, 10, 0) == 3400


@pytest.mark.parametrize("level", list(ServiceLevel))
def test_price_is_monotone_in_weight_and_distance(level):
    weights = [0, 0.5, 1, 5, 15, 40, 100]
    distances = [0, 50, 100, 101, 500, 1000, 3935.7, 8000]

    by_weight = [calculate_price(level, 1000, w) for w in weights]
    by_distance = [calculate_price(level, d, 15) for d in distances]

    assert by_weight == sorted(by_weight)
    assert by_distance == sorted(by_distance)


def test_service_levels_are_ordered_by_price():
    options = {o.level: o for o in service_options(_complete_draft(), 1000)}
    assert options[ServiceLevel.ECO].price < options[ServiceLevel.STANDARD].price < options[ServiceLevel.EXPRESS].price


def test_business_days_skip_weekends():
    friday = date(2026, 10, 23)
    assert add_business_days(friday, 1) == date(2026, 10, 26)
    assert estimate_delivery(date(2026, 10, 19), ServiceLevel.STANDARD) == date(2026, 10, 26)
    assert estimate_delivery(None, ServiceLevel.ECO) is None
