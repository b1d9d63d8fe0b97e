"""Pure state derivation and draft merging for the quote dialogue.

The quote state is never stored on its own: it is computed from which draft
fields are filled plus the sticky confirmation flag.

Merge rule (last writer wins on explicit mention): a filled field changes
only when the extraction pass returns a non-null value for that exact field.
Derived values are cleared when their inputs change: coordinates when their
address changes, the price and delivery estimate when anything they are
computed from changes.

Exports:
    RequiredField: A required draft field with its collecting state.
    REQUIRED_FIELDS: Required fields in question priority order.
    missing_fields: Required fields still null, in priority order.
    derive_state: (draft, confirmed) -> QuoteState.
    merge_draft: Apply a PartialDraft to a QuoteDraft.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from src.swiftship.agents.quote.schemas import PartialDraft, QuoteDraft, QuoteState


@dataclass(frozen=True)
class RequiredField:
    name: str
    state: QuoteState
    getter: Callable[[QuoteDraft], object]


REQUIRED_FIELDS: tuple[RequiredField, ...] = (
    RequiredField("package.type", QuoteState.COLLECTING_PACKAGE, lambda d: d.package.type),
    RequiredField("package.weight", QuoteState.COLLECTING_PACKAGE, lambda d: d.package.weight),
    RequiredField("route.originAddress", QuoteState.COLLECTING_ROUTE, lambda d: d.route.origin_address),
    RequiredField(
        "route.destinationAddress", QuoteState.COLLECTING_ROUTE, lambda d: d.route.destination_address
    ),
    RequiredField("route.pickupDate", QuoteState.COLLECTING_SCHEDULE, lambda d: d.route.pickup_date),
)

# Draft fields that feed the price or the delivery estimate.
_PRICING_INPUTS = (
    ("package", "type"),
    ("package", "weight"),
    ("package", "volume"),
    ("package", "hazardous"),
    ("package", "pallet_count"),
    ("route", "origin_address"),
    ("route", "destination_address"),
    ("route", "pickup_date"),
    ("service", "level"),
)


def missing_fields(draft: QuoteDraft) -> list[RequiredField]:
    return [field for field in REQUIRED_FIELDS if field.getter(draft) is None]


def derive_state(draft: QuoteDraft, confirmed: bool = False) -> QuoteState:
    """Current state of the dialogue.

    Two drafts with the same filled fields always map to the same state.
    """
    missing = missing_fields(draft)
    if missing:
        return missing[0].state
    if not draft.is_quoted:
        return QuoteState.READY_FOR_PRICE
    if confirmed:
        return QuoteState.TICKET_CREATED
    return QuoteState.QUOTE_PRESENTED


def pricing_inputs(draft: QuoteDraft) -> tuple:
    return tuple(getattr(getattr(draft, group), name) for group, name in _PRICING_INPUTS)


def merge_draft(draft: QuoteDraft, partial: PartialDraft) -> QuoteDraft:
    """Return a new draft with every non-null field of ``partial`` applied."""
    package = draft.package.model_copy(
        update=_present(
            type=partial.package_type,
            weight=partial.weight_tons,
            volume=partial.volume_m3,
            hazardous=partial.hazardous,
            pallet_count=partial.pallet_count,
        )
    )

    route_updates = _present(
        origin_address=partial.origin_address,
        destination_address=partial.destination_address,
        pickup_date=partial.pickup_date,
        pickup_window=partial.pickup_window,
    )
    if "origin_address" in route_updates and route_updates["origin_address"] != draft.route.origin_address:
        route_updates["origin_coords"] = None
    if (
        "destination_address" in route_updates
        and route_updates["destination_address"] != draft.route.destination_address
    ):
        route_updates["destination_coords"] = None
    route = draft.route.model_copy(update=route_updates)

    service = draft.service.model_copy(update=_present(level=partial.service_level))

    merged = draft.model_copy(update={"package": package, "route": route, "service": service})

    if pricing_inputs(merged) != pricing_inputs(draft):
        merged = clear_quote(merged)
    return merged


def clear_quote(draft: QuoteDraft) -> QuoteDraft:
    """Drop the computed price so it is recomputed from current inputs."""
    service = draft.service.model_copy(update={"estimated_price": None, "estimated_delivery": None})
    return draft.model_copy(update={"service": service, "distance_km": None, "unverified_address": False})


def _present(**values: object) -> dict[str, object]:
    return {key: value for key, value in values.items() if value is not None}
