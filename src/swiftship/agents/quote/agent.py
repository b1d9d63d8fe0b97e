"""Quote agent: slot-filling dialogue that ends in a priced, confirmed quote.

Each turn:
1. Rebuild the draft from the latest quote snapshot in the history.
2. Run the slot extractor over the full conversation and merge.
3. Derive the state and respond:
   - collecting: one question for the first missing required field
   - ready for price: geocode (best effort), price, present the quote
   - quote presented: confirm on an explicit yes, otherwise treat the turn
     as a possible correction
4. Attach a fresh snapshot to the response metadata so the next request can
   continue from it.
"""

from __future__ import annotations

import asyncio
import re

import structlog

from src.swiftship.agents.base import AgentContext, AgentRegistration, BaseAgent
from src.swiftship.agents.quote import prompts
from src.swiftship.agents.quote.capabilities import create_quote_registration
from src.swiftship.agents.quote.extractor import SlotExtractor
from src.swiftship.agents.quote.pricing import (
    DEFAULT_SERVICE_LEVEL,
    estimate_delivery,
    route_distance_km,
    service_options,
)
from src.swiftship.agents.quote.schemas import (
    SNAPSHOT_KEY,
    Coordinates,
    PartialDraft,
    QuoteDraft,
    QuoteSnapshot,
    QuoteState,
)
from src.swiftship.agents.quote.state import derive_state, merge_draft, missing_fields
from src.swiftship.agents.schemas import AgentResponse
from src.swiftship.services.geocoding import GeocodeResult, Geocoder
from src.swiftship.services.llm import LLMResponseFormatError
from src.swiftship.services.ticketing import CustomerIdentity, TicketClient

logger = structlog.get_logger(__name__)

_NEGATIVE_RE = re.compile(r"\b(?:no|nope|cancel|not\s+yet|don'?t|do\s+not|wait|hold\s+on)\b", re.I)
_AFFIRMATIVE_RE = re.compile(
    r"\b(?:yes|yeah|yep|yup|sure|ok(?:ay)?|confirm(?:ed)?|proceed|book\s+it|go\s+ahead|sounds\s+good)\b",
    re.I,
)


def is_affirmative(text: str) -> bool:
    """Explicit yes. Any negative word wins over affirmative ones."""
    if _NEGATIVE_RE.search(text):
        return False
    return bool(_AFFIRMATIVE_RE.search(text))


def is_negative(text: str) -> bool:
    return bool(_NEGATIVE_RE.search(text))


class QuoteAgent(BaseAgent):
    """Collects shipment details, prices them and hands off to ticketing.

    Args:
        extractor: Slot extractor run on every turn.
        geocoder: Address resolver; failures never block a quote.
        ticket_client: Optional ticketing collaborator. Without one, a
            confirmed quote is returned as a ``ticketRequest`` in metadata.
        registration: Optional override of the default registration.
    """

    def __init__(
        self,
        extractor: SlotExtractor,
        geocoder: Geocoder,
        ticket_client: TicketClient | None = None,
        registration: AgentRegistration | None = None,
    ) -> None:
        super().__init__(registration or create_quote_registration())
        self._extractor = extractor
        self._geocoder = geocoder
        self._tickets = ticket_client

    async def execute(self, context: AgentContext) -> AgentResponse:
        snapshot = QuoteSnapshot.latest(context.conversation)
        draft = snapshot.draft if snapshot else QuoteDraft()
        confirmed = QuoteSnapshot.confirmed_in(context.conversation)

        if confirmed:
            ticket_id = snapshot.ticket_id if snapshot else None
            context.debug("quote_already_submitted", ticket_id=ticket_id)
            return self._reply(
                prompts.ALREADY_SUBMITTED.format(ticket=f" as ticket {ticket_id}" if ticket_id else ""),
                draft,
                confirmed=True,
                ticket_id=ticket_id,
            )

        was_presented = snapshot is not None and snapshot.state == QuoteState.QUOTE_PRESENTED

        unclear = False
        try:
            partial = await self._extractor.extract(context.conversation, draft)
        except LLMResponseFormatError as exc:
            logger.warning("quote_extraction_malformed", error=str(exc))
            partial, unclear = PartialDraft(), True
        context.debug("slots_extracted", fields=sorted(partial.model_dump(exclude_none=True)))

        draft = merge_draft(draft, partial)
        state = derive_state(draft)
        context.debug("quote_state", state=state.value)

        if state in (
            QuoteState.COLLECTING_PACKAGE,
            QuoteState.COLLECTING_ROUTE,
            QuoteState.COLLECTING_SCHEDULE,
        ):
            return self._reply(self._clarifying_question(draft, unclear), draft)

        if state == QuoteState.READY_FOR_PRICE:
            draft = await self._price(draft, context)
            return self._reply(self._presentation(draft), draft)

        # Inputs unchanged since the quote was shown.
        latest = context.query
        if was_presented and is_affirmative(latest):
            return await self._confirm(draft, context)
        if was_presented and is_negative(latest):
            return self._reply(prompts.DECLINED, draft)
        return self._reply(self._presentation(draft), draft)

    # -- Steps ----------------------------------------------------------------

    async def _price(self, draft: QuoteDraft, context: AgentContext) -> QuoteDraft:
        origin, destination = await asyncio.gather(
            self._geocoder.geocode(draft.route.origin_address or ""),
            self._geocoder.geocode(draft.route.destination_address or ""),
        )
        route_updates: dict = {}
        if isinstance(origin, GeocodeResult):
            route_updates["origin_coords"] = Coordinates(latitude=origin.latitude, longitude=origin.longitude)
        if isinstance(destination, GeocodeResult):
            route_updates["destination_coords"] = Coordinates(
                latitude=destination.latitude, longitude=destination.longitude
            )
        unverified = not (origin.ok and destination.ok)
        context.debug("addresses_geocoded", origin_ok=origin.ok, destination_ok=destination.ok)

        draft = draft.model_copy(update={"route": draft.route.model_copy(update=route_updates)})
        distance = route_distance_km(draft)
        level = draft.service.level or DEFAULT_SERVICE_LEVEL
        selected = next(option for option in service_options(draft, distance) if option.level == level)

        service = draft.service.model_copy(
            update={
                "level": level,
                "estimated_price": selected.price,
                "estimated_delivery": estimate_delivery(draft.route.pickup_date, level),
            }
        )
        context.debug("quote_priced", level=level.value, distance_km=distance, price=selected.price)
        logger.info("quote_priced", level=level.value, distance_km=distance, unverified=unverified)
        return draft.model_copy(
            update={"service": service, "distance_km": distance, "unverified_address": unverified}
        )

    async def _confirm(self, draft: QuoteDraft, context: AgentContext) -> AgentResponse:
        customer = CustomerIdentity.from_metadata(context.metadata)
        request = build_ticket_request(draft, customer)
        context.debug("quote_confirmed", price=draft.service.estimated_price)

        if self._tickets is None:
            return self._reply(
                prompts.QUOTE_SUBMITTED,
                draft,
                confirmed=True,
                extra={"ticketRequest": request},
            )

        if customer is None:
            return self._reply(prompts.LOGIN_REQUIRED, draft, extra={"ticketRequest": request})

        result = await self._tickets.create_ticket(request, customer)
        if not result.ok:
            context.debug("ticket_failed", error=result.error)
            return self._reply(
                prompts.TICKET_FAILED.format(error=result.error),
                draft,
                extra={"ticketRequest": request, "ticketError": result.error},
            )

        return self._reply(
            prompts.TICKET_CREATED.format(ticket_id=result.ticket_id),
            draft,
            confirmed=True,
            ticket_id=result.ticket_id,
            extra={"ticketRequest": request, "ticketId": result.ticket_id},
        )

    # -- Replies --------------------------------------------------------------

    @staticmethod
    def _clarifying_question(draft: QuoteDraft, unclear: bool) -> str:
        field = missing_fields(draft)[0]
        lead = prompts.UNCLEAR_DETAILS if unclear else summarize_known(draft) or prompts.GREETING
        return f"{lead}\n\n{prompts.FIELD_QUESTIONS[field.name]}"

    @staticmethod
    def _presentation(draft: QuoteDraft) -> str:
        route, service = draft.route, draft.service
        distance = draft.distance_km if draft.distance_km is not None else route_distance_km(draft)

        lines = ["Here is your Swift Ship quote:", ""]
        lines.append(f"Shipment: {describe_package(draft)}")
        lines.append(f"Route: {route.origin_address} to {route.destination_address} ({distance:,.0f} km)")
        pickup = route.pickup_date.isoformat() if route.pickup_date else "not set"
        if route.pickup_window:
            pickup = f"{pickup} ({route.pickup_window})"
        lines.append(f"Pickup: {pickup}")
        lines.append("")
        level = service.level or DEFAULT_SERVICE_LEVEL
        lines.append("Service options:")
        for option in service_options(draft, distance):
            marker = " (selected)" if option.level == level else ""
            lines.append(f"- {option.level.label}, {option.transit}: {prompts.format_money(option.price)}{marker}")
        lines.append("")

        total = f"Estimated price: {prompts.format_money(service.estimated_price or 0)} with {level.label}"
        if service.estimated_delivery:
            total += f", estimated delivery {service.estimated_delivery.isoformat()}"
        lines.append(total + ".")
        if draft.unverified_address:
            lines.append(prompts.UNVERIFIED_NOTE)
        lines.append("")
        lines.append(prompts.CONFIRM_PROMPT)
        return "\n".join(lines)

    @staticmethod
    def _reply(
        content: str,
        draft: QuoteDraft,
        *,
        confirmed: bool = False,
        ticket_id: str | None = None,
        extra: dict | None = None,
    ) -> AgentResponse:
        state = derive_state(draft, confirmed=confirmed)
        snapshot = QuoteSnapshot(state=state, draft=draft, confirmed=confirmed, ticket_id=ticket_id)
        metadata = {
            SNAPSHOT_KEY: snapshot.to_wire(),
            "quoteState": state.value,
            "missingFields": [field.name for field in missing_fields(draft)],
        }
        if draft.unverified_address:
            metadata["unverifiedAddress"] = True
        if extra:
            metadata.update(extra)
        return AgentResponse(content=content, metadata=metadata)


# ── Helpers ───────────────────────────────────────────────────────────────────


def describe_package(draft: QuoteDraft) -> str:
    package = draft.package
    parts = [package.type.label if package.type else "Shipment"]
    if package.weight is not None:
        parts.append(f"{package.weight:g} t")
    if package.volume is not None:
        parts.append(f"{package.volume:g} m³")
    if package.pallet_count:
        parts.append(f"{package.pallet_count} pallets")
    if package.hazardous:
        parts.append("hazardous")
    return ", ".join(parts)


def summarize_known(draft: QuoteDraft) -> str:
    """One line acknowledging what has been collected so far."""
    known = []
    if draft.package.type or draft.package.weight is not None:
        known.append(describe_package(draft))
    if draft.route.origin_address and draft.route.destination_address:
        known.append(f"{draft.route.origin_address} to {draft.route.destination_address}")
    elif draft.route.origin_address:
        known.append(f"pickup in {draft.route.origin_address}")
    elif draft.route.destination_address:
        known.append(f"delivery to {draft.route.destination_address}")
    if not known:
        return ""
    return "Got it: " + "; ".join(known) + "."


def build_ticket_request(draft: QuoteDraft, customer: CustomerIdentity | None) -> dict:
    """Payload for the ticketing collaborator."""
    who = customer.name if customer and customer.name else None
    title = f"Shipping Quote - {who}" if who else (
        f"Shipping Quote - {draft.route.origin_address} to {draft.route.destination_address}"
    )
    return {
        "title": title,
        "type": "quote",
        "status": "open",
        "priority": "medium",
        "metadata": {
            "packageDetails": draft.package.to_wire(),
            "route": draft.route.to_wire(),
            "selectedService": draft.service.level.value if draft.service.level else None,
            "quotedPrice": draft.service.estimated_price,
            "estimatedDelivery": (
                draft.service.estimated_delivery.isoformat() if draft.service.estimated_delivery else None
            ),
            "distanceKm": draft.distance_km,
            "unverifiedAddress": draft.unverified_address,
        },
    }
