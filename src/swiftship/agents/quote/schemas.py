"""Pydantic models for the quote agent.

The draft is grouped into three slots (package, route, service). Every
field is independently nullable until filled. Models serialize with
camelCase aliases because they travel to the client inside response
metadata and come back in the conversation history.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from src.swiftship.agents.schemas import Message


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ── Enums ─────────────────────────────────────────────────────────────────────


class PackageType(str, Enum):
    FULL_TRUCKLOAD = "full_truckload"
    LESS_THAN_TRUCKLOAD = "less_than_truckload"
    SEA_CONTAINER = "sea_container"
    BULK_FREIGHT = "bulk_freight"

    @property
    def label(self) -> str:
        return {
            PackageType.FULL_TRUCKLOAD: "Full truckload",
            PackageType.LESS_THAN_TRUCKLOAD: "Less than truckload",
            PackageType.SEA_CONTAINER: "Sea container",
            PackageType.BULK_FREIGHT: "Bulk freight",
        }[self]


class ServiceLevel(str, Enum):
    EXPRESS = "express_freight"
    STANDARD = "standard_freight"
    ECO = "eco_freight"

    @property
    def label(self) -> str:
        return {
            ServiceLevel.EXPRESS: "Express Freight",
            ServiceLevel.STANDARD: "Standard Freight",
            ServiceLevel.ECO: "Eco Freight",
        }[self]


class QuoteState(str, Enum):
    """Progression of a quote conversation, in order."""

    COLLECTING_PACKAGE = "collecting_package"
    COLLECTING_ROUTE = "collecting_route"
    COLLECTING_SCHEDULE = "collecting_schedule"
    READY_FOR_PRICE = "ready_for_price"
    QUOTE_PRESENTED = "quote_presented"
    TICKET_CREATED = "ticket_created"


# ── Draft ─────────────────────────────────────────────────────────────────────


class Coordinates(_CamelModel):
    latitude: float
    longitude: float


class PackageDetails(_CamelModel):
    type: PackageType | None = None
    weight: float | None = Field(default=None, ge=0, description="Metric tons")
    volume: float | None = Field(default=None, ge=0, description="Cubic meters")
    hazardous: bool | None = None
    pallet_count: int | None = Field(default=None, ge=0)


class RouteDetails(_CamelModel):
    origin_address: str | None = None
    origin_coords: Coordinates | None = None
    destination_address: str | None = None
    destination_coords: Coordinates | None = None
    pickup_date: date | None = None
    pickup_window: str | None = None


class ServiceDetails(_CamelModel):
    level: ServiceLevel | None = None
    estimated_price: float | None = None
    estimated_delivery: date | None = None


class QuoteDraft(_CamelModel):
    """Conversation-scoped record the quote agent builds up turn by turn."""

    package: PackageDetails = Field(default_factory=PackageDetails)
    route: RouteDetails = Field(default_factory=RouteDetails)
    service: ServiceDetails = Field(default_factory=ServiceDetails)
    distance_km: float | None = None
    unverified_address: bool = False

    @property
    def is_quoted(self) -> bool:
        return self.service.estimated_price is not None


class PartialDraft(BaseModel):
    """Fields found by one extraction pass. None means "not mentioned"."""

    package_type: PackageType | None = Field(
        default=None, description="Shipment type; 20ft/40ft containers on trucks are full_truckload"
    )
    weight_tons: float | None = Field(default=None, ge=0, description="Total weight in metric tons")
    volume_m3: float | None = Field(default=None, ge=0, description="Total volume in cubic meters")
    hazardous: bool | None = Field(default=None, description="True only if hazardous goods are stated")
    pallet_count: int | None = Field(default=None, ge=0)
    origin_address: str | None = Field(default=None, description="Pickup address or city")
    destination_address: str | None = Field(default=None, description="Delivery address or city")
    pickup_date: date | None = Field(default=None, description="Pickup date, ISO format")
    pickup_window: str | None = Field(default=None, description="Pickup time window, e.g. 9am-5pm")
    service_level: ServiceLevel | None = None

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


# ── Conversation snapshot ─────────────────────────────────────────────────────


SNAPSHOT_KEY = "quote"


class QuoteSnapshot(_CamelModel):
    """Quote progress attached to each assistant reply's metadata."""

    state: QuoteState
    draft: QuoteDraft
    confirmed: bool = False
    ticket_id: str | None = None

    @classmethod
    def latest(cls, conversation: list[Message]) -> QuoteSnapshot | None:
        """Most recent valid snapshot in the assistant turns, if any."""
        for message in reversed(conversation):
            if message.role != "assistant" or not message.metadata:
                continue
            raw = message.metadata.get(SNAPSHOT_KEY)
            if not isinstance(raw, dict):
                continue
            try:
                return cls.model_validate(raw)
            except ValidationError:
                continue
        return None

    @classmethod
    def confirmed_in(cls, conversation: list[Message]) -> bool:
        """Confirmation is sticky: once any snapshot says confirmed, it stays."""
        for message in conversation:
            if message.role == "assistant" and message.metadata:
                raw = message.metadata.get(SNAPSHOT_KEY)
                if isinstance(raw, dict) and raw.get("confirmed") is True:
                    return True
        return False
