"""Quote agent capability declarations and registration factory."""

from __future__ import annotations

from src.swiftship.agents.base import AgentCapability, AgentRegistration
from src.swiftship.agents.schemas import AgentType

QUOTE_CAPABILITIES: list[AgentCapability] = [
    AgentCapability(
        name="collect_shipment_details",
        description="Collect package, route and pickup details over several turns",
    ),
    AgentCapability(
        name="price_quote",
        description="Price express, standard and eco freight for a shipment",
    ),
    AgentCapability(
        name="quote_ticket",
        description="Turn a confirmed quote into a ticket for the operations team",
    ),
]


def create_quote_registration() -> AgentRegistration:
    return AgentRegistration(
        agent_type=AgentType.QUOTE,
        name="Quote Agent",
        description=(
            "Shipping quotes and pricing for a new shipment: package details, "
            "pickup and delivery addresses, service level"
        ),
        capabilities=list(QUOTE_CAPABILITIES),
    )
