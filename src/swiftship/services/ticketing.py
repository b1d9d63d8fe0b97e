"""Ticketing collaborator: creates a quote ticket in the support system.

Failures are reported to the caller as a TicketResult and never retried
here; the user confirms again to resubmit.

Exports:
    CustomerIdentity: Who the ticket is for.
    TicketResult: Outcome of a creation request.
    TicketClient: httpx client for POST /api/tickets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CustomerIdentity:
    customer_id: str
    name: str | None = None
    email: str | None = None
    access_token: str | None = None

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any] | None) -> CustomerIdentity | None:
        """Read the caller's identity from request metadata, if present.

        Accepts either flat keys (customerId, customerName, customerEmail)
        or a nested ``customer`` object with id, name and email.
        """
        metadata = metadata or {}
        customer = metadata.get("customer") if isinstance(metadata.get("customer"), dict) else {}
        customer_id = metadata.get("customerId") or customer.get("id")
        if not customer_id:
            return None
        return cls(
            customer_id=str(customer_id),
            name=metadata.get("customerName") or customer.get("name"),
            email=metadata.get("customerEmail") or customer.get("email"),
            access_token=metadata.get("accessToken"),
        )


@dataclass(frozen=True)
class TicketResult:
    ok: bool
    ticket_id: str | None = None
    error: str | None = None


class TicketClient:
    """Creates tickets through the platform's REST API.

    Args:
        base_url: Root of the ticketing API (the part before /api/tickets).
        api_token: Service token, used when the customer has no access token.
        timeout: Request timeout in seconds.
    """

    def __init__(self, base_url: str, api_token: str = "", timeout: float = 15.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._timeout = timeout

    def _headers(self, customer: CustomerIdentity) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = customer.access_token or self._api_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def create_ticket(self, payload: dict[str, Any], customer: CustomerIdentity) -> TicketResult:
        """POST the ticket payload on behalf of ``customer``.

        Returns:
            TicketResult with the created id, or ok=False and an error string.
        """
        body = {**payload, "customerId": customer.customer_id}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}/api/tickets",
                    json=body,
                    headers=self._headers(customer),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "ticket_create_rejected",
                customer_id=customer.customer_id,
                status_code=exc.response.status_code,
            )
            return TicketResult(ok=False, error=f"ticketing service returned HTTP {exc.response.status_code}")
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "ticket_create_failed",
                customer_id=customer.customer_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return TicketResult(ok=False, error=f"ticketing service unavailable ({type(exc).__name__})")

        ticket = data.get("ticket", data) if isinstance(data, dict) else {}
        ticket_id = ticket.get("id") if isinstance(ticket, dict) else None
        if not ticket_id:
            return TicketResult(ok=False, error="ticketing service returned no ticket id")

        logger.info("ticket_created", ticket_id=ticket_id, customer_id=customer.customer_id)
        return TicketResult(ok=True, ticket_id=str(ticket_id))
