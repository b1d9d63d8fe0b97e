"""Prompt and reply templates for the quote agent.

Replies while collecting details always end in exactly one question,
targeting the first missing required field.
"""

from __future__ import annotations

from src.swiftship.agents.schemas import Message

EXTRACTION_SYSTEM_PROMPT = """You extract shipping quote details from a conversation between \
a customer and Swift Ship's quote assistant.

Rules:
- Only use what the customer explicitly said. Leave a field null if it was not stated.
- If a detail was stated more than once, use the most recent statement.
- Convert weight to metric tons and volume to cubic meters.
- 20ft or 40ft containers moved by truck are full_truckload; use sea_container only for ocean shipping.
- Resolve relative pickup dates against today's date: {today}.

Details collected so far (may be corrected by the customer):
{current}"""

FIELD_QUESTIONS: dict[str, str] = {
    "package.type": (
        "What kind of shipment is this: full truckload, less than truckload (LTL), "
        "sea container, or bulk freight?"
    ),
    "package.weight": "What is the total weight of the shipment (in tons, kg or lbs)?",
    "route.originAddress": "Where should we pick the shipment up?",
    "route.destinationAddress": "Where should the shipment be delivered?",
    "route.pickupDate": "What date would you like the shipment picked up?",
}

GREETING = "I can help you with a Swift Ship freight quote."
UNCLEAR_DETAILS = "Sorry, I couldn't reliably read the details from your last message."

CONFIRM_PROMPT = (
    "Would you like to confirm this quote and create a ticket (yes/no)? "
    "You can also switch to express, standard or eco service, or correct any detail."
)
DECLINED = "No problem, the quote has not been submitted. Tell me what you'd like to change."
UNVERIFIED_NOTE = (
    "Note: I couldn't verify one of the addresses, so the distance is estimated "
    "and the final price may change."
)
LOGIN_REQUIRED = (
    "I need your customer information to create the quote. Please log in or provide your details, "
    "then confirm again."
)
TICKET_FAILED = (
    "I couldn't create your quote ticket right now ({error}). Your quote is still saved; "
    "reply 'yes' to try again."
)
TICKET_CREATED = (
    "Your quote has been confirmed and ticket {ticket_id} was created. "
    "Our team will contact you shortly to arrange pickup."
)
QUOTE_SUBMITTED = (
    "Your quote has been confirmed and submitted. Our team will contact you shortly to arrange pickup."
)
ALREADY_SUBMITTED = (
    "This quote has already been submitted{ticket}. Start a new conversation for another quote."
)


def format_transcript(conversation: list[Message]) -> str:
    lines = []
    for message in conversation:
        if message.role == "system" or not message.content:
            continue
        speaker = "Customer" if message.role == "user" else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)


def format_money(amount: float) -> str:
    return f"${amount:,.0f}"
