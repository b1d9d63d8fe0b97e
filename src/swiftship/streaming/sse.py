"""Server-sent event framing for agent responses.

Event order for one response is fixed: chunk, metadata, sources, debug.
Each event is one compact JSON object. Payloads longer than the frame limit
are split across several ``data:`` lines of the same event; the blank line
after the last fragment ends the event, so decoders reassemble by event
boundary, never by line:

    data: {"type":"chunk","content":"short"}\\n\\n
    data: <fragment 1>\\n
    data: <fragment 2>\\n
    \\n

The limit counts UTF-16 code units to stay wire compatible with JavaScript
clients; a slice never ends between the two halves of a surrogate pair.

Exports:
    StreamEvent: Typed event model.
    response_events: AgentResponse -> ordered list of StreamEvents.
    encode_event / encode_response: Events -> SSE text.
    stream_agent_response: Async generator that runs an agent call and
        frames its result, converting failures to a final error event.
    decode_events / decode_response: SSE text -> payloads / AgentResponse.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Literal

import structlog
from pydantic import BaseModel

from src.swiftship.agents.schemas import AgentResponse

logger = structlog.get_logger(__name__)

MAX_FRAME_CHARS = 16384
DATA_PREFIX = "data: "

EventType = Literal["chunk", "metadata", "sources", "debug", "error"]

# Wire key carrying each event's payload.
_PAYLOAD_KEYS: dict[str, str] = {
    "chunk": "content",
    "metadata": "metadata",
    "sources": "sources",
    "debug": "logs",
    "error": "error",
}


class StreamEvent(BaseModel):
    """One logical event of a response stream."""

    type: EventType
    payload: Any

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, _PAYLOAD_KEYS[self.type]: self.payload}

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> StreamEvent:
        event_type = data.get("type")
        if event_type not in _PAYLOAD_KEYS:
            raise ValueError(f"Unknown stream event type: {event_type!r}")
        return cls(type=event_type, payload=data.get(_PAYLOAD_KEYS[event_type]))


def response_events(response: AgentResponse, include_debug: bool = False) -> list[StreamEvent]:
    """Ordered events for one agent response."""
    events = [StreamEvent(type="chunk", payload=response.content)]
    if response.metadata is not None:
        events.append(StreamEvent(type="metadata", payload=response.metadata))
    if response.sources is not None:
        events.append(StreamEvent(type="sources", payload=response.sources))
    if include_debug and response.debug_logs is not None:
        events.append(StreamEvent(type="debug", payload=response.debug_logs))
    return events


def error_event(message: str) -> StreamEvent:
    return StreamEvent(type="error", payload=message)


# ── Encoding ──────────────────────────────────────────────────────────────────


def _utf16_len(char: str) -> int:
    return 2 if ord(char) > 0xFFFF else 1


def split_utf16(text: str, max_units: int) -> list[str]:
    """Split ``text`` into slices of at most ``max_units`` UTF-16 code units."""
    if max_units < 2:
        raise ValueError("max_units must be at least 2")
    slices: list[str] = []
    current: list[str] = []
    units = 0
    for char in text:
        width = _utf16_len(char)
        if units + width > max_units:
            slices.append("".join(current))
            current, units = [], 0
        current.append(char)
        units += width
    if current:
        slices.append("".join(current))
    return slices


def utf16_length(text: str) -> int:
    return sum(_utf16_len(char) for char in text)


def encode_event(event: StreamEvent, max_frame_chars: int = MAX_FRAME_CHARS) -> str:
    """Serialize one event to its SSE text."""
    body = json.dumps(event.to_wire(), ensure_ascii=False, separators=(",", ":"), default=str)
    if utf16_length(body) <= max_frame_chars:
        return f"{DATA_PREFIX}{body}\n\n"
    fragments = split_utf16(body, max_frame_chars)
    logger.debug("sse_event_split", event_type=event.type, fragments=len(fragments))
    return "".join(f"{DATA_PREFIX}{fragment}\n" for fragment in fragments) + "\n"


def encode_response(
    response: AgentResponse,
    include_debug: bool = False,
    max_frame_chars: int = MAX_FRAME_CHARS,
) -> str:
    return "".join(
        encode_event(event, max_frame_chars) for event in response_events(response, include_debug)
    )


async def stream_agent_response(
    call: Callable[[], Awaitable[AgentResponse]],
    *,
    include_debug: bool = False,
    max_frame_chars: int = MAX_FRAME_CHARS,
    error_message: Callable[[Exception], str] | None = None,
) -> AsyncIterator[str]:
    """Run ``call`` and yield its SSE frames in order.

    A failure before or during encoding ends the stream with exactly one
    error event; frames already yielded are not retracted.
    """
    try:
        response = await call()
        for event in response_events(response, include_debug):
            yield encode_event(event, max_frame_chars)
    except asyncio.CancelledError:
        logger.info("agent_stream_cancelled")
        raise
    except Exception as exc:
        logger.error("agent_stream_failed", error=str(exc), error_type=type(exc).__name__)
        message = error_message(exc) if error_message else "An error occurred while processing your request."
        yield encode_event(error_event(message), max_frame_chars)


# ── Decoding ──────────────────────────────────────────────────────────────────


def decode_events(stream: str) -> list[dict[str, Any]]:
    """Parse SSE text back into one JSON object per event.

    Fragments of a split event are concatenated in order before parsing.
    Lines other than ``data:`` lines are ignored.
    """
    events: list[dict[str, Any]] = []
    fragments: list[str] = []

    lines = stream.split("\n")
    # A trailing newline closes its line; only an empty line ends an event.
    if lines and lines[-1] == "":
        lines.pop()

    for line in lines:
        if line == "":
            if fragments:
                events.append(json.loads("".join(fragments)))
                fragments = []
            continue
        if line.startswith("data:"):
            value = line[len("data:"):]
            if value.startswith(" "):
                value = value[1:]
            fragments.append(value)

    if fragments:
        raise ValueError("Stream ended inside an unterminated event")
    return events


def decode_response(stream: str) -> AgentResponse:
    """Rebuild the AgentResponse carried by an encoded stream.

    Raises:
        ValueError: If the stream carries an error event or no chunk.
    """
    fields: dict[str, Any] = {}
    for data in decode_events(stream):
        event = StreamEvent.from_wire(data)
        if event.type == "error":
            raise ValueError(f"Stream carried an error event: {event.payload}")
        if event.type == "chunk":
            fields["content"] = event.payload
        elif event.type == "debug":
            fields["debug_logs"] = event.payload
        else:
            fields[event.type] = event.payload
    if "content" not in fields:
        raise ValueError("Stream carried no chunk event")
    return AgentResponse(**fields)
