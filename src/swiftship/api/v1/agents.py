"""Agent processing endpoint.

POST /api/v1/agents/process streams the selected agent's answer as
server-sent events. An unknown agentType is rejected with 400 before any
LLM call; every later failure arrives as a single error event.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from src.swiftship.agents.base import AgentContext
from src.swiftship.agents.dispatcher import AgentDispatcher
from src.swiftship.agents.registry import UnknownAgentTypeError
from src.swiftship.config import get_settings
from src.swiftship.schemas.chat import ChatRequest
from src.swiftship.services.llm import LLMRateLimitError, LLMTimeoutError
from src.swiftship.streaming.sse import stream_agent_response

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/agents", tags=["agents"])

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def get_dispatcher(request: Request) -> AgentDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Agents are not initialized",
        )
    return dispatcher


def describe_error(exc: Exception) -> str:
    """User-facing text for the error event."""
    if isinstance(exc, LLMRateLimitError):
        return "Our assistant is handling a lot of requests right now. Please try again in a moment."
    if isinstance(exc, LLMTimeoutError):
        return "Our assistant took too long to respond. Please try again."
    return "An error occurred while processing your request. Please try again."


@router.post("/process")
async def process_message(
    body: ChatRequest,
    dispatcher: AgentDispatcher = Depends(get_dispatcher),
):
    """Route or dispatch one chat turn and stream the answer.

    Returns a text/event-stream with chunk, metadata, sources and debug
    events in that order.
    """
    requested = body.requested_agent()
    agent_type = None
    if requested is not None:
        try:
            agent_type = dispatcher.resolve(requested).agent_type
        except UnknownAgentTypeError as exc:
            logger.warning("unknown_agent_type", agent_type=requested)
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    context = AgentContext(conversation=body.to_conversation(), metadata=body.metadata or {})
    settings = get_settings()

    async def run():
        return await dispatcher.dispatch(context, agent_type)

    return StreamingResponse(
        stream_agent_response(
            run,
            include_debug=settings.include_debug_events,
            max_frame_chars=settings.SSE_MAX_FRAME_CHARS,
            error_message=describe_error,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
