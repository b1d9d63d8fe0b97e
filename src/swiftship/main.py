"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, lifespan
wiring of the agents and their collaborators, and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.knowledge import KnowledgeBaseConfig, KnowledgeRetriever, QdrantKnowledgeStore
from src.swiftship.agents.dispatcher import AgentDispatcher
from src.swiftship.agents.docs import DocsAgent
from src.swiftship.agents.quote import QuoteAgent, create_slot_extractor
from src.swiftship.agents.registry import AgentRegistry
from src.swiftship.agents.router import RouterAgent
from src.swiftship.agents.shipments import ShipmentsAgent
from src.swiftship.agents.support import SupportAgent
from src.swiftship.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.swiftship.api.v1.router import router as v1_router
from src.swiftship.config import Settings, get_settings
from src.swiftship.core.monitoring import MetricsMiddleware, get_metrics_response
from src.swiftship.services.geocoding import create_geocoder
from src.swiftship.services.llm import LLMGateway, get_llm_gateway
from src.swiftship.services.ticketing import TicketClient

logger = structlog.get_logger(__name__)


def build_dispatcher(
    settings: Settings,
    llm: LLMGateway,
    retriever: KnowledgeRetriever,
) -> AgentDispatcher:
    """Construct every specialist, register it, and wrap the registry with the router."""
    ticket_client = None
    if settings.TICKETING_BASE_URL:
        ticket_client = TicketClient(
            base_url=settings.TICKETING_BASE_URL,
            api_token=settings.TICKETING_API_TOKEN,
            timeout=settings.TICKETING_TIMEOUT,
        )

    registry = AgentRegistry()
    registry.register(
        QuoteAgent(
            extractor=create_slot_extractor(settings.QUOTE_EXTRACTION_MODE, llm),
            geocoder=create_geocoder(settings),
            ticket_client=ticket_client,
        )
    )
    registry.register(DocsAgent(llm, retriever))
    registry.register(SupportAgent(llm, retriever))
    registry.register(ShipmentsAgent(llm, retriever))

    logger.info(
        "agents_registered",
        agent_count=len(registry),
        extraction_mode=settings.QUOTE_EXTRACTION_MODE.value,
        ticketing=ticket_client is not None,
    )
    return AgentDispatcher(registry, RouterAgent(llm, registry))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: wire agents on startup, close the store on shutdown."""
    settings = get_settings()
    configure_structlog()

    llm = get_llm_gateway()

    # Knowledge store. A missing collection degrades answers, it does not
    # prevent startup.
    kb_config = KnowledgeBaseConfig()
    store = QdrantKnowledgeStore(kb_config)
    try:
        store.initialize_collection()
        app.state.knowledge_store = store
        logger.info("knowledge_store_initialized", collection=store.collection)
    except Exception:
        logger.warning("knowledge_store_init_failed", exc_info=True)
        app.state.knowledge_store = None

    retriever = KnowledgeRetriever(store, llm, kb_config)
    app.state.dispatcher = build_dispatcher(settings, llm, retriever)

    yield

    store.close()
    logger.info("shutdown_complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="SwiftShip Agents API",
        version="0.1.0",
        description="Multi-agent chat backend for freight quotes, docs and support",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
