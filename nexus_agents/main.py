"""Nexus Agents API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map NexusError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database, stores, Anthropic client, agent directory and intent router
      built once in the lifespan, before the first request

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Registries frozen during wiring: read-only for the process lifetime
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nexus_agents import __version__
from nexus_agents.api.error_handlers import register_error_handlers
from nexus_agents.api.routes import agents, chat, health
from nexus_agents.config import Settings, get_settings
from nexus_agents.core.usage_ledger import PriceTable
from nexus_agents.infrastructure.anthropic_client import init_anthropic_client
from nexus_agents.infrastructure.anthropic_reasoning import AnthropicReasoningModel
from nexus_agents.infrastructure.database import get_db_manager, init_db
from nexus_agents.infrastructure.message_store import init_stores
from nexus_agents.infrastructure.observability import setup_logging
from nexus_agents.services.agent_directory import (
    DOCUMENT_EDITOR_ID, build_agent_directory, init_agents,
)
from nexus_agents.services.chat_responder import ChatResponder
from nexus_agents.services.content_generator import ContentGenerator
from nexus_agents.services.intent_classifier import IntentClassifier
from nexus_agents.services.intent_router import IntentRouter, init_intent_router
from nexus_agents.services.tool_invoker import ToolInvoker

logger = logging.getLogger(__name__)


def wire_services(settings: Settings) -> None:
    """Build every process-wide singleton from settings."""
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    messages, documents = init_stores(manager)
    client = init_anthropic_client(
        settings.anthropic_api_key,
        max_retries=settings.anthropic_max_retries,
        base_delay_ms=settings.anthropic_base_delay_ms,
        max_delay_ms=settings.anthropic_max_delay_ms,
        timeout_seconds=settings.anthropic_timeout_seconds,
    )
    prices = PriceTable.from_overrides(
        settings.price_overrides,
        settings.default_input_price,
        settings.default_output_price,
    )
    generator = ContentGenerator(client, settings.content_model)
    directory = init_agents(build_agent_directory(
        settings,
        AnthropicReasoningModel(client, settings.agent_max_tokens),
        generator, messages, documents, prices,
    ))
    editor_registry = directory.resolve(DOCUMENT_EDITOR_ID).registry
    init_intent_router(IntentRouter(
        IntentClassifier(client, settings.classifier_model),
        ToolInvoker(editor_registry, settings.tool_timeout_seconds),
        ChatResponder(client, settings.agent_model),
        messages,
        prices,
    ))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    wire_services(settings)
    logger.info("Nexus Agents API started")
    yield
    logger.info("Nexus Agents API shutting down")
    await get_db_manager().dispose()


app = FastAPI(
    title="Nexus Agents API", version=__version__, lifespan=lifespan,
)

# CORS: configured from settings, not hardcoded
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Session-Id"],
)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(agents.router)
app.include_router(chat.router)

register_error_handlers(app)
