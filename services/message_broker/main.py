# Run:
# uvicorn services.message_broker.main:app --host 0.0.0.0 --port 20010 --reload
# Docs: http://127.0.0.1:20010/docs

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Body, Depends, HTTPException, Query

# Load environment variables from .env file
load_dotenv()

from libs.config import Config
from libs.fastapi_service import create_service_app
from services.message_broker.broker import DEFAULT_LANGUAGE, MessageBroker
from services.message_broker.errors import TemplateStoreUnavailable
from services.message_broker.schemas import (
    FleetEvent,
    InitializeTemplatesResponse,
    LanguagesResponse,
    Template,
    TranslateRequest,
    TranslationResult,
)
from services.message_broker.template_store import create_tables, create_template_store

# Configure logging
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

_broker: Optional[MessageBroker] = None


def get_message_broker() -> MessageBroker:
    """Process-wide broker, built on first use from the configured template store."""
    global _broker
    if _broker is None:
        _broker = MessageBroker(create_template_store())
    return _broker


@asynccontextmanager
async def lifespan(app):
    if Config.CREATE_TABLES_ON_STARTUP and not Config.uses_memory_store():
        from libs.db import get_engine

        try:
            await create_tables(get_engine())
        except Exception as e:
            logger.error(f"✗ Could not create template tables: {e}")

    if Config.SEED_TEMPLATES_ON_STARTUP:
        await get_message_broker().initialize_templates()

    yield

    if not Config.uses_memory_store():
        from libs.db import dispose_engine

        await dispose_engine()


app = create_service_app(
    service_name="message_broker",
    title="Message Broker Service",
    description="Translate fleet telematics events into driver chat messages.",
    lifespan=lifespan,
)

translations_counter = app.state.metrics.counter(
    "message_translations_total",
    "Fleet events translated into driver messages",
    ["event_type", "source"],
)


def _record(result: TranslationResult) -> TranslationResult:
    translations_counter.labels(
        event_type=result.event_type or "unknown",
        source=result.source.value,
    ).inc()
    return result


@app.get("/")
async def root():
    return {"service": "message_broker", "status": "running"}


@app.post("/v1/messages/translate", response_model=TranslationResult)
async def translate(body: TranslateRequest, broker: MessageBroker = Depends(get_message_broker)):
    """Translate one event; the message comes from a template or the fallback rules."""
    result = await broker.translate_with_source(body.event, body.language_code)
    return _record(result)


@app.post("/webhook/telematics", response_model=TranslationResult)
async def telematics_webhook(
    event: FleetEvent = Body(...),
    language_code: Optional[str] = Query(default=None),
    broker: MessageBroker = Depends(get_message_broker),
):
    """
    Receive a raw telematics event and return the driver message for it.

    Dispatching the message to the chat channel is done by the caller.
    """
    logger.info(f"Telematics event received: {event.event_type or event.type or 'unknown'}")
    result = await broker.translate_with_source(event, language_code)
    return _record(result)


@app.get("/v1/templates", response_model=List[Template])
async def list_templates(
    language_code: Optional[str] = Query(default=None),
    broker: MessageBroker = Depends(get_message_broker),
):
    try:
        return await broker.list_templates(language_code)
    except TemplateStoreUnavailable as e:
        logger.error(f"Template listing failed: {e}")
        raise HTTPException(status_code=503, detail="Template store unavailable")


@app.post("/v1/templates/initialize", response_model=InitializeTemplatesResponse)
async def initialize_templates(
    overwrite: bool = Query(default=False),
    broker: MessageBroker = Depends(get_message_broker),
):
    written = await broker.initialize_templates(overwrite=overwrite)
    return InitializeTemplatesResponse(initialized=written)


@app.get("/v1/languages", response_model=LanguagesResponse)
async def languages(broker: MessageBroker = Depends(get_message_broker)):
    return LanguagesResponse(
        languages=await broker.get_available_languages(),
        default=DEFAULT_LANGUAGE,
    )
