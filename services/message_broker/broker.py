"""
Message Broker - translates fleet telematics events into driver messages.

The broker tries the administrator-configured template for the event type
and language first, and falls back to the hardcoded rules whenever the
template path is not usable. translate() always returns a message.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from common.constants import DEFAULT_LANGUAGE_CODE, LANGUAGE_ALIASES
from services.message_broker.errors import MissingRequiredVariable, TemplateStoreUnavailable
from services.message_broker.fallback import FallbackGenerator
from services.message_broker.message_types import LanguageCode, TranslationSource
from services.message_broker.renderer import TemplateRenderer
from services.message_broker.schemas import (
    FleetEvent,
    GeneratedMessage,
    Template,
    TranslationResult,
)
from services.message_broker.template_store import BaseTemplateStore
from services.message_broker.variable_resolver import VariableResolver

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = {code.value for code in LanguageCode}
DEFAULT_LANGUAGE = (
    DEFAULT_LANGUAGE_CODE if DEFAULT_LANGUAGE_CODE in SUPPORTED_LANGUAGES else LanguageCode.ENGLISH.value
)


def normalize_language(language_code: Optional[str]) -> str:
    """Map "es", "spa", "SPA" to "SPA"; anything unsupported to the default language."""
    code = (language_code or "").strip().upper()
    code = LANGUAGE_ALIASES.get(code, code)
    return code if code in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def event_to_payload(event: Union[FleetEvent, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(event, FleetEvent):
        return event.to_payload()
    if isinstance(event, Mapping):
        return dict(event)
    raise TypeError(f"event must be a mapping or FleetEvent, got {type(event).__name__}")


def extract_event_type(payload: Mapping[str, Any]) -> Optional[str]:
    """Event type from "eventType", or the legacy "type" key."""
    for key in ("eventType", "type"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class MessageBroker:
    def __init__(
        self,
        store: BaseTemplateStore,
        resolver: Optional[VariableResolver] = None,
        renderer: Optional[TemplateRenderer] = None,
        fallback: Optional[FallbackGenerator] = None,
    ) -> None:
        resolver = resolver or VariableResolver()
        self._store = store
        self._renderer = renderer or TemplateRenderer(resolver)
        self._fallback = fallback or FallbackGenerator(resolver)

    async def translate(
        self,
        event: Union[FleetEvent, Mapping[str, Any]],
        language_code: Optional[str] = None,
    ) -> GeneratedMessage:
        """
        Translate an event into a driver message.

        Args:
            event: Telematics event (validated FleetEvent or plain mapping)
            language_code: Requested language; unsupported or missing means English

        Returns:
            GeneratedMessage from the matching template, or the fallback message

        Raises:
            ValueError: if no event is given
        """
        result = await self.translate_with_source(event, language_code)
        return result.message

    async def translate_with_source(
        self,
        event: Union[FleetEvent, Mapping[str, Any]],
        language_code: Optional[str] = None,
    ) -> TranslationResult:
        """Like translate(), but also reports which path produced the message."""
        if event is None:
            raise ValueError("translate() requires an event")

        payload = event_to_payload(event)
        event_type = extract_event_type(payload)
        language = normalize_language(language_code)

        message = None
        if event_type is not None:
            message = await self._render_from_store(event_type, language, payload)

        if message is not None:
            source = TranslationSource.TEMPLATE
        else:
            message = self._fallback.generate(payload)
            source = TranslationSource.FALLBACK
            logger.debug("Using fallback message for event type %s", event_type)

        return TranslationResult(
            event_type=event_type,
            language_code=language,
            source=source,
            message=message,
        )

    async def _lookup_template(self, event_type: str, language: str) -> Optional[Template]:
        template = await self._store.lookup(event_type, language)
        if template is None and language != LanguageCode.ENGLISH.value:
            template = await self._store.lookup(event_type, LanguageCode.ENGLISH.value)
        return template

    async def _render_from_store(
        self, event_type: str, language: str, payload: Mapping[str, Any]
    ) -> Optional[GeneratedMessage]:
        try:
            template = await self._lookup_template(event_type, language)
            if template is None:
                return None
            variables = await self._store.get_variables(event_type)
        except TemplateStoreUnavailable as e:
            logger.warning(f"Template store unavailable, falling back for {event_type}: {e}")
            return None

        try:
            message, unknown_tokens = self._renderer.render_with_report(template, payload, variables)
        except MissingRequiredVariable as e:
            logger.info(f"Template for {event_type}/{template.language_code} not usable: {e}")
            return None

        if unknown_tokens:
            logger.warning(
                "Template %s/%s references undefined variables: %s",
                event_type,
                template.language_code,
                ", ".join(unknown_tokens),
            )

        if not message.body.strip():
            logger.warning(f"Template for {event_type}/{template.language_code} rendered an empty body")
            return None

        return message

    async def initialize_templates(self, overwrite: bool = False) -> int:
        """
        Seed the default templates into the store.

        Failures are logged and swallowed; translation keeps working on the
        fallback path.

        Returns:
            Number of templates written (0 on failure)
        """
        try:
            written = await self._store.ensure_defaults(overwrite=overwrite)
            logger.info(f"✓ Message templates initialized ({written} written)")
            return written
        except Exception as e:
            logger.error(f"✗ Failed to initialize message templates: {e}")
            logger.info("Falling back to hardcoded messages until templates are available")
            return 0

    async def get_available_languages(self) -> List[str]:
        """Languages with at least one active template; English is always available."""
        languages = [LanguageCode.ENGLISH.value]
        for code in LanguageCode:
            if code.value in languages:
                continue
            try:
                if await self._store.list_templates(code.value):
                    languages.append(code.value)
            except TemplateStoreUnavailable as e:
                logger.warning(f"Template store unavailable while listing languages: {e}")
                return [LanguageCode.ENGLISH.value]
        return languages

    async def list_templates(self, language_code: Optional[str] = None) -> List[Template]:
        return await self._store.list_templates(normalize_language(language_code))
