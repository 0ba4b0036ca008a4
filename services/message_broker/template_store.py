"""
Template Store - where message templates, buttons and variable bindings live.

Two implementations share the BaseTemplateStore interface:
- InMemoryTemplateStore: process-local dictionaries (tests, local development)
- SQLTemplateStore: SQLAlchemy async sessions over PostgreSQL

Stores raise TemplateStoreUnavailable on I/O failure; callers decide whether
that is fatal. The message broker treats it as "no template found".
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from libs.config import Config
from models.message_template import (
    Base,
    MessageResponseOption,
    MessageTemplate,
    MessageTemplateVariable,
)
from services.message_broker.defaults import get_default_templates
from services.message_broker.errors import TemplateStoreUnavailable
from services.message_broker.schemas import Template, TemplateSeed, TemplateVariable

logger = logging.getLogger(__name__)


class BaseTemplateStore:
    """Base class for template stores"""

    async def lookup(self, event_type: str, language_code: str) -> Optional[Template]:
        """
        Find the active template for an event type and language.

        Args:
            event_type: Event type, e.g. "route.assigned"
            language_code: Three-letter language code, e.g. "ENG"

        Returns:
            Template with its response options, or None if none is configured
        """
        raise NotImplementedError("Template store must implement lookup()")

    async def get_variables(self, event_type: str) -> List[TemplateVariable]:
        """Variable bindings defined for an event type."""
        raise NotImplementedError("Template store must implement get_variables()")

    async def list_templates(self, language_code: str) -> List[Template]:
        """Active templates for a language, ordered by event type and priority."""
        raise NotImplementedError("Template store must implement list_templates()")

    async def upsert_defaults(self, seeds: Iterable[TemplateSeed], overwrite: bool = False) -> int:
        """
        Create-or-update templates and variables keyed by their natural keys.

        Templates are keyed by (event_type, language_code), variables by
        (variable_name, event_type). Existing entries are kept unless
        overwrite is set.

        Returns:
            Number of templates created or updated
        """
        raise NotImplementedError("Template store must implement upsert_defaults()")

    async def ensure_defaults(self, overwrite: bool = False) -> int:
        """Seed the baseline English templates."""
        return await self.upsert_defaults(get_default_templates(), overwrite=overwrite)


class InMemoryTemplateStore(BaseTemplateStore):
    def __init__(self) -> None:
        self._templates: Dict[Tuple[str, str], Template] = {}
        self._variables: Dict[Tuple[str, str], TemplateVariable] = {}

    def add_template(self, template: Template) -> None:
        self._templates[(template.event_type, template.language_code)] = template.model_copy(
            deep=True
        )

    def add_variable(self, variable: TemplateVariable) -> None:
        self._variables[(variable.variable_name, variable.event_type)] = variable.model_copy(
            deep=True
        )

    async def lookup(self, event_type: str, language_code: str) -> Optional[Template]:
        template = self._templates.get((event_type, language_code))
        if template is None or not template.is_active:
            return None
        return template.model_copy(deep=True)

    async def get_variables(self, event_type: str) -> List[TemplateVariable]:
        return [
            variable.model_copy(deep=True)
            for (_, variable_event_type), variable in self._variables.items()
            if variable_event_type == event_type
        ]

    async def list_templates(self, language_code: str) -> List[Template]:
        templates = [
            template.model_copy(deep=True)
            for (_, template_language), template in self._templates.items()
            if template_language == language_code and template.is_active
        ]
        templates.sort(key=lambda t: (t.event_type, t.priority))
        return templates

    async def upsert_defaults(self, seeds: Iterable[TemplateSeed], overwrite: bool = False) -> int:
        written = 0
        for seed in seeds:
            key = (seed.template.event_type, seed.template.language_code)
            if overwrite or key not in self._templates:
                self.add_template(seed.template)
                written += 1
            for variable in seed.variables:
                if overwrite or (variable.variable_name, variable.event_type) not in self._variables:
                    self.add_variable(variable)
        return written


class SQLTemplateStore(BaseTemplateStore):
    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def lookup(self, event_type: str, language_code: str) -> Optional[Template]:
        stmt = (
            select(MessageTemplate)
            .options(selectinload(MessageTemplate.response_options))
            .where(
                MessageTemplate.event_type == event_type,
                MessageTemplate.language_code == language_code,
                MessageTemplate.is_active.is_(True),
            )
            .order_by(MessageTemplate.priority)
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).scalars().first()
                return Template.model_validate(row) if row is not None else None
        except (SQLAlchemyError, OSError) as exc:
            raise TemplateStoreUnavailable(
                f"Template lookup failed for {event_type}/{language_code}: {exc}"
            ) from exc

    async def get_variables(self, event_type: str) -> List[TemplateVariable]:
        stmt = select(MessageTemplateVariable).where(
            MessageTemplateVariable.event_type == event_type
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [TemplateVariable.model_validate(row) for row in rows]
        except (SQLAlchemyError, OSError) as exc:
            raise TemplateStoreUnavailable(
                f"Variable lookup failed for {event_type}: {exc}"
            ) from exc

    async def list_templates(self, language_code: str) -> List[Template]:
        stmt = (
            select(MessageTemplate)
            .options(selectinload(MessageTemplate.response_options))
            .where(
                MessageTemplate.language_code == language_code,
                MessageTemplate.is_active.is_(True),
            )
            .order_by(MessageTemplate.event_type, MessageTemplate.priority)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [Template.model_validate(row) for row in rows]
        except (SQLAlchemyError, OSError) as exc:
            raise TemplateStoreUnavailable(
                f"Template listing failed for {language_code}: {exc}"
            ) from exc

    async def upsert_defaults(self, seeds: Iterable[TemplateSeed], overwrite: bool = False) -> int:
        written = 0
        try:
            async with self._session_factory() as session:
                try:
                    for seed in seeds:
                        written += await self._upsert_template(session, seed.template, overwrite)
                        for variable in seed.variables:
                            await self._upsert_variable(session, variable, overwrite)
                    await session.commit()
                except IntegrityError:
                    # Another instance seeded the same keys first
                    await session.rollback()
                    logger.info("Template seeding lost a race with a concurrent writer; keeping existing rows")
                    return 0
        except (SQLAlchemyError, OSError) as exc:
            raise TemplateStoreUnavailable(f"Template seeding failed: {exc}") from exc
        return written

    async def _find_template(
        self, session: AsyncSession, event_type: str, language_code: str
    ) -> Optional[MessageTemplate]:
        stmt = (
            select(MessageTemplate)
            .options(selectinload(MessageTemplate.response_options))
            .where(
                MessageTemplate.event_type == event_type,
                MessageTemplate.language_code == language_code,
            )
        )
        return (await session.execute(stmt)).scalars().first()

    async def _upsert_template(
        self, session: AsyncSession, template: Template, overwrite: bool
    ) -> int:
        row = await self._find_template(session, template.event_type, template.language_code)
        if row is not None and not overwrite:
            return 0

        options = [
            MessageResponseOption(
                button_text=option.button_text,
                button_payload=option.button_payload,
                button_type=option.button_type.value,
                sort_order=option.sort_order,
                display_conditions=option.display_conditions,
                is_active=option.is_active,
            )
            for option in template.response_options
        ]
        if row is None:
            row = MessageTemplate(
                event_type=template.event_type,
                language_code=template.language_code,
                response_options=options,
            )
            session.add(row)
        else:
            row.response_options = options

        row.template_type = template.template_type.value
        row.header = template.header
        row.body = template.body
        row.footer = template.footer
        row.category = template.category
        row.priority = template.priority
        row.is_active = template.is_active
        return 1

    async def _upsert_variable(
        self, session: AsyncSession, variable: TemplateVariable, overwrite: bool
    ) -> None:
        stmt = select(MessageTemplateVariable).where(
            MessageTemplateVariable.variable_name == variable.variable_name,
            MessageTemplateVariable.event_type == variable.event_type,
        )
        row = (await session.execute(stmt)).scalars().first()
        if row is not None and not overwrite:
            return
        if row is None:
            row = MessageTemplateVariable(
                variable_name=variable.variable_name,
                event_type=variable.event_type,
            )
            session.add(row)

        row.data_path = variable.data_path
        row.default_value = variable.default_value
        row.description = variable.description
        row.is_required = variable.is_required
        row.value_map = variable.value_map
        row.value_format = variable.value_format


async def create_tables(engine: AsyncEngine) -> None:
    """Create the template tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def create_template_store(backend: Optional[str] = None) -> BaseTemplateStore:
    """
    Build the template store selected by TEMPLATE_STORE_BACKEND.

    Args:
        backend: "postgres" or "memory"; defaults to the configured backend

    Returns:
        A template store instance
    """
    backend = (backend or Config.TEMPLATE_STORE_BACKEND).lower()
    if backend == "memory":
        return InMemoryTemplateStore()
    if backend == "postgres":
        from libs.db import get_session_factory

        return SQLTemplateStore(get_session_factory())
    raise ValueError(f"Unsupported template store backend: {backend}")
