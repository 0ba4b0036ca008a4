"""
Tests for the in-memory and SQLAlchemy template stores.

The SQL store runs against an in-memory SQLite database (aiosqlite), so no
PostgreSQL server is needed.
"""

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from models.message_template import MessageTemplate
from services.message_broker.broker import MessageBroker
from services.message_broker.defaults import DEFAULT_TEMPLATES, get_default_templates
from services.message_broker.errors import TemplateStoreUnavailable
from services.message_broker.message_types import ButtonType, MessageTemplateType, TranslationSource
from services.message_broker.schemas import ResponseOption, Template, TemplateSeed, TemplateVariable
from services.message_broker.template_store import (
    InMemoryTemplateStore,
    SQLTemplateStore,
    create_tables,
    create_template_store,
)


@pytest_asyncio.fixture
async def sql_session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def sql_store(sql_session_factory):
    return SQLTemplateStore(sql_session_factory)


def _custom_seed(body="Custom {{route_name}}", language_code="ENG"):
    return TemplateSeed(
        template=Template(
            event_type="route.assigned",
            language_code=language_code,
            template_type=MessageTemplateType.INTERACTIVE,
            body=body,
            response_options=[
                ResponseOption(
                    button_text="Call dispatch",
                    button_payload="+4940123456",
                    button_type=ButtonType.CALL,
                    sort_order=1,
                )
            ],
        ),
        variables=[
            TemplateVariable(
                variable_name="route_name",
                event_type="route.assigned",
                data_path="data.route.name",
                default_value="Custom route",
            )
        ],
    )


class TestInMemoryTemplateStore:
    @pytest.mark.asyncio
    async def test_lookup_miss(self, memory_store):
        assert await memory_store.lookup("route.assigned", "ENG") is None

    @pytest.mark.asyncio
    async def test_lookup_returns_copy(self, seeded_store):
        template = await seeded_store.lookup("route.assigned", "ENG")
        template.body = "changed"
        again = await seeded_store.lookup("route.assigned", "ENG")
        assert again.body != "changed"

    @pytest.mark.asyncio
    async def test_one_template_per_event_and_language(self, memory_store):
        memory_store.add_template(_custom_seed("first").template)
        memory_store.add_template(_custom_seed("second").template)
        templates = await memory_store.list_templates("ENG")
        assert [t.body for t in templates] == ["second"]

    @pytest.mark.asyncio
    async def test_get_variables_filters_by_event_type(self, seeded_store):
        variables = await seeded_store.get_variables("vehicle.location")
        assert {v.variable_name for v in variables} == {"location_address", "vehicle_speed"}

    @pytest.mark.asyncio
    async def test_upsert_keeps_existing_unless_overwrite(self, memory_store):
        assert await memory_store.upsert_defaults([_custom_seed("first")]) == 1
        assert await memory_store.upsert_defaults([_custom_seed("second")]) == 0
        assert (await memory_store.lookup("route.assigned", "ENG")).body == "first"

        assert await memory_store.upsert_defaults([_custom_seed("third")], overwrite=True) == 1
        assert (await memory_store.lookup("route.assigned", "ENG")).body == "third"

    @pytest.mark.asyncio
    async def test_ensure_defaults(self, memory_store):
        assert await memory_store.ensure_defaults() == len(DEFAULT_TEMPLATES)
        templates = await memory_store.list_templates("ENG")
        assert [t.event_type for t in templates] == sorted(t.event_type for t in templates)


class TestSQLTemplateStore:
    @pytest.mark.asyncio
    async def test_lookup_miss(self, sql_store):
        assert await sql_store.lookup("route.assigned", "ENG") is None

    @pytest.mark.asyncio
    async def test_ensure_defaults_is_idempotent(self, sql_store):
        assert await sql_store.ensure_defaults() == len(DEFAULT_TEMPLATES)
        assert await sql_store.ensure_defaults() == 0
        assert len(await sql_store.list_templates("ENG")) == len(DEFAULT_TEMPLATES)

    @pytest.mark.asyncio
    async def test_seeder_losing_unique_race_writes_nothing(self, sql_session_factory, mocker, caplog):
        first = SQLTemplateStore(sql_session_factory)
        second = SQLTemplateStore(sql_session_factory)
        # The second seeder checked for existing rows before the first one committed
        mocker.patch.object(second, "_find_template", return_value=None)

        with caplog.at_level("INFO"):
            written = [await first.ensure_defaults(), await second.ensure_defaults()]

        assert written == [len(DEFAULT_TEMPLATES), 0]
        assert "lost a race" in caplog.text
        async with sql_session_factory() as session:
            rows = (
                await session.execute(
                    select(MessageTemplate.event_type, MessageTemplate.language_code, func.count())
                    .group_by(MessageTemplate.event_type, MessageTemplate.language_code)
                )
            ).all()
        assert len(rows) == len(DEFAULT_TEMPLATES)
        assert all(count == 1 for _, _, count in rows)

    @pytest.mark.asyncio
    async def test_seeding_after_a_lost_race_still_reads_defaults(self, sql_session_factory, mocker, make_event):
        await SQLTemplateStore(sql_session_factory).ensure_defaults()
        late = SQLTemplateStore(sql_session_factory)
        mocker.patch.object(late, "_find_template", return_value=None)

        broker = MessageBroker(late)
        assert await broker.initialize_templates() == 0
        result = await broker.translate_with_source(make_event("vehicle.location"))
        assert result.source == TranslationSource.TEMPLATE

    @pytest.mark.asyncio
    async def test_lookup_loads_response_options(self, sql_store):
        await sql_store.ensure_defaults()
        template = await sql_store.lookup("vehicle.geofence.enter", "ENG")

        assert template is not None
        assert template.template_type == MessageTemplateType.TEMPLATE
        assert template.header == "🎯 Arrival Confirmed"
        payloads = [option.button_payload for option in template.response_options]
        assert sorted(payloads) == sorted(["pickup_confirmed", "loaded", "delivered", "report_issue"])
        conditions = {o.button_payload: o.display_conditions for o in template.response_options}
        assert conditions["loaded"] == {"data.geofence.type": "pickup_location"}

    @pytest.mark.asyncio
    async def test_get_variables(self, sql_store):
        await sql_store.ensure_defaults()
        variables = await sql_store.get_variables("route.assigned")
        by_name = {v.variable_name: v for v in variables}
        assert by_name["pickup_location"].data_path == "data.route.stops[type=pickup].location"
        assert by_name["pickup_time"].value_format == "time"
        assert by_name["pickup_time"].default_value == "TBD"
        assert by_name["route_name"].is_required is False

    @pytest.mark.asyncio
    async def test_overwrite_replaces_template_and_buttons(self, sql_store):
        await sql_store.ensure_defaults()
        assert await sql_store.upsert_defaults([_custom_seed()], overwrite=True) == 1

        template = await sql_store.lookup("route.assigned", "ENG")
        assert template.body == "Custom {{route_name}}"
        assert template.template_type == MessageTemplateType.INTERACTIVE
        assert [(o.button_payload, o.button_type) for o in template.response_options] == [
            ("+4940123456", ButtonType.CALL)
        ]
        variables = {v.variable_name: v for v in await sql_store.get_variables("route.assigned")}
        assert variables["route_name"].default_value == "Custom route"

    @pytest.mark.asyncio
    async def test_languages_are_kept_apart(self, sql_store):
        await sql_store.upsert_defaults([_custom_seed("English"), _custom_seed("Deutsch", "GER")])
        assert (await sql_store.lookup("route.assigned", "GER")).body == "Deutsch"
        assert (await sql_store.lookup("route.assigned", "ENG")).body == "English"
        assert await sql_store.lookup("route.assigned", "SPA") is None

    @pytest.mark.asyncio
    async def test_broker_renders_from_sql_store(self, sql_store, make_event):
        broker = MessageBroker(sql_store)
        assert await broker.initialize_templates() == len(DEFAULT_TEMPLATES)

        result = await broker.translate_with_source(
            make_event("route.pickup_reminder", {"stop": {"location": "Hamburg Port"}}), "ENG"
        )
        assert result.source == TranslationSource.TEMPLATE
        assert "📍 Hamburg Port" in result.message.body
        assert [b.payload for b in result.message.buttons] == ["en_route", "share_location"]

    @pytest.mark.asyncio
    async def test_unreachable_database_raises_store_unavailable(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/missing/dir/templates.db")
        store = SQLTemplateStore(async_sessionmaker(engine, expire_on_commit=False))
        try:
            with pytest.raises(TemplateStoreUnavailable):
                await store.lookup("route.assigned", "ENG")
            with pytest.raises(TemplateStoreUnavailable):
                await store.ensure_defaults()
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_broker_survives_unreachable_database(self, tmp_path, make_event):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/missing/dir/templates.db")
        broker = MessageBroker(SQLTemplateStore(async_sessionmaker(engine, expire_on_commit=False)))
        try:
            assert await broker.initialize_templates() == 0
            result = await broker.translate_with_source(make_event("vehicle.location"))
            assert result.source == TranslationSource.FALLBACK
        finally:
            await engine.dispose()


def test_default_seeds_are_copied():
    seeds = get_default_templates()
    seeds[0].template.body = "mutated"
    assert DEFAULT_TEMPLATES[0].template.body != "mutated"


def test_create_template_store_backends():
    assert isinstance(create_template_store("memory"), InMemoryTemplateStore)
    with pytest.raises(ValueError):
        create_template_store("redis")


@pytest.mark.asyncio
async def test_postgres_backend_uses_shared_session_factory(monkeypatch):
    from libs import db
    from libs.config import Config

    monkeypatch.setattr(Config, "DATABASE_URL", None)
    monkeypatch.setattr(Config, "DATABASE_USER", "fleetchat")
    monkeypatch.setattr(Config, "DATABASE_PASSWORD", "p@ss/word")
    assert db.build_database_url().startswith("postgresql+asyncpg://fleetchat:p%40ss%2Fword@")

    try:
        store = create_template_store("postgres")
        assert isinstance(store, SQLTemplateStore)
        assert db.get_session_factory() is db.get_session_factory()
    finally:
        await db.dispose_engine()
