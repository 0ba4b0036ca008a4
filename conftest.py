"""
Shared test fixtures for the message broker.

This module provides reusable fixtures for:
- Building fleet events in the provider's shape
- Empty and pre-seeded in-memory template stores
- MessageBroker instances wired to those stores
- TestClient instances with the broker dependency overridden
"""

from typing import Any, Dict, Optional

import pytest

from services.message_broker.broker import MessageBroker
from services.message_broker.defaults import get_default_templates
from services.message_broker.template_store import InMemoryTemplateStore


@pytest.fixture
def make_event():
    """
    Factory fixture to create fleet events.

    Returns:
        Function that creates event dicts with the given type and data
    """

    def _make_event(event_type: Optional[str], data: Optional[Dict[str, Any]] = None, **extra) -> Dict[str, Any]:
        event = {
            "eventType": event_type,
            "timestamp": "2025-06-02T08:30:00Z",
            "data": data if data is not None else {},
        }
        event.update(extra)
        return event

    return _make_event


@pytest.fixture
def memory_store():
    """Empty in-memory template store."""
    return InMemoryTemplateStore()


@pytest.fixture
def seeded_store():
    """In-memory template store holding the default English templates."""
    store = InMemoryTemplateStore()
    for seed in get_default_templates():
        store.add_template(seed.template)
        for variable in seed.variables:
            store.add_variable(variable)
    return store


@pytest.fixture
def broker(memory_store):
    """Broker over an empty store: every translation takes the fallback path."""
    return MessageBroker(memory_store)


@pytest.fixture
def seeded_broker(seeded_store):
    """Broker over the default templates."""
    return MessageBroker(seeded_store)


@pytest.fixture
def api_client():
    """
    Factory fixture to create a TestClient bound to a given broker.

    Returns:
        Function that creates a TestClient with get_message_broker overridden
    """
    from fastapi.testclient import TestClient

    from services.message_broker.main import app, get_message_broker

    def _create_client(broker: MessageBroker) -> TestClient:
        app.dependency_overrides[get_message_broker] = lambda: broker
        return TestClient(app)

    yield _create_client

    app.dependency_overrides.clear()
