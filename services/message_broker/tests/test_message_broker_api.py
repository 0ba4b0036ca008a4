"""
API tests for the message broker service endpoints.
"""

import pytest

from services.message_broker.defaults import DEFAULT_TEMPLATES
from services.message_broker.errors import TemplateStoreUnavailable

pytestmark = pytest.mark.unit


def test_root(api_client, broker):
    client = api_client(broker)
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"service": "message_broker", "status": "running"}


def test_health(api_client, broker):
    client = api_client(broker)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["service"] == "message_broker"


def test_translate_fallback(api_client, broker, make_event):
    client = api_client(broker)
    response = client.post(
        "/v1/messages/translate",
        json={
            "event": make_event(
                "vehicle.location", {"location": {"address": "A7 Highway, Hamburg", "speed": 85}}
            ),
            "language_code": "de",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "fallback"
    assert data["language_code"] == "GER"
    assert data["event_type"] == "vehicle.location"
    assert data["message"]["type"] == "text"
    assert "85 km/h" in data["message"]["body"]


def test_translate_from_template(api_client, seeded_broker, make_event):
    client = api_client(seeded_broker)
    response = client.post(
        "/v1/messages/translate",
        json={
            "event": make_event(
                "vehicle.geofence.enter", {"geofence": {"name": "BMW Plant", "type": "delivery_location"}}
            )
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "template"
    assert data["language_code"] == "ENG"
    assert [b["payload"] for b in data["message"]["buttons"]] == ["delivered", "report_issue"]


def test_translate_rejects_malformed_body(api_client, broker):
    client = api_client(broker)
    response = client.post("/v1/messages/translate", json={"event": "route.assigned"})
    assert response.status_code == 422


def test_webhook_accepts_legacy_type_key(api_client, broker):
    client = api_client(broker)
    response = client.post(
        "/webhook/telematics",
        params={"language_code": "ENG"},
        json={"type": "driver.hos.warning", "data": {"violation": {"timeRemaining": 45}}},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["event_type"] == "driver.hos.warning"
    assert "⏰ Time remaining: 45 minutes" in data["message"]["body"]


def test_webhook_unknown_event(api_client, broker, make_event):
    client = api_client(broker)
    response = client.post("/webhook/telematics", json=make_event("trailer.door.open"))

    assert response.status_code == 200
    assert response.json()["message"]["body"] == "Transport update available"


def test_list_templates(api_client, seeded_broker):
    client = api_client(seeded_broker)
    response = client.get("/v1/templates", params={"language_code": "en"})

    assert response.status_code == 200
    event_types = [template["event_type"] for template in response.json()]
    assert event_types == sorted(seed.template.event_type for seed in DEFAULT_TEMPLATES)


def test_list_templates_store_unavailable(api_client, broker, memory_store, mocker):
    mocker.patch.object(memory_store, "list_templates", side_effect=TemplateStoreUnavailable("db down"))
    client = api_client(broker)

    response = client.get("/v1/templates")
    assert response.status_code == 503


def test_initialize_templates(api_client, broker):
    client = api_client(broker)

    first = client.post("/v1/templates/initialize")
    second = client.post("/v1/templates/initialize")
    overwritten = client.post("/v1/templates/initialize", params={"overwrite": True})

    assert first.json() == {"initialized": len(DEFAULT_TEMPLATES)}
    assert second.json() == {"initialized": 0}
    assert overwritten.json() == {"initialized": len(DEFAULT_TEMPLATES)}


def test_languages(api_client, seeded_broker):
    client = api_client(seeded_broker)
    response = client.get("/v1/languages")

    assert response.status_code == 200
    assert response.json() == {"languages": ["ENG"], "default": "ENG"}


def test_webhook_accepts_null_data(api_client, broker):
    client = api_client(broker)
    response = client.post("/webhook/telematics", json={"eventType": "vehicle.location", "data": None})

    assert response.status_code == 200
    assert response.json()["message"]["body"] == "📍 Location update received: Current position\nSpeed: 0 km/h"


def test_metrics_count_translations_by_source(api_client, broker, make_event):
    client = api_client(broker)
    client.post("/v1/messages/translate", json={"event": make_event("driver.hos.warning")})

    response = client.get("/metrics")
    assert response.status_code == 200
    assert 'message_translations_total{event_type="driver.hos.warning",source="fallback"}' in response.text
    assert 'path="/v1/messages/translate"' in response.text
