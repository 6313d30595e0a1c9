"""Tests for HTTP routes."""
import json

import pytest
from fastapi.testclient import TestClient

from speech_practice.api.routes.events import event_stream
from speech_practice.main import app
from speech_practice.services.context import PracticeContext
from speech_practice.services.events import EventBus, event_to_dict, StateChanged
from speech_practice.services.storage import InMemoryKeyValueStore

from conftest import FakeGenerator

TEXT_REPLY = '{"grammarScore": 9, "styleScore": 8, "corrections": [], "strengths": [], "improvements": []}'


@pytest.fixture
def practice(test_settings, kv_store, clock):
    return PracticeContext(
        config=test_settings,
        store=kv_store,
        generator=FakeGenerator(),
        clock=clock,
    )


@pytest.fixture
def client(practice):
    """Provide test client with an in-memory practice context."""
    app.state.practice = practice
    with TestClient(app) as test_client:
        yield test_client
    app.state.practice = None


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["features"]["gemini"] is True
    assert "X-Request-ID" in response.headers


def test_session_flow(client, clock):
    response = client.post("/api/v1/session/start")
    assert response.status_code == 200
    assert response.json()["state"] == "recording"

    response = client.post("/api/v1/session/events", json={
        "text": "um", "isFinal": False, "timestampMs": clock.now + 1000,
    })
    assert response.json()["displayTranscript"] == "um"
    assert response.json()["metrics"]["wordCount"] == 0

    response = client.post("/api/v1/session/events", json={
        "text": "um so I prepared a short talk about testing",
        "isFinal": True,
        "timestampMs": clock.now + 6000,
    })
    data = response.json()
    assert data["transcript"] == "um so I prepared a short talk about testing"
    assert data["metrics"]["fillerWordCount"] == 1
    assert data["metrics"]["wordCount"] == 9

    clock.advance(15)
    response = client.post("/api/v1/session/stop")
    assert response.status_code == 200
    outcome = response.json()
    assert outcome["analyzed"] is True
    assert outcome["analysis"]["overallScore"] == 8
    assert outcome["record"]["duration"] == 15.0

    history = client.get("/api/v1/history").json()
    assert len(history) == 1
    assert history[0]["analysis"]["overallScore"] == 8

    assert client.get("/api/v1/session").json()["state"] == "idle"


def test_invalid_transition_returns_conflict(client):
    response = client.post("/api/v1/session/stop")

    assert response.status_code == 409
    assert response.json()["error_type"] == "InvalidTransitionError"


def test_scenario_and_message(client, practice):
    response = client.put("/api/v1/session/scenario", json={"scenario": "interview"})
    assert response.status_code == 200
    assert response.json()["scenario"] == "interview"

    response = client.post("/api/v1/messages", json={"text": "I am a backend engineer"})
    assert response.status_code == 200
    assert response.json()["overallScore"] == 8
    assert "job interview" in practice.generator.calls[0]["prompt"]

    response = client.put("/api/v1/session/scenario", json={"scenario": "karaoke"})
    assert response.status_code == 422


def test_empty_message_is_rejected(client):
    response = client.post("/api/v1/messages", json={"text": "   "})

    assert response.status_code == 400
    assert response.json()["error_type"] == "EmptyInputError"


def test_missing_credential(test_settings, clock):
    practice = PracticeContext(
        config=test_settings,
        store=InMemoryKeyValueStore(),
        generator=FakeGenerator(),
        clock=clock,
    )
    app.state.practice = practice
    try:
        with TestClient(app) as client:
            response = client.post("/api/v1/messages", json={"text": "hello"})
            assert response.status_code == 424
            assert response.json()["error_type"] == "MissingCredentialError"

            response = client.put("/api/v1/credential", json={"apiKey": "new-key"})
            assert response.json() == {"saved": True, "hasCredential": True}

            response = client.post("/api/v1/messages", json={"text": "hello"})
            assert response.status_code == 200
    finally:
        app.state.practice = None


def test_blank_credential_is_rejected(client):
    response = client.put("/api/v1/credential", json={"apiKey": "  "})
    assert response.status_code == 400


def test_text_analysis(client, practice):
    practice.generator.responses = [TEXT_REPLY]

    response = client.post("/api/v1/text/analyze", json={"text": "This are a test."})
    assert response.status_code == 200
    assert response.json()["grammarScore"] == 9

    response = client.post("/api/v1/text/analyze", json={"text": "x" * 501})
    assert response.status_code == 400
    assert response.json()["error_type"] == "TextTooLongError"


def test_clear_history(client, practice, clock):
    client.post("/api/v1/session/start")
    client.post("/api/v1/session/events", json={
        "text": "a session worth keeping", "isFinal": True, "timestampMs": clock.now + 1000,
    })
    clock.advance(7)
    client.post("/api/v1/session/stop")
    assert len(client.get("/api/v1/history").json()) == 1

    response = client.delete("/api/v1/history")
    assert response.json() == {"cleared": True, "size": 0}
    assert client.get("/api/v1/history").json() == []


def test_event_serialization():
    from speech_practice.models.session import SessionState

    payload = event_to_dict(StateChanged(previous=SessionState.IDLE, current=SessionState.RECORDING))
    assert payload == {"type": "state_changed", "previous": "idle", "current": "recording"}


def test_event_bus_survives_failing_listener():
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("listener failed")

    bus.subscribe(broken)
    unsubscribe = bus.subscribe(received.append)
    bus.emit(StateChanged(previous="idle", current="recording"))
    unsubscribe()
    bus.emit(StateChanged(previous="recording", current="stopping"))

    assert len(received) == 1


class StubRequest:
    """Запрос, который отключается после заданного числа проверок"""

    def __init__(self, connected_checks):
        self.connected_checks = connected_checks

    async def is_disconnected(self):
        if self.connected_checks > 0:
            self.connected_checks -= 1
            return False
        return True


@pytest.mark.asyncio
async def test_event_stream_forwards_bus_events(practice):
    request = StubRequest(connected_checks=1)
    response = await event_stream(request, practice)

    assert response.media_type == "text/event-stream"
    assert len(practice.bus._listeners) == 1

    practice.supervisor.start()
    frames = response.body_iterator

    frame = await frames.__anext__()
    assert frame.startswith("data: ")
    assert json.loads(frame[len("data: "):]) == {
        "type": "state_changed", "previous": "idle", "current": "recording",
    }

    with pytest.raises(StopAsyncIteration):
        await frames.__anext__()
    assert practice.bus._listeners == []


def test_event_stream_route_is_registered():
    paths = {route.path for route in app.routes}
    assert "/api/v1/events/stream" in paths
