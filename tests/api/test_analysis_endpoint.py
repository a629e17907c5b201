import json

import pytest
from fastapi.testclient import TestClient

from linetrace.config.settings import Settings, get_settings
from linetrace.dependencies import get_engine
from linetrace.main import app
from linetrace.services.attribution_engine import AttributionEngine
from linetrace.services.memory_repository import InMemoryRepository


def _engine():
    repo = InMemoryRepository()
    repo.commit("alice", {"Main.cs": [f"line {i}" for i in range(1, 6)]})
    repo.commit("bob", {"Main.cs": ["line 1", "line 2", "bob", "line 4", "line 5"]})
    return AttributionEngine(repo)


@pytest.fixture(autouse=True)
def override_get_engine():
    app.dependency_overrides[get_engine] = _engine
    yield
    app.dependency_overrides.clear()


client = TestClient(app)


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_analyze():
    response = client.post("/api/attribution/analyze", json={"from_revision": 1})
    assert response.status_code == 200
    data = response.json()
    assert data["to_revision"] == 2
    assert data["report"]["authors"]["alice"]["born"] == 5
    assert data["report"]["authors"]["bob"]["kills_of_others"] == 1
    assert data["report"]["authors"]["alice"]["survival_ratio"] == {
        "numerator": 4,
        "denominator": 5,
        "defined": True,
    }


def test_analyze_invalid_range():
    response = client.post(
        "/api/attribution/analyze", json={"from_revision": 2, "to_revision": 9}
    )
    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["category"] == "INPUT"
    assert detail["context"]["operation"] == "analyze"


def test_analyze_stream():
    response = client.post("/api/attribution/analyze/stream", json={"from_revision": 1})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    events = [
        json.loads(line[len("data: ") :])
        for line in response.text.splitlines()
        if line.startswith("data: ")
    ]
    assert events[0]["type"] == "status"
    assert events[-1]["type"] == "complete"
    assert events[-1]["result"]["report"]["kill_matrix"] == {"bob": {"alice": 1}}


def test_analyze_stream_error_event():
    response = client.post(
        "/api/attribution/analyze/stream", json={"from_revision": 3, "to_revision": 1}
    )
    assert response.status_code == 200
    events = [
        json.loads(line[len("data: ") :])
        for line in response.text.splitlines()
        if line.startswith("data: ")
    ]
    assert events[-1]["type"] == "error"
    assert events[-1]["category"] == "INPUT"


def test_analyze_uses_configured_range():
    app.dependency_overrides[get_settings] = lambda: Settings(
        _env_file=None, FROM_REVISION=2, TO_REVISION=2
    )
    response = client.post("/api/attribution/analyze", json={})
    assert response.status_code == 200
    data = response.json()
    assert (data["from_revision"], data["to_revision"]) == (2, 2)
    assert data["report"]["authors"]["bob"]["born"] == 1
    assert data["report"]["authors"]["bob"]["legacy_killed"] == 1


def test_request_range_overrides_settings():
    app.dependency_overrides[get_settings] = lambda: Settings(_env_file=None, FROM_REVISION=2)
    response = client.post("/api/attribution/analyze", json={"from_revision": 1})
    assert response.status_code == 200
    assert response.json()["from_revision"] == 1
