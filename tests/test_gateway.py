"""Tests for the HTTP gateway"""

import json

import pytest
from fastapi.testclient import TestClient

from mindscribe.gateway.main import backend_from_env, create_app
from mindscribe.models.conversation import MemoryConfig
from mindscribe.storage.backends import InMemoryBackend, RedisBackend
from mindscribe.storage.storage_service import StorageService

from conftest import ScriptedEngine


SUMMARY_JSON = json.dumps({"summary": "Talked about the weekend.", "keyTopics": ["weekend"]})


@pytest.fixture
def engine():
    return ScriptedEngine(responses=["Glad you reached out."])


@pytest.fixture
def client(engine):
    app = create_app(
        storage=StorageService(InMemoryBackend()),
        engine=engine,
        memory_config=MemoryConfig(recent_window_size=6, summarize_threshold=4),
    )
    with TestClient(app) as client:
        yield client


@pytest.fixture
def logged_in(client):
    response = client.post("/v1/auth/register", json={"username": "alice", "password": "s3cret!"})
    assert response.status_code == 200
    return client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["storage"] == "connected"
    assert data["inference"] == "available"


def test_register_and_login(client):
    response = client.post("/v1/auth/register", json={"username": "alice", "password": "s3cret!"})
    assert response.json()["user"]["username"] == "alice"
    assert "password_hash" not in response.json()["user"]

    duplicate = client.post("/v1/auth/register", json={"username": "alice", "password": "s3cret!"})
    assert duplicate.status_code == 409

    too_short = client.post("/v1/auth/register", json={"username": "bo", "password": "s3cret!"})
    assert too_short.status_code == 400

    client.post("/v1/auth/logout")
    bad = client.post("/v1/auth/login", json={"username": "alice", "password": "nope-nope"})
    assert bad.status_code == 401

    good = client.post("/v1/auth/login", json={"username": "alice", "password": "s3cret!"})
    assert good.status_code == 200
    assert good.json()["success"] is True


def test_sessions_require_login(client):
    assert client.get("/v1/sessions").status_code == 401
    assert client.post("/v1/sessions").status_code == 401


def test_session_crud(logged_in):
    created = logged_in.post("/v1/sessions", json={"title": "Morning pages"})
    assert created.status_code == 201
    session_id = created.json()["id"]

    untitled = logged_in.post("/v1/sessions")
    assert untitled.status_code == 201
    assert untitled.json()["title"].startswith("Chat ")

    listing = logged_in.get("/v1/sessions").json()
    assert listing["object"] == "list"
    assert {item["id"] for item in listing["data"]} == {session_id, untitled.json()["id"]}

    fetched = logged_in.get(f"/v1/sessions/{session_id}")
    assert fetched.json()["title"] == "Morning pages"

    deleted = logged_in.delete(f"/v1/sessions/{session_id}")
    assert deleted.json() == {"id": session_id, "deleted": True}
    assert logged_in.get(f"/v1/sessions/{session_id}").status_code == 404


def test_other_users_sessions_are_hidden(logged_in):
    session_id = logged_in.post("/v1/sessions").json()["id"]
    logged_in.post("/v1/auth/logout")
    logged_in.post("/v1/auth/register", json={"username": "bob", "password": "hunter22"})

    assert logged_in.get(f"/v1/sessions/{session_id}").status_code == 404
    assert logged_in.get("/v1/sessions").json()["data"] == []


def test_send_message(logged_in, engine):
    session_id = logged_in.post("/v1/sessions").json()["id"]
    response = logged_in.post(
        f"/v1/sessions/{session_id}/messages",
        json={"content": "Rough week", "user_name": "Alice"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["reply"] == "Glad you reached out."
    assert [m["role"] for m in data["session"]["messages"]] == ["user", "assistant"]
    assert data["session"]["title"] == "Rough week"
    assert "- User's name: Alice" in engine.calls[0]["system_prompt"]

    listing = logged_in.get("/v1/sessions").json()["data"]
    assert listing[0]["message_count"] == 2
    assert listing[0]["preview"] == "Glad you reached out."


def test_send_message_streaming(logged_in):
    session_id = logged_in.post("/v1/sessions").json()["id"]
    response = logged_in.post(
        f"/v1/sessions/{session_id}/messages",
        json={"content": "hello", "stream": True},
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    events = [line[len("data: "):] for line in response.text.split("\n\n") if line.startswith("data: ")]
    assert events[-1] == "[DONE]"
    chunks = [json.loads(e) for e in events[:-1]]
    assert "".join(c["content"] for c in chunks) == "Glad you reached out."
    assert all(c["session_id"] == session_id for c in chunks)

    stored = logged_in.get(f"/v1/sessions/{session_id}").json()
    assert [m["role"] for m in stored["messages"]] == ["user", "assistant"]


def test_stream_failure_emits_error_event(logged_in, engine):
    engine.fail = True
    session_id = logged_in.post("/v1/sessions").json()["id"]
    response = logged_in.post(
        f"/v1/sessions/{session_id}/messages",
        json={"content": "hello", "stream": True},
    )
    events = [line[len("data: "):] for line in response.text.split("\n\n") if line.startswith("data: ")]
    assert json.loads(events[0])["error"]["type"] == "stream_error"
    assert events[-1] == "[DONE]"


def test_send_message_inference_failure(logged_in, engine):
    engine.fail = True
    session_id = logged_in.post("/v1/sessions").json()["id"]
    response = logged_in.post(f"/v1/sessions/{session_id}/messages", json={"content": "hello"})
    assert response.status_code == 502

    stored = logged_in.get(f"/v1/sessions/{session_id}").json()
    assert [m["role"] for m in stored["messages"]] == ["user"]


def test_send_message_validation(logged_in):
    session_id = logged_in.post("/v1/sessions").json()["id"]
    assert logged_in.post(f"/v1/sessions/{session_id}/messages", json={"content": ""}).status_code == 422
    assert logged_in.post(f"/v1/sessions/{session_id}/messages", json={"content": "   "}).status_code == 400
    assert logged_in.post("/v1/sessions/missing/messages", json={"content": "hi"}).status_code == 404


def test_memory_and_summarize(logged_in, engine):
    session_id = logged_in.post("/v1/sessions").json()["id"]
    engine.responses = [f"reply {i}" for i in range(4)]
    for i in range(4):
        logged_in.post(f"/v1/sessions/{session_id}/messages", json={"content": f"message {i}"})

    memory = logged_in.get(f"/v1/sessions/{session_id}/memory").json()
    assert len(memory["recent_messages"]) == 6
    assert memory["summary"] is None
    assert memory["needs_summary_update"] is False

    engine.responses = [SUMMARY_JSON]
    summarized = logged_in.post(f"/v1/sessions/{session_id}/summarize").json()
    assert summarized["summary"]["summary"] == "Talked about the weekend."
    assert summarized["summary"]["message_count"] == 2

    memory = logged_in.get(f"/v1/sessions/{session_id}/memory").json()
    assert "Talked about the weekend." in memory["context_prompt"]


def test_backend_from_env(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "redis")
    assert isinstance(backend_from_env(), RedisBackend)
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    assert isinstance(backend_from_env(), InMemoryBackend)
    monkeypatch.delenv("STORAGE_BACKEND")
    assert isinstance(backend_from_env(), InMemoryBackend)
