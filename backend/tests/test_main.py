"""
Tests for the FastAPI application.
"""

import json

import pytest
from fastapi.testclient import TestClient

from main import app, get_team
from team.router import create_default_team
from team.store import DEFAULT_DOCUMENTS, GOALS, PROJECT_STATUS


@pytest.fixture
def team(file_store, fake_complete):
    return create_default_team(file_store, complete=fake_complete("Team reply."))


@pytest.fixture
def client(team):
    app.dependency_overrides[get_team] = lambda: team
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_root_endpoint(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["message"] == "Agent Team Backend API"


def test_health_endpoint(client):
    """Test health reports store, completion and agents."""
    response = client.get("/health")

    data = response.json()
    assert response.status_code == 200
    assert data["document_store"] == "ok"
    assert data["agents"] == ["milo", "josh", "marketing", "dev"]
    assert data["routines"] == "stopped"
    assert data["routine_jobs"] == []
    assert "completion" in data


def test_health_with_empty_goals(client, file_store):
    """Test an emptied GOALS.md does not mark the store unavailable."""
    file_store.write(GOALS, "")

    response = client.get("/health")

    assert response.json()["document_store"] == "ok"


def test_health_lists_routine_jobs(client, team, monkeypatch):
    """Test scheduled routines and their next runs appear in the health report."""
    import main
    from team.routine import TeamRoutine

    routine = TeamRoutine(team, timezone="UTC")
    monkeypatch.setattr(main, "team_routine", routine)
    routine.start()
    try:
        data = client.get("/health").json()
    finally:
        routine.shutdown(wait=False)

    assert data["routines"] == "running"
    assert sorted(job["id"] for job in data["routine_jobs"]) == ["end_of_day", "morning_briefing"]
    assert all(job["next_run"] for job in data["routine_jobs"])


def test_cors_middleware_configured():
    """Test CORS middleware is installed."""
    from fastapi.middleware.cors import CORSMiddleware

    assert any(m.cls == CORSMiddleware for m in app.user_middleware)


def test_list_agents(client):
    response = client.get("/api/team/agents")

    assert response.status_code == 200
    assert [a["name"] for a in response.json()] == ["milo", "josh", "marketing", "dev"]
    assert response.json()[0] == {"name": "milo", "display_name": "Milo", "role": "Strategy Lead"}


def test_chat_endpoint(client, team):
    """Test chat routes the message to the named agent."""
    response = client.post("/api/team/chat", json={"agent": "Josh", "message": "Margins?"})

    assert response.status_code == 200
    assert response.json() == {"agent": "Josh", "response": "Team reply."}
    assert team.resolve("josh").complete.messages[-1] == "Margins?"


def test_chat_unknown_agent(client):
    """Test unknown agents are answered, not rejected."""
    response = client.post("/api/team/chat", json={"agent": "oracle", "message": "Hi"})

    assert response.status_code == 200
    assert response.json()["response"] == (
        "Agent 'oracle' not found. Available: milo, josh, marketing, dev"
    )


def test_chat_requires_message(client):
    response = client.post("/api/team/chat", json={"agent": "milo", "message": ""})

    assert response.status_code == 422


def test_broadcast_endpoint(client):
    response = client.post("/api/team/broadcast", json={"message": "Morning!"})

    assert response.status_code == 200
    assert response.json()["responses"] == {
        "milo": "Team reply.",
        "josh": "Team reply.",
        "marketing": "Team reply.",
        "dev": "Team reply.",
    }


def test_team_status(client):
    response = client.get("/api/team/status")

    assert response.status_code == 200
    assert response.json()["goals"] == DEFAULT_DOCUMENTS[GOALS]
    assert response.json()["status"] == DEFAULT_DOCUMENTS[PROJECT_STATUS]


def test_document_read_write(client, file_store):
    """Test documents can be replaced and read back over HTTP."""
    response = client.put("/api/team/documents/GOALS.md", json={"content": "# Goals\n\nShip it"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "key": "GOALS.md"}
    assert file_store.read(GOALS) == "# Goals\n\nShip it"

    response = client.get("/api/team/documents/GOALS.md")
    assert response.json() == {"key": "GOALS.md", "content": "# Goals\n\nShip it"}


def test_document_append(client, file_store):
    response = client.post(
        "/api/team/documents/PROJECT_STATUS.md/append",
        json={"content": "Catalog shipped"}
    )

    assert response.status_code == 200
    assert "Catalog shipped" in file_store.read(PROJECT_STATUS)
    assert "] Update\nCatalog shipped" in file_store.read(PROJECT_STATUS)


def test_nested_document_key(client):
    """Test agent documents are reachable by their nested key."""
    response = client.get("/api/team/documents/agents/milo/SOUL.md")

    assert response.status_code == 200
    assert response.json()["content"].startswith("# SOUL.md — Milo")


def test_missing_document_returns_404(client):
    response = client.get("/api/team/documents/NOPE.md")

    assert response.status_code == 404


def test_invalid_document_key_returns_400(client):
    response = client.put("/api/team/documents/a%5Cb.md", json={"content": "x"})

    assert response.status_code == 400


def test_list_documents(client):
    response = client.get("/api/team/documents")

    keys = response.json()["keys"]
    assert GOALS in keys
    assert "agents/dev/SOUL.md" in keys


def test_logs_endpoint_returns_recent_first(client, monkeypatch, tmp_path):
    """Test log entries are parsed and returned newest first, skipping bad lines."""
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    entries = [{"message": "first"}, {"message": "second"}]
    with open(tmp_path / "agent_team.log", "w", encoding="utf-8") as f:
        f.write(json.dumps(entries[0]) + "\n")
        f.write("not json\n")
        f.write(json.dumps(entries[1]) + "\n")

    response = client.get("/api/logs?limit=10")

    assert response.status_code == 200
    assert [e["message"] for e in response.json()["logs"]] == ["second", "first"]


def test_logs_endpoint_supports_limit(client, monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    with open(tmp_path / "agent_team.log", "w", encoding="utf-8") as f:
        for i in range(5):
            f.write(json.dumps({"message": f"entry {i}"}) + "\n")

    response = client.get("/api/logs?limit=2")

    assert [e["message"] for e in response.json()["logs"]] == ["entry 4", "entry 3"]
