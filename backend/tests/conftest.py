"""
Shared pytest fixtures for backend tests.
"""
import os
import tempfile

# Keep test logs and team documents out of the working directory.
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="agent-team-logs-"))
os.environ.setdefault("TEAM_WORKSPACE", tempfile.mkdtemp(prefix="agent-team-workspace-"))

import pytest

from database import make_engine
from team.store import FileDocumentStore, SqlDocumentStore


class FakeComplete:
    """
    Stand-in for completion.complete().

    Returns the scripted replies in order (the last one repeats) and records
    every call. A reply that is an exception instance is raised instead.
    """

    def __init__(self, *replies):
        self.replies = list(replies) or ["ok"]
        self.calls = []

    def __call__(self, message, options, env=None):
        self.calls.append({"message": message, "options": dict(options), "env": env})
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def messages(self):
        return [call["message"] for call in self.calls]


@pytest.fixture
def file_store(tmp_path):
    """File-backed store in a fresh directory."""
    store = FileDocumentStore(tmp_path / "team")
    store.ensure_namespace()
    return store


@pytest.fixture
def sql_store(tmp_path):
    """SQLite-backed store in a fresh database file."""
    engine = make_engine(f"sqlite:///{tmp_path / 'team.db'}")
    store = SqlDocumentStore(engine, namespace="team")
    store.ensure_namespace()
    yield store
    engine.dispose()


@pytest.fixture(params=["file", "sql"])
def store(request, tmp_path):
    """Both store backends, for tests of the shared contract."""
    if request.param == "file":
        return request.getfixturevalue("file_store")
    return request.getfixturevalue("sql_store")


@pytest.fixture
def fake_complete():
    return FakeComplete
