"""Shared fixtures.

The API module builds an application from the environment at import time,
so the environment is pointed at a throwaway directory before any test
module imports it.
"""

from __future__ import annotations

import os
import tempfile
from typing import List, Optional

os.environ.setdefault("MINIIDE_DATA_DIR", tempfile.mkdtemp(prefix="miniide_test_"))
os.environ.setdefault("MINIIDE_BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from miniide.api.main import create_app
from miniide.config import Config
from miniide.executor import CodeExecutor, ExecutionOutcome
from miniide.sessions import LoginRateLimiter, SessionStore
from miniide.storage import FileStore


class ScriptedExecutor(CodeExecutor):
    """Executor that replays fixed chunks and then returns or raises."""

    def __init__(
        self,
        chunks: List[str],
        outcome: Optional[ExecutionOutcome] = None,
        error: Optional[Exception] = None,
    ) -> None:
        super().__init__()
        self.chunks = chunks
        self.outcome = outcome or ExecutionOutcome(stdout="".join(chunks), stderr="", exit_code=0)
        self.error = error
        self.calls: list = []

    async def run(self, code, stdin, on_output):
        self.calls.append((code, stdin))
        for chunk in self.chunks:
            on_output(chunk)
        if self.error is not None:
            raise self.error
        return self.outcome


@pytest.fixture
def scripted():
    return ScriptedExecutor


@pytest.fixture
def config(tmp_path) -> Config:
    return Config.for_directory(str(tmp_path), bcrypt_rounds=4)


@pytest.fixture
def sessions(tmp_path) -> SessionStore:
    return SessionStore(
        users_file=tmp_path / "users.json",
        rate_limiter=LoginRateLimiter(max_attempts=5, window_seconds=60),
        bcrypt_rounds=4,
    )


@pytest.fixture
def file_store(tmp_path, sessions) -> FileStore:
    return FileStore(tmp_path / "saved-files", sessions)


@pytest.fixture
def client(config) -> TestClient:
    return TestClient(create_app(config))


@pytest.fixture
def auth_token(client) -> str:
    res = client.post("/api/register", json={"username": "alice", "password": "s3cret"})
    assert res.status_code == 200
    return res.json()["token"]
