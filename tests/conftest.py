from __future__ import annotations

import os
from pathlib import Path

import pytest
import pytest_asyncio

# The app module builds its FastAPI instance at import time and needs settings.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./command_center_test.db")
os.environ.setdefault("TOKEN_SECRET", "test-secret")

from command_center.db import dispose_engine  # noqa: E402
from command_center.db_init import init_db  # noqa: E402
from command_center.services import accounts  # noqa: E402
from command_center.settings import reset_settings  # noqa: E402

ADMIN_TOKEN = "admin-test-token"


@pytest_asyncio.fixture
async def db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("TOKEN_SECRET", "test-secret")
    monkeypatch.setenv("ADMIN_TOKEN", ADMIN_TOKEN)
    monkeypatch.setenv("PASSWORD_HASH_ITERATIONS", "1000")
    reset_settings()
    await init_db()
    yield
    await dispose_engine()
    reset_settings()


@pytest_asyncio.fixture
async def alice(db) -> dict:
    return await accounts.register("alice", "alice-pw")


@pytest_asyncio.fixture
async def bob(db) -> dict:
    return await accounts.register("bob", "bob-pw")


@pytest_asyncio.fixture
async def carol(db) -> dict:
    return await accounts.register("carol", "carol-pw")


def auth_headers(account: dict) -> dict:
    return {"Authorization": f"Bearer {account['token']}"}
