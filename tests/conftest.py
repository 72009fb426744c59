"""Shared fixtures: an isolated config, database and web client per test."""

from __future__ import annotations

import json

import pytest
from cryptography.fernet import Fernet

from lanoel.auth import Identity, register
from lanoel.config import EventConfig
from lanoel.server import VotingSystem

ADMIN_HANDLE = "admin"
ADMIN_PASSWORD = "Admin"


@pytest.fixture
def config(tmp_path, monkeypatch) -> EventConfig:
    for env_var in EventConfig.ENV_MAPPINGS:
        monkeypatch.delenv(env_var, raising=False)

    config_path = tmp_path / "lanoel_config.json"
    config_path.write_text(
        json.dumps(
            {
                "database": {"path": str(tmp_path / "data" / "test.db")},
                "auth": {
                    "bcrypt_rounds": 4,
                    "secret_key": Fernet.generate_key().decode("ascii"),
                },
                "uploads": {
                    "public_dir": str(tmp_path / "public"),
                    "upload_dir": str(tmp_path / "public" / "uploads"),
                },
            }
        ),
        encoding="utf-8",
    )
    return EventConfig(str(config_path))


@pytest.fixture
async def system(config) -> VotingSystem:
    system = VotingSystem(config)
    await system.init_db()
    return system


@pytest.fixture
async def db(system):
    return system.db


@pytest.fixture
async def client(aiohttp_client, system):
    return await aiohttp_client(system.create_app())


@pytest.fixture
async def alice(db) -> Identity:
    return await register(db, "alice", "pw1", rounds=4)


async def add_games(db, count: int) -> list[int]:
    ids = []
    for i in range(count):
        result = await db.execute(
            "INSERT INTO games (name, description, order_index) VALUES (?, '', ?)",
            (f"Game {i + 1}", i),
        )
        ids.append(result.last_id)
    return ids


async def web_login(client, handle: str, password: str):
    return await client.post("/login", data={"pseudo": handle, "password": password})


async def web_login_admin(client):
    return await web_login(client, ADMIN_HANDLE, ADMIN_PASSWORD)
