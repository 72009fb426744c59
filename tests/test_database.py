"""Tests for the persistence layer and startup bootstrap."""

from __future__ import annotations

import pytest

from lanoel.auth import verify_password
from lanoel.database import DatabaseManager
from lanoel.errors import ConstraintError, StorageError

TABLES = {"users", "teams", "games", "votes", "results", "scoring"}


async def test_init_creates_all_tables(db) -> None:
    rows = await db.fetch_all("SELECT name FROM sqlite_master WHERE type = 'table'")
    assert TABLES <= {row["name"] for row in rows}


async def test_init_is_idempotent(system) -> None:
    await system.init_db()
    await system.init_db()

    admins = await system.db.fetch_all("SELECT * FROM users WHERE is_admin = 1")
    assert len(admins) == 1


async def test_bootstrap_admin_uses_hashed_password(db) -> None:
    admin = await db.fetch_one("SELECT * FROM users WHERE email = ?", ("admin@lanoel.local",))

    assert admin["pseudo"] == "admin"
    assert admin["is_admin"] == 1
    assert admin["password_hash"] != "Admin"
    assert verify_password("Admin", admin["password_hash"])


async def test_seed_admin_skips_existing_email(db) -> None:
    created = await db.seed_admin("other", "admin@lanoel.local", "x")
    assert created is False


async def test_execute_reports_id_and_rowcount(db) -> None:
    first = await db.execute("INSERT INTO teams (name) VALUES (?)", ("Reds",))
    second = await db.execute("INSERT INTO teams (name) VALUES (?)", ("Blues",))
    assert first.changes == 1
    assert second.last_id == first.last_id + 1

    updated = await db.execute("UPDATE teams SET name = name || '!'")
    assert updated.changes == 2


async def test_fetch_one_returns_none_when_missing(db) -> None:
    assert await db.fetch_one("SELECT * FROM games WHERE id = ?", (999,)) is None


async def test_fetch_all_keeps_query_order(db) -> None:
    for name, order in (("B", 2), ("A", 1), ("C", 3)):
        await db.execute(
            "INSERT INTO games (name, order_index) VALUES (?, ?)", (name, order)
        )

    rows = await db.fetch_all("SELECT name FROM games ORDER BY order_index ASC")
    assert [row["name"] for row in rows] == ["A", "B", "C"]


async def test_malformed_sql_raises_storage_error(db) -> None:
    with pytest.raises(StorageError):
        await db.fetch_all("SELECT * FROM no_such_table")


async def test_vote_pair_is_unique(db) -> None:
    await db.execute("INSERT INTO votes (user_id, game_id) VALUES (1, 1)")
    with pytest.raises(ConstraintError):
        await db.execute("INSERT INTO votes (user_id, game_id) VALUES (1, 1)")


async def test_missing_parent_directory_is_created(tmp_path) -> None:
    manager = DatabaseManager(str(tmp_path / "nested" / "dir" / "x.db"))
    await manager.init_db()
    assert (tmp_path / "nested" / "dir" / "x.db").exists()
