"""
Database operations for the voting app.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, NamedTuple, Optional, Sequence

import aiosqlite

from .errors import ConstraintError, StorageError

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        pseudo TEXT UNIQUE NOT NULL,
        email TEXT,
        password_hash TEXT NOT NULL,
        is_admin INTEGER DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS teams (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT,
        player1_id INTEGER,
        player2_id INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS games (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT,
        description TEXT,
        image TEXT,
        order_index INTEGER DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS votes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        game_id INTEGER NOT NULL,
        UNIQUE(user_id, game_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS results (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        game_id INTEGER,
        team_id INTEGER,
        score INTEGER,
        points INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS scoring (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        game_id INTEGER,
        place INTEGER,
        points INTEGER,
        UNIQUE(game_id, place)
    )
    """,
)

INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_votes_game ON votes(game_id)",
    "CREATE INDEX IF NOT EXISTS idx_results_team ON results(team_id)",
)

# Largest value SQLite can bind as an INTEGER
MAX_INTEGER = 2**63 - 1


class WriteResult(NamedTuple):
    """Outcome of a mutation: inserted row id and affected row count."""

    last_id: Optional[int]
    changes: int


class DatabaseManager:
    """Runs queries against the SQLite store, one connection per operation."""

    def __init__(
        self,
        db_path: str,
    ) -> None:
        self.db_path = db_path

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Open a connection and translate engine errors.

        @return: Async context manager yielding a connection with dict-like rows
        """
        try:
            async with aiosqlite.connect(self.db_path) as db:
                db.row_factory = aiosqlite.Row
                yield db
        except aiosqlite.IntegrityError as e:
            raise ConstraintError(str(e)) from e
        except aiosqlite.Error as e:
            raise StorageError(str(e)) from e

    async def init_db(self) -> None:
        """
        Initialize the SQLite database.

        Creates all tables and indexes if absent. Safe to call repeatedly.
        """
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL")

            for statement in SCHEMA + INDEXES:
                await db.execute(statement)

            await db.commit()

        logger.info("Database schema ready at %s", self.db_path)

    async def seed_admin(
        self,
        handle: str,
        email: str,
        password_hash: str,
    ) -> bool:
        """
        Create the bootstrap administrator unless one with this email exists.

        @param handle: Login handle for the administrator
        @param email: Bootstrap email used to detect an existing admin
        @param password_hash: Pre-computed password hash
        @return: True if the admin row was created
        """
        existing = await self.fetch_one(
            "SELECT id FROM users WHERE email = ?", (email,)
        )
        if existing:
            return False

        await self.execute(
            "INSERT INTO users (pseudo, email, password_hash, is_admin) "
            "VALUES (?, ?, ?, 1)",
            (handle, email, password_hash),
        )
        logger.warning(
            "Default admin created: %s (%s), change its password", handle, email
        )
        return True

    async def execute(
        self,
        query: str,
        params: Sequence[Any] = (),
    ) -> WriteResult:
        """
        Execute a write statement and commit it.

        @param query: SQL statement with ? placeholders
        @param params: Statement parameters
        @return: WriteResult with the inserted row id and affected row count
        """
        async with self._connect() as db:
            cursor = await db.execute(query, params)
            await db.commit()
            return WriteResult(cursor.lastrowid, cursor.rowcount)

    async def fetch_one(
        self,
        query: str,
        params: Sequence[Any] = (),
    ) -> Optional[Dict[str, Any]]:
        """
        Fetch at most one row.

        @param query: SQL query with ? placeholders
        @param params: Query parameters
        @return: Row as a dictionary, None if no row matched
        """
        async with self._connect() as db:
            cursor = await db.execute(query, params)
            row = await cursor.fetchone()
            return dict(row) if row is not None else None

    async def fetch_all(
        self,
        query: str,
        params: Sequence[Any] = (),
    ) -> List[Dict[str, Any]]:
        """
        Fetch all rows in query order.

        @param query: SQL query with ? placeholders
        @param params: Query parameters
        @return: List of rows as dictionaries
        """
        async with self._connect() as db:
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]
