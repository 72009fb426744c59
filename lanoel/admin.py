"""
Administrator CRUD for games, teams and results.
"""

import asyncio
import logging
import shutil
import uuid
from pathlib import Path
from typing import Any, BinaryIO, Dict, Mapping, Optional

from .database import MAX_INTEGER, DatabaseManager, WriteResult
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def parse_int(
    form: Mapping[str, Any],
    name: str,
    default: Optional[int] = None,
    required: bool = False,
) -> Optional[int]:
    """
    Read an integer form field.

    @param form: Submitted form data
    @param name: Field name
    @param default: Value used when the field is blank
    @param required: Raise instead of defaulting when blank
    @return: Parsed integer or the default
    @raise ValidationError: if the field is required and blank, or not a 64-bit integer
    """
    raw = form.get(name)
    raw = raw.strip() if isinstance(raw, str) else ""
    if not raw:
        if required:
            raise ValidationError(f"Field '{name}' is required.")
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"Field '{name}' must be a whole number.") from None
    if abs(value) > MAX_INTEGER:
        raise ValidationError(f"Field '{name}' is out of range.")
    return value


def parse_text(
    form: Mapping[str, Any],
    name: str,
    default: str = "",
    required: bool = False,
) -> str:
    raw = form.get(name)
    value = raw.strip() if isinstance(raw, str) else ""
    if required and not value:
        raise ValidationError(f"Field '{name}' is required.")
    return value or default


class ImageStore:
    """Stores uploaded game pictures under the public upload directory."""

    def __init__(
        self,
        upload_dir: str,
        url_prefix: str = "/public/uploads/",
    ) -> None:
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix

    def save(
        self,
        filename: str,
        data: BinaryIO,
    ) -> str:
        """
        Write an upload under a generated name.

        @param filename: Client-side file name, only its extension is kept
        @param data: Readable binary stream with the file content
        @return: Public path of the stored file
        """
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        suffix = Path(filename or "").suffix.lower()
        if not suffix[1:].isalnum():
            suffix = ""

        stored_name = uuid.uuid4().hex + suffix
        with open(self.upload_dir / stored_name, "wb") as f:
            shutil.copyfileobj(data, f)

        logger.info("Stored upload %s as %s", filename, stored_name)
        return self.url_prefix + stored_name

    async def store(
        self,
        filename: str,
        data: BinaryIO,
    ) -> str:
        """Same as `save`, run on the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.save, filename, data)


def _require_row(result: WriteResult, table: str, row_id: int) -> None:
    if not result.changes:
        raise NotFoundError(f"No {table} with id {row_id}.")


# ── Games ────────────────────────────────────────────────────────────────


def parse_game(form: Mapping[str, Any]) -> tuple:
    """
    Validate the game fields of a form.

    @param form: Fields name (required), description, order_index
    @return: Tuple of name, description and order_index
    @raise ValidationError: if the name is blank or the order is not an integer
    """
    return (
        parse_text(form, "name", required=True),
        parse_text(form, "description"),
        parse_int(form, "order_index", default=0),
    )


async def create_game(
    db: DatabaseManager,
    form: Mapping[str, Any],
    image: Optional[str] = None,
) -> int:
    """
    Insert a game.

    @param db: Database manager
    @param form: Fields name (required), description, order_index
    @param image: Public path of an uploaded picture
    @return: New game id
    """
    name, description, order_index = parse_game(form)
    result = await db.execute(
        "INSERT INTO games (name, description, image, order_index) VALUES (?,?,?,?)",
        (name, description, image, order_index),
    )
    logger.info("Game %s created", result.last_id)
    return result.last_id


async def update_game(
    db: DatabaseManager,
    game_id: int,
    form: Mapping[str, Any],
    image: Optional[str] = None,
) -> None:
    """
    Overwrite a game; the stored image is replaced only when a new one is given.

    @raise NotFoundError: if no game has this id
    """
    params = list(parse_game(form))
    if image is None:
        query = "UPDATE games SET name=?, description=?, order_index=? WHERE id=?"
    else:
        query = (
            "UPDATE games SET name=?, description=?, order_index=?, image=? WHERE id=?"
        )
        params.append(image)

    _require_row(await db.execute(query, (*params, game_id)), "game", game_id)
    logger.info("Game %s updated", game_id)


async def delete_game(db: DatabaseManager, game_id: int) -> None:
    # votes and results referencing the game are left in place
    result = await db.execute("DELETE FROM games WHERE id = ?", (game_id,))
    _require_row(result, "game", game_id)
    logger.info("Game %s deleted", game_id)


# ── Teams ────────────────────────────────────────────────────────────────


def _team_params(form: Mapping[str, Any]) -> tuple:
    return (
        parse_text(form, "name", required=True),
        parse_int(form, "player1_id"),
        parse_int(form, "player2_id"),
    )


async def create_team(db: DatabaseManager, form: Mapping[str, Any]) -> int:
    result = await db.execute(
        "INSERT INTO teams (name, player1_id, player2_id) VALUES (?,?,?)",
        _team_params(form),
    )
    logger.info("Team %s created", result.last_id)
    return result.last_id


async def update_team(
    db: DatabaseManager, team_id: int, form: Mapping[str, Any]
) -> None:
    result = await db.execute(
        "UPDATE teams SET name=?, player1_id=?, player2_id=? WHERE id=?",
        (*_team_params(form), team_id),
    )
    _require_row(result, "team", team_id)
    logger.info("Team %s updated", team_id)


async def delete_team(db: DatabaseManager, team_id: int) -> None:
    result = await db.execute("DELETE FROM teams WHERE id = ?", (team_id,))
    _require_row(result, "team", team_id)
    logger.info("Team %s deleted", team_id)


# ── Results ──────────────────────────────────────────────────────────────


def _result_params(form: Mapping[str, Any]) -> tuple:
    return (
        parse_int(form, "game_id", required=True),
        parse_int(form, "team_id", required=True),
        parse_int(form, "score", default=0),
        parse_int(form, "points", default=0),
    )


async def create_result(db: DatabaseManager, form: Mapping[str, Any]) -> int:
    result = await db.execute(
        "INSERT INTO results (game_id, team_id, score, points) VALUES (?,?,?,?)",
        _result_params(form),
    )
    logger.info("Result %s recorded", result.last_id)
    return result.last_id


async def update_result(
    db: DatabaseManager, result_id: int, form: Mapping[str, Any]
) -> None:
    result = await db.execute(
        "UPDATE results SET game_id=?, team_id=?, score=?, points=? WHERE id=?",
        (*_result_params(form), result_id),
    )
    _require_row(result, "result", result_id)
    logger.info("Result %s updated", result_id)


async def delete_result(db: DatabaseManager, result_id: int) -> None:
    result = await db.execute("DELETE FROM results WHERE id = ?", (result_id,))
    _require_row(result, "result", result_id)
    logger.info("Result %s deleted", result_id)


# ── Dashboard ────────────────────────────────────────────────────────────


async def dashboard(
    db: DatabaseManager,
    edit_result_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Collect everything the admin page lists.

    @param db: Database manager
    @param edit_result_id: Result row to preload into the edit form
    @return: Dictionary with games, teams, users, results and result_to_edit
    """
    games = await db.fetch_all("SELECT * FROM games ORDER BY order_index ASC")
    teams = await db.fetch_all("SELECT * FROM teams")
    users = await db.fetch_all("SELECT id, pseudo, is_admin FROM users ORDER BY pseudo")
    results = await db.fetch_all("""
        SELECT r.*, g.name AS game_name, t.name AS team_name
        FROM results r
        LEFT JOIN games g ON g.id = r.game_id
        LEFT JOIN teams t ON t.id = r.team_id
        ORDER BY r.id DESC
    """)

    result_to_edit = None
    if edit_result_id is not None:
        result_to_edit = await db.fetch_one(
            "SELECT * FROM results WHERE id = ?", (edit_result_id,)
        )

    return {
        "games": games,
        "teams": teams,
        "users": users,
        "results": results,
        "result_to_edit": result_to_edit,
    }
