"""
Vote casting with a per-user cap and toggle semantics.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .auth import Identity
from .database import DatabaseManager
from .errors import ConstraintError

logger = logging.getLogger(__name__)

DEFAULT_MAX_VOTES = 8


class VoteOutcome(enum.Enum):
    ADDED = "added"
    REMOVED = "removed"
    CAPPED = "capped"
    UNKNOWN_GAME = "unknown_game"
    UNAUTHENTICATED = "unauthenticated"


@dataclass
class VoteState:
    """Games in display order plus the user's current selections."""

    games: List[Dict[str, Any]]
    user_votes: List[int] = field(default_factory=list)

    @property
    def votes_count(self) -> int:
        return len(self.user_votes)

    @property
    def orphaned_votes(self) -> List[int]:
        """Voted game ids whose game has been deleted."""
        known = {game["id"] for game in self.games}
        return [game_id for game_id in self.user_votes if game_id not in known]


async def count_votes(db: DatabaseManager, user_id: int) -> int:
    row = await db.fetch_one(
        "SELECT COUNT(*) AS n FROM votes WHERE user_id = ?", (user_id,)
    )
    return row["n"]


async def _remove_vote(db: DatabaseManager, user_id: int, game_id: int) -> bool:
    result = await db.execute(
        "DELETE FROM votes WHERE user_id = ? AND game_id = ?", (user_id, game_id)
    )
    return result.changes > 0


async def list_vote_state(
    db: DatabaseManager,
    identity: Identity,
) -> VoteState:
    """
    Build the voting page state.

    @param db: Database manager
    @param identity: Authenticated user
    @return: VoteState with games ordered by display index
    """
    games = await db.fetch_all("SELECT * FROM games ORDER BY order_index ASC")
    rows = await db.fetch_all(
        "SELECT game_id FROM votes WHERE user_id = ? ORDER BY id ASC",
        (identity.user_id,),
    )
    return VoteState(games=games, user_votes=[row["game_id"] for row in rows])


async def toggle_vote(
    db: DatabaseManager,
    identity: Optional[Identity],
    game_id: int,
    max_votes: int = DEFAULT_MAX_VOTES,
) -> VoteOutcome:
    """
    Add a vote for a game, or remove it if the user already voted for it.

    An existing vote is removed even when its game has since been deleted.
    The insert is guarded in SQL so the cap holds even when toggles from the
    same user interleave, and a UNIQUE(user_id, game_id) violation means a
    concurrent toggle inserted the vote first.

    @param db: Database manager
    @param identity: Voting user, None when not logged in
    @param game_id: Game to toggle
    @param max_votes: Vote cap per user
    @return: What happened; only ADDED and REMOVED change state
    """
    if identity is None:
        return VoteOutcome.UNAUTHENTICATED

    if await _remove_vote(db, identity.user_id, game_id):
        outcome = VoteOutcome.REMOVED
    elif await db.fetch_one("SELECT id FROM games WHERE id = ?", (game_id,)) is None:
        return VoteOutcome.UNKNOWN_GAME
    else:
        try:
            result = await db.execute(
                "INSERT INTO votes (user_id, game_id) "
                "SELECT ?, ? WHERE (SELECT COUNT(*) FROM votes WHERE user_id = ?) < ?",
                (identity.user_id, game_id, identity.user_id, max_votes),
            )
        except ConstraintError:
            await _remove_vote(db, identity.user_id, game_id)
            outcome = VoteOutcome.REMOVED
        else:
            outcome = VoteOutcome.ADDED if result.changes else VoteOutcome.CAPPED

    logger.debug(
        "Vote toggle user=%s game=%s -> %s", identity.user_id, game_id, outcome.value
    )
    return outcome
