"""
Read-time aggregations: game popularity and the team leaderboard.
"""

from typing import Any, Dict, List

from .database import DatabaseManager


async def game_vote_counts(db: DatabaseManager) -> List[Dict[str, Any]]:
    """
    Get every game with its number of votes, most voted first.

    @param db: Database manager
    @return: Game rows with an added votes_count column
    """
    return await db.fetch_all("""
        SELECT g.*,
               (SELECT COUNT(*) FROM votes v WHERE v.game_id = g.id) AS votes_count
        FROM games g
        ORDER BY votes_count DESC, g.order_index ASC
    """)


async def team_leaderboard(db: DatabaseManager) -> List[Dict[str, Any]]:
    """
    Get every team with the sum of its result points, highest first.

    Teams without results are included with a total of 0.

    @param db: Database manager
    @return: Rows with id, name and total_points
    """
    return await db.fetch_all("""
        SELECT t.id, t.name, COALESCE(SUM(r.points), 0) AS total_points
        FROM teams t
        LEFT JOIN results r ON r.team_id = t.id
        GROUP BY t.id
        ORDER BY total_points DESC
    """)


def rank_with_ties(
    rows: List[Dict[str, Any]],
    key: str,
) -> List[Dict[str, Any]]:
    """
    Calculate display ranks accounting for ties (same value gets same rank).

    @param rows: Rows already ordered best first
    @param key: Column holding the ranked value
    @return: Copies of the rows with rank, rank_class and is_tied added
    """
    ranked = []
    current_rank = 1
    previous_value = None

    for i, row in enumerate(rows):
        value = row[key]

        if previous_value is not None and value != previous_value:
            current_rank = i + 1

        is_tied = (i > 0 and rows[i - 1][key] == value) or (
            i < len(rows) - 1 and rows[i + 1][key] == value
        )

        rank_class = {1: "gold", 2: "silver", 3: "bronze"}.get(current_rank, "")

        ranked.append(
            dict(row, rank=current_rank, rank_class=rank_class, is_tied=is_tied)
        )
        previous_value = value

    return ranked


async def print_leaderboard(db: DatabaseManager) -> None:
    """Print the team leaderboard to the console."""
    print("\n" + "=" * 50)
    print("TEAM LEADERBOARD")
    print("=" * 50)

    rows = rank_with_ties(await team_leaderboard(db), "total_points")

    if not rows:
        print("No teams yet")
        return

    for entry in rows:
        tie_indicator = " (tie)" if entry["is_tied"] else ""
        print(
            f"{entry['rank']:2d}. {entry['name'] or '?':<20} "
            f"Points: {entry['total_points']:4d}{tie_indicator}"
        )
