"""Tests for the vote cap and toggle behaviour."""

from __future__ import annotations

from lanoel import admin
from lanoel.auth import register
from lanoel.voting import VoteOutcome, count_votes, list_vote_state, toggle_vote

from .conftest import add_games


async def test_toggle_adds_then_removes(db, alice) -> None:
    (game_id,) = await add_games(db, 1)

    assert await toggle_vote(db, alice, game_id) is VoteOutcome.ADDED
    assert await count_votes(db, alice.user_id) == 1

    assert await toggle_vote(db, alice, game_id) is VoteOutcome.REMOVED
    assert await count_votes(db, alice.user_id) == 0


async def test_ninth_vote_is_capped(db, alice) -> None:
    game_ids = await add_games(db, 9)

    for game_id in game_ids[:8]:
        assert await toggle_vote(db, alice, game_id) is VoteOutcome.ADDED

    assert await toggle_vote(db, alice, game_ids[8]) is VoteOutcome.CAPPED
    assert await count_votes(db, alice.user_id) == 8


async def test_existing_vote_can_be_removed_at_cap(db, alice) -> None:
    game_ids = await add_games(db, 8)
    for game_id in game_ids:
        await toggle_vote(db, alice, game_id)

    assert await toggle_vote(db, alice, game_ids[3]) is VoteOutcome.REMOVED
    assert await count_votes(db, alice.user_id) == 7


async def test_cap_is_configurable(db, alice) -> None:
    game_ids = await add_games(db, 3)

    await toggle_vote(db, alice, game_ids[0], max_votes=2)
    await toggle_vote(db, alice, game_ids[1], max_votes=2)

    assert await toggle_vote(db, alice, game_ids[2], max_votes=2) is VoteOutcome.CAPPED


async def test_caps_are_per_user(db, alice) -> None:
    bob = await register(db, "bob", "pw2", rounds=4)
    game_ids = await add_games(db, 9)
    for game_id in game_ids[:8]:
        await toggle_vote(db, alice, game_id)

    assert await toggle_vote(db, bob, game_ids[8]) is VoteOutcome.ADDED


async def test_unauthenticated_toggle_is_noop(db) -> None:
    (game_id,) = await add_games(db, 1)

    assert await toggle_vote(db, None, game_id) is VoteOutcome.UNAUTHENTICATED
    assert await db.fetch_all("SELECT * FROM votes") == []


async def test_unknown_game_is_noop(db, alice) -> None:
    assert await toggle_vote(db, alice, 404) is VoteOutcome.UNKNOWN_GAME
    assert await count_votes(db, alice.user_id) == 0


async def test_vote_state_lists_games_by_display_index(db, alice) -> None:
    await db.execute("INSERT INTO games (name, order_index) VALUES ('Late', 5)")
    early = await db.execute("INSERT INTO games (name, order_index) VALUES ('Early', 1)")
    await toggle_vote(db, alice, early.last_id)

    state = await list_vote_state(db, alice)

    assert [game["name"] for game in state.games] == ["Early", "Late"]
    assert state.user_votes == [early.last_id]
    assert state.votes_count == 1


async def test_vote_for_deleted_game_can_be_removed(db, alice) -> None:
    game_ids = await add_games(db, 8)
    for game_id in game_ids:
        await toggle_vote(db, alice, game_id)
    await admin.delete_game(db, game_ids[0])

    assert await toggle_vote(db, alice, game_ids[0]) is VoteOutcome.REMOVED
    assert await count_votes(db, alice.user_id) == 7
    # the freed slot is usable again
    (new_game,) = await add_games(db, 1)
    assert await toggle_vote(db, alice, new_game) is VoteOutcome.ADDED
    assert await toggle_vote(db, alice, game_ids[0]) is VoteOutcome.UNKNOWN_GAME


async def test_vote_state_reports_orphaned_votes(db, alice) -> None:
    game_ids = await add_games(db, 2)
    for game_id in game_ids:
        await toggle_vote(db, alice, game_id)
    await admin.delete_game(db, game_ids[1])

    state = await list_vote_state(db, alice)

    assert state.orphaned_votes == [game_ids[1]]
    assert state.votes_count == 2
