"""
Web route handlers for the voting app.
"""

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from aiohttp import web
from jinja2 import Environment, FileSystemLoader, select_autoescape

from . import admin, auth, leaderboard, voting
from .admin import ImageStore
from .auth import require_admin, require_login
from .database import MAX_INTEGER, DatabaseManager
from .errors import ConflictError, InvalidCredentials, NotFoundError, ValidationError
from .voting import VoteOutcome

logger = logging.getLogger(__name__)

TEMPLATES_PATH = Path(__file__).parent / "templates"


def path_id(request: web.Request, name: str) -> int:
    """
    Read a numeric id from the URL path.

    @param request: Current request
    @param name: Route placeholder holding the id
    @return: The id
    @raise web.HTTPNotFound: if the id cannot name a stored row
    """
    value = int(request.match_info[name])
    if value > MAX_INTEGER:
        raise web.HTTPNotFound()
    return value


class WebHandlers:
    """Handles web routes and responses."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        config: Any,
        image_store: ImageStore,
        templates_path: str = str(TEMPLATES_PATH),
    ) -> None:
        self.db = db_manager
        self.config = config
        self.images = image_store

        self.jinja_env = Environment(
            loader=FileSystemLoader(templates_path),
            autoescape=select_autoescape(["html"]),
            auto_reload=False,
            cache_size=50,
        )

    async def render(
        self,
        request: web.Request,
        template_name: str,
        **context: Any,
    ) -> web.Response:
        """
        Render a template with the identity and pending flash messages.

        @param request: Current request
        @param template_name: Template file under the templates directory
        @param context: Template variables
        @return: HTML response
        """
        template = self.jinja_env.get_template(template_name)
        html = template.render(
            user=auth.current_identity(request),
            messages=await auth.pop_flashes(request),
            config=self.config,
            **context,
        )
        return web.Response(text=html, content_type="text/html")

    # ── Public pages ─────────────────────────────────────────────────────

    async def web_index(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Landing page: games ranked by votes and the team leaderboard.

        @param request: HTTP request object
        @return: HTTP response with rendered index page
        """
        games = await leaderboard.game_vote_counts(self.db)
        teams = leaderboard.rank_with_ties(
            await leaderboard.team_leaderboard(self.db), "total_points"
        )

        identity = auth.current_identity(request)
        votes_count = (
            await voting.count_votes(self.db, identity.user_id) if identity else 0
        )

        return await self.render(
            request,
            "index.html",
            title="Home",
            games=games,
            leaderboard=teams,
            votes_count=votes_count,
            max_votes=self.config.max_votes,
        )

    async def web_login_form(self, request: web.Request) -> web.Response:
        return await self.render(request, "login.html", title="Login")

    async def web_login(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Authenticate and open a session.

        @param request: HTTP request with pseudo and password form fields
        @return: Redirect to /admin for admins, / otherwise, /login on failure
        """
        form = await request.post()
        try:
            identity = await auth.login(
                self.db, form.get("pseudo", ""), form.get("password", "")
            )
        except (ValidationError, InvalidCredentials) as e:
            await auth.flash(request, "error", str(e))
            raise web.HTTPFound("/login")

        await auth.remember(request, identity)
        raise web.HTTPFound("/admin" if identity.is_admin else "/")

    async def web_logout(self, request: web.Request) -> web.Response:
        await auth.forget(request)
        raise web.HTTPFound("/")

    async def web_register_form(self, request: web.Request) -> web.Response:
        return await self.render(request, "register.html", title="Register")

    async def web_register(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Create an account and log it in.

        @param request: HTTP request with pseudo and password form fields
        @return: Redirect to / on success, /register on failure
        """
        form = await request.post()
        try:
            identity = await auth.register(
                self.db,
                form.get("pseudo", ""),
                form.get("password", ""),
                rounds=self.config.get("auth", "bcrypt_rounds"),
            )
        except (ValidationError, ConflictError) as e:
            await auth.flash(request, "error", str(e))
            raise web.HTTPFound("/register")

        await auth.remember(request, identity)
        await auth.flash(request, "success", "Account created!")
        raise web.HTTPFound("/")

    # ── Voting ───────────────────────────────────────────────────────────

    @require_login
    async def web_vote_page(self, request: web.Request) -> web.Response:
        state = await voting.list_vote_state(self.db, auth.current_identity(request))
        return await self.render(
            request,
            "vote.html",
            title="Vote",
            games=state.games,
            user_votes=state.user_votes,
            votes_count=state.votes_count,
            orphaned_votes=state.orphaned_votes,
            max_votes=self.config.max_votes,
        )

    @require_login
    async def web_vote(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Toggle the session user's vote for a game.

        Reaching the vote cap is silently ignored.

        @param request: HTTP request with the game id in the path
        @return: Redirect to /vote
        """
        outcome = await voting.toggle_vote(
            self.db,
            auth.current_identity(request),
            path_id(request, "game_id"),
            max_votes=self.config.max_votes,
        )
        if outcome is VoteOutcome.UNKNOWN_GAME:
            await auth.flash(request, "error", "This game does not exist.")
        raise web.HTTPFound("/vote")

    # ── Admin ────────────────────────────────────────────────────────────

    @require_admin
    async def web_admin(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        Admin dashboard.

        @param request: HTTP request, optional editResult query parameter
        @return: HTTP response with rendered admin page
        """
        try:
            edit_result_id: Optional[int] = int(request.query["editResult"])
        except (KeyError, ValueError):
            edit_result_id = None
        if edit_result_id is not None and abs(edit_result_id) > MAX_INTEGER:
            edit_result_id = None

        data = await admin.dashboard(self.db, edit_result_id)
        return await self.render(request, "admin.html", title="Admin", **data)

    async def _admin_action(
        self,
        request: web.Request,
        action: Callable[[], Awaitable[Any]],
        success_message: str,
    ) -> web.Response:
        """
        Run an admin mutation and report it through a flash message.

        @param request: Current request
        @param action: Coroutine function performing the mutation
        @param success_message: Message flashed when the action succeeds
        @return: Redirect to /admin
        """
        try:
            await action()
        except (ValidationError, NotFoundError) as e:
            await auth.flash(request, "error", str(e))
        else:
            await auth.flash(request, "success", success_message)
        raise web.HTTPFound("/admin")

    def _row_id(self, request: web.Request) -> int:
        return path_id(request, "id")

    async def _store_image(self, form: Any) -> Optional[str]:
        field = form.get("image")
        if isinstance(field, web.FileField) and field.filename:
            return await self.images.store(field.filename, field.file)
        return None

    @require_admin
    async def web_create_game(self, request: web.Request) -> web.Response:
        form = await request.post()

        async def action() -> None:
            admin.parse_game(form)
            await admin.create_game(self.db, form, await self._store_image(form))

        return await self._admin_action(request, action, "Game added")

    @require_admin
    async def web_update_game(self, request: web.Request) -> web.Response:
        form = await request.post()
        game_id = self._row_id(request)

        async def action() -> None:
            admin.parse_game(form)
            image = await self._store_image(form)
            await admin.update_game(self.db, game_id, form, image)

        return await self._admin_action(request, action, "Game updated")

    @require_admin
    async def web_delete_game(self, request: web.Request) -> web.Response:
        game_id = self._row_id(request)
        return await self._admin_action(
            request, lambda: admin.delete_game(self.db, game_id), "Game deleted"
        )

    @require_admin
    async def web_create_team(self, request: web.Request) -> web.Response:
        form = await request.post()
        return await self._admin_action(
            request, lambda: admin.create_team(self.db, form), "Team added"
        )

    @require_admin
    async def web_update_team(self, request: web.Request) -> web.Response:
        form = await request.post()
        team_id = self._row_id(request)
        return await self._admin_action(
            request, lambda: admin.update_team(self.db, team_id, form), "Team updated"
        )

    @require_admin
    async def web_delete_team(self, request: web.Request) -> web.Response:
        team_id = self._row_id(request)
        return await self._admin_action(
            request, lambda: admin.delete_team(self.db, team_id), "Team deleted"
        )

    @require_admin
    async def web_create_result(self, request: web.Request) -> web.Response:
        form = await request.post()
        return await self._admin_action(
            request, lambda: admin.create_result(self.db, form), "Result recorded"
        )

    @require_admin
    async def web_update_result(self, request: web.Request) -> web.Response:
        form = await request.post()
        result_id = self._row_id(request)
        return await self._admin_action(
            request,
            lambda: admin.update_result(self.db, result_id, form),
            "Result updated",
        )

    @require_admin
    async def web_delete_result(self, request: web.Request) -> web.Response:
        result_id = self._row_id(request)
        return await self._admin_action(
            request, lambda: admin.delete_result(self.db, result_id), "Result deleted"
        )

    # ── JSON API ─────────────────────────────────────────────────────────

    async def web_api_games(
        self,
        _: web.Request,
    ) -> web.Response:
        """
        API endpoint for games and their vote counts.

        @param _: Unused request parameter
        @return: JSON response with games, most voted first
        """
        games = await leaderboard.game_vote_counts(self.db)
        return web.json_response({"games": games})

    async def web_api_leaderboard(
        self,
        _: web.Request,
    ) -> web.Response:
        """
        API endpoint for the team leaderboard.

        @param _: Unused request parameter
        @return: JSON response with ranked teams
        """
        teams = leaderboard.rank_with_ties(
            await leaderboard.team_leaderboard(self.db), "total_points"
        )
        return web.json_response(
            {
                "leaderboard": [
                    {
                        "rank": team["rank"],
                        "team_id": team["id"],
                        "name": team["name"],
                        "total_points": team["total_points"],
                        "is_tied": team["is_tied"],
                    }
                    for team in teams
                ]
            }
        )

    async def web_api_vote(
        self,
        request: web.Request,
    ) -> web.Response:
        """
        API endpoint toggling a vote, reporting whether the cap was hit.

        @param request: HTTP request with the game id in the path
        @return: JSON response with the outcome and the new vote count
        """
        identity = auth.current_identity(request)
        game_id = path_id(request, "game_id")
        outcome = await voting.toggle_vote(
            self.db, identity, game_id, max_votes=self.config.max_votes
        )

        if outcome is VoteOutcome.UNAUTHENTICATED:
            return web.json_response({"error": "Not authenticated"}, status=401)
        if outcome is VoteOutcome.UNKNOWN_GAME:
            return web.json_response({"error": "Game not found"}, status=404)

        return web.json_response(
            {
                "game_id": game_id,
                "status": outcome.value,
                "votes_count": await voting.count_votes(self.db, identity.user_id),
            }
        )
