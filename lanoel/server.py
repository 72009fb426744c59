"""
Main VotingSystem class that wires the components into an aiohttp app.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiohttp_cors
from aiohttp import web, web_runner
from aiohttp_session import setup as setup_session
from aiohttp_session.cookie_storage import EncryptedCookieStorage
from cryptography import fernet

from .admin import ImageStore
from .auth import hash_password, identity_middleware
from .config import EventConfig
from .database import DatabaseManager
from .leaderboard import print_leaderboard
from .web_handlers import WebHandlers

logger = logging.getLogger(__name__)

COOKIE_NAME = "lanoel_session"


class VotingSystem:
    """Owns the database, configuration and web handlers of one server."""

    def __init__(
        self,
        config: EventConfig,
        db_path: Optional[str] = None,
    ) -> None:
        self.config = config
        self.db_path = db_path or config.get("database", "path")

        self.db = DatabaseManager(self.db_path)
        self.images = ImageStore(config.get("uploads", "upload_dir"))
        self.web_handlers = WebHandlers(self.db, self.config, self.images)

    async def init_db(self) -> None:
        """
        Create the schema and the bootstrap administrator.

        Must run once before the app serves requests.
        """
        await self.db.init_db()
        await self.db.seed_admin(
            self.config.get("auth", "admin_handle"),
            self.config.get("auth", "admin_email"),
            hash_password(
                self.config.get("auth", "admin_password"),
                self.config.get("auth", "bcrypt_rounds"),
            ),
        )

    def _session_storage(self) -> EncryptedCookieStorage:
        secret_key = self.config.get("auth", "secret_key")
        if not secret_key:
            logger.warning("No secret_key configured, sessions end on restart")
            secret_key = fernet.Fernet.generate_key().decode("ascii")
        return EncryptedCookieStorage(secret_key, cookie_name=COOKIE_NAME)

    def create_app(self) -> web.Application:
        """
        Build the aiohttp application with all routes.

        @return: Configured web application
        """
        max_upload = self.config.get("uploads", "max_upload_mb") * 1024 * 1024
        app = web.Application(client_max_size=max_upload)

        setup_session(app, self._session_storage())
        app.middlewares.append(identity_middleware)

        public_dir = Path(self.config.get("uploads", "public_dir"))
        self.images.upload_dir.mkdir(parents=True, exist_ok=True)
        public_dir.mkdir(parents=True, exist_ok=True)
        app.router.add_static("/public/", path=public_dir, name="public")

        h = self.web_handlers

        app.router.add_get("/", h.web_index)
        app.router.add_get("/login", h.web_login_form)
        app.router.add_post("/login", h.web_login)
        app.router.add_get("/logout", h.web_logout)
        app.router.add_get("/register", h.web_register_form)
        app.router.add_post("/register", h.web_register)

        app.router.add_get("/vote", h.web_vote_page)
        app.router.add_post(r"/vote/{game_id:\d+}", h.web_vote)

        app.router.add_get("/admin", h.web_admin)
        app.router.add_post("/admin/games", h.web_create_game)
        app.router.add_post(r"/admin/games/{id:\d+}/update", h.web_update_game)
        app.router.add_post(r"/admin/games/{id:\d+}/delete", h.web_delete_game)
        app.router.add_post("/admin/teams", h.web_create_team)
        app.router.add_post(r"/admin/teams/{id:\d+}/update", h.web_update_team)
        app.router.add_post(r"/admin/teams/{id:\d+}/delete", h.web_delete_team)
        app.router.add_post("/admin/results", h.web_create_result)
        app.router.add_post(r"/admin/results/{id:\d+}/update", h.web_update_result)
        app.router.add_post(r"/admin/results/{id:\d+}/delete", h.web_delete_result)

        # API routes, the only ones exposed cross-origin
        cors = aiohttp_cors.setup(
            app,
            defaults={
                "*": aiohttp_cors.ResourceOptions(
                    allow_credentials=True,
                    expose_headers="*",
                    allow_headers="*",
                    allow_methods="*",
                )
            },
        )
        api_routes = [
            app.router.add_get("/api/games", h.web_api_games),
            app.router.add_get("/api/leaderboard", h.web_api_leaderboard),
            app.router.add_post(r"/api/vote/{game_id:\d+}", h.web_api_vote),
        ]
        for route in api_routes:
            cors.add(route)

        return app

    async def start_web_server(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> web_runner.AppRunner:
        """
        Start the web server.

        @param host: Host address to bind the server to (default from config)
        @param port: Port number to use (default from config)
        @return: AppRunner instance for the web server
        """
        if host is None:
            host = self.config.get("server", "host")
        if port is None:
            port = self.config.get("server", "port")

        app_runner = web_runner.AppRunner(self.create_app())
        await app_runner.setup()

        site = web_runner.TCPSite(app_runner, host, port)
        await site.start()

        print(f"Server listening on http://{host}:{port}")
        return app_runner

    async def print_leaderboard(self) -> None:
        await print_leaderboard(self.db)

    async def run_forever(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> None:
        """
        Serve until cancelled.

        @param host: Host address (default from config)
        @param port: Port number (default from config)
        """
        runner = await self.start_web_server(host, port)

        print(f"\n{self.config.get('event_name')} voting is running!")
        print("\nPress Ctrl+C to stop...\n")

        try:
            await asyncio.Event().wait()
        finally:
            await runner.cleanup()
