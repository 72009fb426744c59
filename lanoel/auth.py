"""
Authentication, session identity and flash messages.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import bcrypt
from aiohttp import web
from aiohttp_session import Session, get_session

from .database import DatabaseManager
from .errors import (
    ConflictError,
    ConstraintError,
    InvalidCredentials,
    Unauthorized,
    ValidationError,
)

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72

SESSION_USER_KEY = "user"
SESSION_FLASH_KEY = "flash"


@dataclass(frozen=True)
class Identity:
    """An authenticated user, derived from the session once per request."""

    user_id: int
    handle: str
    is_admin: bool = False

    @classmethod
    def from_session(cls, session: Session) -> Optional["Identity"]:
        data = session.get(SESSION_USER_KEY)
        if not data:
            return None
        return cls(
            user_id=int(data["id"]),
            handle=data["pseudo"],
            is_admin=bool(data["is_admin"]),
        )

    def to_session(self) -> Dict[str, Any]:
        return {"id": self.user_id, "pseudo": self.handle, "is_admin": self.is_admin}


def hash_password(password: str, rounds: int = 10) -> str:
    """
    Hash a password with a fresh bcrypt salt.

    @param password: Plain text password
    @param rounds: bcrypt cost factor
    @return: Encoded hash suitable for storage
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds)).decode(
        "utf-8"
    )


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a password against a stored bcrypt hash.

    @param password: Plain text password
    @param password_hash: Stored hash
    @return: True if the password matches
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash or an over-long password
        return False


async def _run_blocking(func: Callable[..., Any], *args: Any) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, *args)


def _require_fields(handle: str, password: str) -> str:
    handle = (handle or "").strip()
    if not handle or not password:
        raise ValidationError("All fields are required.")
    return handle


async def register(
    db: DatabaseManager,
    handle: str,
    password: str,
    rounds: int = 10,
) -> Identity:
    """
    Create a regular (non-admin) user account.

    @param db: Database manager
    @param handle: Requested unique handle
    @param password: Plain text password
    @param rounds: bcrypt cost factor
    @return: Identity of the new user
    @raise ValidationError: if a field is blank or the password is too long
    @raise ConflictError: if the handle is already taken
    """
    handle = _require_fields(handle, password)
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Password is too long (max {MAX_PASSWORD_BYTES} bytes)."
        )

    existing = await db.fetch_one("SELECT id FROM users WHERE pseudo = ?", (handle,))
    if existing:
        raise ConflictError("This handle is already taken.")

    password_hash = await _run_blocking(hash_password, password, rounds)

    try:
        result = await db.execute(
            "INSERT INTO users (pseudo, email, password_hash, is_admin) "
            "VALUES (?, ?, ?, 0)",
            (handle, None, password_hash),
        )
    except ConstraintError as e:
        # registered concurrently between the check and the insert
        raise ConflictError("This handle is already taken.") from e

    logger.info("Registered user %s (id=%s)", handle, result.last_id)
    return Identity(user_id=result.last_id, handle=handle, is_admin=False)


async def login(
    db: DatabaseManager,
    handle: str,
    password: str,
) -> Identity:
    """
    Verify credentials.

    @param db: Database manager
    @param handle: Login handle
    @param password: Plain text password
    @return: Identity of the authenticated user
    @raise ValidationError: if a field is blank
    @raise InvalidCredentials: if the handle is unknown or the password wrong
    """
    handle = _require_fields(handle, password)

    user = await db.fetch_one("SELECT * FROM users WHERE pseudo = ?", (handle,))
    if user is None or not await _run_blocking(
        verify_password, password, user["password_hash"]
    ):
        logger.info("Failed login for handle %s", handle)
        raise InvalidCredentials("Incorrect handle or password.")

    logger.info("User %s logged in", handle)
    return Identity(
        user_id=user["id"], handle=user["pseudo"], is_admin=bool(user["is_admin"])
    )


def ensure_admin(identity: Optional[Identity]) -> Identity:
    """
    @raise Unauthorized: unless the identity belongs to an administrator
    """
    if identity is None or not identity.is_admin:
        raise Unauthorized("Please log in as an administrator.")
    return identity


def ensure_login(identity: Optional[Identity]) -> Identity:
    """
    @raise Unauthorized: if nobody is logged in
    """
    if identity is None:
        raise Unauthorized("Please log in to vote.")
    return identity


# ── Session helpers ──────────────────────────────────────────────────────


async def remember(request: web.Request, identity: Identity) -> None:
    """Bind the session to an identity."""
    session = await get_session(request)
    session[SESSION_USER_KEY] = identity.to_session()
    request["identity"] = identity


async def forget(request: web.Request) -> None:
    """Destroy the session."""
    session = await get_session(request)
    session.invalidate()
    request["identity"] = None


async def flash(request: web.Request, category: str, message: str) -> None:
    """
    Queue a one-shot message for the next rendered page.

    @param request: Current request
    @param category: Message category, "success" or "error"
    @param message: Text shown to the user
    """
    session = await get_session(request)
    messages = session.get(SESSION_FLASH_KEY, [])
    messages.append([category, message])
    session[SESSION_FLASH_KEY] = messages


async def pop_flashes(request: web.Request) -> Dict[str, List[str]]:
    """
    Consume queued messages.

    @param request: Current request
    @return: Messages grouped by category
    """
    session = await get_session(request)
    grouped: Dict[str, List[str]] = {}
    for category, message in session.pop(SESSION_FLASH_KEY, []):
        grouped.setdefault(category, []).append(message)
    return grouped


@web.middleware
async def identity_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Derive the request identity from the session before dispatching."""
    session = await get_session(request)
    request["identity"] = Identity.from_session(session)
    return await handler(request)


def current_identity(request: web.Request) -> Optional[Identity]:
    return request.get("identity")


def _gate(
    check: Callable[[Optional[Identity]], Identity],
) -> Callable[[Callable[..., Awaitable[web.StreamResponse]]], Callable[..., Any]]:
    def decorator(handler):
        @functools.wraps(handler)
        async def wrapper(self, request: web.Request) -> web.StreamResponse:
            try:
                check(current_identity(request))
            except Unauthorized as e:
                await flash(request, "error", str(e))
                raise web.HTTPFound("/login")
            return await handler(self, request)

        return wrapper

    return decorator


require_admin = _gate(ensure_admin)
require_admin.__doc__ = "Gate a handler method on an administrator session."

require_login = _gate(ensure_login)
require_login.__doc__ = "Gate a handler method on any authenticated session."
