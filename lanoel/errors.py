"""
Exception types raised by the voting app services.

User-facing errors carry a message suitable for a flash notification.
"""


class LanoelError(Exception):
    """Base class for all application errors."""


class ValidationError(LanoelError):
    """A required form field is missing or malformed."""


class ConflictError(LanoelError):
    """The requested row would duplicate a unique value (e.g. a handle)."""


class InvalidCredentials(LanoelError):
    """Unknown handle or wrong password. Deliberately indistinguishable."""


class Unauthorized(LanoelError):
    """No session, or the session lacks the required privileges."""


class NotFoundError(LanoelError):
    """The referenced row does not exist."""


class StorageError(LanoelError):
    """The database engine rejected a statement."""


class ConstraintError(StorageError):
    """A UNIQUE or other integrity constraint was violated."""
