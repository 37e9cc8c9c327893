"""Custom exception hierarchy for the novel document store."""

from typing import Optional

GENERIC_ERROR_MESSAGE = "The operation failed. Please try again."


class NovelStoreError(Exception):
    """Base exception for all novel store errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# ---- Input Errors ----

class InvalidArgumentError(NovelStoreError):
    """Identifier, filename or field value rejected before any I/O."""


class PathEscapeError(NovelStoreError):
    """Resolved path lies outside the configured root."""

    def __init__(self, path: str, root: str):
        super().__init__("Path escapes storage root", {"path": path, "root": root})
        self.path = path
        self.root = root


# ---- Lookup / State Errors ----

class NotFoundError(NovelStoreError):
    """Novel, book, chapter, backup or remote resource does not exist."""


class ConflictError(NovelStoreError):
    """Attempted removal of a protected book or chapter."""


# ---- Remote Errors ----

class RemoteError(NovelStoreError):
    """Base exception for remote (WebDAV) backend errors."""


class NotConfiguredError(RemoteError):
    """No remote connection is stored for the user."""

    def __init__(self, message: str = "Remote storage (WebDAV) not configured"):
        super().__init__(message)


class TransientNetworkError(RemoteError):
    """Remote call timed out, could not connect, or the server failed."""


class AuthError(RemoteError):
    """Remote server rejected the stored credentials."""

    def __init__(self, message: str = "Remote server rejected credentials", status_code: Optional[int] = None):
        details = {"status_code": status_code} if status_code is not None else {}
        super().__init__(message, details)
        self.status_code = status_code


# ---- Database Errors ----

class DatabaseError(NovelStoreError):
    """User database operation failed."""


# ---- Backup Errors ----

class BackupError(NovelStoreError):
    """Base exception for backup archive errors."""


class RestoreError(BackupError):
    """Restore failed, possibly after part of the live store was replaced."""

    def __init__(self, message: str, novels_restored: bool = False, database_restored: bool = False):
        super().__init__(
            message,
            {"novels_restored": novels_restored, "database_restored": database_restored},
        )
        self.novels_restored = novels_restored
        self.database_restored = database_restored

    @property
    def is_partial(self) -> bool:
        return self.novels_restored or self.database_restored


def is_client_error(exc: BaseException) -> bool:
    """Whether the error is caused by the request rather than the system."""
    return isinstance(exc, (ConflictError, InvalidArgumentError))


def public_message(exc: BaseException) -> str:
    """Message safe to show to a user.

    Request errors keep their own message; everything else collapses to a
    generic text so internal paths never leak.
    """
    if is_client_error(exc):
        return exc.message
    if isinstance(exc, NotFoundError):
        return "Not found"
    if isinstance(exc, NotConfiguredError):
        return exc.message
    return GENERIC_ERROR_MESSAGE
