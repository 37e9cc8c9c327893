"""Configuration package: settings, logging, and exceptions."""

from config.exceptions import (
    NovelStoreError,
    InvalidArgumentError,
    PathEscapeError,
    NotFoundError,
    ConflictError,
    RemoteError,
    NotConfiguredError,
    TransientNetworkError,
    AuthError,
    DatabaseError,
    BackupError,
    RestoreError,
    is_client_error,
    public_message,
)
from config.logging_config import setup_logging
from config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "NovelStoreError",
    "InvalidArgumentError",
    "PathEscapeError",
    "NotFoundError",
    "ConflictError",
    "RemoteError",
    "NotConfiguredError",
    "TransientNetworkError",
    "AuthError",
    "DatabaseError",
    "BackupError",
    "RestoreError",
    "is_client_error",
    "public_message",
]
