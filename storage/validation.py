"""Identifier and filename validation applied before any backend I/O."""

import logging
import re
from pathlib import Path

from config.exceptions import InvalidArgumentError, PathEscapeError
from config.logging_config import SECURITY_LOGGER

security_logger = logging.getLogger(SECURITY_LOGGER)

_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_FILENAME_RE = re.compile(r"^[A-Za-z0-9 _.-]+$")


def is_valid_id(value) -> bool:
    """Whether ``value`` is a novel id: letters, digits, ``_`` and ``-`` only."""
    if not value or not isinstance(value, str):
        return False
    return bool(_ID_RE.match(value))


def is_valid_filename(value) -> bool:
    """Whether ``value`` is a safe single path component for a book, chapter or backup.

    Letters, digits, space, ``_``, ``-`` and ``.`` are allowed; ``..`` and path
    separators never are.
    """
    if not value or not isinstance(value, str):
        return False
    if ".." in value or "/" in value or "\\" in value:
        return False
    return bool(_FILENAME_RE.match(value))


def require_id(value, label: str = "novel id") -> str:
    """Return ``value`` unchanged or raise InvalidArgumentError naming ``label``."""
    if not is_valid_id(value):
        raise InvalidArgumentError(f"Invalid {label}", {label.replace(" ", "_"): value})
    return value


def require_filename(value, label: str = "name") -> str:
    """Return ``value`` unchanged or raise InvalidArgumentError naming ``label``."""
    if not is_valid_filename(value):
        raise InvalidArgumentError(f"Invalid {label}", {label.replace(" ", "_"): value})
    return value


def ensure_within(root: Path, *parts: str) -> Path:
    """Join ``parts`` under ``root`` and confirm the result stays inside it.

    Symlinks are resolved on both sides, so a link pointing out of the root
    is caught even when every part passed validation.

    Raises:
        PathEscapeError: If the resolved path is not under ``root``.
    """
    root_resolved = Path(root).resolve()
    candidate = root_resolved.joinpath(*parts).resolve()
    if candidate != root_resolved and root_resolved not in candidate.parents:
        security_logger.warning("Path escape blocked: %s is outside %s", candidate, root_resolved)
        raise PathEscapeError(str(candidate), str(root_resolved))
    return candidate
