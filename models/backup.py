"""Backup archive records."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class BackupInfo:
    """A backup archive on disk."""
    name: str
    size: int
    created: datetime


@dataclass
class RestoreResult:
    """Which components a restore actually replaced."""
    novels_restored: bool = False
    database_restored: bool = False
