"""Models package: records, enums, and the user database."""

from models.database import Database, RemoteConfig, User
from models.novel import (
    Book,
    ChapterInfo,
    CoverUpload,
    Novel,
    NovelDetail,
    NovelMeta,
    NovelStats,
    MAIN_BOOK,
    SYNOPSIS_CHAPTER,
    INTRO_CHAPTER,
)
from models.backup import BackupInfo, RestoreResult
from models.enums import Origin

__all__ = [
    "Database",
    "RemoteConfig",
    "User",
    "Book",
    "ChapterInfo",
    "CoverUpload",
    "Novel",
    "NovelDetail",
    "NovelMeta",
    "NovelStats",
    "MAIN_BOOK",
    "SYNOPSIS_CHAPTER",
    "INTRO_CHAPTER",
    "BackupInfo",
    "RestoreResult",
    "Origin",
]
