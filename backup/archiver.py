"""Zip backups of the local novels tree and the user database."""

import asyncio
import logging
import shutil
import uuid
import zipfile
from datetime import datetime, timezone
from pathlib import Path

import aiofiles.os

from config.exceptions import (
    BackupError,
    InvalidArgumentError,
    NotFoundError,
    NovelStoreError,
    RestoreError,
)
from config.settings import Settings
from models.backup import BackupInfo, RestoreResult
from models.database import Database
from storage import localfs
from storage.metadata import now_iso
from storage.validation import ensure_within, is_valid_filename

logger = logging.getLogger(__name__)

NOVELS_ARCNAME = "novels"
BACKUP_SUFFIX = ".zip"


def backup_name(timestamp: str) -> str:
    """``2024-01-31T12:00:00.000Z`` -> ``backup-2024-01-31T12-00-00-000Z.zip``."""
    return "backup-" + timestamp.replace(":", "-").replace(".", "-") + BACKUP_SUFFIX


def _write_archive(output: Path, novels_dir: Path, db_copy: Path | None, db_arcname: str, level: int) -> None:
    with zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED, compresslevel=level) as zf:
        if novels_dir.is_dir():
            zf.write(novels_dir, NOVELS_ARCNAME)
            # Directories are archived too so empty books survive a restore
            for path in sorted(novels_dir.rglob("*")):
                zf.write(path, str(Path(NOVELS_ARCNAME) / path.relative_to(novels_dir)))
        if db_copy is not None:
            zf.write(db_copy, db_arcname)


def _safe_extract(archive: Path, staging: Path) -> None:
    try:
        with zipfile.ZipFile(archive, "r") as zf:
            for member in zf.namelist():
                ensure_within(staging, member)
            zf.extractall(staging)
    except zipfile.BadZipFile as e:
        raise BackupError("Invalid backup archive", {"name": archive.name}) from e


class BackupManager:
    """Creates, lists, deletes and restores backup archives.

    Restore is not transactional. Novels are replaced before the database;
    if the database copy then fails, RestoreError reports the mixed state.
    """

    def __init__(self, settings: Settings, database: Database):
        self.settings = settings
        self.database = database
        self.backups_dir = Path(settings.backups_dir)
        self.novels_dir = Path(settings.novels_dir)
        self.temp_dir = Path(settings.temp_dir)

    def backup_path(self, name: str) -> Path:
        """Validated path of a backup archive (which may not exist)."""
        if not is_valid_filename(name) or not name.endswith(BACKUP_SUFFIX) or name.startswith("."):
            raise InvalidArgumentError("Invalid backup name", {"name": name})
        return ensure_within(self.backups_dir, name)

    async def _existing_backup(self, name: str) -> Path:
        path = self.backup_path(name)
        if not await localfs.is_file(path):
            raise NotFoundError("Backup not found", {"name": name})
        return path

    async def create_backup(self) -> BackupInfo:
        await aiofiles.os.makedirs(self.backups_dir, exist_ok=True)
        await aiofiles.os.makedirs(self.temp_dir, exist_ok=True)

        name = backup_name(now_iso())
        target = self.backup_path(name)
        counter = 1
        while await aiofiles.os.path.exists(target):
            target = self.backup_path(name[: -len(BACKUP_SUFFIX)] + f"-{counter}{BACKUP_SUFFIX}")
            counter += 1

        tmp_archive = self.backups_dir / f".{target.name}.{uuid.uuid4().hex[:8]}.tmp"
        db_path = Path(self.database.db_path)
        db_copy = None
        try:
            if db_path.is_file():
                db_copy = self.temp_dir / f"db-{uuid.uuid4().hex[:8]}.sqlite"
                await asyncio.to_thread(self.database.backup_database, db_copy)
            else:
                logger.warning("User database %s missing, backing up novels only", db_path)

            await asyncio.to_thread(
                _write_archive,
                tmp_archive,
                self.novels_dir,
                db_copy,
                db_path.name,
                self.settings.backup_compress_level,
            )
            await aiofiles.os.replace(tmp_archive, target)
        except (OSError, NovelStoreError) as e:
            if await aiofiles.os.path.exists(tmp_archive):
                await aiofiles.os.remove(tmp_archive)
            logger.error("Backup failed: %s", e)
            raise BackupError("Backup failed", {"error": str(e)}) from e
        finally:
            if db_copy is not None and await aiofiles.os.path.exists(db_copy):
                await aiofiles.os.remove(db_copy)

        stat = await aiofiles.os.stat(target)
        logger.info("Created backup %s (%d bytes)", target.name, stat.st_size)
        return BackupInfo(
            name=target.name,
            size=stat.st_size,
            created=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )

    async def list_backups(self) -> list[BackupInfo]:
        """Archives in the backups directory, newest first."""
        if not await localfs.is_dir(self.backups_dir):
            return []
        backups = []
        for filename in await localfs.list_files(self.backups_dir, BACKUP_SUFFIX):
            if filename.startswith("."):
                continue
            stat = await aiofiles.os.stat(self.backups_dir / filename)
            backups.append(BackupInfo(
                name=filename,
                size=stat.st_size,
                created=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            ))
        backups.sort(key=lambda b: b.created, reverse=True)
        return backups

    async def delete_backup(self, name: str) -> None:
        """Remove an archive. Unlike novel deletion, a missing archive is an error."""
        path = self.backup_path(name)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError as e:
            raise NotFoundError("Backup not found", {"name": name}) from e
        logger.info("Deleted backup %s", name)

    async def restore_backup(self, name: str) -> RestoreResult:
        """Replace the novels tree and the user database from an archive.

        Components absent from the archive are left untouched.

        Raises:
            NotFoundError: If the archive does not exist.
            PathEscapeError: If a member would extract outside the staging area.
            RestoreError: If a step fails; ``is_partial`` tells whether
                anything had already been replaced.
        """
        archive = await self._existing_backup(name)
        staging = self.temp_dir / f"restore-{uuid.uuid4().hex[:8]}"
        await aiofiles.os.makedirs(staging, exist_ok=True)
        result = RestoreResult()
        try:
            await asyncio.to_thread(_safe_extract, archive, staging)

            staged_novels = staging / NOVELS_ARCNAME
            if await localfs.is_dir(staged_novels):
                await localfs.remove_tree(self.novels_dir)
                await localfs.move(staged_novels, self.novels_dir)
                result.novels_restored = True

            db_path = Path(self.database.db_path)
            staged_db = staging / db_path.name
            if await localfs.is_file(staged_db):
                await asyncio.to_thread(shutil.copyfile, staged_db, db_path)
                result.database_restored = True
        except OSError as e:
            logger.error("Restore of %s failed: %s", name, e)
            raise RestoreError(
                f"Restore of {name} failed",
                novels_restored=result.novels_restored,
                database_restored=result.database_restored,
            ) from e
        finally:
            await localfs.remove_tree(staging)

        logger.info(
            "Restored backup %s (novels=%s, database=%s)",
            name, result.novels_restored, result.database_restored,
        )
        return result
