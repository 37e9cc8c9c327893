"""Sidecar (meta.json) persistence and cached-stat refresh for local novels."""

import asyncio
import json
import logging
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

from config.exceptions import NotFoundError, NovelStoreError
from models.novel import NovelMeta, NovelStats
from storage import localfs
from storage.aggregator import gather_stats

logger = logging.getLogger(__name__)

META_FILENAME = "meta.json"


def now_iso() -> str:
    """Current UTC time as ``2024-01-31T12:00:00.000Z``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def compute_stats(novel_dir: Path) -> NovelStats:
    """Recount words, books and chapters from the novel's directories."""

    async def load_book(name: str) -> list[str]:
        book_dir = novel_dir / name
        files = await localfs.list_files(book_dir, ".md")
        return list(await asyncio.gather(*(localfs.read_text(book_dir / f) for f in files)))

    return await gather_stats(await localfs.list_dirs(novel_dir), load_book)


class MetadataUpdater:
    """Reads, writes and refreshes novel sidecars.

    Every read-modify-write of a sidecar runs under a per-novel lock so a
    stats refresh cannot silently overwrite a concurrent one.
    """

    def __init__(self):
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock(self, novel_dir: Path) -> asyncio.Lock:
        return self._locks[novel_dir.name]

    async def read(self, novel_dir: Path) -> NovelMeta:
        path = novel_dir / META_FILENAME
        try:
            raw = await localfs.read_text(path)
        except FileNotFoundError as e:
            raise NotFoundError("Novel not found", {"novel_id": novel_dir.name}) from e
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise NovelStoreError("Corrupt novel metadata", {"novel_id": novel_dir.name}) from e
        if not isinstance(data, dict):
            raise NovelStoreError("Corrupt novel metadata", {"novel_id": novel_dir.name})
        return NovelMeta.from_dict(data)

    async def write(self, novel_dir: Path, meta: NovelMeta) -> None:
        content = json.dumps(meta.to_dict(), indent=2, ensure_ascii=False)
        await localfs.write_text_atomic(novel_dir / META_FILENAME, content)

    async def refresh(self, novel_dir: Path, **changes) -> NovelMeta:
        """Apply field changes, recompute stats and persist the sidecar.

        ``lastModified`` is always touched. Returns the sidecar as written.
        """
        async with self.lock(novel_dir):
            meta = await self.read(novel_dir)
            for key, value in changes.items():
                setattr(meta, key, value)
            stats = await compute_stats(novel_dir)
            meta.word_count = stats.word_count
            meta.book_count = stats.book_count
            meta.last_modified = now_iso()
            await self.write(novel_dir, meta)
        logger.debug(
            "Refreshed %s: words=%d books=%d chapters=%d",
            novel_dir.name, stats.word_count, stats.book_count, stats.chapter_count,
        )
        return meta

    async def ensure_stats(self, novel_dir: Path) -> NovelMeta:
        """Fill in missing cached stats on an older sidecar.

        The sidecar is re-read under the lock; if another task already
        migrated it, nothing is written. ``lastModified`` is left alone.
        """
        async with self.lock(novel_dir):
            meta = await self.read(novel_dir)
            if meta.has_stats:
                return meta
            stats = await compute_stats(novel_dir)
            meta.word_count = stats.word_count
            meta.book_count = stats.book_count
            await self.write(novel_dir, meta)
        logger.info(
            "Migrated cached stats for novel %s (%d chapters)", novel_dir.name, stats.chapter_count
        )
        return meta
