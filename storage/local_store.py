"""Filesystem-backed novel store.

Layout::

    <novels_dir>/<id>/meta.json          sidecar
    <novels_dir>/<id>/<book>/<name>.md   chapters
    <novels_dir>/<id>/cover.<ext>        optional cover image
"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiofiles.os

from config.exceptions import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    NovelStoreError,
)
from config.settings import Settings
from models.enums import Origin
from models.novel import (
    Book,
    ChapterInfo,
    CoverUpload,
    Novel,
    NovelDetail,
    NovelMeta,
    MAIN_BOOK,
    SYNOPSIS_CHAPTER,
)
from storage import localfs
from storage.base import NovelStore, sort_books, sort_chapters
from storage.metadata import MetadataUpdater, now_iso
from storage.validation import ensure_within, require_filename, require_id
from tools.text_utils import chapter_name, count_words

logger = logging.getLogger(__name__)

CHAPTER_EXT = ".md"


class LocalStore(NovelStore):
    """Novel store on the local filesystem with a JSON sidecar per novel."""

    origin = Origin.LOCAL

    def __init__(self, settings: Settings, metadata: Optional[MetadataUpdater] = None):
        self.settings = settings
        self.root = Path(settings.novels_dir)
        self.metadata = metadata or MetadataUpdater()

    # ---- Path resolution ----

    def _novel_dir(self, novel_id: str) -> Path:
        require_id(novel_id)
        return ensure_within(self.root, novel_id)

    def _book_dir(self, novel_id: str, book: str) -> Path:
        require_id(novel_id)
        require_filename(book, "book name")
        return ensure_within(self.root, novel_id, book)

    def _chapter_path(self, novel_id: str, book: str, name: str) -> Path:
        require_id(novel_id)
        require_filename(book, "book name")
        require_filename(name, "chapter name")
        return ensure_within(self.root, novel_id, book, f"{name}{CHAPTER_EXT}")

    async def _existing_novel_dir(self, novel_id: str) -> Path:
        novel_dir = self._novel_dir(novel_id)
        if not await localfs.is_file(novel_dir / "meta.json"):
            raise NotFoundError("Novel not found", {"novel_id": novel_id})
        return novel_dir

    async def _existing_book_dir(self, novel_id: str, book: str) -> Path:
        book_dir = self._book_dir(novel_id, book)
        await self._existing_novel_dir(novel_id)
        if not await localfs.is_dir(book_dir):
            raise NotFoundError("Book not found", {"novel_id": novel_id, "book": book})
        return book_dir

    # ---- Helpers ----

    async def _read_synopsis(self, novel_dir: Path, meta: NovelMeta) -> str:
        try:
            return await localfs.read_text(novel_dir / MAIN_BOOK / f"{SYNOPSIS_CHAPTER}{CHAPTER_EXT}")
        except FileNotFoundError:
            return meta.synopsis or ""

    def _to_novel(self, novel_id: str, meta: NovelMeta, synopsis: str) -> Novel:
        return Novel(
            id=novel_id,
            title=meta.title,
            cover=meta.cover or self.settings.default_cover,
            synopsis=synopsis,
            created=meta.created,
            last_modified=meta.last_modified,
            word_count=meta.word_count or 0,
            book_count=meta.book_count or 0,
            remote=False,
        )

    async def _place_cover(self, novel_id: str, novel_dir: Path, cover: CoverUpload) -> str:
        ext = cover.extension
        if ext and not ext[1:].isalnum():
            raise InvalidArgumentError("Invalid cover file type", {"extension": ext})
        filename = f"cover{ext}"
        await localfs.move(Path(cover.path), novel_dir / filename)
        return f"{self.settings.local_cover_prefix}/{novel_id}/{filename}"

    async def _new_id(self) -> str:
        novel_id = int(time.time() * 1000)
        while await aiofiles.os.path.exists(self.root / str(novel_id)):
            novel_id += 1
        return str(novel_id)

    # ---- Novels ----

    async def list_novels(self) -> list[Novel]:
        await aiofiles.os.makedirs(self.root, exist_ok=True)
        novels = []
        for entry in await localfs.list_dirs(self.root):
            if not await localfs.is_file(self.root / entry / "meta.json"):
                logger.warning("Skipping %s: no metadata", entry)
                continue
            try:
                novel_dir = self._novel_dir(entry)
                meta = await self.metadata.read(novel_dir)
                if not meta.has_stats:
                    meta = await self.metadata.ensure_stats(novel_dir)
                synopsis = await self._read_synopsis(novel_dir, meta)
            except (NovelStoreError, OSError) as e:
                logger.warning("Skipping novel %s: %s", entry, e)
                continue
            novels.append(self._to_novel(entry, meta, synopsis))

        novels.sort(key=lambda n: n.last_modified or n.created or "", reverse=True)
        return novels

    async def get_novel(self, novel_id: str) -> NovelDetail:
        novel_dir = self._novel_dir(novel_id)
        meta = await self.metadata.read(novel_dir)
        synopsis = await self._read_synopsis(novel_dir, meta)

        books = []
        for book_name in await localfs.list_dirs(novel_dir):
            book_dir = novel_dir / book_name
            chapters = []
            for filename in await localfs.list_files(book_dir, CHAPTER_EXT):
                path = book_dir / filename
                content = await localfs.read_text(path)
                modified = await localfs.mtime(path)
                chapters.append(ChapterInfo(
                    name=chapter_name(filename),
                    file=filename,
                    word_count=count_words(content),
                    last_modified=datetime.fromtimestamp(modified, tz=timezone.utc),
                ))
            books.append(Book(name=book_name, chapters=sort_chapters(chapters)))

        return NovelDetail(
            novel=self._to_novel(novel_id, meta, synopsis),
            books=sort_books(books),
        )

    async def create_novel(
        self, title: str, synopsis: str = "", cover: Optional[CoverUpload] = None
    ) -> Novel:
        title = (title or "").strip()
        if not title:
            raise InvalidArgumentError("Title is required")

        await aiofiles.os.makedirs(self.root, exist_ok=True)
        novel_id = await self._new_id()
        novel_dir = self._novel_dir(novel_id)
        await aiofiles.os.makedirs(novel_dir / MAIN_BOOK)
        await localfs.write_text(novel_dir / MAIN_BOOK / f"{SYNOPSIS_CHAPTER}{CHAPTER_EXT}", synopsis or "")

        cover_url = self.settings.default_cover
        if cover is not None:
            cover_url = await self._place_cover(novel_id, novel_dir, cover)

        created = now_iso()
        meta = NovelMeta(
            title=title,
            cover=cover_url,
            created=created,
            last_modified=created,
            word_count=0,
            book_count=1,
            synopsis=synopsis or "",
        )
        await self.metadata.write(novel_dir, meta)
        meta = await self.metadata.refresh(novel_dir)
        logger.info("Created novel %s (%s)", novel_id, title)
        return self._to_novel(novel_id, meta, synopsis or "")

    async def update_novel(
        self,
        novel_id: str,
        title: Optional[str] = None,
        synopsis: Optional[str] = None,
        cover: Optional[CoverUpload] = None,
    ) -> Novel:
        novel_dir = await self._existing_novel_dir(novel_id)
        changes = {}
        if title is not None:
            title = title.strip()
            if not title:
                raise InvalidArgumentError("Title cannot be empty")
            changes["title"] = title
        if synopsis is not None:
            await aiofiles.os.makedirs(novel_dir / MAIN_BOOK, exist_ok=True)
            await localfs.write_text(novel_dir / MAIN_BOOK / f"{SYNOPSIS_CHAPTER}{CHAPTER_EXT}", synopsis)
            changes["synopsis"] = synopsis
        if cover is not None:
            changes["cover"] = await self._place_cover(novel_id, novel_dir, cover)

        meta = await self.metadata.refresh(novel_dir, **changes)
        return self._to_novel(novel_id, meta, await self._read_synopsis(novel_dir, meta))

    async def delete_novel(self, novel_id: str) -> None:
        novel_dir = self._novel_dir(novel_id)
        await localfs.remove_tree(novel_dir)
        logger.info("Deleted novel %s", novel_id)

    # ---- Books ----

    async def create_book(self, novel_id: str, name: str) -> None:
        book_dir = self._book_dir(novel_id, name)
        novel_dir = await self._existing_novel_dir(novel_id)
        await aiofiles.os.makedirs(book_dir, exist_ok=True)
        await self.metadata.refresh(novel_dir)

    async def delete_book(self, novel_id: str, name: str) -> None:
        book_dir = self._book_dir(novel_id, name)
        if name == MAIN_BOOK:
            raise ConflictError("Cannot delete Main book")
        novel_dir = await self._existing_novel_dir(novel_id)
        if not await localfs.is_dir(book_dir):
            raise NotFoundError("Book not found", {"novel_id": novel_id, "book": name})
        await localfs.remove_tree(book_dir)
        await self.metadata.refresh(novel_dir)

    # ---- Chapters ----

    async def create_chapter(self, novel_id: str, book: str, name: str) -> None:
        path = self._chapter_path(novel_id, book, name)
        await self._existing_book_dir(novel_id, book)
        if not await localfs.create_text(path):
            logger.debug("Chapter %s/%s already exists in %s", book, name, novel_id)
        await self.metadata.refresh(self._novel_dir(novel_id))

    async def delete_chapter(self, novel_id: str, book: str, name: str) -> None:
        path = self._chapter_path(novel_id, book, name)
        if book == MAIN_BOOK and name == SYNOPSIS_CHAPTER:
            raise ConflictError("Cannot delete Synopsis")
        await self._existing_novel_dir(novel_id)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError as e:
            raise NotFoundError(
                "Chapter not found", {"novel_id": novel_id, "book": book, "chapter": name}
            ) from e
        await self.metadata.refresh(self._novel_dir(novel_id))

    async def read_chapter(self, novel_id: str, book: str, name: str) -> str:
        path = self._chapter_path(novel_id, book, name)
        try:
            return await localfs.read_text(path)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotFoundError(
                "Chapter not found", {"novel_id": novel_id, "book": book, "chapter": name}
            ) from e

    async def write_chapter(self, novel_id: str, book: str, name: str, content: str) -> None:
        path = self._chapter_path(novel_id, book, name)
        await self._existing_book_dir(novel_id, book)
        await localfs.write_text(path, content)
        await self.metadata.refresh(self._novel_dir(novel_id))
