"""WebDAV-backed novel store.

Remote layout: every top-level directory is a novel, its subdirectories are
books, and ``.md``/``.txt`` files are chapters. Text files sitting directly in
the novel directory form the synthesized ``Main`` book, together with any
chapters in a real ``Main`` subdirectory. Nothing is cached; each call
rebuilds its answer from live directory listings because the remote tree
may be edited outside this application.

Chapter extensions are resolved by checking ``.md`` first and ``.txt`` second.
The check and the following read/write are separate requests, so a file
renamed in between by another client can be missed; the remote store is
assumed to have a single user.
"""

import asyncio
import logging
import mimetypes
import re
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote

import aiofiles
import httpx

from config.exceptions import (
    InvalidArgumentError,
    NotConfiguredError,
    NotFoundError,
    NovelStoreError,
)
from config.settings import Settings
from models.database import RemoteConfig
from models.enums import Origin
from models.novel import (
    Book,
    ChapterInfo,
    CoverUpload,
    Novel,
    NovelDetail,
    MAIN_BOOK,
    SYNOPSIS_CHAPTER,
    INTRO_CHAPTER,
)
from storage.aggregator import gather_stats
from storage.base import NovelStore, sort_books, sort_chapters
from storage.validation import require_filename
from storage.webdav import DavEntry, WebDAVClient, join_path
from tools.text_utils import chapter_name, count_words, is_text_document

logger = logging.getLogger(__name__)

COVER_RE = re.compile(r"cover\.(jpg|jpeg|png|svg|webp)$", re.IGNORECASE)

_COVER_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
}

# Stats key for text files at the novel root; never a valid directory name.
_ROOT_FILES = ""


def text_files(entries: list[DavEntry]) -> dict[str, DavEntry]:
    """Chapter files keyed by chapter name; ``X.md`` wins over ``X.txt``."""
    chapters: dict[str, DavEntry] = {}
    for entry in sorted(entries, key=lambda e: e.name):
        if entry.is_dir or not is_text_document(entry.name):
            continue
        name = chapter_name(entry.name)
        if name not in chapters or entry.name.endswith(".md"):
            chapters[name] = entry
    return chapters


def _merge_main(books: list[Book], root_chapters: list[ChapterInfo]) -> list[Book]:
    """Fold root-level chapters into ``Main``, adding the book if no folder exists.

    A root chapter hides a same-named chapter in the ``Main`` folder, matching
    the order ``read_chapter`` searches them.
    """
    for book in books:
        if book.name == MAIN_BOOK:
            root_names = {c.name for c in root_chapters}
            extra = [c for c in book.chapters if c.name not in root_names]
            book.chapters = sort_chapters(root_chapters + extra)
            return books
    return books + [Book(name=MAIN_BOOK, chapters=root_chapters)]


class RemoteStore(NovelStore):
    """Novel store over a user's WebDAV server."""

    origin = Origin.REMOTE

    def __init__(
        self,
        settings: Settings,
        config: Optional[RemoteConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.config = config
        self._transport = transport
        self._semaphore = asyncio.Semaphore(settings.remote_concurrency)

    @property
    def is_configured(self) -> bool:
        return self.config is not None and self.config.is_configured

    def _connect(self) -> WebDAVClient:
        if not self.is_configured:
            raise NotConfiguredError()
        return WebDAVClient(self.config, timeout=self.settings.remote_timeout, transport=self._transport)

    # ---- Path resolution ----

    @staticmethod
    def _novel_name(novel_id: str) -> str:
        name = unquote(novel_id or "")
        return require_filename(name, "novel id")

    def _book_path(self, novel: str, book: str) -> str:
        require_filename(book, "book name")
        if book == MAIN_BOOK:
            return join_path(novel)
        return join_path(novel, book)

    def _chapter_dirs(self, novel: str, book: str) -> list[str]:
        """Directories searched for a chapter; Main also looks inside a real ``Main`` folder."""
        book_path = self._book_path(novel, book)
        if book == MAIN_BOOK:
            return [book_path, join_path(novel, MAIN_BOOK)]
        return [book_path]

    # ---- Helpers ----

    async def _read(self, dav: WebDAVClient, path: str) -> str:
        async with self._semaphore:
            return await dav.read_text(path)

    async def _read_optional(self, dav: WebDAVClient, path: str) -> Optional[str]:
        try:
            return await self._read(dav, path)
        except NotFoundError:
            logger.warning("Remote file vanished while reading: %s", path)
            return None

    def _cover_url(self, novel: str, files: list[DavEntry]) -> str:
        for entry in files:
            if COVER_RE.search(entry.name):
                return f"{self.settings.remote_cover_prefix}/{quote(novel, safe='')}/{quote(entry.name, safe='')}"
        return self.settings.default_cover

    async def _synopsis(self, dav: WebDAVClient, novel: str, files: list[DavEntry]) -> str:
        names = {f.name for f in files}
        for candidate in (f"{SYNOPSIS_CHAPTER}.md", f"{INTRO_CHAPTER}.md"):
            if candidate in names:
                return await self._read_optional(dav, join_path(novel, candidate)) or ""
        return ""

    async def _chapter_texts(self, dav: WebDAVClient, entries: list[DavEntry]) -> list[str]:
        texts = await asyncio.gather(
            *(self._read_optional(dav, e.path) for e in text_files(entries).values())
        )
        return [t for t in texts if t is not None]

    async def _summarize(self, dav: WebDAVClient, novel: str) -> Novel:
        contents = await dav.list_directory(join_path(novel))
        files = [c for c in contents if not c.is_dir]
        subdirs = sorted(c.name for c in contents if c.is_dir)

        async def load_book(book: str) -> list[str]:
            if book == _ROOT_FILES:
                return await self._chapter_texts(dav, files)
            try:
                return await self._chapter_texts(dav, await dav.list_directory(join_path(novel, book)))
            except NotFoundError:
                logger.warning("Remote book vanished: %s/%s", novel, book)
                return []

        stats, synopsis = await asyncio.gather(
            gather_stats([_ROOT_FILES, *subdirs], load_book),
            self._synopsis(dav, novel, files),
        )
        modified = [c.last_modified for c in contents if c.last_modified]
        return Novel(
            id=novel,
            title=novel.replace("_", " "),
            cover=self._cover_url(novel, files),
            synopsis=synopsis,
            last_modified=max(modified).isoformat() if modified else None,
            word_count=stats.word_count,
            book_count=len(subdirs) if subdirs else 1,
            remote=True,
        )

    async def _chapter_infos(self, dav: WebDAVClient, entries: list[DavEntry]) -> list[ChapterInfo]:
        files = text_files(entries)

        async def info(name: str, entry: DavEntry) -> Optional[ChapterInfo]:
            content = await self._read_optional(dav, entry.path)
            if content is None:
                return None
            return ChapterInfo(
                name=name,
                file=entry.name,
                word_count=count_words(content),
                last_modified=entry.last_modified,
            )

        infos = await asyncio.gather(*(info(n, e) for n, e in files.items()))
        return sort_chapters([i for i in infos if i is not None])

    async def _resolve_chapter(self, dav: WebDAVClient, book_path: str, name: str) -> Optional[str]:
        """Path of the existing chapter file, ``.md`` preferred; None if neither exists."""
        for ext in (".md", ".txt"):
            path = join_path(book_path, f"{name}{ext}")
            entry = await dav.stat(path)
            if entry is not None and not entry.is_dir:
                return path
        return None

    async def _require_book(self, dav: WebDAVClient, novel: str, book: str) -> str:
        book_path = self._book_path(novel, book)
        entry = await dav.stat(book_path)
        if entry is None or not entry.is_dir:
            raise NotFoundError("Book not found", {"novel_id": novel, "book": book})
        return book_path

    async def _put_cover(self, dav: WebDAVClient, novel: str, cover: CoverUpload) -> None:
        ext = cover.extension or ".jpg"
        if ext not in _COVER_TYPES:
            raise InvalidArgumentError("Invalid cover file type", {"extension": ext})
        async with aiofiles.open(cover.path, "rb") as f:
            data = await f.read()
        await dav.write_bytes(join_path(novel, f"cover{ext}"), data, _COVER_TYPES[ext])

    # ---- Novels ----

    async def list_novels(self) -> list[Novel]:
        async with self._connect() as dav:
            root = await dav.list_directory("/")
            novels = []
            for entry in sorted((e for e in root if e.is_dir), key=lambda e: e.name):
                try:
                    novels.append(await self._summarize(dav, entry.name))
                except NovelStoreError as e:
                    logger.warning("Skipping remote novel %s: %s", entry.name, e)
            return novels

    async def get_novel(self, novel_id: str) -> NovelDetail:
        novel = self._novel_name(novel_id)
        async with self._connect() as dav:
            try:
                contents = await dav.list_directory(join_path(novel))
            except NotFoundError as e:
                raise NotFoundError("Novel not found", {"novel_id": novel}) from e
            files = [c for c in contents if not c.is_dir]
            subdirs = sorted(c.name for c in contents if c.is_dir)

            async def load_subdir(name: str) -> Optional[Book]:
                try:
                    entries = await dav.list_directory(join_path(novel, name))
                except NotFoundError:
                    logger.warning("Remote book vanished: %s/%s", novel, name)
                    return None
                return Book(name=name, chapters=await self._chapter_infos(dav, entries))

            main_chapters, synopsis, *sub_books = await asyncio.gather(
                self._chapter_infos(dav, files),
                self._synopsis(dav, novel, files),
                *(load_subdir(s) for s in subdirs),
            )

        books = [b for b in sub_books if b is not None]
        if main_chapters:
            books = _merge_main(books, main_chapters)
        books = sort_books(books)

        modified = [c.last_modified for b in books for c in b.chapters if c.last_modified]
        summary = Novel(
            id=novel,
            title=novel.replace("_", " "),
            cover=self._cover_url(novel, files),
            synopsis=synopsis,
            last_modified=max(modified).isoformat() if modified else None,
            word_count=sum(b.word_count for b in books),
            book_count=len(subdirs) if subdirs else 1,
            remote=True,
        )
        return NovelDetail(novel=summary, books=books)

    async def create_novel(
        self, title: str, synopsis: str = "", cover: Optional[CoverUpload] = None
    ) -> Novel:
        title = (title or "").strip()
        if not title:
            raise InvalidArgumentError("Title is required")
        novel = require_filename(title.replace(" ", "_"), "novel id")
        async with self._connect() as dav:
            await dav.make_directory(join_path(novel))
            await dav.write_text(join_path(novel, f"{SYNOPSIS_CHAPTER}.md"), synopsis or "")
            if cover is not None:
                await self._put_cover(dav, novel, cover)
            logger.info("Created remote novel %s", novel)
            return await self._summarize(dav, novel)

    async def update_novel(
        self,
        novel_id: str,
        title: Optional[str] = None,
        synopsis: Optional[str] = None,
        cover: Optional[CoverUpload] = None,
    ) -> Novel:
        novel = self._novel_name(novel_id)
        async with self._connect() as dav:
            if await dav.stat(join_path(novel)) is None:
                raise NotFoundError("Novel not found", {"novel_id": novel})
            if title is not None:
                title = title.strip()
                if not title:
                    raise InvalidArgumentError("Title cannot be empty")
                renamed = require_filename(title.replace(" ", "_"), "novel id")
                if renamed != novel:
                    await dav.move(join_path(novel), join_path(renamed))
                    novel = renamed
            if synopsis is not None:
                target = await self._resolve_chapter(dav, join_path(novel), SYNOPSIS_CHAPTER)
                if target is None:
                    target = await self._resolve_chapter(dav, join_path(novel), INTRO_CHAPTER)
                await dav.write_text(target or join_path(novel, f"{SYNOPSIS_CHAPTER}.md"), synopsis)
            if cover is not None:
                await self._put_cover(dav, novel, cover)
            return await self._summarize(dav, novel)

    async def delete_novel(self, novel_id: str) -> None:
        novel = self._novel_name(novel_id)
        async with self._connect() as dav:
            await dav.delete(join_path(novel), missing_ok=True)
        logger.info("Deleted remote novel %s", novel)

    # ---- Books ----

    async def create_book(self, novel_id: str, name: str) -> None:
        novel = self._novel_name(novel_id)
        book_path = self._book_path(novel, name)
        if name == MAIN_BOOK:
            return
        async with self._connect() as dav:
            if await dav.stat(join_path(novel)) is None:
                raise NotFoundError("Novel not found", {"novel_id": novel})
            await dav.make_directory(book_path, exist_ok=True)

    async def delete_book(self, novel_id: str, name: str) -> None:
        """Delete a book. Remote ``Main`` is not protected: its root-level
        chapter files are removed."""
        novel = self._novel_name(novel_id)
        book_path = self._book_path(novel, name)
        async with self._connect() as dav:
            if name != MAIN_BOOK:
                await dav.delete(book_path)
                return
            try:
                entries = await dav.list_directory(book_path)
            except NotFoundError as e:
                raise NotFoundError("Novel not found", {"novel_id": novel}) from e
            for entry in entries:
                if not entry.is_dir and is_text_document(entry.name):
                    await dav.delete(entry.path, missing_ok=True)

    # ---- Chapters ----

    async def create_chapter(self, novel_id: str, book: str, name: str) -> None:
        novel = self._novel_name(novel_id)
        require_filename(name, "chapter name")
        async with self._connect() as dav:
            book_path = await self._require_book(dav, novel, book)
            if await self._resolve_chapter(dav, book_path, name) is not None:
                return
            await dav.write_text(join_path(book_path, f"{name}.md"), "")

    async def delete_chapter(self, novel_id: str, book: str, name: str) -> None:
        """Delete a chapter. Unlike the local store, ``Main/Synopsis`` may be deleted."""
        novel = self._novel_name(novel_id)
        book_path = self._book_path(novel, book)
        require_filename(name, "chapter name")
        async with self._connect() as dav:
            path = await self._resolve_chapter(dav, book_path, name)
            if path is None:
                raise NotFoundError("Chapter not found", {"novel_id": novel, "book": book, "chapter": name})
            await dav.delete(path)

    async def read_chapter(self, novel_id: str, book: str, name: str) -> str:
        novel = self._novel_name(novel_id)
        directories = self._chapter_dirs(novel, book)
        require_filename(name, "chapter name")
        async with self._connect() as dav:
            # The GET doubles as the existence check
            for directory in directories:
                for ext in (".md", ".txt"):
                    try:
                        return await dav.read_text(join_path(directory, f"{name}{ext}"))
                    except NotFoundError:
                        continue
        raise NotFoundError("Chapter not found", {"novel_id": novel, "book": book, "chapter": name})

    async def write_chapter(self, novel_id: str, book: str, name: str, content: str) -> None:
        novel = self._novel_name(novel_id)
        book_path = self._book_path(novel, book)
        require_filename(name, "chapter name")
        async with self._connect() as dav:
            path = None
            for directory in self._chapter_dirs(novel, book):
                path = await self._resolve_chapter(dav, directory, name)
                if path is not None:
                    break
            await dav.write_text(path or join_path(book_path, f"{name}.md"), content)

    # ---- Extras ----

    async def read_cover(self, novel_id: str, filename: str) -> tuple[bytes, str]:
        """Cover image bytes and content type, for the same-origin cover proxy."""
        novel = self._novel_name(novel_id)
        require_filename(filename, "cover filename")
        if not COVER_RE.search(filename):
            raise InvalidArgumentError("Not a cover image", {"filename": filename})
        async with self._connect() as dav:
            data = await dav.read_bytes(join_path(novel, filename))
        ext = Path(filename).suffix.lower()
        content_type = _COVER_TYPES.get(ext) or mimetypes.guess_type(filename)[0] or "image/jpeg"
        return data, content_type

    async def test_connection(self) -> int:
        """Number of top-level directories (novels) visible on the server."""
        async with self._connect() as dav:
            entries = await dav.list_directory("/")
        return sum(1 for e in entries if e.is_dir)
