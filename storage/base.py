"""Common contract shared by the local and remote novel stores."""

from abc import ABC, abstractmethod
from typing import Optional

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


def sort_books(books: list[Book]) -> list[Book]:
    """``Main`` first, the rest alphabetically (case-insensitive)."""
    return sorted(books, key=lambda b: (b.name != MAIN_BOOK, b.name.casefold(), b.name))


def sort_chapters(chapters: list[ChapterInfo]) -> list[ChapterInfo]:
    """``Synopsis`` first, or ``Intro`` when there is no synopsis; the rest by name."""
    names = {c.name for c in chapters}
    lead = SYNOPSIS_CHAPTER if SYNOPSIS_CHAPTER in names else INTRO_CHAPTER
    return sorted(chapters, key=lambda c: (c.name != lead, c.name.casefold(), c.name))


class NovelStore(ABC):
    """A hierarchical novel -> book -> chapter document store.

    Implementations:
    - LocalStore: directories and Markdown files with a JSON sidecar
    - RemoteStore: a WebDAV server, metadata recomputed on every read
    """

    origin: Origin = Origin.LOCAL

    @property
    def is_remote(self) -> bool:
        return self.origin is Origin.REMOTE

    # ---- Novels ----

    @abstractmethod
    async def list_novels(self) -> list[Novel]:
        """List every readable novel. A broken entry is skipped, never fatal."""

    @abstractmethod
    async def get_novel(self, novel_id: str) -> NovelDetail:
        """Return a novel with its ordered book/chapter structure.

        Raises:
            NotFoundError: If the novel does not exist.
        """

    @abstractmethod
    async def create_novel(
        self, title: str, synopsis: str = "", cover: Optional[CoverUpload] = None
    ) -> Novel:
        """Create a novel with its ``Main`` book and ``Synopsis`` chapter."""

    @abstractmethod
    async def update_novel(
        self,
        novel_id: str,
        title: Optional[str] = None,
        synopsis: Optional[str] = None,
        cover: Optional[CoverUpload] = None,
    ) -> Novel:
        """Apply only the given fields."""

    @abstractmethod
    async def delete_novel(self, novel_id: str) -> None:
        """Remove a novel. Deleting a missing novel succeeds."""

    # ---- Books ----

    @abstractmethod
    async def create_book(self, novel_id: str, name: str) -> None:
        ...

    @abstractmethod
    async def delete_book(self, novel_id: str, name: str) -> None:
        ...

    # ---- Chapters ----

    @abstractmethod
    async def create_chapter(self, novel_id: str, book: str, name: str) -> None:
        """Create an empty chapter; an existing chapter is left untouched."""

    @abstractmethod
    async def delete_chapter(self, novel_id: str, book: str, name: str) -> None:
        ...

    @abstractmethod
    async def read_chapter(self, novel_id: str, book: str, name: str) -> str:
        ...

    @abstractmethod
    async def write_chapter(self, novel_id: str, book: str, name: str, content: str) -> None:
        ...
