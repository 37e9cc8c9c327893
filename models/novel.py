"""Novel, book and chapter data models."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

MAIN_BOOK = "Main"
SYNOPSIS_CHAPTER = "Synopsis"
INTRO_CHAPTER = "Intro"


@dataclass
class ChapterInfo:
    """A single chapter document as listed inside a book."""
    name: str
    file: str
    word_count: int = 0
    last_modified: Optional[datetime] = None


@dataclass
class Book:
    """A named group of chapters."""
    name: str
    chapters: list[ChapterInfo] = field(default_factory=list)

    @property
    def word_count(self) -> int:
        return sum(c.word_count for c in self.chapters)


@dataclass
class Novel:
    """Summary of a novel as shown in listings."""
    id: str
    title: str = ""
    cover: str = ""
    synopsis: str = ""
    created: Optional[str] = None
    last_modified: Optional[str] = None
    word_count: int = 0
    book_count: int = 0
    remote: bool = False


@dataclass
class NovelDetail:
    """A novel together with its book/chapter structure."""
    novel: Novel
    books: list[Book] = field(default_factory=list)

    def book(self, name: str) -> Optional[Book]:
        for b in self.books:
            if b.name == name:
                return b
        return None


@dataclass
class NovelStats:
    """Aggregate counts over a novel's books."""
    word_count: int = 0
    book_count: int = 0
    chapter_count: int = 0


@dataclass
class CoverUpload:
    """An uploaded cover image waiting to be moved into a novel directory."""
    path: Path
    original_name: str = ""

    @property
    def extension(self) -> str:
        return Path(self.original_name or self.path.name).suffix.lower()


@dataclass
class NovelMeta:
    """The JSON sidecar persisted as ``<novel>/meta.json``.

    Keys are stored camelCase for compatibility with existing data.
    ``word_count``/``book_count`` are None on records written before the
    stats were cached.
    """
    title: str
    cover: str = ""
    created: str = ""
    last_modified: str = ""
    word_count: Optional[int] = None
    book_count: Optional[int] = None
    synopsis: Optional[str] = None
    extra: dict = field(default_factory=dict)

    _KEYS = {
        "title": "title",
        "cover": "cover",
        "created": "created",
        "lastModified": "last_modified",
        "wordCount": "word_count",
        "bookCount": "book_count",
        "synopsis": "synopsis",
    }

    @property
    def has_stats(self) -> bool:
        return self.word_count is not None and self.book_count is not None

    @classmethod
    def from_dict(cls, data: dict) -> "NovelMeta":
        kwargs = {attr: data[key] for key, attr in cls._KEYS.items() if key in data}
        kwargs.setdefault("title", "")
        extra = {k: v for k, v in data.items() if k not in cls._KEYS}
        return cls(extra=extra, **kwargs)

    def to_dict(self) -> dict:
        data = dict(self.extra)
        for key, attr in self._KEYS.items():
            value = getattr(self, attr)
            if value is None and key in ("wordCount", "bookCount", "synopsis"):
                continue
            data[key] = value
        return data
