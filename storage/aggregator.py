"""Word and book/chapter counts over a novel's books."""

import asyncio
from typing import Awaitable, Callable, Iterable, Mapping

from models.novel import NovelStats
from tools.text_utils import count_words


def summarize(books: Mapping[str, Iterable[str]]) -> NovelStats:
    """Aggregate chapter texts grouped by book.

    A book with no chapters still counts toward ``book_count`` and
    contributes 0 words.
    """
    stats = NovelStats()
    for texts in books.values():
        for text in texts:
            stats.word_count += count_words(text)
            stats.chapter_count += 1
        stats.book_count += 1
    return stats


async def gather_stats(
    book_names: Iterable[str],
    load_book: Callable[[str], Awaitable[list[str]]],
) -> NovelStats:
    """Load every book concurrently and summarize the result.

    Args:
        book_names: Books to include.
        load_book: Coroutine returning the chapter texts of one book.
    """
    names = list(book_names)
    contents = await asyncio.gather(*(load_book(name) for name in names))
    return summarize(dict(zip(names, contents)))
