"""Tools package: text utilities shared by every backend."""

from tools.text_utils import (
    count_words,
    is_text_document,
    chapter_name,
    format_bytes,
    TEXT_EXTENSIONS,
)

__all__ = [
    "count_words",
    "is_text_document",
    "chapter_name",
    "format_bytes",
    "TEXT_EXTENSIONS",
]
