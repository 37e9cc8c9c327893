"""Text utilities: word counting and document filename helpers."""

import re
from typing import Optional

_WHITESPACE_RE = re.compile(r"\s+")

TEXT_EXTENSIONS = (".md", ".txt")


def count_words(text: Optional[str]) -> int:
    """Count whitespace-separated words.

    The text is trimmed, split on runs of whitespace (spaces, tabs and
    newlines alike) and the non-empty tokens counted. Every word count in
    the application goes through this function.
    """
    if not text:
        return 0
    return len([w for w in _WHITESPACE_RE.split(text.strip()) if w])


def is_text_document(filename: str) -> bool:
    """Whether a filename is a chapter document (.md or .txt)."""
    return filename.endswith(TEXT_EXTENSIONS)


def chapter_name(filename: str) -> str:
    """Strip the document extension from a chapter filename."""
    for ext in TEXT_EXTENSIONS:
        if filename.endswith(ext):
            return filename[: -len(ext)]
    return filename


def format_bytes(size: int) -> str:
    """Format a byte count for display, e.g. ``1.5 KB``."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    value = round(value, 2)
    if value == int(value):
        value = int(value)
    return f"{value} {units[i]}"
