"""Storage package: local and WebDAV novel stores behind one contract."""

from storage.base import NovelStore, sort_books, sort_chapters
from storage.library import NovelLibrary
from storage.local_store import LocalStore
from storage.metadata import MetadataUpdater
from storage.remote_store import RemoteStore
from storage.webdav import WebDAVClient

__all__ = [
    "NovelStore",
    "NovelLibrary",
    "LocalStore",
    "RemoteStore",
    "MetadataUpdater",
    "WebDAVClient",
    "sort_books",
    "sort_chapters",
]
