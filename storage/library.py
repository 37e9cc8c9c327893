"""Process-wide access to the local store and per-user remote stores."""

import logging
from typing import Optional

import httpx

from config.exceptions import InvalidArgumentError, RemoteError
from config.settings import Settings, get_settings
from models.database import Database
from models.enums import Origin
from models.novel import Novel
from storage.base import NovelStore
from storage.local_store import LocalStore
from storage.metadata import MetadataUpdater
from storage.remote_store import RemoteStore

logger = logging.getLogger(__name__)


class NovelLibrary:
    """Selects a backend by explicit origin.

    The local store (and its sidecar locks) is built once and shared; a
    remote store is built per call from the user's stored credentials so
    credential changes take effect immediately.
    """

    def __init__(
        self,
        settings: Settings,
        database: Database,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.database = database
        self._transport = transport
        self.local = LocalStore(settings, MetadataUpdater())

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "NovelLibrary":
        settings = settings or get_settings()
        return cls(settings, Database(settings.users_db_path))

    def remote(self, user_id: Optional[int]) -> RemoteStore:
        config = self.database.get_remote_config(user_id) if user_id is not None else None
        return RemoteStore(self.settings, config, transport=self._transport)

    def store(self, origin: Origin | bool, user_id: Optional[int] = None) -> NovelStore:
        if isinstance(origin, bool):
            origin = Origin.from_flag(origin)
        if origin is Origin.LOCAL:
            return self.local
        if origin is Origin.REMOTE:
            return self.remote(user_id)
        raise InvalidArgumentError("Unknown origin", {"origin": origin})

    async def list_all_novels(self, user_id: Optional[int] = None) -> tuple[list[Novel], list[Novel]]:
        """Local and remote listings; a remote failure yields an empty remote list."""
        local = await self.local.list_novels()
        remote: list[Novel] = []
        try:
            remote = await self.remote(user_id).list_novels()
        except RemoteError as e:
            logger.warning("Remote listing unavailable: %s", e)
        return local, remote
