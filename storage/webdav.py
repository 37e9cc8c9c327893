"""Minimal async WebDAV client on top of httpx."""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

import httpx

from config.exceptions import (
    AuthError,
    ConflictError,
    NotFoundError,
    RemoteError,
    TransientNetworkError,
)
from models.database import RemoteConfig

logger = logging.getLogger(__name__)

_DAV_NS = {"d": "DAV:"}

_PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop>'
    "<d:resourcetype/><d:getcontentlength/><d:getlastmodified/><d:getcontenttype/>"
    "</d:prop></d:propfind>"
)


@dataclass
class DavEntry:
    """One resource from a PROPFIND response."""
    name: str
    path: str
    is_dir: bool
    size: int = 0
    last_modified: Optional[datetime] = None
    content_type: str = ""


def normalize_path(path: str) -> str:
    """``a//b/`` -> ``/a/b``; the root is ``/``."""
    parts = [p for p in path.split("/") if p]
    return "/" + "/".join(parts)


def join_path(*parts: str) -> str:
    return normalize_path("/".join(parts))


def _parse_http_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def parse_multistatus(xml_text: str | bytes, base_path: str) -> list[DavEntry]:
    """Parse a PROPFIND multistatus body into entries relative to ``base_path``."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise RemoteError("Malformed WebDAV response") from e

    base = normalize_path(unquote(base_path))
    entries = []
    for response in root.findall("d:response", _DAV_NS):
        href = response.findtext("d:href", default="", namespaces=_DAV_NS)
        path = normalize_path(unquote(urlsplit(href).path))
        if base != "/" and (path == base or path.startswith(base + "/")):
            path = normalize_path(path[len(base):])

        prop = response.find("d:propstat/d:prop", _DAV_NS)
        is_dir = False
        size = 0
        modified = None
        content_type = ""
        if prop is not None:
            is_dir = prop.find("d:resourcetype/d:collection", _DAV_NS) is not None
            length = prop.findtext("d:getcontentlength", default="", namespaces=_DAV_NS)
            size = int(length) if length.strip().isdigit() else 0
            modified = _parse_http_date(prop.findtext("d:getlastmodified", namespaces=_DAV_NS))
            content_type = prop.findtext("d:getcontenttype", default="", namespaces=_DAV_NS)

        entries.append(DavEntry(
            name=path.rsplit("/", 1)[-1],
            path=path,
            is_dir=is_dir,
            size=size,
            last_modified=modified,
            content_type=content_type,
        ))
    return entries


class WebDAVClient:
    """Async WebDAV client scoped to one server root.

    Use as an async context manager; every call is bounded by ``timeout``.

    Raises (from every call):
        TransientNetworkError: timeouts, connection failures, 5xx responses.
        AuthError: 401/403 responses.
        NotFoundError: 404 responses.
    """

    def __init__(
        self,
        config: RemoteConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = config.base_url
        self.base_path = urlsplit(self.base_url).path or "/"
        auth = None
        if config.username or config.password:
            auth = httpx.BasicAuth(config.username, config.password)
        self._client = httpx.AsyncClient(
            auth=auth,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "WebDAVClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def url(self, path: str) -> str:
        return self.base_url + quote(normalize_path(path), safe="/")

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = self.url(path)
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientNetworkError("Remote request timed out", {"method": method, "path": path}) from e
        except httpx.TransportError as e:
            raise TransientNetworkError("Remote connection failed", {"method": method, "path": path}) from e

        status = response.status_code
        if status in (401, 403):
            raise AuthError(status_code=status)
        if status == 404:
            raise NotFoundError("Remote resource not found", {"path": path})
        if status >= 500:
            raise TransientNetworkError("Remote server error", {"status_code": status, "path": path})
        if status >= 400:
            raise RemoteError("Remote request rejected", {"status_code": status, "method": method, "path": path})
        logger.debug("%s %s -> %d", method, path, status)
        return response

    async def _propfind(self, path: str, depth: str) -> list[DavEntry]:
        response = await self._request(
            "PROPFIND",
            path,
            headers={"Depth": depth, "Content-Type": "application/xml; charset=utf-8"},
            content=_PROPFIND_BODY,
        )
        return parse_multistatus(response.content, self.base_path)

    async def list_directory(self, path: str = "/") -> list[DavEntry]:
        """Immediate children of a collection (the collection itself excluded)."""
        target = normalize_path(path)
        return [e for e in await self._propfind(target, "1") if e.path != target]

    async def stat(self, path: str) -> Optional[DavEntry]:
        """The resource at ``path``, or None when it does not exist."""
        target = normalize_path(path)
        try:
            entries = await self._propfind(target, "0")
        except NotFoundError:
            return None
        for entry in entries:
            if entry.path == target:
                return entry
        return entries[0] if entries else None

    async def read_bytes(self, path: str) -> bytes:
        response = await self._request("GET", path)
        return response.content

    async def read_text(self, path: str) -> str:
        return (await self.read_bytes(path)).decode("utf-8", errors="replace")

    async def write_bytes(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        await self._request("PUT", path, content=data, headers={"Content-Type": content_type})

    async def write_text(self, path: str, text: str) -> None:
        await self.write_bytes(path, text.encode("utf-8"), "text/plain; charset=utf-8")

    async def make_directory(self, path: str, exist_ok: bool = False) -> None:
        # 405 is the MKCOL answer for an existing collection
        try:
            await self._request("MKCOL", path)
        except RemoteError as e:
            if exist_ok and e.details.get("status_code") == 405:
                return
            if e.details.get("status_code") == 405:
                raise ConflictError("Remote directory already exists", {"path": path}) from e
            raise

    async def delete(self, path: str, missing_ok: bool = False) -> None:
        try:
            await self._request("DELETE", path)
        except NotFoundError:
            if not missing_ok:
                raise

    async def move(self, source: str, destination: str) -> None:
        try:
            await self._request(
                "MOVE",
                source,
                headers={"Destination": self.url(destination), "Overwrite": "F"},
            )
        except RemoteError as e:
            if e.details.get("status_code") == 412:
                raise ConflictError("Remote destination already exists", {"path": destination}) from e
            raise
