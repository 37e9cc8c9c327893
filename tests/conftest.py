"""Shared pytest fixtures for the novelstore test suite."""

import base64
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from urllib.parse import quote, unquote, urlsplit

import httpx
import pytest


REMOTE_URL = "http://dav.test/remote.php/dav"


# ---------------------------------------------------------------------------
# Settings / database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    """Return a Settings instance with all paths under tmp_path/data."""
    from config.settings import Settings
    return Settings(_env_file=None, data_dir=tmp_path / "data", remote_timeout=5.0)


@pytest.fixture
def db(settings):
    """Return an initialized Database instance backed by a temp file."""
    from models.database import Database
    return Database(settings.users_db_path)


@pytest.fixture
def user_id(db):
    return db.create_user("alice", "hashed-password")


@pytest.fixture
def local_store(settings):
    from storage.local_store import LocalStore
    return LocalStore(settings)


# ---------------------------------------------------------------------------
# In-memory WebDAV server
# ---------------------------------------------------------------------------

class FakeDavServer:
    """Just enough of a WebDAV server for httpx.MockTransport.

    Paths are kept relative to the DAV root (``/Novel/Book/ch.md``).
    """

    def __init__(self, base_url: str = REMOTE_URL, username: str = "", password: str = ""):
        self.base_path = urlsplit(base_url).path.rstrip("/")
        self.username = username
        self.password = password
        self.dirs: set[str] = {"/"}
        self.files: dict[str, bytes] = {}
        self.mtimes: dict[str, datetime] = {}
        self.requests: list[tuple[str, str]] = []
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    # ---- Seeding helpers ----

    def mkdir(self, path: str) -> None:
        parts = [p for p in path.split("/") if p]
        for i in range(1, len(parts) + 1):
            self.dirs.add("/" + "/".join(parts[:i]))

    def put(self, path: str, content: str | bytes) -> None:
        parent = path.rsplit("/", 1)[0] or "/"
        self.mkdir(parent)
        self.files[path] = content.encode("utf-8") if isinstance(content, str) else content
        self._clock += timedelta(minutes=1)
        self.mtimes[path] = self._clock

    def text(self, path: str) -> str:
        return self.files[path].decode("utf-8")

    # ---- Request handling ----

    def _local(self, url: httpx.URL | str) -> str:
        path = unquote(urlsplit(str(url)).path)
        if path.startswith(self.base_path):
            path = path[len(self.base_path):]
        parts = [p for p in path.split("/") if p]
        return "/" + "/".join(parts)

    @staticmethod
    def _parent(path: str) -> str:
        return path.rsplit("/", 1)[0] or "/"

    def _exists(self, path: str) -> bool:
        return path in self.dirs or path in self.files

    def _children(self, path: str) -> list[str]:
        names = [d for d in self.dirs if d != "/" and self._parent(d) == path]
        names += [f for f in self.files if self._parent(f) == path]
        return sorted(names)

    def _response_xml(self, path: str) -> str:
        href = self.base_path + quote(path if path != "/" else "/")
        if path in self.dirs:
            if not href.endswith("/"):
                href += "/"
            props = "<d:resourcetype><d:collection/></d:resourcetype>"
        else:
            modified = format_datetime(self.mtimes[path], usegmt=True)
            props = (
                "<d:resourcetype/>"
                f"<d:getcontentlength>{len(self.files[path])}</d:getcontentlength>"
                f"<d:getlastmodified>{modified}</d:getlastmodified>"
            )
        return (
            f"<d:response><d:href>{href}</d:href>"
            f"<d:propstat><d:prop>{props}</d:prop>"
            "<d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>"
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = self._local(request.url)
        self.requests.append((method, path))

        if self.username or self.password:
            token = base64.b64encode(f"{self.username}:{self.password}".encode()).decode()
            expected = f"Basic {token}"
            if request.headers.get("Authorization") != expected:
                return httpx.Response(401)

        if method == "PROPFIND":
            if not self._exists(path):
                return httpx.Response(404)
            targets = [path]
            if request.headers.get("Depth") == "1" and path in self.dirs:
                targets += self._children(path)
            body = (
                '<?xml version="1.0" encoding="utf-8"?><d:multistatus xmlns:d="DAV:">'
                + "".join(self._response_xml(t) for t in targets)
                + "</d:multistatus>"
            )
            return httpx.Response(207, text=body, headers={"Content-Type": "application/xml"})

        if method == "GET":
            if path not in self.files:
                return httpx.Response(404)
            return httpx.Response(200, content=self.files[path])

        if method == "PUT":
            if self._parent(path) not in self.dirs or path in self.dirs:
                return httpx.Response(409)
            created = path not in self.files
            self.put(path, request.content)
            return httpx.Response(201 if created else 204)

        if method == "MKCOL":
            if self._exists(path):
                return httpx.Response(405)
            if self._parent(path) not in self.dirs:
                return httpx.Response(409)
            self.dirs.add(path)
            return httpx.Response(201)

        if method == "DELETE":
            if not self._exists(path):
                return httpx.Response(404)
            prefix = path + "/"
            self.dirs = {d for d in self.dirs if d != path and not d.startswith(prefix)}
            for f in [f for f in self.files if f == path or f.startswith(prefix)]:
                del self.files[f]
                self.mtimes.pop(f, None)
            return httpx.Response(204)

        if method == "MOVE":
            if not self._exists(path):
                return httpx.Response(404)
            dest = self._local(request.headers["Destination"])
            if self._exists(dest) and request.headers.get("Overwrite") == "F":
                return httpx.Response(412)
            prefix = path + "/"

            def rebase(p: str) -> str:
                return dest + p[len(path):]

            self.dirs = {rebase(d) if d == path or d.startswith(prefix) else d for d in self.dirs}
            for f in [f for f in self.files if f == path or f.startswith(prefix)]:
                self.files[rebase(f)] = self.files.pop(f)
                self.mtimes[rebase(f)] = self.mtimes.pop(f)
            return httpx.Response(201)

        return httpx.Response(405)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def dav_server():
    return FakeDavServer()


@pytest.fixture
def remote_config():
    from models.database import RemoteConfig
    return RemoteConfig(enabled=True, url=REMOTE_URL, username="alice", password="secret")


@pytest.fixture
def remote_store(settings, remote_config, dav_server):
    from storage.remote_store import RemoteStore
    return RemoteStore(settings, remote_config, transport=dav_server.transport())


@pytest.fixture
def seeded_dav(dav_server):
    """A remote library with one novel using every layout variant."""
    dav_server.put("/Dune/Synopsis.md", "A desert planet.")
    dav_server.put("/Dune/Prologue.txt", "Sand and spice")
    dav_server.put("/Dune/cover.png", b"\x89PNG fake")
    dav_server.put("/Dune/Book_One/ch1.md", "one two three")
    dav_server.put("/Dune/Book_One/ch1.txt", "ignored duplicate text here")
    dav_server.put("/Dune/Book_One/ch2.txt", "four five")
    dav_server.mkdir("/Dune/Empty")
    return dav_server
