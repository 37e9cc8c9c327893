"""SQLite user database: accounts and per-user remote credentials."""

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config.exceptions import DatabaseError

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT UNIQUE NOT NULL,
    password TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS user_settings (
    user_id INTEGER PRIMARY KEY REFERENCES users(id),
    theme TEXT DEFAULT 'dark'
);
"""

# Columns added after the first release (idempotent)
_MIGRATION_SQL = [
    "ALTER TABLE user_settings ADD COLUMN remote_enabled INTEGER DEFAULT 0",
    "ALTER TABLE user_settings ADD COLUMN remote_url TEXT DEFAULT ''",
    "ALTER TABLE user_settings ADD COLUMN remote_username TEXT DEFAULT ''",
    "ALTER TABLE user_settings ADD COLUMN remote_password TEXT DEFAULT ''",
]

_REMOTE_FIELDS = ("enabled", "url", "username", "password")


@dataclass
class User:
    id: int
    username: str
    password: str
    created_at: Optional[str] = None


@dataclass
class RemoteConfig:
    """WebDAV connection stored for one user."""
    enabled: bool = False
    url: str = ""
    username: str = ""
    password: str = ""

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.url.strip())

    @property
    def base_url(self) -> str:
        return self.url.strip().rstrip("/")


class Database:
    """SQLite database manager for users and their settings."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_db(self):
        try:
            with self._get_conn() as conn:
                conn.executescript(_CREATE_TABLES_SQL)
        except sqlite3.Error as e:
            raise DatabaseError("Failed to initialize user database", {"path": str(self.db_path)}) from e
        self._migrate()

    def _migrate(self):
        """Apply idempotent column migrations."""
        with self._get_conn() as conn:
            for sql in _MIGRATION_SQL:
                try:
                    conn.execute(sql)
                except sqlite3.OperationalError as e:
                    logger.debug("Migration skipped (already applied): %s", e)

    def backup_database(self, target_path: str | Path) -> Path:
        """Write a consistent copy of the database.

        Uses the sqlite online backup API so a copy taken while another
        connection is writing is still a valid database file.

        Args:
            target_path: Path for the backup file.

        Returns:
            Path to the backup file.
        """
        target = Path(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        src = self._get_conn()
        dst = sqlite3.connect(str(target))
        try:
            src.backup(dst)
        except sqlite3.Error as e:
            raise DatabaseError("Database backup failed", {"target": str(target)}) from e
        finally:
            dst.close()
            src.close()
        logger.info("Database backed up to %s", target)
        return target

    # ---- Users ----

    def create_user(self, username: str, password_hash: str) -> int:
        try:
            with self._get_conn() as conn:
                cursor = conn.execute(
                    "INSERT INTO users (username, password) VALUES (?, ?)",
                    (username, password_hash),
                )
                user_id = cursor.lastrowid
                conn.execute(
                    "INSERT OR IGNORE INTO user_settings (user_id) VALUES (?)",
                    (user_id,),
                )
                return user_id
        except sqlite3.IntegrityError as e:
            raise DatabaseError("User already exists", {"username": username}) from e

    def get_user(self, user_id: int) -> Optional[User]:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            if not row:
                return None
            return User(
                id=row["id"], username=row["username"],
                password=row["password"], created_at=row["created_at"],
            )

    # ---- Remote credentials ----

    def get_remote_config(self, user_id: int) -> RemoteConfig:
        """Return the user's stored WebDAV connection (defaults when unset)."""
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT remote_enabled, remote_url, remote_username, remote_password "
                "FROM user_settings WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if not row:
            return RemoteConfig()
        return RemoteConfig(
            enabled=bool(row["remote_enabled"]),
            url=row["remote_url"] or "",
            username=row["remote_username"] or "",
            password=row["remote_password"] or "",
        )

    def update_remote_config(self, user_id: int, **fields) -> RemoteConfig:
        """Partially update the user's WebDAV connection.

        Only keyword arguments that are given are written; a settings row is
        inserted when the user has none yet.
        """
        unknown = set(fields) - set(_REMOTE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown remote settings: {', '.join(sorted(unknown))}")

        updates = []
        values = []
        for name in _REMOTE_FIELDS:
            if name in fields:
                value = fields[name]
                if name == "enabled":
                    value = 1 if value else 0
                updates.append(f"remote_{name} = ?")
                values.append(value if value is not None else "")

        with self._get_conn() as conn:
            conn.execute("INSERT OR IGNORE INTO user_settings (user_id) VALUES (?)", (user_id,))
            if updates:
                conn.execute(
                    f"UPDATE user_settings SET {', '.join(updates)} WHERE user_id = ?",
                    (*values, user_id),
                )
        return self.get_remote_config(user_id)
