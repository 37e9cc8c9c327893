"""Configuration settings loaded from .env file."""

from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, loaded from .env file.

    Every path may be overridden independently. Paths left unset are placed
    under ``data_dir`` so a single directory holds novels, backups, logs and
    the user database.
    """

    # Storage roots
    data_dir: Path = Path("./data")
    novels_dir: Path | None = None
    backups_dir: Path | None = None
    temp_dir: Path | None = None

    # User database (accounts and remote credentials)
    users_db_path: Path | None = None

    # Remote (WebDAV)
    remote_timeout: float = 30.0
    remote_concurrency: int = 8

    # Cover URLs handed to the rendering layer
    default_cover: str = "/images/default-cover.svg"
    local_cover_prefix: str = "/data/novels"
    remote_cover_prefix: str = "/remote/cover"

    # Backups
    backup_compress_level: int = 9

    # Logging
    log_dir: Path | None = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("remote_timeout")
    @classmethod
    def validate_remote_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("remote_timeout must be > 0")
        return v

    @field_validator("remote_concurrency")
    @classmethod
    def validate_remote_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("remote_concurrency must be >= 1")
        return v

    @field_validator("backup_compress_level")
    @classmethod
    def validate_compress_level(cls, v: int) -> int:
        if not 0 <= v <= 9:
            raise ValueError("backup_compress_level must be between 0 and 9")
        return v

    @model_validator(mode="after")
    def resolve_paths(self) -> "Settings":
        """Derive unset paths from ``data_dir`` and create their parent directories."""
        defaults = {
            "novels_dir": "novels",
            "backups_dir": "backups",
            "temp_dir": "temp",
            "users_db_path": "users.db",
            "log_dir": "logs",
        }
        for name, leaf in defaults.items():
            path = getattr(self, name)
            if path is None:
                path = self.data_dir / leaf
                setattr(self, name, path)
            path.parent.mkdir(parents=True, exist_ok=True)
        return self


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
