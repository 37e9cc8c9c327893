"""Enumerations shared by the storage backends."""

from enum import Enum


class Origin(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"

    @classmethod
    def from_flag(cls, remote: bool) -> "Origin":
        return cls.REMOTE if remote else cls.LOCAL
