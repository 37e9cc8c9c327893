"""Async filesystem helpers built on aiofiles."""

import asyncio
import os
import shutil
import uuid
from pathlib import Path

import aiofiles
import aiofiles.os


async def read_text(path: Path) -> str:
    """Read UTF-8 text exactly as stored.

    Line endings are not translated and undecodable bytes become U+FFFD, so
    one damaged chapter cannot break listings or stat refreshes.
    """
    async with aiofiles.open(path, "r", encoding="utf-8", errors="replace", newline="") as f:
        return await f.read()


async def write_text(path: Path, content: str) -> None:
    """Write UTF-8 text without translating line endings."""
    async with aiofiles.open(path, "w", encoding="utf-8", newline="") as f:
        await f.write(content)


async def write_text_atomic(path: Path, content: str) -> None:
    """Write to a sibling temp file and rename it over ``path``."""
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        await write_text(tmp, content)
        await aiofiles.os.replace(tmp, path)
    except BaseException:
        if await aiofiles.os.path.exists(tmp):
            await aiofiles.os.remove(tmp)
        raise


async def create_text(path: Path, content: str = "") -> bool:
    """Create ``path`` only if it does not exist. Returns True if created."""
    try:
        async with aiofiles.open(path, "x", encoding="utf-8", newline="") as f:
            await f.write(content)
    except FileExistsError:
        return False
    return True


async def list_dirs(path: Path) -> list[str]:
    """Names of the immediate subdirectories of ``path``."""
    names = await aiofiles.os.listdir(path)
    result = []
    for name in names:
        if await aiofiles.os.path.isdir(path / name):
            result.append(name)
    return sorted(result)


async def list_files(path: Path, suffix: str = "") -> list[str]:
    """Names of the regular files directly inside ``path``."""
    names = await aiofiles.os.listdir(path)
    result = []
    for name in names:
        if name.endswith(suffix) and await aiofiles.os.path.isfile(path / name):
            result.append(name)
    return sorted(result)


async def is_dir(path: Path) -> bool:
    """Whether ``path`` is an existing directory (symlinks followed)."""
    return await aiofiles.os.path.isdir(path)


async def is_file(path: Path) -> bool:
    """Whether ``path`` is an existing regular file (symlinks followed)."""
    return await aiofiles.os.path.isfile(path)


async def mtime(path: Path) -> float:
    """Modification time of ``path`` in seconds since the epoch."""
    stat = await aiofiles.os.stat(path)
    return stat.st_mtime


async def remove_tree(path: Path) -> None:
    """Recursively delete ``path``; a missing path is not an error."""
    try:
        await asyncio.to_thread(shutil.rmtree, path)
    except FileNotFoundError:
        pass


async def move(src: Path, dst: Path) -> None:
    """Rename, falling back to copy-and-delete across filesystems."""
    try:
        await aiofiles.os.rename(src, dst)
    except OSError:
        await asyncio.to_thread(shutil.move, os.fspath(src), os.fspath(dst))
