"""Tests for the local sidecar and its cached stats."""

import asyncio
import json
import logging

import pytest

from config.exceptions import NotFoundError, NovelStoreError
from models.novel import NovelMeta
from storage.metadata import MetadataUpdater, compute_stats, now_iso


def _make_novel(root, meta: dict, books: dict):
    novel_dir = root / "1"
    novel_dir.mkdir(parents=True)
    (novel_dir / "meta.json").write_text(json.dumps(meta), encoding="utf-8")
    for book, chapters in books.items():
        (novel_dir / book).mkdir()
        for name, text in chapters.items():
            (novel_dir / book / f"{name}.md").write_text(text, encoding="utf-8")
    return novel_dir


class TestNovelMeta:
    def test_round_trip_keeps_unknown_keys(self):
        data = {"title": "Dune", "created": "c", "lastModified": "m", "wordCount": 3, "bookCount": 1, "genre": "sf"}
        meta = NovelMeta.from_dict(data)
        assert meta.word_count == 3
        assert meta.extra == {"genre": "sf"}
        assert meta.to_dict()["genre"] == "sf"
        assert meta.to_dict()["lastModified"] == "m"

    def test_old_record_has_no_stats(self):
        meta = NovelMeta.from_dict({"title": "Old"})
        assert not meta.has_stats
        assert "wordCount" not in meta.to_dict()


def test_now_iso_format():
    value = now_iso()
    assert value.endswith("Z")
    assert len(value) == len("2024-01-31T12:00:00.000Z")


class TestComputeStats:
    @pytest.mark.asyncio
    async def test_counts_md_files_only(self, tmp_path):
        novel_dir = _make_novel(tmp_path, {"title": "x"}, {
            "Main": {"Synopsis": "a b c"},
            "Two": {"ch1": "d e"},
            "Empty": {},
        })
        (novel_dir / "Two" / "notes.txt").write_text("ignored words here", encoding="utf-8")
        stats = await compute_stats(novel_dir)
        assert stats.word_count == 5
        assert stats.book_count == 3
        assert stats.chapter_count == 2


class TestMetadataUpdater:
    @pytest.mark.asyncio
    async def test_read_missing_raises_not_found(self, tmp_path):
        with pytest.raises(NotFoundError):
            await MetadataUpdater().read(tmp_path / "nope")

    @pytest.mark.asyncio
    async def test_read_corrupt_raises(self, tmp_path):
        novel_dir = tmp_path / "1"
        novel_dir.mkdir()
        (novel_dir / "meta.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(NovelStoreError, match="Corrupt"):
            await MetadataUpdater().read(novel_dir)

    @pytest.mark.asyncio
    async def test_refresh_applies_changes_and_touches(self, tmp_path):
        novel_dir = _make_novel(
            tmp_path,
            {"title": "Dune", "created": "2020-01-01T00:00:00.000Z", "lastModified": "2020-01-01T00:00:00.000Z"},
            {"Main": {"Synopsis": "A desert planet."}},
        )
        meta = await MetadataUpdater().refresh(novel_dir, title="Dune Messiah")
        assert meta.title == "Dune Messiah"
        assert meta.word_count == 3
        assert meta.book_count == 1
        assert meta.last_modified > "2020-01-01T00:00:00.000Z"
        on_disk = json.loads((novel_dir / "meta.json").read_text(encoding="utf-8"))
        assert on_disk["title"] == "Dune Messiah"
        assert on_disk["wordCount"] == 3

    @pytest.mark.asyncio
    async def test_ensure_stats_keeps_last_modified(self, tmp_path):
        novel_dir = _make_novel(
            tmp_path,
            {"title": "Old", "lastModified": "2020-01-01T00:00:00.000Z"},
            {"Main": {"Synopsis": "one two"}, "Two": {}},
        )
        meta = await MetadataUpdater().ensure_stats(novel_dir)
        assert meta.word_count == 2
        assert meta.book_count == 2
        assert meta.last_modified == "2020-01-01T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_refresh_logs_chapter_count(self, tmp_path, caplog):
        novel_dir = _make_novel(
            tmp_path,
            {"title": "Dune"},
            {"Main": {"Synopsis": "a b", "ch1": "c"}, "Two": {"ch1": "d"}},
        )
        with caplog.at_level(logging.DEBUG, logger="storage.metadata"):
            await MetadataUpdater().refresh(novel_dir)
        assert "words=4 books=2 chapters=3" in caplog.text

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_leave_valid_sidecar(self, tmp_path):
        novel_dir = _make_novel(tmp_path, {"title": "x"}, {"Main": {"Synopsis": "a"}})
        updater = MetadataUpdater()
        await asyncio.gather(*(updater.refresh(novel_dir) for _ in range(10)))
        meta = await updater.read(novel_dir)
        assert meta.word_count == 1
        assert not [p for p in novel_dir.iterdir() if p.name.endswith(".tmp")]
