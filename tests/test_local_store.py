"""Tests for the filesystem-backed novel store."""

import json

import pytest

from config.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from models.novel import CoverUpload


class TestNovels:
    @pytest.mark.asyncio
    async def test_create_novel_counts_synopsis(self, local_store):
        novel = await local_store.create_novel("Dune", "A desert planet.")
        assert novel.title == "Dune"
        assert novel.synopsis == "A desert planet."
        assert novel.word_count == 3
        assert novel.book_count == 1
        assert novel.remote is False
        assert novel.cover == "/images/default-cover.svg"
        assert novel.id.isdigit()

    @pytest.mark.asyncio
    async def test_create_novel_layout(self, local_store, settings):
        novel = await local_store.create_novel("Dune", "A desert planet.")
        novel_dir = settings.novels_dir / novel.id
        assert (novel_dir / "Main" / "Synopsis.md").read_text(encoding="utf-8") == "A desert planet."
        meta = json.loads((novel_dir / "meta.json").read_text(encoding="utf-8"))
        assert meta["title"] == "Dune"
        assert meta["wordCount"] == 3
        assert meta["bookCount"] == 1

    @pytest.mark.asyncio
    async def test_create_requires_title(self, local_store):
        with pytest.raises(InvalidArgumentError):
            await local_store.create_novel("   ")

    @pytest.mark.asyncio
    async def test_ids_are_unique(self, local_store):
        first = await local_store.create_novel("One")
        second = await local_store.create_novel("Two")
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_create_with_cover(self, local_store, settings, tmp_path):
        upload = tmp_path / "upload.bin"
        upload.write_bytes(b"img")
        novel = await local_store.create_novel("Dune", cover=CoverUpload(upload, "art.PNG"))
        assert novel.cover == f"/data/novels/{novel.id}/cover.png"
        assert (settings.novels_dir / novel.id / "cover.png").read_bytes() == b"img"
        assert not upload.exists()

    @pytest.mark.asyncio
    async def test_update_is_partial(self, local_store):
        novel = await local_store.create_novel("Dune", "A desert planet.")
        updated = await local_store.update_novel(novel.id, title="Dune Messiah")
        assert updated.title == "Dune Messiah"
        assert updated.synopsis == "A desert planet."

        updated = await local_store.update_novel(novel.id, synopsis="Sequel.")
        assert updated.title == "Dune Messiah"
        assert updated.synopsis == "Sequel."
        assert updated.word_count == 1
        assert await local_store.read_chapter(novel.id, "Main", "Synopsis") == "Sequel."

    @pytest.mark.asyncio
    async def test_update_rejects_empty_title(self, local_store):
        novel = await local_store.create_novel("Dune")
        with pytest.raises(InvalidArgumentError):
            await local_store.update_novel(novel.id, title="")

    @pytest.mark.asyncio
    async def test_update_missing_novel(self, local_store):
        with pytest.raises(NotFoundError):
            await local_store.update_novel("123", title="x")

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, local_store):
        novel = await local_store.create_novel("Dune")
        await local_store.delete_novel(novel.id)
        await local_store.delete_novel(novel.id)
        assert await local_store.list_novels() == []
        with pytest.raises(NotFoundError):
            await local_store.get_novel(novel.id)

    @pytest.mark.asyncio
    async def test_invalid_id_rejected_before_io(self, local_store):
        with pytest.raises(InvalidArgumentError):
            await local_store.get_novel("../etc")
        with pytest.raises(InvalidArgumentError):
            await local_store.delete_novel("..")


class TestListing:
    @pytest.mark.asyncio
    async def test_sorted_newest_first(self, local_store, settings):
        older = await local_store.create_novel("Older")
        newer = await local_store.create_novel("Newer")
        for novel_id, stamp in ((older.id, "2020-01-01T00:00:00.000Z"), (newer.id, "2024-01-01T00:00:00.000Z")):
            path = settings.novels_dir / novel_id / "meta.json"
            meta = json.loads(path.read_text(encoding="utf-8"))
            meta["lastModified"] = stamp
            path.write_text(json.dumps(meta), encoding="utf-8")

        novels = await local_store.list_novels()
        assert [n.title for n in novels] == ["Newer", "Older"]

    @pytest.mark.asyncio
    async def test_skips_broken_entries(self, local_store, settings):
        good = await local_store.create_novel("Good")
        (settings.novels_dir / "no_meta").mkdir()
        corrupt = settings.novels_dir / "corrupt"
        corrupt.mkdir()
        (corrupt / "meta.json").write_text("{oops", encoding="utf-8")

        novels = await local_store.list_novels()
        assert [n.id for n in novels] == [good.id]

    @pytest.mark.asyncio
    async def test_undecodable_text_does_not_break_listing(self, local_store, settings):
        good = await local_store.create_novel("Good", "fine words")
        bad = await local_store.create_novel("Bad", "soon broken")
        (settings.novels_dir / bad.id / "Main" / "Synopsis.md").write_bytes(b"\xff\xfe bad")

        await local_store.write_chapter(bad.id, "Main", "Ch1", "still writable")
        novels = await local_store.list_novels()
        assert {n.id for n in novels} == {good.id, bad.id}

        detail = await local_store.get_novel(bad.id)
        assert "�" in detail.novel.synopsis
        assert await local_store.read_chapter(bad.id, "Main", "Ch1") == "still writable"

    @pytest.mark.asyncio
    async def test_migrates_missing_stats(self, local_store, settings):
        novel_dir = settings.novels_dir / "legacy"
        (novel_dir / "Main").mkdir(parents=True)
        (novel_dir / "Main" / "Synopsis.md").write_text("old story here", encoding="utf-8")
        (novel_dir / "meta.json").write_text(
            json.dumps({"title": "Legacy", "created": "2019-01-01T00:00:00.000Z",
                        "lastModified": "2019-01-01T00:00:00.000Z"}),
            encoding="utf-8",
        )

        [novel] = await local_store.list_novels()
        assert novel.word_count == 3
        assert novel.book_count == 1
        assert novel.last_modified == "2019-01-01T00:00:00.000Z"
        meta = json.loads((novel_dir / "meta.json").read_text(encoding="utf-8"))
        assert meta["wordCount"] == 3

    @pytest.mark.asyncio
    async def test_empty_root(self, local_store):
        assert await local_store.list_novels() == []


class TestBooksAndChapters:
    @pytest.mark.asyncio
    async def test_new_novel_has_main_with_synopsis(self, local_store):
        novel = await local_store.create_novel("T", "S")
        detail = await local_store.get_novel(novel.id)
        assert [b.name for b in detail.books] == ["Main"]
        assert [c.name for c in detail.books[0].chapters] == ["Synopsis"]
        assert await local_store.read_chapter(novel.id, "Main", "Synopsis") == "S"

    @pytest.mark.asyncio
    async def test_dune_scenario(self, local_store):
        novel = await local_store.create_novel("Dune", "A desert planet.")
        assert novel.word_count == 3
        await local_store.write_chapter(novel.id, "Main", "Ch1", "Spice must flow.")
        [listed] = await local_store.list_novels()
        assert listed.word_count == 6
        assert listed.book_count == 1

    @pytest.mark.asyncio
    async def test_write_updates_word_count(self, local_store):
        novel = await local_store.create_novel("Dune", "A desert planet.")
        await local_store.create_chapter(novel.id, "Main", "Ch1")
        await local_store.write_chapter(novel.id, "Main", "Ch1", "one two three")

        detail = await local_store.get_novel(novel.id)
        assert detail.novel.word_count == 6
        main = detail.book("Main")
        assert [c.name for c in main.chapters] == ["Synopsis", "Ch1"]
        assert main.chapters[1].word_count == 3

    @pytest.mark.asyncio
    async def test_read_write_round_trip(self, local_store):
        novel = await local_store.create_novel("Dune")
        text = "Line one\n\nLine two with ünïcode"
        await local_store.write_chapter(novel.id, "Main", "Ch1", text)
        assert await local_store.read_chapter(novel.id, "Main", "Ch1") == text

    @pytest.mark.asyncio
    async def test_line_endings_kept(self, local_store, settings):
        novel = await local_store.create_novel("Dune")
        text = "line one\r\nline two\rthree"
        await local_store.write_chapter(novel.id, "Main", "Ch1", text)
        assert await local_store.read_chapter(novel.id, "Main", "Ch1") == text
        stored = (settings.novels_dir / novel.id / "Main" / "Ch1.md").read_bytes()
        assert stored == text.encode("utf-8")

    @pytest.mark.asyncio
    async def test_books_sorted_main_first(self, local_store):
        novel = await local_store.create_novel("Dune")
        await local_store.create_book(novel.id, "zeta")
        await local_store.create_book(novel.id, "Alpha")

        detail = await local_store.get_novel(novel.id)
        assert [b.name for b in detail.books] == ["Main", "Alpha", "zeta"]
        assert detail.novel.book_count == 3

    @pytest.mark.asyncio
    async def test_create_book_is_idempotent(self, local_store):
        novel = await local_store.create_novel("Dune")
        await local_store.create_book(novel.id, "Part Two")
        await local_store.create_book(novel.id, "Part Two")
        detail = await local_store.get_novel(novel.id)
        assert detail.novel.book_count == 2

    @pytest.mark.asyncio
    async def test_create_chapter_keeps_existing_text(self, local_store):
        novel = await local_store.create_novel("Dune")
        await local_store.write_chapter(novel.id, "Main", "Ch1", "keep me")
        await local_store.create_chapter(novel.id, "Main", "Ch1")
        assert await local_store.read_chapter(novel.id, "Main", "Ch1") == "keep me"

    @pytest.mark.asyncio
    async def test_create_chapter_in_missing_book(self, local_store):
        novel = await local_store.create_novel("Dune")
        with pytest.raises(NotFoundError):
            await local_store.create_chapter(novel.id, "Nope", "Ch1")

    @pytest.mark.asyncio
    async def test_main_book_is_protected(self, local_store):
        novel = await local_store.create_novel("Dune")
        with pytest.raises(ConflictError, match="Main"):
            await local_store.delete_book(novel.id, "Main")

    @pytest.mark.asyncio
    async def test_synopsis_is_protected(self, local_store):
        novel = await local_store.create_novel("Dune", "A desert planet.")
        with pytest.raises(ConflictError, match="Synopsis"):
            await local_store.delete_chapter(novel.id, "Main", "Synopsis")
        assert await local_store.read_chapter(novel.id, "Main", "Synopsis") == "A desert planet."

    @pytest.mark.asyncio
    async def test_delete_book_updates_stats(self, local_store):
        novel = await local_store.create_novel("Dune")
        await local_store.create_book(novel.id, "Part Two")
        await local_store.write_chapter(novel.id, "Part Two", "Ch1", "a b c d")
        await local_store.delete_book(novel.id, "Part Two")

        [listed] = await local_store.list_novels()
        assert listed.book_count == 1
        assert listed.word_count == 0

    @pytest.mark.asyncio
    async def test_delete_missing_targets(self, local_store):
        novel = await local_store.create_novel("Dune")
        with pytest.raises(NotFoundError):
            await local_store.delete_book(novel.id, "Nope")
        with pytest.raises(NotFoundError):
            await local_store.delete_chapter(novel.id, "Main", "Nope")

    @pytest.mark.asyncio
    async def test_delete_chapter(self, local_store):
        novel = await local_store.create_novel("Dune")
        await local_store.write_chapter(novel.id, "Main", "Ch1", "x y")
        await local_store.delete_chapter(novel.id, "Main", "Ch1")
        with pytest.raises(NotFoundError):
            await local_store.read_chapter(novel.id, "Main", "Ch1")

    @pytest.mark.asyncio
    async def test_traversal_names_rejected(self, local_store):
        novel = await local_store.create_novel("Dune")
        with pytest.raises(InvalidArgumentError):
            await local_store.read_chapter(novel.id, "..", "meta")
        with pytest.raises(InvalidArgumentError):
            await local_store.write_chapter(novel.id, "Main", "../../x", "pwned")
        with pytest.raises(InvalidArgumentError):
            await local_store.create_book(novel.id, "a/b")
