"""
Tests for the JSON record store.
"""

import json

import pytest

from keepsake_storage.exceptions import StorageReadError, StorageWriteError
from keepsake_storage.models import RecordKey
from keepsake_storage.records import RecordStore, read_json, remove_file, write_json_atomic


class TestFileOps:
    """Tests for low-level JSON file operations."""

    @pytest.mark.asyncio
    async def test_write_then_read(self, tmp_path) -> None:
        """Written documents read back unchanged."""
        path = tmp_path / "nested" / "doc.json"
        await write_json_atomic(path, {"title": "Caffè", "items": [1, 2]})

        assert await read_json(path) == {"title": "Caffè", "items": [1, 2]}

    @pytest.mark.asyncio
    async def test_write_leaves_no_temp_files(self, tmp_path) -> None:
        """Atomic writes clean up their temp file."""
        path = tmp_path / "doc.json"
        await write_json_atomic(path, [1])
        await write_json_atomic(path, [2])

        assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]

    @pytest.mark.asyncio
    async def test_read_missing_returns_default(self, tmp_path) -> None:
        """Missing files yield the default."""
        assert await read_json(tmp_path / "nope.json", default=[]) == []

    @pytest.mark.asyncio
    async def test_read_blank_returns_default(self, tmp_path) -> None:
        """Blank files yield the default."""
        path = tmp_path / "blank.json"
        path.write_text("  \n")
        assert await read_json(path, default={}) == {}

    @pytest.mark.asyncio
    async def test_read_corrupt_raises(self, tmp_path) -> None:
        """Corrupt JSON raises StorageReadError."""
        path = tmp_path / "bad.json"
        path.write_text("{not json")

        with pytest.raises(StorageReadError) as exc_info:
            await read_json(path)
        assert exc_info.value.key == "bad"

    @pytest.mark.asyncio
    async def test_write_unserializable_raises(self, tmp_path) -> None:
        """Values JSON cannot encode raise StorageWriteError."""
        with pytest.raises(StorageWriteError):
            await write_json_atomic(tmp_path / "doc.json", {"value": object()})
        assert not (tmp_path / "doc.json").exists()

    @pytest.mark.asyncio
    async def test_remove_file(self, tmp_path) -> None:
        """remove_file reports whether the file existed."""
        path = tmp_path / "doc.json"
        path.write_text("[]")

        assert await remove_file(path) is True
        assert await remove_file(path) is False


class TestRecordStore:
    """Tests for RecordStore."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, tmp_path) -> None:
        """Records round-trip by key."""
        store = RecordStore(tmp_path)
        await store.set(RecordKey.JAR, [{"id": "1", "text": "hi"}])

        assert await store.get(RecordKey.JAR) == [{"id": "1", "text": "hi"}]
        stored = json.loads((tmp_path / "gift_jar_v1.json").read_text())
        assert stored == [{"id": "1", "text": "hi"}]

    @pytest.mark.asyncio
    async def test_get_missing_returns_default(self, tmp_path) -> None:
        """Unknown keys return the caller's default."""
        store = RecordStore(tmp_path)
        assert await store.get(RecordKey.MUSEUM) is None
        assert await store.get(RecordKey.MUSEUM, []) == []

    @pytest.mark.asyncio
    async def test_get_corrupt_returns_default(self, tmp_path) -> None:
        """Corrupt records are recovered as the default."""
        (tmp_path / "gift_settings_v1.json").write_text("{{{")
        store = RecordStore(tmp_path)

        assert await store.get(RecordKey.SETTINGS, {"title": "x"}) == {"title": "x"}

    @pytest.mark.asyncio
    async def test_set_overwrites(self, tmp_path) -> None:
        """set replaces the whole document."""
        store = RecordStore(tmp_path)
        await store.set("custom", {"a": 1})
        await store.set("custom", {"b": 2})

        assert await store.get("custom") == {"b": 2}

    @pytest.mark.asyncio
    async def test_remove(self, tmp_path) -> None:
        """remove deletes the record."""
        store = RecordStore(tmp_path)
        await store.set(RecordKey.MICRO, {"text": "x"})

        assert await store.remove(RecordKey.MICRO) is True
        assert await store.get(RecordKey.MICRO) is None
        assert await store.remove(RecordKey.MICRO) is False

    def test_rejects_path_like_keys(self, tmp_path) -> None:
        """Keys cannot escape the store directory."""
        store = RecordStore(tmp_path)
        for key in ("", "..", "a/b", "a\\b"):
            with pytest.raises(ValueError):
                store._path(key)

    @pytest.mark.asyncio
    async def test_ensure_ready_creates_directory(self, tmp_path) -> None:
        """ensure_ready creates the base directory."""
        store = RecordStore(tmp_path / "records")
        await store.ensure_ready()
        assert (tmp_path / "records").is_dir()
