"""
Tests for backup export and import.
"""

import base64
import json

import pytest

from keepsake_storage import KeepsakeRepository, StorageConfig
from keepsake_storage.backup import (
    BACKUP_VERSION,
    BackupCodec,
    decode_data_url,
    encode_data_url,
)
from keepsake_storage.exceptions import ImportValidationError, StorageReadError
from keepsake_storage.models import Collection, Photo, day_iso


@pytest.fixture
def codec(repository) -> BackupCodec:
    return BackupCodec(repository)


async def populate(repo: KeepsakeRepository, make_image) -> None:
    await repo.update_settings(title="Ours", to_email="a@b.c")
    await repo.create("jar", {"text": "note"})
    await repo.create("museum", {"title": "Sea", "date": "2023-08-01"}, [make_image(), make_image()])
    await repo.create("journal", {"title": "Walk", "text": "Hills"}, [make_image()])
    await repo.send_message("Luca", "hello", [make_image()])


async def state(repo: KeepsakeRepository) -> dict:
    photos = {}
    for photo_id in await repo.blobs.list_ids():
        photos[photo_id] = (await repo.blobs.get(photo_id)).data
    return {
        "settings": repo.settings.to_dict(),
        "collections": {
            c.value: [r.to_dict() for r in repo.list_records(c)] for c in Collection
        },
        "photos": photos,
    }


class TestDataUrl:
    """Tests for data URL encoding."""

    def test_encode(self) -> None:
        assert encode_data_url(b"abc", "image/png") == "data:image/png;base64,YWJj"

    def test_decode(self) -> None:
        assert decode_data_url("data:image/png;base64,YWJj") == (b"abc", "image/png")

    def test_decode_percent_encoded(self) -> None:
        assert decode_data_url("data:text/plain,a%20b") == (b"a b", "text/plain")

    def test_decode_default_mime(self) -> None:
        assert decode_data_url("data:;base64,YWJj")[1] == "application/octet-stream"

    @pytest.mark.parametrize(
        "url", ["", "http://x", "data:image/png;base64", "data:image/png;base64,@@@", None]
    )
    def test_decode_rejects_malformed(self, url) -> None:
        with pytest.raises(ValueError):
            decode_data_url(url)


class TestExport:
    """Tests for export and write."""

    @pytest.mark.asyncio
    async def test_export_empty_state(self, codec) -> None:
        snapshot = await codec.export()
        document = snapshot.to_dict()

        assert document["version"] == BACKUP_VERSION
        assert document["photos"] == []
        for name in ("jar", "museum", "journal", "messages"):
            assert document[name] == []
        assert document["settings"]["title"] == "Per Anna"

    @pytest.mark.asyncio
    async def test_export_inlines_referenced_photos(self, repository, codec, make_image) -> None:
        await populate(repository, make_image)
        document = (await codec.export()).to_dict()

        assert len(document["photos"]) == 4
        first = document["photos"][0]
        assert set(first) == {"id", "mime", "createdAt", "dataUrl"}
        assert first["dataUrl"].startswith("data:image/jpeg;base64,")
        stored = await repository.blobs.get(first["id"])
        assert decode_data_url(first["dataUrl"])[0] == stored.data

    @pytest.mark.asyncio
    async def test_export_skips_missing_and_unreferenced(self, repository, codec, make_image) -> None:
        entry = await repository.create("museum", {}, [make_image(), make_image()])
        await repository.blobs.delete(entry.photo_ids[0])
        await repository.blobs.put(Photo(id="orphan", data=b"x"))

        document = (await codec.export()).to_dict()
        assert [p["id"] for p in document["photos"]] == [entry.photo_ids[1]]

    @pytest.mark.asyncio
    async def test_export_fills_missing_photo_timestamp(self, repository, codec, make_image) -> None:
        entry = await repository.create("museum", {}, [make_image()])
        photo_id = entry.photo_ids[0]
        stored = await repository.blobs.get(photo_id)
        await repository.blobs.put(Photo(id=photo_id, data=stored.data, mime=stored.mime, created_at=""))

        document = (await codec.export()).to_dict()

        assert document["exportedAt"]
        assert document["photos"][0]["createdAt"] == document["exportedAt"]

    @pytest.mark.asyncio
    async def test_export_does_not_mutate(self, repository, codec, make_image) -> None:
        await populate(repository, make_image)
        before = await state(repository)
        await codec.export()
        assert await state(repository) == before

    @pytest.mark.asyncio
    async def test_write_file(self, repository, codec, tmp_path, make_image) -> None:
        await populate(repository, make_image)

        path = await codec.write(tmp_path / "out")

        assert path.name == f"gift-backup-{day_iso()}.json"
        document = json.loads(path.read_text(encoding="utf-8"))
        assert document["settings"]["title"] == "Ours"
        assert len(document["photos"]) == 4


class TestImport:
    """Tests for import."""

    @pytest.mark.asyncio
    async def test_round_trip_is_noop(self, repository, codec, make_image) -> None:
        """Importing a fresh export leaves state unchanged."""
        await populate(repository, make_image)
        before = await state(repository)

        report = await codec.import_snapshot((await codec.export()).to_json())

        assert report.photos_restored == 4
        assert report.photos_skipped == 0
        assert await state(repository) == before

    @pytest.mark.asyncio
    async def test_restore_into_other_store(self, repository, codec, tmp_path, make_image) -> None:
        await populate(repository, make_image)
        path = await codec.write(tmp_path)
        before = await state(repository)

        config = StorageConfig(base_path=tmp_path / "other")
        async with await KeepsakeRepository.open(config) as other:
            report = await BackupCodec(other).read(path)
            assert report.records_restored["museum"] == 1
            assert await state(other) == before

        async with await KeepsakeRepository.open(config) as reopened:
            assert await state(reopened) == before

    @pytest.mark.asyncio
    async def test_import_empty_clears_collections(self, repository, codec, tmp_path, make_image) -> None:
        empty_config = StorageConfig(base_path=tmp_path / "empty")
        async with await KeepsakeRepository.open(empty_config) as empty:
            snapshot = (await BackupCodec(empty).export()).to_dict()

        await populate(repository, make_image)
        await codec.import_snapshot(snapshot)

        for collection in Collection:
            assert repository.list_records(collection) == []
        assert repository.settings.title == "Per Anna"

    @pytest.mark.asyncio
    async def test_missing_fields_use_defaults(self, repository, codec, make_image) -> None:
        await populate(repository, make_image)

        await codec.import_snapshot({"jar": [{"id": "j1", "text": "only"}]})

        assert [n.id for n in repository.list_records("jar")] == ["j1"]
        assert repository.list_records("messages") == []
        assert repository.list_records("museum") == []
        assert repository.settings.title == "Per Anna"

    @pytest.mark.asyncio
    async def test_missing_fields_seeded(self, tmp_path) -> None:
        config = StorageConfig(base_path=tmp_path, seed_examples=True)
        async with await KeepsakeRepository.open(config) as repo:
            await BackupCodec(repo).import_snapshot({"version": 1})
            assert len(repo.list_records("jar")) == 3
            assert repo.list_records("messages") == []

    @pytest.mark.asyncio
    async def test_malformed_photos_skipped(self, repository, codec) -> None:
        payload = base64.b64encode(b"bytes").decode()
        document = {
            "version": 1,
            "museum": [{"id": "e1", "title": "x", "photoIds": ["good"]}],
            "photos": [
                {"id": "good", "mime": "image/jpeg", "createdAt": "t",
                 "dataUrl": f"data:image/jpeg;base64,{payload}"},
                {"id": "no-url"},
                {"dataUrl": f"data:image/jpeg;base64,{payload}"},
                {"id": "bad", "dataUrl": "data:image/jpeg;base64,!!!"},
                "junk",
            ],
        }

        report = await codec.import_snapshot(document)

        assert report.photos_restored == 1
        assert report.photos_skipped == 4
        photo = await repository.blobs.get("good")
        assert photo.data == b"bytes"
        assert photo.created_at == "t"
        assert await repository.blobs.get("bad") is None

    @pytest.mark.asyncio
    async def test_photo_mime_defaults_from_url(self, repository, codec) -> None:
        await codec.import_snapshot(
            {"photos": [{"id": "p", "dataUrl": "data:image/png;base64,YWJj"}]}
        )
        assert (await repository.blobs.get("p")).mime == "image/png"

    @pytest.mark.parametrize(
        "document",
        [
            "{not json",
            b"\xff\xfe",
            "[]",
            "42",
            {"settings": "x"},
            {"jar": {"id": "1"}},
            {"photos": "nope"},
            {"version": 2},
            {"version": "1"},
            {"version": True},
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_documents_rejected(self, repository, codec, document) -> None:
        """Invalid documents raise before anything is written."""
        await repository.create("jar", {"text": "keep"})

        with pytest.raises(ImportValidationError):
            await codec.import_snapshot(document)

        assert [n.text for n in repository.list_records("jar")] == ["keep"]

    @pytest.mark.asyncio
    async def test_read_missing_file(self, codec, tmp_path) -> None:
        with pytest.raises(StorageReadError):
            await codec.read(tmp_path / "missing.json")
