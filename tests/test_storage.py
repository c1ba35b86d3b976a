"""Tests for the content stores."""

import stat
from pathlib import Path

import pytest

from media_catalog.errors import BlobWriteFailure, InputInvalid
from media_catalog.storage import FilesystemContentStore, InMemoryContentStore
from media_catalog.storage.base import normalize_storage_path


class TestNormalizeStoragePath:
    def test_plain_path(self) -> None:
        assert normalize_storage_path("folder/day1/a.jpg") == "folder/day1/a.jpg"

    def test_strips_leading_slash_and_dots(self) -> None:
        assert normalize_storage_path("/folder/./day1//a.jpg") == "folder/day1/a.jpg"

    def test_backslashes(self) -> None:
        assert normalize_storage_path("day1\\a.jpg") == "day1/a.jpg"

    @pytest.mark.parametrize("path", ["", "   ", "/", "./"])
    def test_empty(self, path: str) -> None:
        with pytest.raises(InputInvalid):
            normalize_storage_path(path)

    def test_parent_segments_rejected(self) -> None:
        with pytest.raises(InputInvalid, match=r"\.\."):
            normalize_storage_path("folder/../../etc/passwd")


class TestFilesystemContentStore:
    @pytest.fixture
    def store(self, tmp_path: Path) -> FilesystemContentStore:
        return FilesystemContentStore(tmp_path / "blobs", "http://test/media/")

    async def test_put_writes_bytes(self, store: FilesystemContentStore) -> None:
        address = await store.put("f1/day1/a.jpg", b"jpeg bytes", "image/jpeg")
        assert address == "f1/day1/a.jpg"
        assert (store.root / "f1" / "day1" / "a.jpg").read_bytes() == b"jpeg bytes"
        assert await store.read(address) == b"jpeg bytes"

    async def test_put_overwrites(self, store: FilesystemContentStore) -> None:
        await store.put("a.txt", b"first", "text/plain")
        await store.put("a.txt", b"second", "text/plain")
        assert await store.read("a.txt") == b"second"

    async def test_put_failure_is_blob_write_failure(
        self, store: FilesystemContentStore
    ) -> None:
        store.root.mkdir(parents=True)
        # A file where a directory is needed
        (store.root / "taken").write_bytes(b"")
        with pytest.raises(BlobWriteFailure):
            await store.put("taken/a.jpg", b"data", "image/jpeg")

    async def test_make_public_sets_world_readable(self, store: FilesystemContentStore) -> None:
        address = await store.put("a.jpg", b"data", "image/jpeg")
        await store.make_public(address)
        mode = (store.root / address).stat().st_mode
        assert mode & stat.S_IROTH

    def test_public_url_is_quoted(self, store: FilesystemContentStore) -> None:
        assert (
            store.public_url("f1/第1回 photo.jpg")
            == "http://test/media/f1/%E7%AC%AC1%E5%9B%9E%20photo.jpg"
        )

    async def test_delete(self, store: FilesystemContentStore) -> None:
        address = await store.put("a.jpg", b"data", "image/jpeg")
        await store.delete(address)
        assert not (store.root / address).exists()

    async def test_delete_missing_is_not_an_error(self, store: FilesystemContentStore) -> None:
        await store.delete("never/written.jpg")


class TestInMemoryContentStore:
    async def test_round_trip(self) -> None:
        store = InMemoryContentStore("http://test/media")
        address = await store.put("/f1/a.jpg", b"data", "image/jpeg")
        await store.make_public(address)

        assert address == "f1/a.jpg"
        assert await store.read(address) == b"data"
        assert store.content_types[address] == "image/jpeg"
        assert address in store.public
        assert store.public_url(address) == "http://test/media/f1/a.jpg"

        await store.delete(address)
        assert address not in store.objects
        await store.delete(address)
