"""Unit tests for the filesystem object store."""

from pathlib import Path

import pytest

from sharezone.core.exceptions import InvalidPathError, ObjectNotFoundError, StorageError
from sharezone.core.interfaces import ObjectStore
from sharezone.core.storage import LocalObjectStore


@pytest.fixture
def store(tmp_path: Path) -> LocalObjectStore:
    return LocalObjectStore(str(tmp_path / "objects"))


def test_satisfies_protocol(store):
    assert isinstance(store, ObjectStore)


@pytest.mark.asyncio
async def test_put_get_delete(store):
    await store.put("u1/123_report.pdf", b"payload")

    assert store.has("u1/123_report.pdf")
    assert await store.get("u1/123_report.pdf") == b"payload"

    await store.delete("u1/123_report.pdf")
    assert not store.has("u1/123_report.pdf")


@pytest.mark.asyncio
async def test_put_replaces_existing(store):
    await store.put("u1/a", b"first")
    await store.put("u1/a", b"second")
    assert await store.get("u1/a") == b"second"


@pytest.mark.asyncio
async def test_no_temp_files_left_behind(store):
    await store.put("u1/a", b"x" * 1024)
    leftovers = [p.name for p in (store.root / "u1").iterdir() if p.name.startswith(".upload-")]
    assert leftovers == []


@pytest.mark.asyncio
async def test_get_missing_object(store):
    with pytest.raises(ObjectNotFoundError):
        await store.get("u1/missing")


@pytest.mark.asyncio
async def test_delete_missing_object(store):
    with pytest.raises(StorageError):
        await store.delete("u1/missing")


@pytest.mark.parametrize("path", ["", "/etc/passwd", "../outside", "u1/../../outside"])
def test_rejects_paths_outside_root(store, path):
    with pytest.raises(InvalidPathError):
        store.object_path(path)
