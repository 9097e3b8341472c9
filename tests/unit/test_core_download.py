"""Unit tests for the Download Orchestrator."""

from pathlib import Path
from unittest.mock import patch

import pytest

from sharezone.core.access import AccessGate
from sharezone.core.download import DownloadOrchestrator
from sharezone.core.exceptions import (
    AccessDeniedError,
    DecryptionFailed,
    FileRecordNotFoundError,
    RetrievalFailed,
    StorageError,
)
from sharezone.core.models import FileRecord, SharePolicy
from sharezone.core.storage import LocalObjectStore
from sharezone.database.connection import DatabaseConnection
from sharezone.database.store import SQLiteMetadataStore
from sharezone.security.encryption import encrypt
from sharezone.security.keys import generate_key, key_to_hex
from sharezone.security.passwords import SharePasswordHasher


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def objects(tmp_path: Path):
    return LocalObjectStore(str(tmp_path / "objects"))


@pytest.fixture
def store(tmp_path: Path):
    db = DatabaseConnection(tmp_path / "meta.db")
    yield SQLiteMetadataStore(db)
    db.close()


@pytest.fixture
def orchestrator(objects, store):
    return DownloadOrchestrator(objects, store)


@pytest.fixture
def gate(store):
    return AccessGate(store, hasher=SharePasswordHasher(time_cost=1, memory_cost=8, parallelism=1))


async def put_file(objects, store, payload=b"hello", encrypted=True, share_id="tok"):
    if await store.get_user("u1") is None:
        await store.create_user("u1", "alice")
    key_hex = None
    blob = payload
    if encrypted:
        blob, key = encrypt(payload, block_size=4)
        key_hex = key_to_hex(key)
    await objects.put("u1/hello.txt", blob)
    record = await store.insert_file(
        FileRecord(
            "u1", "hello.txt", "u1/hello.txt",
            size=len(payload), stored_size=len(blob), mime_type="text/plain",
            is_encrypted=encrypted, encryption_key=key_hex,
        )
    )
    if share_id:
        record = await store.update_share(record.file_id, SharePolicy(share_id))
    return record


# ==============================================================================
# Tests: Happy paths
# ==============================================================================

@pytest.mark.asyncio
async def test_shared_download_decrypts_and_counts(orchestrator, objects, store, gate):
    record = await put_file(objects, store, b"hello world")
    session = await gate.open("tok")

    local = await orchestrator.download_shared(session)
    await orchestrator.drain()

    assert local.data == b"hello world"
    assert local.name == "hello.txt"
    assert local.mime_type == "text/plain"
    assert (await store.get_file(record.file_id)).download_count == 1


@pytest.mark.asyncio
async def test_owner_download_without_share(orchestrator, objects, store):
    record = await put_file(objects, store, b"mine", share_id=None)

    local = await orchestrator.download(record.file_id, owner_id="u1")
    await orchestrator.drain()
    assert local.data == b"mine"


@pytest.mark.asyncio
async def test_unencrypted_payload_passes_through(orchestrator, objects, store):
    record = await put_file(objects, store, b"plain bytes", encrypted=False)

    local = await orchestrator.download(record, owner_id="u1")
    await orchestrator.drain()
    assert local.data == b"plain bytes"


# ==============================================================================
# Tests: Authorization
# ==============================================================================

@pytest.mark.asyncio
async def test_stranger_cannot_download(orchestrator, objects, store):
    record = await put_file(objects, store)

    with pytest.raises(AccessDeniedError):
        await orchestrator.download(record.file_id, owner_id="someone-else")
    with pytest.raises(AccessDeniedError):
        await orchestrator.download(record.file_id)


@pytest.mark.asyncio
async def test_session_not_ready(orchestrator, objects, store, gate):
    await put_file(objects, store)
    session = gate.session("tok")

    with pytest.raises(AccessDeniedError):
        await orchestrator.download_shared(session)


@pytest.mark.asyncio
async def test_session_for_other_file(orchestrator, objects, store, gate):
    await put_file(objects, store)
    other = await store.insert_file(FileRecord("u1", "other.txt", "u1/other.txt"))
    session = await gate.open("tok")

    with pytest.raises(AccessDeniedError):
        await orchestrator.download(other.file_id, session=session)


@pytest.mark.asyncio
async def test_unknown_file(orchestrator):
    with pytest.raises(FileRecordNotFoundError):
        await orchestrator.download("missing", owner_id="u1")


# ==============================================================================
# Tests: Failures
# ==============================================================================

@pytest.mark.asyncio
async def test_missing_object_is_retrieval_failure(orchestrator, objects, store, gate):
    record = await put_file(objects, store)
    await objects.delete(record.storage_path)
    session = await gate.open("tok")

    with pytest.raises(RetrievalFailed):
        await orchestrator.download_shared(session)
    await orchestrator.drain()
    assert (await store.get_file(record.file_id)).download_count == 0


@pytest.mark.asyncio
async def test_wrong_key_is_decryption_failure(orchestrator, objects, store, gate):
    record = await put_file(objects, store)
    store.db.execute(
        "UPDATE files SET encryption_key = ? WHERE file_id = ?",
        (key_to_hex(generate_key()), record.file_id),
    )
    session = await gate.open("tok")

    with pytest.raises(DecryptionFailed):
        await orchestrator.download_shared(session)
    await orchestrator.drain()
    assert (await store.get_file(record.file_id)).download_count == 0


@pytest.mark.asyncio
async def test_corrupted_object_is_decryption_failure(orchestrator, objects, store):
    record = await put_file(objects, store, share_id=None)
    stored = bytearray(await objects.get(record.storage_path))
    stored[-1] ^= 0xFF
    await objects.put(record.storage_path, bytes(stored))

    with pytest.raises(DecryptionFailed):
        await orchestrator.download(record.file_id, owner_id="u1")


@pytest.mark.asyncio
async def test_counter_failure_does_not_fail_download(orchestrator, objects, store, gate, caplog):
    """The counter is best-effort: its failure is logged, the bytes still arrive."""
    await put_file(objects, store, b"payload")
    session = await gate.open("tok")

    with patch.object(store, "increment_download_count", side_effect=StorageError("db locked")):
        with caplog.at_level("WARNING"):
            local = await orchestrator.download_shared(session)
            await orchestrator.drain()

    assert local.data == b"payload"
    assert "could not increment download count" in caplog.text
