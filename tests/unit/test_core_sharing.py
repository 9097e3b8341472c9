"""Unit tests for the Share Link Authority."""

import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from sharezone.core.exceptions import AccessDeniedError, FileRecordNotFoundError
from sharezone.core.models import FileRecord, ShareRequest
from sharezone.core.sharing import (
    ShareLinkAuthority,
    build_share_url,
    generate_share_id,
)
from sharezone.database.connection import DatabaseConnection
from sharezone.database.store import SQLiteMetadataStore
from sharezone.security.passwords import SharePasswordHasher


@pytest.fixture
def store(tmp_path: Path):
    db = DatabaseConnection(tmp_path / "meta.db")
    yield SQLiteMetadataStore(db)
    db.close()


@pytest.fixture
def hasher():
    return SharePasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def authority(store, hasher):
    return ShareLinkAuthority(store, "https://share.example.com/", hasher=hasher)


async def add_file(store, owner_id="u1"):
    if await store.get_user(owner_id) is None:
        await store.create_user(owner_id, f"user-{owner_id}")
    return await store.insert_file(FileRecord(owner_id, "notes.txt", f"{owner_id}/notes.txt", size=5))


# ==============================================================================
# Tests: share ids
# ==============================================================================

def test_share_ids_are_unique_and_long():
    ids = {generate_share_id() for _ in range(10_000)}
    assert len(ids) == 10_000
    # 16 random bytes -> 22 url-safe characters
    assert all(len(share_id) >= 22 for share_id in ids)


def test_share_id_entropy_floor():
    with pytest.raises(ValueError):
        generate_share_id(8)


def test_authority_rejects_weak_tokens(store):
    with pytest.raises(ValueError):
        ShareLinkAuthority(store, "https://x", token_bytes=4)


def test_build_share_url():
    assert build_share_url("https://x.io/", "abc") == "https://x.io/share/abc"


# ==============================================================================
# Tests: create_share
# ==============================================================================

@pytest.mark.asyncio
async def test_public_share_defaults(authority, store):
    record = await add_file(store)

    link = await authority.create_share(record.file_id, "u1")

    assert link.url == f"https://share.example.com/share/{link.share_id}"
    assert link.is_public is True
    assert link.password_protected is False
    assert link.expires_at is None
    stored = await store.get_file_by_share_id(link.share_id)
    assert stored.file_id == record.file_id
    assert stored.share_password is None


@pytest.mark.asyncio
async def test_password_is_hashed(authority, store, hasher):
    record = await add_file(store)

    link = await authority.create_share(record.file_id, "u1", ShareRequest(password="abc"))

    stored = await store.get_file(record.file_id)
    assert link.password_protected is True
    assert stored.share_password != "abc"
    assert hasher.verify(stored.share_password, "abc")
    assert stored.share_password not in str(link.to_dict())


@pytest.mark.asyncio
async def test_empty_password_means_no_password(authority, store):
    record = await add_file(store)
    link = await authority.create_share(record.file_id, "u1", ShareRequest(password=""))
    assert link.password_protected is False


@pytest.mark.asyncio
async def test_expiry_is_stored(authority, store):
    record = await add_file(store)
    expires = datetime(2031, 6, 1, tzinfo=timezone.utc)

    link = await authority.create_share(
        record.file_id, "u1", ShareRequest(is_public=False, expires_at=expires.isoformat())
    )

    stored = await store.get_file(record.file_id)
    assert link.expires_at == expires
    assert stored.share_expires_at == expires
    assert stored.is_public is False


@pytest.mark.asyncio
async def test_reshare_invalidates_previous_link(authority, store):
    record = await add_file(store)

    first = await authority.create_share(record.file_id, "u1", ShareRequest(password="abc"))
    second = await authority.create_share(record.file_id, "u1")

    assert first.share_id != second.share_id
    assert await store.get_file_by_share_id(first.share_id) is None
    stored = await store.get_file_by_share_id(second.share_id)
    assert stored.share_password is None


@pytest.mark.asyncio
async def test_only_owner_can_share(authority, store):
    record = await add_file(store)
    await store.create_user("u2", "mallory")

    with pytest.raises(AccessDeniedError):
        await authority.create_share(record.file_id, "u2")
    assert (await store.get_file(record.file_id)).share_id is None


@pytest.mark.asyncio
async def test_unknown_file(authority):
    with pytest.raises(FileRecordNotFoundError):
        await authority.create_share("missing", "u1")


class ThreadRecordingHasher(SharePasswordHasher):
    def __init__(self):
        super().__init__(time_cost=1, memory_cost=8, parallelism=1)
        self.hash_threads = []

    def hash(self, password):
        self.hash_threads.append(threading.get_ident())
        return super().hash(password)


@pytest.mark.asyncio
async def test_password_hashed_off_the_event_loop(store):
    """Argon2 hashing runs in a worker thread, not on the loop thread."""
    hasher = ThreadRecordingHasher()
    authority = ShareLinkAuthority(store, "https://share.example.com", hasher=hasher)
    record = await add_file(store)

    await authority.create_share(record.file_id, "u1", ShareRequest(password="abc"))

    assert len(hasher.hash_threads) == 1
    assert hasher.hash_threads[0] != threading.get_ident()
