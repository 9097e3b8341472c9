"""
FileManager for ShareZone: owner-side file operations wired to the core.
"""

import logging
import mimetypes
import secrets
import time
import uuid
from pathlib import PurePath
from typing import List, Optional

from .access import AccessGate, AccessSession, PasswordAttemptLimiter
from .download import DownloadOrchestrator
from .exceptions import (
    AccessDeniedError,
    FileRecordNotFoundError,
    FileTooLargeError,
    StorageError,
    UserExistsError,
    UserNotFoundError,
)
from .interfaces import MetadataStore, ObjectStore
from .models import FileRecord, LocalFile, ShareLink, ShareRequest
from .sharing import DEFAULT_SHARE_TOKEN_BYTES, ShareLinkAuthority
from ..security.codec import DEFAULT_BLOCK_SIZE
from ..security.encryption import encrypt_async
from ..security.keys import key_to_hex
from ..security.passwords import SharePasswordHasher

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024**3


def build_storage_path(owner_id: str, filename: str) -> str:
    """Owner-scoped, timestamp-qualified, collision-resistant object path."""
    safe_name = PurePath(filename.replace("\\", "/")).name or "file"
    return f"{owner_id}/{int(time.time() * 1000)}_{secrets.token_hex(4)}_{safe_name}"


class FileManager:
    """High-level file operations over the object store and metadata store."""

    def __init__(
        self,
        object_store: ObjectStore,
        metadata_store: MetadataStore,
        share_base_url: str = "http://localhost:5173",
        *,
        share_token_bytes: int = DEFAULT_SHARE_TOKEN_BYTES,
        block_size: int = DEFAULT_BLOCK_SIZE,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        hasher: Optional[SharePasswordHasher] = None,
        limiter: Optional[PasswordAttemptLimiter] = None,
        clock=None,
    ):
        self.object_store = object_store
        self.metadata_store = metadata_store
        self.block_size = block_size
        self.max_upload_bytes = max_upload_bytes
        self.hasher = hasher or SharePasswordHasher()

        self.sharing = ShareLinkAuthority(
            metadata_store, share_base_url, token_bytes=share_token_bytes, hasher=self.hasher
        )
        self.gate = AccessGate(metadata_store, clock=clock, hasher=self.hasher, limiter=limiter)
        self.downloads = DownloadOrchestrator(object_store, metadata_store)

    @classmethod
    def from_settings(cls, settings=None) -> "FileManager":
        """Build a FileManager on the local filesystem + SQLite backends."""
        from ..config import get_settings
        from ..database.connection import DatabaseConnection
        from ..database.store import SQLiteMetadataStore
        from ..logging_config import configure_logging
        from .storage import LocalObjectStore

        settings = settings or get_settings()
        configure_logging(settings.log_level)
        hasher = SharePasswordHasher(
            time_cost=settings.argon2_time_cost,
            memory_cost=settings.argon2_memory_cost,
            parallelism=settings.argon2_parallelism,
        )
        limiter = PasswordAttemptLimiter(
            max_attempts=settings.password_max_attempts,
            window_seconds=settings.password_attempt_window_seconds,
        )
        return cls(
            LocalObjectStore(str(settings.storage_root)),
            SQLiteMetadataStore(DatabaseConnection(settings.database_path)),
            settings.share_base_url,
            share_token_bytes=settings.share_token_bytes,
            block_size=settings.block_size,
            max_upload_bytes=settings.max_upload_bytes,
            hasher=hasher,
            limiter=limiter,
        )

    async def create_user(self, username: str) -> dict:
        """Create an owner row so uploads have somewhere to account storage."""
        if await self.metadata_store.get_user_by_username(username):
            raise UserExistsError(f"Username '{username}' is already taken.")
        return await self.metadata_store.create_user(str(uuid.uuid4()), username)

    async def _require_owned(self, file_id: str, owner_id: str) -> FileRecord:
        record = await self.metadata_store.get_file(file_id)
        if record is None:
            raise FileRecordNotFoundError(f"File with ID '{file_id}' not found.")
        if record.owner_id != owner_id:
            raise AccessDeniedError(f"File '{file_id}' belongs to another user.")
        return record

    async def upload(
        self,
        owner_id: str,
        filename: str,
        data: bytes,
        mime_type: Optional[str] = None,
        encrypt: bool = False,
    ) -> FileRecord:
        """Store a file for ``owner_id``; optional client-side encryption."""
        if len(data) > self.max_upload_bytes:
            raise FileTooLargeError(
                f"{filename} exceeds the {self.max_upload_bytes} byte upload limit."
            )
        if await self.metadata_store.get_user(owner_id) is None:
            raise UserNotFoundError(f"User with ID '{owner_id}' not found.")

        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(filename)
        mime_type = mime_type or "application/octet-stream"

        key_hex = None
        blob = bytes(data)
        if encrypt:
            blob, key = await encrypt_async(blob, self.block_size)
            key_hex = key_to_hex(key)

        storage_path = build_storage_path(owner_id, filename)
        await self.object_store.put(storage_path, blob)

        record = FileRecord(
            owner_id=owner_id,
            name=filename,
            storage_path=storage_path,
            size=len(data),
            stored_size=len(blob),
            mime_type=mime_type,
            is_encrypted=encrypt,
            encryption_key=key_hex,
        )
        try:
            record = await self.metadata_store.insert_file(record)
        except Exception:
            # don't leave an orphaned object behind
            try:
                await self.object_store.delete(storage_path)
            except StorageError as cleanup_error:
                logger.warning("could not remove orphaned object %s: %s", storage_path, cleanup_error)
            raise

        await self.metadata_store.adjust_storage_used(owner_id, record.stored_size)
        logger.info(
            "uploaded %s for %s (%d bytes, encrypted=%s)",
            record.file_id, owner_id, record.size, record.is_encrypted,
        )
        return record

    async def delete_file(self, file_id: str, owner_id: str) -> None:
        """Delete a file, its stored object and its share policy."""
        record = await self._require_owned(file_id, owner_id)
        try:
            await self.object_store.delete(record.storage_path)
        except StorageError as e:
            logger.warning("storage delete failed for %s (proceeding with DB delete): %s", file_id, e)

        await self.metadata_store.delete_file(file_id)
        await self.metadata_store.adjust_storage_used(owner_id, -record.stored_size)

    async def list_files(self, owner_id: str) -> List[FileRecord]:
        return await self.metadata_store.list_files(owner_id)

    async def share_file(self, file_id: str, owner_id: str, request: Optional[ShareRequest] = None) -> ShareLink:
        return await self.sharing.create_share(file_id, owner_id, request)

    async def open_share(self, share_id: Optional[str]) -> AccessSession:
        """Start an anonymous visit to a share link."""
        return await self.gate.open(share_id)

    async def download(self, file_id: str, owner_id: str) -> LocalFile:
        """Owner download; no share policy applies."""
        return await self.downloads.download(file_id, owner_id=owner_id)

    async def download_shared(self, session: AccessSession) -> LocalFile:
        return await self.downloads.download_shared(session)
