"""
Download Orchestrator: fetch, decrypt and hand back a file's plaintext.

Allowed for the file's owner, or for a share visit whose AccessSession is READY
for that same file. The download counter is bumped by a detached task whose
failure is logged and never reaches the caller.
"""

import asyncio
import logging
from typing import Optional, Set, Union

from .access import AccessSession
from .exceptions import (
    AccessDeniedError,
    DecryptionFailed,
    FileRecordNotFoundError,
    RetrievalFailed,
    StorageError,
)
from .interfaces import MetadataStore, ObjectStore
from .models import FileRecord, LocalFile
from ..security.encryption import decrypt_async
from ..security.keys import key_from_hex

logger = logging.getLogger(__name__)


class DownloadOrchestrator:
    """Composes the object store, the metadata store and the encryption engine."""

    def __init__(self, object_store: ObjectStore, metadata_store: MetadataStore):
        self.object_store = object_store
        self.metadata_store = metadata_store
        self._pending: Set[asyncio.Task] = set()

    async def _resolve(self, file_ref: Union[FileRecord, str]) -> FileRecord:
        if isinstance(file_ref, FileRecord):
            return file_ref
        record = await self.metadata_store.get_file(file_ref)
        if record is None:
            raise FileRecordNotFoundError(f"File with ID '{file_ref}' not found.")
        return record

    @staticmethod
    def _authorize(record: FileRecord, session: Optional[AccessSession], owner_id: Optional[str]) -> None:
        if owner_id is not None and owner_id == record.owner_id:
            return
        if session is not None and session.is_ready and session.file is not None \
                and session.file.file_id == record.file_id:
            return
        raise AccessDeniedError(f"Not allowed to download file '{record.file_id}'.")

    async def download(
        self,
        file_ref: Union[FileRecord, str],
        *,
        session: Optional[AccessSession] = None,
        owner_id: Optional[str] = None,
    ) -> LocalFile:
        """
        Fetch and, if needed, decrypt a file.

        Raises RetrievalFailed when the object store fetch fails and
        DecryptionFailed when the payload cannot be authenticated; in both
        cases nothing is returned and the counter is left alone.
        """
        record = await self._resolve(file_ref)
        self._authorize(record, session, owner_id)

        try:
            payload = await self.object_store.get(record.storage_path)
        except (StorageError, OSError) as exc:
            raise RetrievalFailed(f"Could not fetch '{record.name}': {exc}") from exc

        if record.is_encrypted:
            if not record.encryption_key:
                raise DecryptionFailed(f"File '{record.file_id}' is marked encrypted but has no key")
            key = key_from_hex(record.encryption_key)
            payload = await decrypt_async(payload, key, record.mime_type)

        self._count_download(record.file_id)
        logger.info("downloaded file %s (%d bytes)", record.file_id, len(payload))
        return LocalFile(record.name, payload, record.mime_type)

    async def download_shared(self, session: AccessSession) -> LocalFile:
        """Download the file behind a READY share session."""
        if not session.is_ready or session.file is None:
            raise AccessDeniedError("Share session is not ready for download.")
        return await self.download(session.file, session=session)

    def _count_download(self, file_id: str) -> None:
        task = asyncio.create_task(self._increment(file_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _increment(self, file_id: str) -> None:
        try:
            await self.metadata_store.increment_download_count(file_id)
        except Exception as e:
            # best-effort: concurrent lost updates and failures are tolerated
            logger.warning("could not increment download count for %s: %s", file_id, e)

    async def drain(self) -> None:
        """Wait for outstanding counter updates (tests, shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
