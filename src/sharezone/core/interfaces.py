"""
Collaborator contracts consumed by the ShareZone core.

The core never talks to a concrete backend directly. Anything that satisfies
these protocols can be plugged in; :mod:`sharezone.core.storage` and
:mod:`sharezone.database.store` ship local reference implementations.
"""
from typing import List, Optional, Protocol, runtime_checkable

from .models import FileRecord, SharePolicy


@runtime_checkable
class ObjectStore(Protocol):
    """Opaque binary blobs addressed by caller-chosen paths.

    Implementations raise :class:`~sharezone.core.exceptions.StorageError`
    (or a subclass) on failure.
    """

    async def put(self, path: str, data: bytes) -> None:
        """Store ``data`` at ``path``, replacing any previous object."""
        ...

    async def get(self, path: str) -> bytes:
        """Return the object at ``path``."""
        ...

    async def delete(self, path: str) -> None:
        """Remove the object at ``path``."""
        ...


@runtime_checkable
class MetadataStore(Protocol):
    """File and owner records."""

    async def create_user(self, user_id: str, username: str) -> dict:
        ...

    async def get_user(self, user_id: str) -> Optional[dict]:
        ...

    async def get_user_by_username(self, username: str) -> Optional[dict]:
        ...

    async def insert_file(self, record: FileRecord) -> FileRecord:
        ...

    async def get_file(self, file_id: str) -> Optional[FileRecord]:
        ...

    async def get_file_by_share_id(self, share_id: str) -> Optional[FileRecord]:
        ...

    async def list_files(self, owner_id: str) -> List[FileRecord]:
        ...

    async def delete_file(self, file_id: str) -> None:
        ...

    async def update_share(self, file_id: str, policy: SharePolicy) -> FileRecord:
        """Replace the file's share policy (overwrite, never append)."""
        ...

    async def increment_download_count(self, file_id: str) -> None:
        ...

    async def adjust_storage_used(self, owner_id: str, delta: int) -> int:
        """Add ``delta`` to the owner's storage_used (floored at 0); return the new value."""
        ...
