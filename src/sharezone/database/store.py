"""SQLite-backed MetadataStore.

Queries are short local calls, so they run directly on the event loop thread;
the connection is thread-local and must not be shared with worker threads.
"""

from typing import List, Optional

from .connection import DatabaseConnection
from .models import FileModel, UserModel
from ..core.exceptions import FileRecordNotFoundError, UserNotFoundError
from ..core.models import FileRecord, SharePolicy


class SQLiteMetadataStore:
    """Implements :class:`sharezone.core.interfaces.MetadataStore`."""

    def __init__(self, db: DatabaseConnection):
        self.db = db
        self.db.initialize()
        self.user_model = UserModel(db)
        self.file_model = FileModel(db)

    async def create_user(self, user_id: str, username: str) -> dict:
        return self.user_model.create(user_id, username)

    async def get_user(self, user_id: str) -> Optional[dict]:
        return self.user_model.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[dict]:
        return self.user_model.get_by_username(username)

    async def insert_file(self, record: FileRecord) -> FileRecord:
        self.file_model.create(record)
        return self.file_model.get(record.file_id)

    async def get_file(self, file_id: str) -> Optional[FileRecord]:
        return self.file_model.get(file_id)

    async def get_file_by_share_id(self, share_id: str) -> Optional[FileRecord]:
        return self.file_model.get_by_share_id(share_id)

    async def list_files(self, owner_id: str) -> List[FileRecord]:
        return self.file_model.list_by_owner(owner_id)

    async def delete_file(self, file_id: str) -> None:
        if not self.file_model.delete(file_id):
            raise FileRecordNotFoundError(f"File with ID '{file_id}' not found.")

    async def update_share(self, file_id: str, policy: SharePolicy) -> FileRecord:
        if not self.file_model.update_share(file_id, policy):
            raise FileRecordNotFoundError(f"File with ID '{file_id}' not found.")
        return self.file_model.get(file_id)

    async def increment_download_count(self, file_id: str) -> None:
        if not self.file_model.increment_download_count(file_id):
            raise FileRecordNotFoundError(f"File with ID '{file_id}' not found.")

    async def adjust_storage_used(self, owner_id: str, delta: int) -> int:
        used = self.user_model.adjust_storage_used(owner_id, delta)
        if used is None:
            raise UserNotFoundError(f"User with ID '{owner_id}' not found.")
        return used
