"""ORM-style helpers for database operations."""

from .connection import DatabaseConnection
from ..core.models import create_file_record_from_dict


def _timestamp(value):
    return value.isoformat() if value is not None else None


class BaseModel:
    """Base class for DB models."""

    __slots__ = ("db",)

    def __init__(self, db: DatabaseConnection):
        """Initialize with a DatabaseConnection."""
        self.db = db


class UserModel(BaseModel):
    """DB model for file owners."""

    def create(self, user_id, username):
        """Create a user and return it."""
        query = "INSERT INTO users (user_id, username) VALUES (?, ?)"
        self.db.execute(query, (user_id, username))
        return self.get(user_id)

    def get(self, user_id):
        """Get user by ID."""
        query = "SELECT * FROM users WHERE user_id = ?"
        return self.db.fetch_one(query, (user_id,))

    def get_by_username(self, username):
        """Get user by username."""
        query = "SELECT * FROM users WHERE username = ?"
        return self.db.fetch_one(query, (username,))

    def adjust_storage_used(self, user_id, delta):
        """Add delta to storage_used in one statement, never dropping below zero."""
        query = "UPDATE users SET storage_used = MAX(0, storage_used + ?) WHERE user_id = ?"
        self.db.execute(query, (delta, user_id))
        row = self.get(user_id)
        return row["storage_used"] if row else None


class FileModel(BaseModel):
    """DB model for file records and their embedded share policy."""

    def create(self, record):
        """Insert a FileRecord and return its ID."""
        query = """
            INSERT INTO files (
                file_id, owner_id, name, size, stored_size, mime_type,
                storage_path, is_encrypted, encryption_key, share_id, is_public,
                share_password, share_expires_at, download_count, uploaded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """

        params = (
            record.file_id,
            record.owner_id,
            record.name,
            record.size,
            record.stored_size,
            record.mime_type,
            record.storage_path,
            record.is_encrypted,
            record.encryption_key,
            record.share_id,
            record.is_public,
            record.share_password,
            _timestamp(record.share_expires_at),
            record.download_count,
            _timestamp(record.uploaded_at),
        )

        self.db.execute(query, params)
        return record.file_id

    def get(self, file_id):
        """Get FileRecord by ID or None."""
        query = "SELECT * FROM files WHERE file_id = ?"
        row = self.db.fetch_one(query, (file_id,))
        return create_file_record_from_dict(row) if row else None

    def get_by_share_id(self, share_id):
        """Get FileRecord by share id or None."""
        query = "SELECT * FROM files WHERE share_id = ?"
        row = self.db.fetch_one(query, (share_id,))
        return create_file_record_from_dict(row) if row else None

    def list_by_owner(self, owner_id, limit=None, offset=0):
        """List an owner's files, newest first."""
        query = "SELECT * FROM files WHERE owner_id = ? ORDER BY uploaded_at DESC"
        params = [owner_id]
        if limit:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        rows = self.db.fetch_all(query, tuple(params))
        return [create_file_record_from_dict(row) for row in rows]

    def update_share(self, file_id, policy):
        """
        Overwrite the share columns of a file

        Args:
            file_id: file to update
            policy: SharePolicy replacing any previous one

        Returns:
            True if a row was updated
        """
        query = """
            UPDATE files SET
                share_id = ?,
                is_public = ?,
                share_password = ?,
                share_expires_at = ?
            WHERE file_id = ?
        """

        params = (
            policy.share_id,
            policy.is_public,
            policy.password_hash,
            _timestamp(policy.expires_at),
            file_id,
        )

        return self.db.execute(query, params) > 0

    def increment_download_count(self, file_id):
        """Bump download_count in a single statement."""
        query = "UPDATE files SET download_count = download_count + 1 WHERE file_id = ?"
        return self.db.execute(query, (file_id,)) > 0

    def delete(self, file_id):
        """Delete file by ID; its share policy goes with it."""
        query = "DELETE FROM files WHERE file_id = ?"
        return self.db.execute(query, (file_id,)) > 0
