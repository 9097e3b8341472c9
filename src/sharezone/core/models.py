"""
Data models for file records, share policies and downloaded files
"""

from datetime import datetime, timezone
from pathlib import Path
import uuid


def utcnow():
    return datetime.now(timezone.utc)


def ensure_utc(value):
    """
        Attach UTC to naive datetimes, convert aware ones to UTC
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value):
    """
        Accept a datetime, an ISO-8601 string or None and return an aware UTC datetime
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


class SharePolicy:
    """
        Constraints governing anonymous access to one file via its share id
    """

    __slots__ = ('share_id', 'is_public', 'password_hash', 'expires_at')

    def __init__(self, share_id, is_public=True, password_hash=None, expires_at=None):
        self.share_id = share_id
        self.is_public = bool(is_public)
        self.password_hash = password_hash or None
        self.expires_at = ensure_utc(expires_at)

    @property
    def requires_password(self):
        return self.password_hash is not None

    def is_expired(self, now):
        # strictly after expires_at; no grace period
        return self.expires_at is not None and ensure_utc(now) > self.expires_at

    def __repr__(self):
        return (
            f"SharePolicy(share_id={self.share_id!r}, is_public={self.is_public!r}, "
            f"password={'set' if self.requires_password else 'unset'}, expires_at={self.expires_at!r})"
        )


class ShareRequest:
    """
        Owner's request to (re)share a file
    """

    __slots__ = ('is_public', 'password', 'expires_at')

    def __init__(self, is_public=True, password=None, expires_at=None):
        self.is_public = bool(is_public)
        # empty string means no password
        self.password = password or None
        self.expires_at = parse_timestamp(expires_at)


class ShareLink:
    """
        Result of a share action; carries no secret material
    """

    __slots__ = ('url', 'share_id', 'file_id', 'is_public', 'password_protected', 'expires_at')

    def __init__(self, url, share_id, file_id, is_public, password_protected, expires_at=None):
        self.url = url
        self.share_id = share_id
        self.file_id = file_id
        self.is_public = is_public
        self.password_protected = password_protected
        self.expires_at = expires_at

    def to_dict(self):
        return {
            'url': self.url,
            'share_id': self.share_id,
            'file_id': self.file_id,
            'is_public': self.is_public,
            'password_protected': self.password_protected,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }

    def __repr__(self):
        return f"ShareLink(url={self.url!r})"


class FileRecord:
    """
        Metadata record of one uploaded file, as held by the metadata store
    """

    __slots__ = (
        'file_id',
        'owner_id',
        'name',
        'size',
        'stored_size',
        'mime_type',
        'storage_path',
        'is_encrypted',
        'encryption_key',
        'share_id',
        'is_public',
        'share_password',
        'share_expires_at',
        'download_count',
        'uploaded_at',
    )

    def __init__(
        self,
        owner_id,
        name,
        storage_path,
        size=0,
        stored_size=None,
        mime_type=None,
        is_encrypted=False,
        encryption_key=None,
        file_id=None,
        share_id=None,
        is_public=None,
        share_password=None,
        share_expires_at=None,
        download_count=0,
        uploaded_at=None,
    ):
        is_encrypted = bool(is_encrypted)
        # a key exists if and only if the file is encrypted
        if is_encrypted != bool(encryption_key):
            raise ValueError("encryption_key must be set exactly when is_encrypted is true")

        self.file_id = file_id if file_id is not None else str(uuid.uuid4())
        self.owner_id = owner_id
        self.name = name
        self.size = size
        self.stored_size = stored_size if stored_size is not None else size
        self.mime_type = mime_type
        self.storage_path = storage_path
        self.is_encrypted = is_encrypted
        self.encryption_key = encryption_key or None
        self.share_id = share_id
        self.is_public = None if is_public is None else bool(is_public)
        self.share_password = share_password or None
        self.share_expires_at = parse_timestamp(share_expires_at)
        self.download_count = download_count or 0
        self.uploaded_at = parse_timestamp(uploaded_at) or utcnow()

    @property
    def share_policy(self):
        """
            The active SharePolicy, or None when the file was never shared
        """
        if not self.share_id:
            return None
        return SharePolicy(
            share_id=self.share_id,
            is_public=True if self.is_public is None else self.is_public,
            password_hash=self.share_password,
            expires_at=self.share_expires_at,
        )

    def to_dict(self):
        """
            Convert to a dict with the metadata store's column names
        """
        return {
            'file_id': self.file_id,
            'owner_id': self.owner_id,
            'name': self.name,
            'size': self.size,
            'stored_size': self.stored_size,
            'mime_type': self.mime_type,
            'storage_path': self.storage_path,
            'is_encrypted': self.is_encrypted,
            'encryption_key': self.encryption_key,
            'share_id': self.share_id,
            'is_public': self.is_public,
            'share_password': self.share_password,
            'share_expires_at': self.share_expires_at.isoformat() if self.share_expires_at else None,
            'download_count': self.download_count,
            'uploaded_at': self.uploaded_at.isoformat(),
        }

    def __repr__(self):
        return f"FileRecord(file_id={self.file_id!r}, name={self.name!r})"

    def __eq__(self, other):
        if not isinstance(other, FileRecord):
            return NotImplemented
        return self.file_id == other.file_id

    def __hash__(self):
        return hash(self.file_id)


def create_file_record_from_dict(data):
    """
        Create a FileRecord from a dict or DB row
    """
    is_public = data.get('is_public')
    return FileRecord(
        file_id=data.get('file_id'),
        owner_id=data['owner_id'],
        name=data.get('name', ''),
        size=data.get('size', 0),
        stored_size=data.get('stored_size'),
        mime_type=data.get('mime_type'),
        storage_path=data['storage_path'],
        is_encrypted=bool(data.get('is_encrypted', False)),
        encryption_key=data.get('encryption_key'),
        share_id=data.get('share_id'),
        is_public=None if is_public is None else bool(is_public),
        share_password=data.get('share_password'),
        share_expires_at=data.get('share_expires_at'),
        download_count=data.get('download_count', 0),
        uploaded_at=data.get('uploaded_at'),
    )


class LocalFile:
    """
        Plaintext handed back to the caller for local persistence
    """

    __slots__ = ('name', 'mime_type', 'data')

    def __init__(self, name, data, mime_type=None):
        self.name = name
        self.data = bytes(data)
        self.mime_type = mime_type or "application/octet-stream"

    @property
    def size(self):
        return len(self.data)

    def save(self, destination) -> Path:
        """
            Write the plaintext; a directory destination gets the file's own name
        """
        target = Path(destination).expanduser()
        if target.is_dir():
            target = target / Path(self.name).name
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            f.write(self.data)
        return target

    def __repr__(self):
        return f"LocalFile(name={self.name!r}, size={self.size})"
