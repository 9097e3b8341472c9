"""
Filesystem object store for ShareZone

Structure Map for reference:
==============================
 - <storage_root>/
      - {owner_id}/
          - {epoch_ms}_{token}_{filename}   (ciphertext envelope or plain bytes)
==============================
For reference:
> Objects are opaque blobs => the store never inspects or decrypts them
> Paths are chosen by the caller (FileManager) and must stay inside the root
> Writes go to a temp file first and are moved into place, so readers never see half an object

"""

from pathlib import Path
import asyncio
import logging
import os
import tempfile
from typing import Optional

from .exceptions import StorageError, ObjectNotFoundError, InvalidPathError

logger = logging.getLogger(__name__)


class LocalObjectStore:
    """Object store rooted in a local directory"""

    def __init__(self, root_path: Optional[str] = None):
        self.root = (
            Path(root_path).expanduser() if root_path else Path.home() / ".sharezone" / "objects"
        )
        self.root.mkdir(parents=True, exist_ok=True)

    def object_path(self, path: str) -> Path:
        if not path or path.startswith(("/", "\\")):
            raise InvalidPathError(f"Invalid storage path: {path!r}")
        resolved = (self.root / path).resolve()
        root = self.root.resolve()
        if resolved == root or root not in resolved.parents:
            raise InvalidPathError(f"Storage path escapes the store root: {path!r}")
        return resolved

    def _write(self, path: str, data: bytes) -> None:
        destination = self.object_path(path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=destination.parent, prefix=".upload-")
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, destination)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write object {path!r}: {e}") from e

    def _read(self, path: str) -> bytes:
        source = self.object_path(path)
        if not source.is_file():
            raise ObjectNotFoundError(f"Object {path!r} not found")
        try:
            with open(source, "rb") as f:
                return f.read()
        except OSError as e:
            raise StorageError(f"Failed to read object {path!r}: {e}") from e

    def _remove(self, path: str) -> None:
        target = self.object_path(path)
        if not target.exists():
            raise ObjectNotFoundError(f"Object {path!r} not found")
        try:
            target.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete object {path!r}: {e}") from e

    async def put(self, path: str, data: bytes) -> None:
        await asyncio.to_thread(self._write, path, bytes(data))
        logger.debug("stored object %s (%d bytes)", path, len(data))

    async def get(self, path: str) -> bytes:
        return await asyncio.to_thread(self._read, path)

    async def delete(self, path: str) -> None:
        await asyncio.to_thread(self._remove, path)
        logger.debug("deleted object %s", path)

    def has(self, path: str) -> bool:
        return self.object_path(path).is_file()
