"""
Share Link Authority: mints share ids and records a file's SharePolicy.
"""

import asyncio
import logging
import secrets
from typing import Optional

from .exceptions import AccessDeniedError, FileRecordNotFoundError
from .interfaces import MetadataStore
from .models import SharePolicy, ShareRequest, ShareLink
from ..security.passwords import SharePasswordHasher, get_hasher

logger = logging.getLogger(__name__)

# 128 bits
DEFAULT_SHARE_TOKEN_BYTES = 16
MIN_SHARE_TOKEN_BYTES = 16


def generate_share_id(token_bytes: int = DEFAULT_SHARE_TOKEN_BYTES) -> str:
    """Return a fresh URL-safe share id. Never derived from file content."""
    if token_bytes < MIN_SHARE_TOKEN_BYTES:
        raise ValueError(f"share ids need at least {MIN_SHARE_TOKEN_BYTES} random bytes")
    return secrets.token_urlsafe(token_bytes)


def build_share_url(base_url: str, share_id: str) -> str:
    return f"{base_url.rstrip('/')}/share/{share_id}"


class ShareLinkAuthority:
    """Creates and replaces share policies on behalf of a file's owner."""

    def __init__(
        self,
        metadata_store: MetadataStore,
        base_url: str,
        token_bytes: int = DEFAULT_SHARE_TOKEN_BYTES,
        hasher: Optional[SharePasswordHasher] = None,
    ):
        if token_bytes < MIN_SHARE_TOKEN_BYTES:
            raise ValueError(f"share ids need at least {MIN_SHARE_TOKEN_BYTES} random bytes")
        self.metadata_store = metadata_store
        self.base_url = base_url
        self.token_bytes = token_bytes
        self.hasher = hasher or get_hasher()

    async def create_share(self, file_id: str, owner_id: str, request: Optional[ShareRequest] = None) -> ShareLink:
        """
        Share ``file_id`` under a brand-new share id.

        Any previous policy of the file is overwritten, so its old link stops
        resolving. Only the metadata record is touched; the stored payload is not.
        """
        request = request or ShareRequest()
        record = await self.metadata_store.get_file(file_id)
        if record is None:
            raise FileRecordNotFoundError(f"File with ID '{file_id}' not found.")
        if record.owner_id != owner_id:
            raise AccessDeniedError("Only the file owner can share this file.")

        password_hash = None
        if request.password:
            password_hash = await asyncio.to_thread(self.hasher.hash, request.password)

        policy = SharePolicy(
            share_id=generate_share_id(self.token_bytes),
            is_public=request.is_public,
            password_hash=password_hash,
            expires_at=request.expires_at,
        )
        await self.metadata_store.update_share(file_id, policy)

        if record.share_id:
            logger.info("replaced share for file %s", file_id)
        else:
            logger.info("created share for file %s", file_id)

        return ShareLink(
            url=build_share_url(self.base_url, policy.share_id),
            share_id=policy.share_id,
            file_id=file_id,
            is_public=policy.is_public,
            password_protected=policy.requires_password,
            expires_at=policy.expires_at,
        )
