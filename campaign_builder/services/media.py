from __future__ import annotations

import asyncio
import uuid
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_builder.models import MediaUpload
from campaign_builder.platforms.exceptions import AssetUploadError


class MediaStore:
    """Media uploads owned by a user, plus their per-platform handles."""

    def __init__(self, session: AsyncSession, lock: asyncio.Lock | None = None) -> None:
        self.session = session
        self.lock = lock or asyncio.Lock()

    async def get(self, media_id: uuid.UUID, user_id: uuid.UUID) -> MediaUpload | None:
        async with self.lock:
            result = await self.session.execute(
                select(MediaUpload).where(MediaUpload.id == media_id, MediaUpload.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def read_bytes(self, media: MediaUpload) -> bytes:
        if not media.file_path:
            raise AssetUploadError(
                f"Media '{media.filename}' has no stored file", details={"media_id": str(media.id)}
            )
        path = Path(media.file_path)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise AssetUploadError(
                f"Could not read media '{media.filename}': {exc}",
                details={"media_id": str(media.id), "path": str(path)},
            ) from exc

    async def cache_handle(self, media: MediaUpload, platform: str, handle: str) -> None:
        async with self.lock:
            # Reassign so the JSON column is flagged dirty
            media.platform_handles = {**(media.platform_handles or {}), platform: handle}
            media.status = "ready"
            await self.session.commit()
