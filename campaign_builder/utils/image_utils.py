"""Image inspection helpers for creative assets uploaded to ad platforms.

Assets arrive as raw bytes from the media store.  Before an adapter uploads
them it checks them against the platform's requirements and, for SDKs that
only accept file paths, spills them to a temporary file.
"""

from __future__ import annotations

import hashlib
import io
import os
import tempfile
from dataclasses import dataclass, field

from PIL import Image

from campaign_builder.platforms.exceptions import AssetUploadError


@dataclass(frozen=True)
class ImageRequirements:
    min_dimension: int
    max_size_bytes: int
    formats: frozenset[str] = field(default_factory=frozenset)


META_IMAGE_REQUIREMENTS = ImageRequirements(
    min_dimension=600,
    max_size_bytes=30 * 1024 * 1024,
    formats=frozenset({"JPEG", "PNG", "BMP", "TIFF", "GIF"}),
)

TIKTOK_IMAGE_REQUIREMENTS = ImageRequirements(
    min_dimension=100,
    max_size_bytes=100 * 1024 * 1024,
    formats=frozenset({"JPEG", "PNG"}),
)


@dataclass
class ImageInfo:
    format: str
    width: int
    height: int
    size_bytes: int
    issues: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues


def inspect_image(data: bytes, requirements: ImageRequirements) -> ImageInfo:
    """Read format and size of *data* and list requirement violations.

    Raises :class:`AssetUploadError` for empty or unreadable data.
    """
    if not data:
        raise AssetUploadError("Image data is empty", details={"size_bytes": 0})

    try:
        img = Image.open(io.BytesIO(data))
        img.verify()
        # verify() leaves the image unusable; reopen for metadata
        img = Image.open(io.BytesIO(data))
    except Exception as exc:
        raise AssetUploadError(
            f"Image data is corrupt or unreadable: {exc}",
            details={"error": str(exc)},
        ) from exc

    info = ImageInfo(
        format=img.format or "UNKNOWN",
        width=img.width,
        height=img.height,
        size_bytes=len(data),
    )

    if requirements.formats and info.format not in requirements.formats:
        info.issues.append(
            f"Unsupported format '{info.format}'. "
            f"Supported: {', '.join(sorted(requirements.formats))}"
        )
    if min(info.width, info.height) < requirements.min_dimension:
        info.issues.append(
            f"Image dimensions {info.width}x{info.height} are below the minimum "
            f"{requirements.min_dimension}x{requirements.min_dimension}"
        )
    if info.size_bytes > requirements.max_size_bytes:
        info.issues.append(
            f"Image size {info.size_bytes:,} bytes exceeds maximum "
            f"{requirements.max_size_bytes:,} bytes"
        )
    return info


def require_valid_image(data: bytes, requirements: ImageRequirements) -> ImageInfo:
    info = inspect_image(data, requirements)
    if not info.is_valid:
        raise AssetUploadError(
            f"Image validation failed: {'; '.join(info.issues)}",
            details={"format": info.format, "issues": info.issues},
        )
    return info


def md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def save_to_tempfile(data: bytes, *, suffix: str = ".png") -> str:
    """Write *data* to a named temporary file and return the path.

    The caller is responsible for calling ``os.unlink(path)`` when done.
    """
    fd, path = tempfile.mkstemp(suffix=suffix)
    try:
        os.write(fd, data)
    finally:
        os.close(fd)
    return path
