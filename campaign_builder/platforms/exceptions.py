"""Exceptions for the platform adapter layer.

Adapters raise these from every public operation.  The publish orchestrator
records them against the entity being created (ad set, ad) or, for the
top-level campaign, against the draft itself.
"""

from __future__ import annotations

from typing import Any


class PlatformError(Exception):
    """Base exception for all platform-related errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class PlatformRequestError(PlatformError):
    """Raised when the platform API rejects a request or returns garbage."""


class PlatformTimeoutError(PlatformError):
    """Raised when a platform call exceeds its time budget."""


class AssetUploadError(PlatformError):
    """Raised when a media asset cannot be validated or uploaded."""


class CreativeCreationError(PlatformError):
    """Raised when creative or ad object creation fails on the platform."""
