"""Error taxonomy of the publish workflow.

``DraftNotFoundError`` and ``StateConflictError`` are raised to the caller
before anything is written.  ``CredentialError`` and
``TopLevelCreationError`` end a run early and are reported on the draft and
in the ``PublishResult``.  ``EntityCreationError`` is scoped to a single ad
set or ad and never aborts the run.
"""

from __future__ import annotations

import enum
import uuid

AGGREGATE_FAILURE_MESSAGE = "Some entities failed to publish"


class PublishError(Exception):
    """Base class for publish workflow errors."""


class DraftNotFoundError(PublishError):
    """The draft does not exist or is not owned by the caller."""

    def __init__(self, message: str = "Draft not found") -> None:
        super().__init__(message)


class ConflictReason(str, enum.Enum):
    ALREADY_PUBLISHED = "already_published"
    CURRENTLY_PUBLISHING = "currently_publishing"
    INVALID_STATUS = "invalid_status"
    CONCURRENT_MODIFICATION = "concurrent_modification"


_CONFLICT_MESSAGES = {
    ConflictReason.ALREADY_PUBLISHED: "Draft already published",
    ConflictReason.CURRENTLY_PUBLISHING: "Draft is currently being published",
    ConflictReason.CONCURRENT_MODIFICATION: "Draft was modified by another publish run",
}


class StateConflictError(PublishError):
    """The draft is not in a publishable state."""

    def __init__(self, reason: ConflictReason, status: str | None = None) -> None:
        self.reason = reason
        self.status = status
        message = _CONFLICT_MESSAGES.get(reason) or f"Cannot publish draft with status: {status}"
        super().__init__(message)


class CredentialErrorKind(str, enum.Enum):
    NO_ACCOUNT = "no_account"
    NO_TOKEN = "no_token"
    DECRYPT_FAILED = "decrypt_failed"


class CredentialError(PublishError):
    """No usable platform credential (or ad account) for the user."""

    def __init__(self, kind: CredentialErrorKind, message: str) -> None:
        self.kind = kind
        super().__init__(message)


class TopLevelCreationError(PublishError):
    """The remote campaign could not be created."""


class EntityCreationError(PublishError):
    """An ad set or ad could not be created; recorded on that entity only."""

    def __init__(self, entity: str, local_id: uuid.UUID, message: str) -> None:
        self.entity = entity
        self.local_id = local_id
        super().__init__(message)
