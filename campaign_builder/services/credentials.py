"""Platform credential lookup and decryption.

Access tokens are stored Fernet-encrypted on ``platform_connections`` and
decrypted only when a publish or activation run needs them.
"""

from __future__ import annotations

import logging
import uuid

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_builder.exceptions import CredentialError, CredentialErrorKind
from campaign_builder.models import PlatformConnection
from campaign_builder.platforms.base import Platform, PlatformCredential
from campaign_builder.settings import settings

logger = logging.getLogger(__name__)

PLATFORM_LABELS = {
    Platform.META: "Meta",
    Platform.TIKTOK: "TikTok",
    Platform.NEWSBREAK: "NewsBreak",
}


def _fernet(key: str) -> Fernet:
    if not key:
        raise ValueError("CREDENTIAL_ENCRYPTION_KEY is not set")
    return Fernet(key.encode())


def encrypt_token(plaintext: str, key: str | None = None) -> str:
    """Encrypt an access token for storage on a platform connection."""
    if not plaintext:
        raise ValueError("Cannot encrypt empty token")
    return _fernet(key or settings.CREDENTIAL_ENCRYPTION_KEY).encrypt(plaintext.encode()).decode()


class CredentialResolver:
    def __init__(self, session: AsyncSession, encryption_key: str | None = None) -> None:
        self.session = session
        self.encryption_key = (
            settings.CREDENTIAL_ENCRYPTION_KEY if encryption_key is None else encryption_key
        )

    async def resolve(self, user_id: uuid.UUID, platform: Platform | str) -> PlatformCredential:
        """Return a decrypted credential for *user_id* on *platform*.

        Raises ``CredentialError`` when no connected account exists, it holds
        no token, or the token cannot be decrypted.
        """
        platform = Platform(platform)
        label = PLATFORM_LABELS[platform]

        result = await self.session.execute(
            select(PlatformConnection).where(
                PlatformConnection.user_id == user_id,
                PlatformConnection.platform == platform.value,
                PlatformConnection.status == "connected",
            )
        )
        connection = result.scalar_one_or_none()
        if connection is None:
            raise CredentialError(CredentialErrorKind.NO_ACCOUNT, f"No {label} account connected")
        if not connection.access_token_encrypted:
            raise CredentialError(
                CredentialErrorKind.NO_TOKEN, f"{label} connection has no access token"
            )

        try:
            token = (
                _fernet(self.encryption_key)
                .decrypt(connection.access_token_encrypted.encode())
                .decode()
            )
        except (InvalidToken, ValueError) as exc:
            logger.error("Failed to decrypt %s token for user %s: %s", label, user_id, exc)
            raise CredentialError(
                CredentialErrorKind.DECRYPT_FAILED, f"Failed to decrypt {label} access token"
            ) from exc

        return PlatformCredential(
            platform=platform,
            access_token=token,
            config=dict(connection.config_json or {}),
        )
