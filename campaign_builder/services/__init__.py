from campaign_builder.services.credentials import CredentialResolver, encrypt_token
from campaign_builder.services.media import MediaStore
from campaign_builder.services.publisher import PublishOrchestrator
from campaign_builder.services.repository import DraftRepository
from campaign_builder.services.validator import PLATFORM_RULES, DraftValidator, validate_draft

__all__ = [
    "PLATFORM_RULES",
    "CredentialResolver",
    "DraftRepository",
    "DraftValidator",
    "MediaStore",
    "PublishOrchestrator",
    "encrypt_token",
    "validate_draft",
]
