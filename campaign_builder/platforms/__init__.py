from campaign_builder.platforms.base import (
    AdGroupSpec,
    AdPlatformAdapter,
    BudgetType,
    CampaignSpec,
    CampaignState,
    CreativeAdIds,
    CreativeSpec,
    Platform,
    PlatformCredential,
)
from campaign_builder.platforms.dry_run import DryRunAdapter
from campaign_builder.platforms.exceptions import (
    AssetUploadError,
    CreativeCreationError,
    PlatformError,
    PlatformRequestError,
    PlatformTimeoutError,
)
from campaign_builder.platforms.factory import ADAPTER_REGISTRY, get_platform_adapter

__all__ = [
    "ADAPTER_REGISTRY",
    "AdGroupSpec",
    "AdPlatformAdapter",
    "AssetUploadError",
    "BudgetType",
    "CampaignSpec",
    "CampaignState",
    "CreativeAdIds",
    "CreativeCreationError",
    "CreativeSpec",
    "DryRunAdapter",
    "Platform",
    "PlatformCredential",
    "PlatformError",
    "PlatformRequestError",
    "PlatformTimeoutError",
    "get_platform_adapter",
]
