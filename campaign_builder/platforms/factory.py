from __future__ import annotations

from typing import Callable

from campaign_builder.platforms.base import AdPlatformAdapter, Platform
from campaign_builder.platforms.dry_run import DryRunAdapter
from campaign_builder.settings import settings


def _meta() -> AdPlatformAdapter:
    from campaign_builder.platforms.meta_ads import MetaAdsAdapter

    return MetaAdsAdapter(
        app_secret=settings.META_APP_SECRET,
        api_version=settings.META_GRAPH_API_VERSION,
    )


def _tiktok() -> AdPlatformAdapter:
    from campaign_builder.platforms.tiktok_ads import TikTokAdsAdapter

    return TikTokAdsAdapter(
        settings.TIKTOK_API_BASE_URL,
        timeout=settings.PLATFORM_REQUEST_TIMEOUT_SECONDS,
    )


def _newsbreak() -> AdPlatformAdapter:
    from campaign_builder.platforms.newsbreak_ads import NewsBreakAdsAdapter

    return NewsBreakAdsAdapter(
        settings.NEWSBREAK_API_BASE_URL,
        timeout=settings.PLATFORM_REQUEST_TIMEOUT_SECONDS,
    )


# Platform dispatch table: the only place that knows which adapter serves
# which platform.
ADAPTER_REGISTRY: dict[Platform, Callable[[], AdPlatformAdapter]] = {
    Platform.META: _meta,
    Platform.TIKTOK: _tiktok,
    Platform.NEWSBREAK: _newsbreak,
}


def get_platform_adapter(
    platform: Platform | str, *, dry_run: bool | None = None
) -> AdPlatformAdapter:
    """Return the adapter for *platform*.

    When dry_run is True (default: ``settings.USE_DRY_RUN_EXECUTION``), every
    platform is served by the DryRunAdapter.
    """
    try:
        platform = Platform(platform)
    except ValueError:
        raise NotImplementedError(f"Publishing not yet supported for {platform}") from None

    if settings.USE_DRY_RUN_EXECUTION if dry_run is None else dry_run:
        return DryRunAdapter(platform)
    return ADAPTER_REGISTRY[platform]()
