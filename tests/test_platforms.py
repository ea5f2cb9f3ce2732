"""Tests for the adapter contract types, dry-run adapter, and dispatch table."""

from unittest.mock import patch

import pytest

from campaign_builder.platforms.base import (
    AdGroupSpec,
    BudgetType,
    CampaignSpec,
    CampaignState,
    CreativeSpec,
    Platform,
    PlatformCredential,
)
from campaign_builder.platforms.dry_run import DryRunAdapter
from campaign_builder.platforms.factory import ADAPTER_REGISTRY, get_platform_adapter
from campaign_builder.platforms.meta_ads import MetaAdsAdapter
from campaign_builder.platforms.newsbreak_ads import NewsBreakAdsAdapter
from campaign_builder.platforms.tiktok_ads import TikTokAdsAdapter

CREDENTIAL = PlatformCredential(platform=Platform.META, access_token="tok")


# ---------------------------------------------------------------------------
# Contract types
# ---------------------------------------------------------------------------


def test_daily_budget_field_only():
    spec = AdGroupSpec(name="A", objective="OUTCOME_TRAFFIC", budget_cents=2500)
    assert spec.budget_fields() == {"daily_budget": 2500}


def test_lifetime_budget_field_only():
    spec = AdGroupSpec(
        name="A", objective="OUTCOME_TRAFFIC", budget_type="lifetime", budget_cents=90000
    )
    assert spec.budget_type == BudgetType.LIFETIME
    assert spec.budget_fields() == {"lifetime_budget": 90000}


def test_campaign_spec_defaults_to_paused():
    assert CampaignSpec(name="C", objective="OUTCOME_SALES").status == CampaignState.PAUSED


def test_credential_repr_hides_token():
    assert "tok" not in repr(CREDENTIAL)


# ---------------------------------------------------------------------------
# Dry-run adapter
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_dry_run_records_hierarchy():
    adapter = DryRunAdapter(Platform.TIKTOK)

    campaign_id = await adapter.create_campaign(
        "acct", CampaignSpec(name="C", objective="OUTCOME_SALES"), CREDENTIAL
    )
    adset_id = await adapter.create_ad_group(
        "acct",
        campaign_id,
        AdGroupSpec(name="S", objective="OUTCOME_SALES", budget_cents=3000),
        CREDENTIAL,
    )
    ids = await adapter.create_creative_and_ad(
        "acct", adset_id, CreativeSpec(name="Ad"), CREDENTIAL
    )

    assert campaign_id.startswith("dry-run-campaign-")
    assert adset_id.startswith("dry-run-adset-")
    assert ids.ad_id.startswith("dry-run-ad-")
    assert ids.creative_id.startswith("dry-run-creative-")
    assert [name for name, _ in adapter.calls] == [
        "create_campaign",
        "create_ad_group",
        "create_creative_and_ad",
    ]
    assert adapter.calls[1][1] == {"parent": campaign_id, "name": "S", "daily_budget": 3000}
    assert adapter.campaign_states[campaign_id] == CampaignState.PAUSED


@pytest.mark.asyncio
async def test_dry_run_activation_and_upload():
    adapter = DryRunAdapter()
    campaign_id = await adapter.create_campaign(
        "acct", CampaignSpec(name="C", objective="OUTCOME_SALES"), CREDENTIAL
    )

    await adapter.update_campaign_state(campaign_id, CampaignState.ACTIVE, CREDENTIAL)
    handle = await adapter.upload_asset("acct", b"image-bytes", "a.png", CREDENTIAL)

    assert adapter.campaign_states[campaign_id] == CampaignState.ACTIVE
    assert len(handle) == 32
    assert await adapter.creative_defaults("acct", CREDENTIAL) == {}


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------


def test_registry_covers_every_platform():
    assert set(ADAPTER_REGISTRY) == set(Platform)


def test_dry_run_serves_every_platform():
    for platform in Platform:
        adapter = get_platform_adapter(platform, dry_run=True)
        assert isinstance(adapter, DryRunAdapter)
        assert adapter.platform == platform


@pytest.mark.parametrize(
    "platform,adapter_cls",
    [
        ("meta", MetaAdsAdapter),
        ("tiktok", TikTokAdsAdapter),
        ("newsbreak", NewsBreakAdsAdapter),
    ],
)
def test_live_adapters_selected_by_platform(platform, adapter_cls):
    adapter = get_platform_adapter(platform, dry_run=False)
    assert isinstance(adapter, adapter_cls)
    assert adapter.platform == Platform(platform)


def test_dry_run_defaults_to_settings():
    with patch("campaign_builder.platforms.factory.settings") as mock_settings:
        mock_settings.USE_DRY_RUN_EXECUTION = True
        assert isinstance(get_platform_adapter("meta"), DryRunAdapter)


def test_unknown_platform_not_supported():
    with pytest.raises(NotImplementedError, match="Publishing not yet supported for snapchat"):
        get_platform_adapter("snapchat", dry_run=True)


def test_only_newsbreak_takes_asset_urls():
    assert NewsBreakAdsAdapter.accepts_asset_urls is True
    assert TikTokAdsAdapter.accepts_asset_urls is False
    assert MetaAdsAdapter.accepts_asset_urls is False
