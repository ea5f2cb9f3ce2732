"""NewsBreak Ads platform adapter.

NewsBreak takes creatives by public image URL rather than by upload, so the
adapter advertises ``accepts_asset_urls`` and refuses raw uploads.
"""

from __future__ import annotations

from typing import Any

import httpx

from campaign_builder.platforms.base import (
    AdGroupSpec,
    BudgetType,
    CampaignSpec,
    CampaignState,
    CreativeAdIds,
    CreativeSpec,
    Platform,
    PlatformCredential,
)
from campaign_builder.platforms.exceptions import AssetUploadError
from campaign_builder.platforms.http_api import EnvelopeApiAdapter

OBJECTIVE_MAP: dict[str, str] = {
    "OUTCOME_SALES": "CONVERSIONS",
    "OUTCOME_TRAFFIC": "TRAFFIC",
    "OUTCOME_ENGAGEMENT": "ENGAGEMENT",
    "OUTCOME_LEADS": "LEAD_GENERATION",
    "OUTCOME_AWARENESS": "AWARENESS",
    "OUTCOME_APP_PROMOTION": "APP_INSTALLS",
    "CONVERSIONS": "CONVERSIONS",
    "TRAFFIC": "TRAFFIC",
    "AWARENESS": "AWARENESS",
    "ENGAGEMENT": "ENGAGEMENT",
    "APP_INSTALLS": "APP_INSTALLS",
    "LEAD_GENERATION": "LEAD_GENERATION",
}

# NewsBreak campaigns carry their own (nominal) daily budget in dollars
DEFAULT_CAMPAIGN_DAILY_BUDGET = 50


def map_objective(objective: str) -> str:
    return OBJECTIVE_MAP.get(objective.upper(), "TRAFFIC")


class NewsBreakAdsAdapter(EnvelopeApiAdapter):
    platform = Platform.NEWSBREAK
    accepts_asset_urls = True
    error_message_keys = ("errMsg", "message")

    def __init__(
        self,
        base_url: str = "https://business.newsbreak.com/business-api/v1",
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, client=client)

    @staticmethod
    def _advertiser_id(account_ref: str | None, credential: PlatformCredential) -> str:
        return str(account_ref or credential.config.get("account_id") or "default")

    async def create_campaign(
        self, account_ref: str, spec: CampaignSpec, credential: PlatformCredential
    ) -> str:
        data = await self._request(
            "POST",
            "/campaigns/create",
            credential.access_token,
            json={
                "advertiser_id": self._advertiser_id(account_ref, credential),
                "campaign_name": spec.name,
                "objective": map_objective(spec.objective),
                "budget_mode": "BUDGET_MODE_DAY",
                "budget": DEFAULT_CAMPAIGN_DAILY_BUDGET,
            },
        )
        return str(data["campaign_id"])

    async def create_ad_group(
        self,
        account_ref: str,
        parent_remote_id: str,
        spec: AdGroupSpec,
        credential: PlatformCredential,
    ) -> str:
        # Placement and optimisation settings ride inside the targeting
        # payload but NewsBreak expects them as top-level fields
        targeting = dict(spec.targeting)
        placements = targeting.pop("placements", None)
        event_type = targeting.pop("event_type", None)
        optimization_goal = targeting.pop("optimization_goal", None)
        bid_amount = targeting.pop("bid_amount", None)

        body: dict[str, Any] = {
            "advertiser_id": self._advertiser_id(account_ref, credential),
            "campaign_id": parent_remote_id,
            "adgroup_name": spec.name,
            "budget": spec.budget_cents / 100,
            "budget_mode": (
                "BUDGET_MODE_DAY" if spec.budget_type == BudgetType.DAILY else "BUDGET_MODE_TOTAL"
            ),
            "schedule_type": "SCHEDULE_START_END" if spec.schedule_end else "SCHEDULE_FROM_NOW",
            "targeting": targeting,
        }
        if spec.schedule_start is not None:
            body["schedule_start_time"] = spec.schedule_start.isoformat()
        if spec.schedule_end is not None:
            body["schedule_end_time"] = spec.schedule_end.isoformat()
        if isinstance(placements, list) and placements and "ALL" not in placements:
            body["placement_type"] = placements
        if optimization_goal:
            body["optimization_goal"] = optimization_goal
        if event_type:
            body["conversion_event"] = event_type
        if bid_amount:
            body["bid_amount"] = bid_amount

        data = await self._request("POST", "/adgroups/create", credential.access_token, json=body)
        return str(data["adgroup_id"])

    async def create_creative_and_ad(
        self,
        account_ref: str,
        parent_remote_id: str,
        spec: CreativeSpec,
        credential: PlatformCredential,
    ) -> CreativeAdIds:
        body: dict[str, Any] = {
            "advertiser_id": self._advertiser_id(account_ref, credential),
            "adgroup_id": parent_remote_id,
            "ad_name": spec.name,
            "ad_text": spec.primary_text,
            "headline": spec.headline,
            "landing_page_url": spec.link_url,
            "call_to_action": spec.call_to_action,
        }
        if spec.image_handle:
            body["image_url"] = spec.image_handle

        data = await self._request("POST", "/ads/create", credential.access_token, json=body)
        return CreativeAdIds(ad_id=str(data["ad_id"]))

    async def upload_asset(
        self,
        account_ref: str,
        data: bytes,
        filename: str,
        credential: PlatformCredential,
    ) -> str:
        raise AssetUploadError(
            f"NewsBreak needs a public image URL; '{filename}' has none",
            details={"filename": filename},
        )

    async def update_campaign_state(
        self, remote_id: str, state: CampaignState, credential: PlatformCredential
    ) -> None:
        await self._request(
            "POST",
            "/campaigns/update/status",
            credential.access_token,
            json={
                "advertiser_id": self._advertiser_id(None, credential),
                "campaign_id": remote_id,
                "status": "ENABLE" if state == CampaignState.ACTIVE else "DISABLE",
            },
        )
