"""TikTok Ads platform adapter (TikTok Business API v1.3).

Campaign → Ad Group → Ad.  TikTok has no standalone creative object: the
creative fields travel on the ad itself, so ``creative_id`` is always None.
"""

from __future__ import annotations

from datetime import datetime
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
from campaign_builder.platforms.exceptions import AssetUploadError, PlatformRequestError
from campaign_builder.platforms.http_api import EnvelopeApiAdapter
from campaign_builder.utils.image_utils import TIKTOK_IMAGE_REQUIREMENTS, md5_hex, require_valid_image

# Map Meta-style and internal objectives to TikTok objective types
OBJECTIVE_MAP: dict[str, str] = {
    "OUTCOME_SALES": "CONVERSIONS",
    "OUTCOME_TRAFFIC": "TRAFFIC",
    "OUTCOME_ENGAGEMENT": "ENGAGEMENT",
    "OUTCOME_LEADS": "LEAD_GENERATION",
    "OUTCOME_AWARENESS": "REACH",
    "OUTCOME_APP_PROMOTION": "APP_PROMOTION",
    # TikTok-native objectives pass through
    "CONVERSIONS": "CONVERSIONS",
    "TRAFFIC": "TRAFFIC",
    "REACH": "REACH",
    "VIDEO_VIEWS": "VIDEO_VIEWS",
    "LEAD_GENERATION": "LEAD_GENERATION",
    "APP_INSTALLS": "APP_PROMOTION",
}

BID_TYPE_MAP: dict[str, str] = {
    "LOWEST_COST_WITHOUT_CAP": "BID_TYPE_NO_BID",
    "LOWEST_COST_WITH_BID_CAP": "BID_TYPE_CUSTOM",
    "COST_CAP": "BID_TYPE_CUSTOM",
    "LOWEST_COST_WITH_MIN_ROAS": "BID_TYPE_CUSTOM",
}

OPTIMIZATION_GOAL_MAP: dict[str, str] = {
    "CONVERSIONS": "CONVERT",
    "TRAFFIC": "CLICK",
    "REACH": "REACH",
    "VIDEO_VIEWS": "VIDEO_VIEW",
    "LEAD_GENERATION": "LEAD_GENERATION",
    "APP_PROMOTION": "INSTALL",
}

# TikTok rejects ad groups below $20; budgets are in major currency units
TIKTOK_MIN_BUDGET = 20.0

_TARGETING_PASSTHROUGH = ("location_ids", "gender", "age_groups", "operating_systems")


def map_objective(objective: str) -> str:
    return OBJECTIVE_MAP.get(objective.upper(), "TRAFFIC")


def _tiktok_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")


class TikTokAdsAdapter(EnvelopeApiAdapter):
    platform = Platform.TIKTOK

    def __init__(
        self,
        base_url: str = "https://business-api.tiktok.com/open_api/v1.3",
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(base_url, timeout=timeout, client=client)

    @staticmethod
    def _advertiser_id(account_ref: str | None, credential: PlatformCredential) -> str:
        advertiser_id = account_ref or credential.config.get("advertiser_id")
        if not advertiser_id:
            raise PlatformRequestError("No TikTok advertiser id configured")
        return str(advertiser_id)

    async def create_campaign(
        self, account_ref: str, spec: CampaignSpec, credential: PlatformCredential
    ) -> str:
        data = await self._request(
            "POST",
            "/campaign/create/",
            credential.access_token,
            json={
                "advertiser_id": self._advertiser_id(account_ref, credential),
                "campaign_name": spec.name,
                "objective_type": map_objective(spec.objective),
                "budget_mode": "BUDGET_MODE_INFINITE",
                "operation_status": "DISABLE" if spec.status == CampaignState.PAUSED else "ENABLE",
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
        objective = map_objective(spec.objective)
        body: dict[str, Any] = {
            "advertiser_id": self._advertiser_id(account_ref, credential),
            "campaign_id": parent_remote_id,
            "adgroup_name": spec.name,
            "placement_type": "PLACEMENT_TYPE_AUTOMATIC",
            "budget": max(TIKTOK_MIN_BUDGET, spec.budget_cents / 100),
            "budget_mode": (
                "BUDGET_MODE_DAY" if spec.budget_type == BudgetType.DAILY else "BUDGET_MODE_TOTAL"
            ),
            "schedule_type": "SCHEDULE_START_END" if spec.schedule_end else "SCHEDULE_FROM_NOW",
            "optimization_goal": OPTIMIZATION_GOAL_MAP.get(objective, "CLICK"),
            "bid_type": BID_TYPE_MAP.get(spec.bid_strategy, "BID_TYPE_NO_BID"),
            "billing_event": "OCPM",
        }
        if spec.schedule_start is not None:
            body["schedule_start_time"] = _tiktok_time(spec.schedule_start)
        if spec.schedule_end is not None:
            body["schedule_end_time"] = _tiktok_time(spec.schedule_end)
        for key in _TARGETING_PASSTHROUGH:
            if spec.targeting.get(key):
                body[key] = spec.targeting[key]

        data = await self._request("POST", "/adgroup/create/", credential.access_token, json=body)
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
            "ad_format": "SINGLE_IMAGE",
            "call_to_action": spec.call_to_action,
        }
        ad_text = spec.primary_text or spec.headline
        if ad_text:
            body["ad_text"] = ad_text
        if spec.image_handle:
            body["image_ids"] = [spec.image_handle]
        if spec.link_url:
            body["landing_page_url"] = spec.link_url

        data = await self._request("POST", "/ad/create/", credential.access_token, json=body)
        return CreativeAdIds(ad_id=str(data["ad_id"]))

    async def upload_asset(
        self,
        account_ref: str,
        data: bytes,
        filename: str,
        credential: PlatformCredential,
    ) -> str:
        require_valid_image(data, TIKTOK_IMAGE_REQUIREMENTS)
        try:
            result = await self._request(
                "POST",
                "/file/image/ad/upload/",
                credential.access_token,
                data={
                    "advertiser_id": self._advertiser_id(account_ref, credential),
                    "upload_type": "UPLOAD_BY_FILE",
                    "image_signature": md5_hex(data),
                },
                files={"image_file": (filename, data)},
            )
        except PlatformRequestError as exc:
            raise AssetUploadError(
                f"TikTok image upload failed: {exc}", details=exc.details
            ) from exc
        return str(result["image_id"])

    async def update_campaign_state(
        self, remote_id: str, state: CampaignState, credential: PlatformCredential
    ) -> None:
        await self._request(
            "POST",
            "/campaign/status/update/",
            credential.access_token,
            json={
                "advertiser_id": self._advertiser_id(None, credential),
                "campaign_ids": [remote_id],
                "operation_status": "ENABLE" if state == CampaignState.ACTIVE else "DISABLE",
            },
        )
