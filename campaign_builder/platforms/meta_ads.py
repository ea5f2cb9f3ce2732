"""Meta Ads (Facebook/Instagram) platform adapter.

Uses the official facebook-business Python SDK against the Meta Marketing
API.  Covers the object hierarchy the publisher needs:
Campaign → AdSet → AdCreative → Ad, plus AdImage uploads and campaign
status updates.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any, Callable, TypeVar

from facebook_business.adobjects.ad import Ad
from facebook_business.adobjects.adaccount import AdAccount
from facebook_business.adobjects.adcreative import AdCreative
from facebook_business.adobjects.adimage import AdImage
from facebook_business.adobjects.adset import AdSet
from facebook_business.adobjects.campaign import Campaign
from facebook_business.api import FacebookAdsApi
from facebook_business.exceptions import FacebookRequestError

from campaign_builder.platforms.base import (
    AdGroupSpec,
    AdPlatformAdapter,
    CampaignSpec,
    CampaignState,
    CreativeAdIds,
    CreativeSpec,
    Platform,
    PlatformCredential,
)
from campaign_builder.platforms.exceptions import (
    AssetUploadError,
    CreativeCreationError,
    PlatformError,
    PlatformRequestError,
)
from campaign_builder.utils.image_utils import (
    META_IMAGE_REQUIREMENTS,
    require_valid_image,
    save_to_tempfile,
)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Objective mapping: internal name → Meta Marketing API objective
# Uses the v21.0+ OUTCOME_* objectives
# ---------------------------------------------------------------------------

OBJECTIVE_MAP: dict[str, str] = {
    "conversions": "OUTCOME_SALES",
    "sales": "OUTCOME_SALES",
    "traffic": "OUTCOME_TRAFFIC",
    "lead_generation": "OUTCOME_LEADS",
    "leads": "OUTCOME_LEADS",
    "awareness": "OUTCOME_AWARENESS",
    "brand_awareness": "OUTCOME_AWARENESS",
    "reach": "OUTCOME_AWARENESS",
    "engagement": "OUTCOME_ENGAGEMENT",
    "video_views": "OUTCOME_ENGAGEMENT",
    "app_installs": "OUTCOME_APP_PROMOTION",
}

_CAMPAIGN_STATUS = {
    CampaignState.ACTIVE: Campaign.Status.active,
    CampaignState.PAUSED: Campaign.Status.paused,
}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_account_id(account_ref: str) -> str:
    """Meta ad account ids are addressed as ``act_<number>``."""
    return account_ref if account_ref.startswith("act_") else f"act_{account_ref}"


def map_objective(objective: str) -> str:
    """Translate an objective to a Meta OUTCOME_* objective."""
    if objective.upper().startswith("OUTCOME_"):
        return objective.upper()
    try:
        return OBJECTIVE_MAP[objective.lower()]
    except KeyError:
        raise PlatformRequestError(
            f"Unknown objective '{objective}'. "
            f"Supported: {', '.join(sorted(OBJECTIVE_MAP))}",
            details={"objective": objective},
        ) from None


def _map_bid_strategy(bid_strategy: str) -> str:
    """Map internal bid strategy aliases to Meta API bid strategies."""
    mapping = {
        "auto": "LOWEST_COST_WITHOUT_CAP",
        "lowest_cost": "LOWEST_COST_WITHOUT_CAP",
        "cost_cap": "COST_CAP",
        "bid_cap": "LOWEST_COST_WITH_BID_CAP",
        "target_cost": "COST_CAP",
    }
    return mapping.get(bid_strategy, bid_strategy or "LOWEST_COST_WITHOUT_CAP")


def _map_optimization_goal(objective: str) -> str:
    """Map Meta objective to a default optimization goal for ad sets."""
    mapping = {
        "OUTCOME_SALES": "OFFSITE_CONVERSIONS",
        "OUTCOME_TRAFFIC": "LINK_CLICKS",
        "OUTCOME_LEADS": "LEAD_GENERATION",
        "OUTCOME_AWARENESS": "REACH",
        "OUTCOME_ENGAGEMENT": "POST_ENGAGEMENT",
        "OUTCOME_APP_PROMOTION": "APP_INSTALLS",
    }
    return mapping.get(objective, "LINK_CLICKS")


def _request_error_details(exc: FacebookRequestError) -> dict[str, Any]:
    return {
        "error_code": exc.api_error_code(),
        "error_message": exc.api_error_message(),
    }


# ---------------------------------------------------------------------------
# MetaAdsAdapter
# ---------------------------------------------------------------------------


class MetaAdsAdapter(AdPlatformAdapter):
    """Meta Marketing API adapter using the facebook-business SDK.

    All SDK calls are synchronous, so they are wrapped with
    ``asyncio.to_thread()`` to avoid blocking the event loop.  One SDK API
    session is kept per access token.
    """

    platform = Platform.META

    def __init__(self, app_secret: str = "", api_version: str | None = None) -> None:
        self._app_secret = app_secret
        self._api_version = api_version
        self._apis: dict[str, FacebookAdsApi] = {}

    def _api(self, credential: PlatformCredential) -> FacebookAdsApi:
        api = self._apis.get(credential.access_token)
        if api is None:
            api = FacebookAdsApi.init(
                app_secret=self._app_secret or None,
                access_token=credential.access_token,
                api_version=self._api_version,
                crash_log=False,
            )
            self._apis[credential.access_token] = api
        return api

    def _account(self, account_ref: str, credential: PlatformCredential) -> AdAccount:
        return AdAccount(normalize_account_id(account_ref), api=self._api(credential))

    async def _run(
        self,
        func: Callable[..., T],
        *args: Any,
        error_cls: type[PlatformError] = PlatformRequestError,
        action: str,
    ) -> T:
        try:
            return await asyncio.to_thread(func, *args)
        except PlatformError:
            raise
        except FacebookRequestError as exc:
            raise error_cls(
                f"Meta {action} failed: {exc.api_error_message() or exc}",
                details=_request_error_details(exc),
            ) from exc

    # ------------------------------------------------------------------
    # create_campaign
    # ------------------------------------------------------------------

    def _sync_create_campaign(
        self, account_ref: str, spec: CampaignSpec, credential: PlatformCredential
    ) -> str:
        params = {
            Campaign.Field.name: spec.name,
            Campaign.Field.objective: map_objective(spec.objective),
            Campaign.Field.status: _CAMPAIGN_STATUS[spec.status],
            Campaign.Field.special_ad_categories: list(spec.special_ad_categories),
        }
        campaign = self._account(account_ref, credential).create_campaign(params=params)
        return campaign["id"]

    async def create_campaign(
        self, account_ref: str, spec: CampaignSpec, credential: PlatformCredential
    ) -> str:
        return await self._run(
            self._sync_create_campaign,
            account_ref,
            spec,
            credential,
            action="campaign creation",
        )

    # ------------------------------------------------------------------
    # create_ad_group
    # ------------------------------------------------------------------

    def _sync_create_ad_set(
        self,
        account_ref: str,
        campaign_id: str,
        spec: AdGroupSpec,
        credential: PlatformCredential,
    ) -> str:
        objective = map_objective(spec.objective)
        params: dict[str, Any] = {
            AdSet.Field.name: spec.name,
            AdSet.Field.campaign_id: campaign_id,
            AdSet.Field.billing_event: "IMPRESSIONS",
            AdSet.Field.optimization_goal: _map_optimization_goal(objective),
            AdSet.Field.bid_strategy: _map_bid_strategy(spec.bid_strategy),
            AdSet.Field.status: AdSet.Status.paused,
            # Meta requires targeting; fall back to a minimal default
            AdSet.Field.targeting: spec.targeting or {"geo_locations": {"countries": ["US"]}},
            **spec.budget_fields(),
        }
        if spec.schedule_start is not None:
            params[AdSet.Field.start_time] = spec.schedule_start.isoformat()
        if spec.schedule_end is not None:
            params[AdSet.Field.end_time] = spec.schedule_end.isoformat()

        adset = self._account(account_ref, credential).create_ad_set(params=params)
        return adset["id"]

    async def create_ad_group(
        self,
        account_ref: str,
        parent_remote_id: str,
        spec: AdGroupSpec,
        credential: PlatformCredential,
    ) -> str:
        return await self._run(
            self._sync_create_ad_set,
            account_ref,
            parent_remote_id,
            spec,
            credential,
            action="ad set creation",
        )

    # ------------------------------------------------------------------
    # create_creative_and_ad
    # ------------------------------------------------------------------

    def _sync_create_creative_and_ad(
        self,
        account_ref: str,
        adset_id: str,
        spec: CreativeSpec,
        credential: PlatformCredential,
    ) -> CreativeAdIds:
        if not spec.page_id:
            raise CreativeCreationError(
                f"No Facebook page available for ad '{spec.name}'",
                details={"name": spec.name},
            )

        link_data: dict[str, Any] = {
            "message": spec.primary_text,
            "link": spec.link_url,
            "name": spec.headline,
            "description": spec.description,
            "call_to_action": {"type": spec.call_to_action},
        }
        if spec.image_handle:
            link_data["image_hash"] = spec.image_handle

        account = self._account(account_ref, credential)
        creative = account.create_ad_creative(
            params={
                AdCreative.Field.name: f"{spec.name} Creative",
                AdCreative.Field.object_story_spec: {
                    "page_id": spec.page_id,
                    "link_data": link_data,
                },
            }
        )
        creative_id = creative["id"]

        try:
            ad = account.create_ad(
                params={
                    Ad.Field.name: spec.name,
                    Ad.Field.adset_id: adset_id,
                    Ad.Field.creative: {"creative_id": creative_id},
                    Ad.Field.status: Ad.Status.paused,
                }
            )
        except FacebookRequestError as exc:
            raise CreativeCreationError(
                f"Failed to create ad '{spec.name}': {exc.api_error_message() or exc}",
                details={"creative_id": creative_id, **_request_error_details(exc)},
            ) from exc
        return CreativeAdIds(creative_id=creative_id, ad_id=ad["id"])

    async def create_creative_and_ad(
        self,
        account_ref: str,
        parent_remote_id: str,
        spec: CreativeSpec,
        credential: PlatformCredential,
    ) -> CreativeAdIds:
        return await self._run(
            self._sync_create_creative_and_ad,
            account_ref,
            parent_remote_id,
            spec,
            credential,
            error_cls=CreativeCreationError,
            action="creative creation",
        )

    # ------------------------------------------------------------------
    # upload_asset
    # ------------------------------------------------------------------

    def _sync_upload_image(
        self,
        account_ref: str,
        data: bytes,
        filename: str,
        credential: PlatformCredential,
    ) -> str:
        info = require_valid_image(data, META_IMAGE_REQUIREMENTS)
        suffix = os.path.splitext(filename)[1] or (".png" if info.format == "PNG" else ".jpg")
        tmp_path = save_to_tempfile(data, suffix=suffix)
        try:
            image = AdImage(parent_id=normalize_account_id(account_ref), api=self._api(credential))
            image[AdImage.Field.filename] = tmp_path
            image.remote_create()
            return image[AdImage.Field.hash]
        finally:
            os.unlink(tmp_path)

    async def upload_asset(
        self,
        account_ref: str,
        data: bytes,
        filename: str,
        credential: PlatformCredential,
    ) -> str:
        return await self._run(
            self._sync_upload_image,
            account_ref,
            data,
            filename,
            credential,
            error_cls=AssetUploadError,
            action=f"image upload of '{filename}'",
        )

    # ------------------------------------------------------------------
    # update_campaign_state
    # ------------------------------------------------------------------

    def _sync_update_campaign_state(
        self, remote_id: str, state: CampaignState, credential: PlatformCredential
    ) -> None:
        campaign = Campaign(remote_id, api=self._api(credential))
        campaign.api_update(params={Campaign.Field.status: _CAMPAIGN_STATUS[state]})

    async def update_campaign_state(
        self, remote_id: str, state: CampaignState, credential: PlatformCredential
    ) -> None:
        await self._run(
            self._sync_update_campaign_state,
            remote_id,
            state,
            credential,
            action="campaign status update",
        )

    # ------------------------------------------------------------------
    # creative_defaults
    # ------------------------------------------------------------------

    def _sync_first_page_id(self, account_ref: str, credential: PlatformCredential) -> str | None:
        pages = self._account(account_ref, credential).get_promote_pages(fields=["id", "name"])
        for page in pages:
            return page["id"]
        return None

    async def creative_defaults(
        self, account_ref: str, credential: PlatformCredential
    ) -> dict[str, Any]:
        page_id = await self._run(
            self._sync_first_page_id, account_ref, credential, action="page lookup"
        )
        return {"page_id": page_id} if page_id else {}
