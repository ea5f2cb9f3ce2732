from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, Field


class Platform(str, enum.Enum):
    META = "meta"
    TIKTOK = "tiktok"
    NEWSBREAK = "newsbreak"


class CampaignState(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"


class BudgetType(str, enum.Enum):
    DAILY = "daily"
    LIFETIME = "lifetime"


class PlatformCredential(BaseModel):
    """A usable, already-decrypted access credential for one platform."""

    platform: Platform
    access_token: str = Field(repr=False)
    config: dict[str, Any] = Field(default_factory=dict)


class CampaignSpec(BaseModel):
    """Top-level campaign payload.  Campaigns are always created paused."""

    name: str
    objective: str
    special_ad_categories: list[str] = Field(default_factory=list)
    status: CampaignState = CampaignState.PAUSED


class AdGroupSpec(BaseModel):
    """Ad set / ad group payload."""

    name: str
    objective: str
    budget_type: BudgetType = BudgetType.DAILY
    budget_cents: int
    bid_strategy: str = "LOWEST_COST_WITHOUT_CAP"
    targeting: dict[str, Any] = Field(default_factory=dict)
    schedule_start: datetime | None = None
    schedule_end: datetime | None = None

    def budget_fields(self) -> dict[str, int]:
        """Exactly one of daily/lifetime budget, never both."""
        if self.budget_type == BudgetType.DAILY:
            return {"daily_budget": self.budget_cents}
        return {"lifetime_budget": self.budget_cents}


class CreativeSpec(BaseModel):
    """Creative + ad payload, already merged with contextual defaults."""

    name: str
    primary_text: str = ""
    headline: str = ""
    description: str = ""
    link_url: str = ""
    call_to_action: str = "LEARN_MORE"
    page_id: str | None = None
    image_handle: str | None = None


class CreativeAdIds(BaseModel):
    creative_id: str | None = None
    ad_id: str


class AdPlatformAdapter:
    """Base class for all advertising platform integrations.

    Every platform (Meta, TikTok, NewsBreak) must implement the creation and
    state operations.  The publish orchestrator drives this interface without
    knowing which platform sits behind it.  None of the operations
    de-duplicate: calling one twice creates two remote objects.
    """

    platform: ClassVar[Platform]

    # True when the platform takes a public image URL in place of an upload
    accepts_asset_urls: ClassVar[bool] = False

    async def create_campaign(
        self, account_ref: str, spec: CampaignSpec, credential: PlatformCredential
    ) -> str:
        raise NotImplementedError

    async def create_ad_group(
        self,
        account_ref: str,
        parent_remote_id: str,
        spec: AdGroupSpec,
        credential: PlatformCredential,
    ) -> str:
        raise NotImplementedError

    async def create_creative_and_ad(
        self,
        account_ref: str,
        parent_remote_id: str,
        spec: CreativeSpec,
        credential: PlatformCredential,
    ) -> CreativeAdIds:
        raise NotImplementedError

    async def upload_asset(
        self,
        account_ref: str,
        data: bytes,
        filename: str,
        credential: PlatformCredential,
    ) -> str:
        raise NotImplementedError

    async def update_campaign_state(
        self, remote_id: str, state: CampaignState, credential: PlatformCredential
    ) -> None:
        raise NotImplementedError

    async def creative_defaults(
        self, account_ref: str, credential: PlatformCredential
    ) -> dict[str, Any]:
        """Contextual defaults merged under every ad's creative fields."""
        return {}

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""
        return None
