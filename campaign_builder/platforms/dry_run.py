from __future__ import annotations

import hashlib
import uuid
from typing import Any

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


class DryRunAdapter(AdPlatformAdapter):
    """Simulates platform API calls with realistic fake responses.

    Used for development, testing, and dry-run publishing of drafts before
    connecting real platform APIs.  Every call is recorded in ``calls``.
    """

    def __init__(self, platform: Platform = Platform.META) -> None:
        self.platform = platform
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.campaign_states: dict[str, CampaignState] = {}

    def _fake_id(self, kind: str) -> str:
        return f"dry-run-{kind}-{uuid.uuid4().hex[:8]}"

    async def create_campaign(
        self, account_ref: str, spec: CampaignSpec, credential: PlatformCredential
    ) -> str:
        self.calls.append(("create_campaign", {"account_ref": account_ref, **spec.model_dump()}))
        remote_id = self._fake_id("campaign")
        self.campaign_states[remote_id] = spec.status
        return remote_id

    async def create_ad_group(
        self,
        account_ref: str,
        parent_remote_id: str,
        spec: AdGroupSpec,
        credential: PlatformCredential,
    ) -> str:
        self.calls.append(
            (
                "create_ad_group",
                {"parent": parent_remote_id, "name": spec.name, **spec.budget_fields()},
            )
        )
        return self._fake_id("adset")

    async def create_creative_and_ad(
        self,
        account_ref: str,
        parent_remote_id: str,
        spec: CreativeSpec,
        credential: PlatformCredential,
    ) -> CreativeAdIds:
        self.calls.append(
            ("create_creative_and_ad", {"parent": parent_remote_id, **spec.model_dump()})
        )
        return CreativeAdIds(creative_id=self._fake_id("creative"), ad_id=self._fake_id("ad"))

    async def upload_asset(
        self,
        account_ref: str,
        data: bytes,
        filename: str,
        credential: PlatformCredential,
    ) -> str:
        self.calls.append(("upload_asset", {"filename": filename, "size": len(data)}))
        return hashlib.md5(data).hexdigest()

    async def update_campaign_state(
        self, remote_id: str, state: CampaignState, credential: PlatformCredential
    ) -> None:
        self.calls.append(("update_campaign_state", {"remote_id": remote_id, "state": state}))
        self.campaign_states[remote_id] = state
