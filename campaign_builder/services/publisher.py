"""Publish orchestrator: turns a local campaign draft into live platform
objects.

One run claims the draft (draft/failed -> publishing), resolves the ad
account and credential, creates the remote campaign, then every ad set and
its ads in stored order.  Ad set and ad failures are recorded on that
entity and never abort the run; the draft ends ``published`` only when
nothing failed.  The platform is chosen once per call through the adapter
dispatch table, so the same state machine serves every platform.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from campaign_builder.exceptions import (
    AGGREGATE_FAILURE_MESSAGE,
    ConflictReason,
    CredentialError,
    CredentialErrorKind,
    DraftNotFoundError,
    EntityCreationError,
    StateConflictError,
    TopLevelCreationError,
)
from campaign_builder.models import CampaignAd, CampaignAdSet, CampaignDraft
from campaign_builder.platforms.base import (
    AdGroupSpec,
    AdPlatformAdapter,
    CampaignSpec,
    CampaignState,
    CreativeSpec,
    Platform,
    PlatformCredential,
)
from campaign_builder.platforms.exceptions import PlatformTimeoutError
from campaign_builder.platforms.factory import get_platform_adapter
from campaign_builder.schemas import EntityOutcome, PublishResult
from campaign_builder.services.credentials import CredentialResolver
from campaign_builder.services.media import MediaStore
from campaign_builder.services.repository import DraftRepository
from campaign_builder.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Creative fields an ad may set; anything else in creative_config is ignored
CREATIVE_FIELDS = (
    "primary_text",
    "headline",
    "description",
    "link_url",
    "call_to_action",
    "page_id",
)

# Older drafts store the call to action under "cta"
CREATIVE_ALIASES = {"cta": "call_to_action"}

CANCELLED_MESSAGE = "Publishing was cancelled"


@dataclass
class _RunContext:
    """Everything a publish run resolves once and reuses for every entity."""

    draft: CampaignDraft
    platform: Platform
    adapter: AdPlatformAdapter
    account_ref: str
    credential: PlatformCredential
    remote_campaign_id: str
    creative_defaults: dict[str, Any] = field(default_factory=dict)


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class PublishOrchestrator:
    """Publishes drafts and activates published campaigns.

    Parameters
    ----------
    session : AsyncSession
        Session shared by the repository, media store and credential lookup.
    adapter_for : callable
        Platform -> adapter; defaults to the dispatch table in
        ``campaign_builder.platforms.factory``.
    timeout : float
        Upper bound in seconds on every adapter call.
    max_concurrency : int
        Number of ad sets published at once.  Ads within an ad set are
        always published one after another.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        adapter_for: Callable[[str], AdPlatformAdapter] = get_platform_adapter,
        credentials: CredentialResolver | None = None,
        timeout: float | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        lock = asyncio.Lock()
        self.repo = DraftRepository(session, lock)
        self.media = MediaStore(session, lock)
        self.credentials = credentials or CredentialResolver(session)
        self.adapter_for = adapter_for
        self.timeout = settings.PLATFORM_REQUEST_TIMEOUT_SECONDS if timeout is None else timeout
        self.max_concurrency = max(
            1, settings.PUBLISH_MAX_CONCURRENCY if max_concurrency is None else max_concurrency
        )

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish(self, draft_id: uuid.UUID, user_id: uuid.UUID) -> PublishResult:
        """Publish a draft to its platform.

        Raises ``DraftNotFoundError`` or ``StateConflictError`` when the
        draft cannot be claimed; in that case nothing is written and no
        platform call is made.  Every other failure is reported in the
        returned ``PublishResult`` and on the draft.
        """
        draft = await self.repo.claim_for_publish(draft_id, user_id)
        fence = draft.version
        logger.info(
            "Claimed draft %s for publishing (platform=%s, version=%d)",
            draft.id,
            draft.platform,
            draft.version,
        )

        try:
            adapter = self.adapter_for(draft.platform)
        except NotImplementedError as exc:
            return await self._fail(draft, _describe(exc))

        try:
            return await self._publish_claimed(draft, Platform(draft.platform), adapter)
        except StateConflictError:
            raise
        except asyncio.CancelledError:
            logger.warning("Publishing draft %s cancelled", draft.id)
            await asyncio.shield(self._release_cancelled(draft, fence))
            raise
        except Exception as exc:
            logger.exception("Publishing draft %s aborted", draft.id)
            await self.repo.session.rollback()
            await self.repo.session.refresh(draft)
            if draft.version != fence:
                raise StateConflictError(ConflictReason.CONCURRENT_MODIFICATION) from exc
            return await self._fail(draft, f"Unexpected error: {_describe(exc)}")
        finally:
            await adapter.aclose()

    async def _publish_claimed(
        self, draft: CampaignDraft, platform: Platform, adapter: AdPlatformAdapter
    ) -> PublishResult:
        try:
            account_ref, credential = await self._resolve_context(draft, platform)
            remote_campaign_id = await self._ensure_campaign(draft, adapter, account_ref, credential)
        except (CredentialError, TopLevelCreationError) as exc:
            return await self._fail(draft, _describe(exc))

        ctx = _RunContext(
            draft=draft,
            platform=platform,
            adapter=adapter,
            account_ref=account_ref,
            credential=credential,
            remote_campaign_id=remote_campaign_id,
            creative_defaults=await self._creative_defaults(adapter, account_ref, credential),
        )

        ad_sets = await self.repo.list_ad_sets(draft.id)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def worker(ad_set: CampaignAdSet) -> tuple[EntityOutcome, list[EntityOutcome]]:
            async with semaphore:
                return await self._publish_ad_set(ctx, ad_set)

        # Let every worker finish before surfacing an unexpected error
        results = await asyncio.gather(*(worker(s) for s in ad_sets), return_exceptions=True)
        for item in results:
            if isinstance(item, BaseException):
                raise item

        ad_set_outcomes = [ad_set_outcome for ad_set_outcome, _ in results]
        ad_outcomes = [ad for _, ads in results for ad in ads]

        has_failures = any(o.error for o in ad_set_outcomes) or any(o.error for o in ad_outcomes)
        if has_failures:
            await self.repo.update_claimed_draft(
                draft, status="failed", last_error=AGGREGATE_FAILURE_MESSAGE
            )
            logger.warning(
                "Draft %s published with failures (%d/%d ad sets, %d/%d ads failed)",
                draft.id,
                sum(1 for o in ad_set_outcomes if o.error),
                len(ad_set_outcomes),
                sum(1 for o in ad_outcomes if o.error),
                len(ad_outcomes),
            )
        else:
            await self.repo.update_claimed_draft(draft, status="published", last_error=None)
            logger.info(
                "Draft %s published as campaign %s (%d ad sets, %d ads)",
                draft.id,
                remote_campaign_id,
                len(ad_set_outcomes),
                len(ad_outcomes),
            )

        return PublishResult(
            success=not has_failures,
            platform=platform.value,
            remote_campaign_id=remote_campaign_id,
            ad_sets=ad_set_outcomes,
            ads=ad_outcomes,
            error=AGGREGATE_FAILURE_MESSAGE if has_failures else None,
        )

    async def _fail(self, draft: CampaignDraft, message: str) -> PublishResult:
        logger.warning("Publishing draft %s failed: %s", draft.id, message)
        await self.repo.update_claimed_draft(draft, status="failed", last_error=message)
        return PublishResult(
            success=False,
            platform=draft.platform,
            remote_campaign_id=draft.remote_campaign_id,
            error=message,
        )

    async def _release_cancelled(self, draft: CampaignDraft, fence: int) -> None:
        """Move a cancelled run's draft to ``failed`` so it can be retried."""
        await self.repo.session.rollback()
        await self.repo.session.refresh(draft)
        if draft.version != fence:
            logger.warning("Draft %s was claimed again; leaving it untouched", draft.id)
            return
        try:
            await self.repo.update_claimed_draft(
                draft, status="failed", last_error=CANCELLED_MESSAGE
            )
        except StateConflictError:
            logger.warning("Draft %s was claimed again; leaving it untouched", draft.id)

    async def _resolve_context(
        self, draft: CampaignDraft, platform: Platform
    ) -> tuple[str, PlatformCredential]:
        account = await self.repo.get_account(draft.account_id, draft.user_id)
        if account is None:
            raise CredentialError(CredentialErrorKind.NO_ACCOUNT, "Ad account not found")
        credential = await self.credentials.resolve(draft.user_id, platform)
        return account.platform_account_id, credential

    async def _ensure_campaign(
        self,
        draft: CampaignDraft,
        adapter: AdPlatformAdapter,
        account_ref: str,
        credential: PlatformCredential,
    ) -> str:
        # A retried draft keeps the campaign its earlier run created
        if draft.remote_campaign_id:
            logger.info(
                "Draft %s reusing remote campaign %s", draft.id, draft.remote_campaign_id
            )
            return draft.remote_campaign_id

        spec = CampaignSpec(
            name=draft.name,
            objective=draft.objective,
            special_ad_categories=list(draft.special_ad_categories or []),
        )
        try:
            remote_id = await self._call(
                adapter.create_campaign(account_ref, spec, credential), "create campaign"
            )
        except Exception as exc:
            raise TopLevelCreationError(f"Campaign creation failed: {_describe(exc)}") from exc

        await self.repo.update_claimed_draft(draft, remote_campaign_id=remote_id)
        return remote_id

    async def _creative_defaults(
        self, adapter: AdPlatformAdapter, account_ref: str, credential: PlatformCredential
    ) -> dict[str, Any]:
        try:
            return await self._call(
                adapter.creative_defaults(account_ref, credential), "resolve creative defaults"
            )
        except Exception as exc:
            # Ads that need a missing default fail on their own
            logger.warning("Could not resolve creative defaults: %s", _describe(exc))
            return {}

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    async def _publish_ad_set(
        self, ctx: _RunContext, ad_set: CampaignAdSet
    ) -> tuple[EntityOutcome, list[EntityOutcome]]:
        if ad_set.status == "published" and ad_set.remote_ad_set_id:
            remote_id = ad_set.remote_ad_set_id
            logger.info("Ad set %s already published as %s", ad_set.id, remote_id)
        else:
            try:
                spec = AdGroupSpec(
                    name=ad_set.name,
                    objective=ctx.draft.objective,
                    budget_type=ad_set.budget_type,
                    budget_cents=ad_set.budget_cents,
                    bid_strategy=ad_set.bid_strategy,
                    targeting=dict(ad_set.targeting or {}),
                    schedule_start=ad_set.schedule_start,
                    schedule_end=ad_set.schedule_end,
                )
                remote_id = await self._call(
                    ctx.adapter.create_ad_group(
                        ctx.account_ref, ctx.remote_campaign_id, spec, ctx.credential
                    ),
                    "create ad set",
                )
            except Exception as exc:
                error = _describe(exc)
                logger.warning("Ad set %s failed: %s", ad_set.id, error)
                await self.repo.mark_ad_set_failed(ad_set, error)
                return EntityOutcome(local_id=ad_set.id, error=error), []
            await self.repo.mark_ad_set_published(ad_set, remote_id)

        ad_outcomes = []
        for ad in await self.repo.list_ads(ad_set.id):
            ad_outcomes.append(await self._publish_ad(ctx, ad, remote_id))
        return EntityOutcome(local_id=ad_set.id, remote_id=remote_id), ad_outcomes

    async def _publish_ad(
        self, ctx: _RunContext, ad: CampaignAd, remote_ad_set_id: str
    ) -> EntityOutcome:
        if ad.status == "published" and ad.remote_ad_id:
            return EntityOutcome(
                local_id=ad.id, remote_id=ad.remote_ad_id, remote_creative_id=ad.remote_creative_id
            )

        try:
            image_handle = await self._resolve_media(ctx, ad)
            spec = self._creative_spec(ctx, ad, image_handle)
            ids = await self._call(
                ctx.adapter.create_creative_and_ad(
                    ctx.account_ref, remote_ad_set_id, spec, ctx.credential
                ),
                "create ad",
            )
        except Exception as exc:
            error = _describe(exc)
            logger.warning("Ad %s failed: %s", ad.id, error)
            await self.repo.mark_ad_failed(ad, error)
            return EntityOutcome(local_id=ad.id, error=error)

        await self.repo.mark_ad_published(
            ad, remote_ad_id=ids.ad_id, remote_creative_id=ids.creative_id
        )
        return EntityOutcome(
            local_id=ad.id, remote_id=ids.ad_id, remote_creative_id=ids.creative_id
        )

    async def _resolve_media(self, ctx: _RunContext, ad: CampaignAd) -> str | None:
        """Platform handle for the ad's image, uploading it at most once."""
        if ad.media_upload_id is None:
            return None

        media = await self.media.get(ad.media_upload_id, ctx.draft.user_id)
        if media is None:
            raise EntityCreationError("ad", ad.id, "Media upload not found")

        cached = (media.platform_handles or {}).get(ctx.platform.value)
        if cached:
            return cached
        if ctx.adapter.accepts_asset_urls:
            url = (ad.creative_config or {}).get("image_url") or media.public_url
            if url:
                return url

        data = await self.media.read_bytes(media)
        handle = await self._call(
            ctx.adapter.upload_asset(ctx.account_ref, data, media.filename, ctx.credential),
            "upload asset",
        )
        await self.media.cache_handle(media, ctx.platform.value, handle)
        return handle

    @staticmethod
    def _creative_spec(ctx: _RunContext, ad: CampaignAd, image_handle: str | None) -> CreativeSpec:
        fields = {k: v for k, v in ctx.creative_defaults.items() if k in CREATIVE_FIELDS}
        config = dict(ad.creative_config or {})
        for alias, key in CREATIVE_ALIASES.items():
            if config.get(alias) not in (None, "") and config.get(key) in (None, ""):
                config[key] = config[alias]
        for key in CREATIVE_FIELDS:
            value = config.get(key)
            if value not in (None, ""):
                fields[key] = value
        return CreativeSpec(name=ad.name, image_handle=image_handle, **fields)

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    async def activate(self, draft_id: uuid.UUID, user_id: uuid.UUID) -> str:
        """Switch a published draft's remote campaign to active.

        Leaves the draft's own status alone.  Returns the remote campaign id.
        """
        draft = await self.repo.get_draft(draft_id, user_id)
        if draft is None or draft.status != "published" or not draft.remote_campaign_id:
            raise DraftNotFoundError("Published draft not found")

        credential = await self.credentials.resolve(user_id, draft.platform)
        adapter = self.adapter_for(draft.platform)
        try:
            await self._call(
                adapter.update_campaign_state(
                    draft.remote_campaign_id, CampaignState.ACTIVE, credential
                ),
                "activate campaign",
            )
        finally:
            await adapter.aclose()

        logger.info("Activated campaign %s for draft %s", draft.remote_campaign_id, draft.id)
        return draft.remote_campaign_id

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _call(self, awaitable: Awaitable[T], action: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise PlatformTimeoutError(
                f"Timed out after {self.timeout:g}s: {action}",
                details={"action": action, "timeout": self.timeout},
            ) from exc
