"""Draft repository: every read and write the publisher makes to the
draft, ad set and ad tables.

All writes commit immediately so that remote ids are durable before the
next remote call.  A single ``asyncio.Lock`` serialises use of the session
when ad sets are published by concurrent workers.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_builder.exceptions import ConflictReason, DraftNotFoundError, StateConflictError
from campaign_builder.models import AdAccount, CampaignAd, CampaignAdSet, CampaignDraft

PUBLISHABLE_STATUSES = ("draft", "failed")


class DraftRepository:
    def __init__(self, session: AsyncSession, lock: asyncio.Lock | None = None) -> None:
        self.session = session
        self.lock = lock or asyncio.Lock()

    # ------------------------------------------------------------------
    # Draft state machine
    # ------------------------------------------------------------------

    async def claim_for_publish(self, draft_id: uuid.UUID, user_id: uuid.UUID) -> CampaignDraft:
        """Atomically move a draft from draft/failed to publishing.

        One conditional UPDATE both checks and sets the status and bumps the
        version; the new version is the caller's fencing token.  Raises
        ``DraftNotFoundError`` or ``StateConflictError`` if the draft cannot
        be claimed.
        """
        async with self.lock:
            result = await self.session.execute(
                update(CampaignDraft)
                .where(
                    CampaignDraft.id == draft_id,
                    CampaignDraft.user_id == user_id,
                    CampaignDraft.status.in_(PUBLISHABLE_STATUSES),
                )
                .values(
                    status="publishing",
                    version=CampaignDraft.version + 1,
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()

            if result.rowcount == 1:
                return await self._load_draft(draft_id)

            status = (
                await self.session.execute(
                    select(CampaignDraft.status).where(
                        CampaignDraft.id == draft_id, CampaignDraft.user_id == user_id
                    )
                )
            ).scalar_one_or_none()

        if status is None:
            raise DraftNotFoundError()
        if status == "published":
            raise StateConflictError(ConflictReason.ALREADY_PUBLISHED, status)
        if status == "publishing":
            raise StateConflictError(ConflictReason.CURRENTLY_PUBLISHING, status)
        if status in PUBLISHABLE_STATUSES:
            # Claimable again by the time we looked: someone else won and finished
            raise StateConflictError(ConflictReason.CONCURRENT_MODIFICATION, status)
        raise StateConflictError(ConflictReason.INVALID_STATUS, status)

    async def update_claimed_draft(self, draft: CampaignDraft, **values: Any) -> None:
        """Write to a draft this run has claimed, fenced on its version."""
        async with self.lock:
            result = await self.session.execute(
                update(CampaignDraft)
                .where(CampaignDraft.id == draft.id, CampaignDraft.version == draft.version)
                .values(updated_at=func.now(), **values)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            if result.rowcount != 1:
                raise StateConflictError(ConflictReason.CONCURRENT_MODIFICATION)
            for key, value in values.items():
                setattr(draft, key, value)

    async def _load_draft(self, draft_id: uuid.UUID) -> CampaignDraft:
        result = await self.session.execute(
            select(CampaignDraft)
            .where(CampaignDraft.id == draft_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_draft(self, draft_id: uuid.UUID, user_id: uuid.UUID) -> CampaignDraft | None:
        async with self.lock:
            result = await self.session.execute(
                select(CampaignDraft).where(
                    CampaignDraft.id == draft_id, CampaignDraft.user_id == user_id
                )
            )
            return result.scalar_one_or_none()

    async def get_account(
        self, account_id: uuid.UUID | None, user_id: uuid.UUID
    ) -> AdAccount | None:
        if account_id is None:
            return None
        async with self.lock:
            result = await self.session.execute(
                select(AdAccount).where(AdAccount.id == account_id, AdAccount.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def list_ad_sets(self, draft_id: uuid.UUID) -> list[CampaignAdSet]:
        async with self.lock:
            result = await self.session.execute(
                select(CampaignAdSet)
                .where(CampaignAdSet.draft_id == draft_id)
                .order_by(CampaignAdSet.position, CampaignAdSet.created_at)
            )
            return list(result.scalars().all())

    async def list_ads(self, ad_set_id: uuid.UUID) -> list[CampaignAd]:
        async with self.lock:
            result = await self.session.execute(
                select(CampaignAd)
                .where(CampaignAd.ad_set_id == ad_set_id)
                .order_by(CampaignAd.position, CampaignAd.created_at)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Entity writes
    # ------------------------------------------------------------------

    async def _save(self, entity: CampaignAdSet | CampaignAd, **values: Any) -> None:
        async with self.lock:
            for key, value in values.items():
                setattr(entity, key, value)
            await self.session.commit()

    async def mark_ad_set_published(self, ad_set: CampaignAdSet, remote_id: str) -> None:
        await self._save(ad_set, remote_ad_set_id=remote_id, status="published", last_error=None)

    async def mark_ad_set_failed(self, ad_set: CampaignAdSet, error: str) -> None:
        await self._save(ad_set, status="failed", last_error=error)

    async def mark_ad_published(
        self, ad: CampaignAd, *, remote_ad_id: str, remote_creative_id: str | None
    ) -> None:
        await self._save(
            ad,
            remote_ad_id=remote_ad_id,
            remote_creative_id=remote_creative_id,
            status="published",
            last_error=None,
        )

    async def mark_ad_failed(self, ad: CampaignAd, error: str) -> None:
        await self._save(ad, status="failed", last_error=error)

    # ------------------------------------------------------------------
    # Child creation (used by the draft editor)
    # ------------------------------------------------------------------

    async def add_ad_set(self, draft: CampaignDraft, **fields: Any) -> CampaignAdSet:
        """Append an ad set to *draft*, after any existing ones."""
        async with self.lock:
            position = await self._next_position(CampaignAdSet.draft_id == draft.id, CampaignAdSet)
            ad_set = CampaignAdSet(draft_id=draft.id, position=position, **fields)
            self.session.add(ad_set)
            await self.session.commit()
            return ad_set

    async def add_ad(self, ad_set: CampaignAdSet, **fields: Any) -> CampaignAd:
        """Append an ad to *ad_set*, after any existing ones."""
        async with self.lock:
            position = await self._next_position(CampaignAd.ad_set_id == ad_set.id, CampaignAd)
            ad = CampaignAd(ad_set_id=ad_set.id, position=position, **fields)
            self.session.add(ad)
            await self.session.commit()
            return ad

    async def _next_position(self, criterion: Any, model: type) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.max(model.position) + 1, 0)).where(criterion)
        )
        return int(result.scalar_one())
