"""Tests for the draft repository: claim, fencing and child ordering."""

import uuid

import pytest
from sqlalchemy import update

from campaign_builder.exceptions import ConflictReason, DraftNotFoundError, StateConflictError
from campaign_builder.models import CampaignDraft
from campaign_builder.services.repository import DraftRepository
from tests.conftest import seed_draft


@pytest.mark.asyncio
async def test_claim_moves_draft_to_publishing_and_bumps_version(db):
    draft = await seed_draft(db)
    repo = DraftRepository(db)

    claimed = await repo.claim_for_publish(draft.id, draft.user_id)

    assert claimed.id == draft.id
    assert claimed.status == "publishing"
    assert claimed.version == 1


@pytest.mark.asyncio
async def test_claim_accepts_failed_drafts(db):
    draft = await seed_draft(db, status="failed", version=3)

    claimed = await DraftRepository(db).claim_for_publish(draft.id, draft.user_id)

    assert claimed.status == "publishing"
    assert claimed.version == 4


@pytest.mark.asyncio
async def test_second_claim_loses(db):
    draft = await seed_draft(db)
    repo = DraftRepository(db)
    await repo.claim_for_publish(draft.id, draft.user_id)

    with pytest.raises(StateConflictError) as exc_info:
        await repo.claim_for_publish(draft.id, draft.user_id)

    assert exc_info.value.reason == ConflictReason.CURRENTLY_PUBLISHING
    assert exc_info.value.status == "publishing"


@pytest.mark.asyncio
async def test_claim_unknown_draft(db):
    with pytest.raises(DraftNotFoundError) as exc_info:
        await DraftRepository(db).claim_for_publish(uuid.uuid4(), uuid.uuid4())
    assert str(exc_info.value) == "Draft not found"


@pytest.mark.asyncio
async def test_fenced_write_rejected_after_reclaim(db):
    draft = await seed_draft(db)
    repo = DraftRepository(db)
    claimed = await repo.claim_for_publish(draft.id, draft.user_id)
    stale_version = claimed.version

    # Another run finishes and reclaims the draft behind our back
    await db.execute(
        update(CampaignDraft)
        .where(CampaignDraft.id == draft.id)
        .values(version=CampaignDraft.version + 1)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    assert claimed.version == stale_version

    with pytest.raises(StateConflictError) as exc_info:
        await repo.update_claimed_draft(claimed, status="published")

    assert exc_info.value.reason == ConflictReason.CONCURRENT_MODIFICATION


@pytest.mark.asyncio
async def test_fenced_write_updates_draft(db):
    draft = await seed_draft(db)
    repo = DraftRepository(db)
    claimed = await repo.claim_for_publish(draft.id, draft.user_id)

    await repo.update_claimed_draft(claimed, remote_campaign_id="c-1")

    await db.refresh(claimed)
    assert claimed.remote_campaign_id == "c-1"
    assert claimed.status == "publishing"


@pytest.mark.asyncio
async def test_children_appended_and_listed_in_position_order(db):
    draft = await seed_draft(db, ad_sets=[])
    repo = DraftRepository(db)

    first = await repo.add_ad_set(draft, name="First")
    second = await repo.add_ad_set(draft, name="Second")
    ad_b = await repo.add_ad(first, name="B")
    ad_a = await repo.add_ad(first, name="A")

    assert (first.position, second.position) == (0, 1)
    assert (ad_b.position, ad_a.position) == (0, 1)
    assert [s.name for s in await repo.list_ad_sets(draft.id)] == ["First", "Second"]
    assert [a.name for a in await repo.list_ads(first.id)] == ["B", "A"]
    assert await repo.list_ads(second.id) == []


@pytest.mark.asyncio
async def test_get_draft_scoped_to_owner(db):
    draft = await seed_draft(db)
    repo = DraftRepository(db)

    assert (await repo.get_draft(draft.id, draft.user_id)).id == draft.id
    assert await repo.get_draft(draft.id, uuid.uuid4()) is None
