"""Pre-publish draft validation.

Read-only: collects every violation rather than stopping at the first, so
the editor can show the full list.  Platform-specific minimums and required
creative fields live in ``PLATFORM_RULES``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from campaign_builder.exceptions import CredentialError
from campaign_builder.models import CampaignAd, CampaignAdSet
from campaign_builder.platforms.base import BudgetType, Platform
from campaign_builder.schemas import ValidationReport
from campaign_builder.services.credentials import PLATFORM_LABELS, CredentialResolver
from campaign_builder.services.repository import DraftRepository


@dataclass(frozen=True)
class PlatformRules:
    group_label: str
    min_budget_cents: int
    # None: the minimum applies to every budget type
    min_budget_type: BudgetType | None = None
    require_primary_text: bool = False
    require_headline_or_text: bool = False
    require_link_url: bool = False


PLATFORM_RULES: dict[Platform, PlatformRules] = {
    Platform.META: PlatformRules(
        group_label="Ad set",
        min_budget_cents=100,
        require_primary_text=True,
        require_link_url=True,
    ),
    Platform.TIKTOK: PlatformRules(
        group_label="Ad group",
        min_budget_cents=2000,
        min_budget_type=BudgetType.DAILY,
    ),
    Platform.NEWSBREAK: PlatformRules(
        group_label="Ad group",
        min_budget_cents=500,
        require_headline_or_text=True,
        require_link_url=True,
    ),
}


def _blank(value: object) -> bool:
    return not (isinstance(value, str) and value.strip())


def _dollars(cents: int) -> str:
    return f"${cents / 100:.2f}"


def check_ad_set(ad_set: CampaignAdSet, rules: PlatformRules) -> list[str]:
    errors: list[str] = []
    label = rules.group_label
    if _blank(ad_set.name):
        errors.append(f"{label} {ad_set.id}: name is required")

    budget_applies = (
        rules.min_budget_type is None or ad_set.budget_type == rules.min_budget_type.value
    )
    if budget_applies and ad_set.budget_cents < rules.min_budget_cents:
        kind = "daily budget" if rules.min_budget_type == BudgetType.DAILY else "budget"
        errors.append(
            f'{label} "{ad_set.name}": minimum {kind} is {_dollars(rules.min_budget_cents)}'
        )

    if (
        ad_set.schedule_start is not None
        and ad_set.schedule_end is not None
        and ad_set.schedule_end <= ad_set.schedule_start
    ):
        errors.append(f'{label} "{ad_set.name}": schedule end must be after start')
    return errors


def check_ad(ad: CampaignAd, ad_set: CampaignAdSet, rules: PlatformRules) -> list[str]:
    errors: list[str] = []
    if _blank(ad.name):
        errors.append(f'Ad in "{ad_set.name}": name is required')

    creative = ad.creative_config or {}
    if rules.require_primary_text and _blank(creative.get("primary_text")):
        errors.append(f'Ad "{ad.name}": primary text is required')
    if (
        rules.require_headline_or_text
        and _blank(creative.get("headline"))
        and _blank(creative.get("primary_text"))
    ):
        errors.append(f'Ad "{ad.name}": headline or primary text is required')
    if rules.require_link_url and _blank(creative.get("link_url")):
        errors.append(f'Ad "{ad.name}": link URL is required')
    return errors


class DraftValidator:
    def __init__(
        self,
        session: AsyncSession,
        *,
        credentials: CredentialResolver | None = None,
    ) -> None:
        self.repo = DraftRepository(session)
        self.credentials = credentials or CredentialResolver(session)

    async def validate(self, draft_id: uuid.UUID, user_id: uuid.UUID) -> ValidationReport:
        draft = await self.repo.get_draft(draft_id, user_id)
        if draft is None:
            return ValidationReport(valid=False, errors=["Draft not found"])

        errors: list[str] = []
        if draft.account_id is None:
            errors.append("No ad account selected")
        if _blank(draft.name):
            errors.append("Campaign name is required")
        if _blank(draft.objective):
            errors.append("Campaign objective is required")

        try:
            platform = Platform(draft.platform)
        except ValueError:
            errors.append(f"Publishing not yet supported for {draft.platform}")
            return ValidationReport(valid=False, errors=errors)
        rules = PLATFORM_RULES[platform]

        ad_sets = await self.repo.list_ad_sets(draft.id)
        if not ad_sets:
            errors.append(f"At least one {rules.group_label.lower()} is required")

        for ad_set in ad_sets:
            errors.extend(check_ad_set(ad_set, rules))
            ads = await self.repo.list_ads(ad_set.id)
            if not ads:
                errors.append(f'{rules.group_label} "{ad_set.name}": at least one ad is required')
            for ad in ads:
                errors.extend(check_ad(ad, ad_set, rules))

        try:
            await self.credentials.resolve(user_id, platform)
        except CredentialError as exc:
            errors.append(f"No usable {PLATFORM_LABELS[platform]} connection: {exc}")

        return ValidationReport(valid=not errors, errors=errors)


async def validate_draft(
    session: AsyncSession, draft_id: uuid.UUID, user_id: uuid.UUID
) -> ValidationReport:
    """Convenience wrapper around :class:`DraftValidator`."""
    return await DraftValidator(session).validate(draft_id, user_id)
