from __future__ import annotations

import asyncio
import io
import uuid
from typing import Any

import pytest
from cryptography.fernet import Fernet
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from campaign_builder import models  # noqa: F401  -- ensure all models are registered
from campaign_builder.db import Base
from campaign_builder.models import (
    AdAccount,
    CampaignAd,
    CampaignAdSet,
    CampaignDraft,
    MediaUpload,
    PlatformConnection,
)
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
from campaign_builder.platforms.exceptions import PlatformRequestError
from campaign_builder.services.credentials import CredentialResolver, encrypt_token
from campaign_builder.services.publisher import PublishOrchestrator

TEST_ENCRYPTION_KEY = Fernet.generate_key().decode()


# ---------------------------------------------------------------------------
# Scripted adapter
# ---------------------------------------------------------------------------


class FakeAdapter(AdPlatformAdapter):
    """Deterministic adapter for orchestrator tests.

    ``fail`` maps an operation name to the entity names (campaign, ad set or
    ad name; filename for uploads) that should raise.  ``delays`` maps an
    operation name to seconds to sleep before answering.  Every call lands in
    ``calls`` as ``(operation, name)``.
    """

    def __init__(
        self,
        platform: Platform = Platform.META,
        *,
        fail: dict[str, set[str]] | None = None,
        delays: dict[str, float] | None = None,
        accepts_asset_urls: bool = False,
        defaults: dict[str, Any] | None = None,
    ) -> None:
        self.platform = platform
        self.accepts_asset_urls = accepts_asset_urls
        self.fail = fail or {}
        self.delays = delays or {}
        self.defaults = defaults or {}
        self.calls: list[tuple[str, str]] = []
        self.specs: dict[str, list[Any]] = {}
        self._counter = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def _step(self, op: str, name: str, spec: Any = None) -> str:
        self.calls.append((op, name))
        self.specs.setdefault(op, []).append(spec)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if op in self.delays:
                await asyncio.sleep(self.delays[op])
            if name in self.fail.get(op, set()):
                raise PlatformRequestError(f"{op} rejected for {name}")
        finally:
            self.in_flight -= 1
        self._counter += 1
        return f"{op}-{self._counter}"

    async def create_campaign(
        self, account_ref: str, spec: CampaignSpec, credential: PlatformCredential
    ) -> str:
        return await self._step("create_campaign", spec.name, spec)

    async def create_ad_group(
        self,
        account_ref: str,
        parent_remote_id: str,
        spec: AdGroupSpec,
        credential: PlatformCredential,
    ) -> str:
        return await self._step("create_ad_group", spec.name, spec)

    async def create_creative_and_ad(
        self,
        account_ref: str,
        parent_remote_id: str,
        spec: CreativeSpec,
        credential: PlatformCredential,
    ) -> CreativeAdIds:
        ad_id = await self._step("create_creative_and_ad", spec.name, spec)
        return CreativeAdIds(creative_id=f"creative-for-{ad_id}", ad_id=ad_id)

    async def upload_asset(
        self,
        account_ref: str,
        data: bytes,
        filename: str,
        credential: PlatformCredential,
    ) -> str:
        return await self._step("upload_asset", filename, len(data))

    async def update_campaign_state(
        self, remote_id: str, state: CampaignState, credential: PlatformCredential
    ) -> None:
        await self._step("update_campaign_state", remote_id, state)

    async def creative_defaults(
        self, account_ref: str, credential: PlatformCredential
    ) -> dict[str, Any]:
        self.calls.append(("creative_defaults", account_ref))
        return dict(self.defaults)

    def ops(self, op: str) -> list[str]:
        return [name for called, name in self.calls if called == op]


# ---------------------------------------------------------------------------
# Async test DB
# ---------------------------------------------------------------------------


def setup_async_test_db(url: str = "sqlite+aiosqlite:///:memory:"):
    """Create an async SQLite engine and session factory.

    In-memory databases share one connection; file databases get a real pool
    so concurrent sessions use separate connections.
    """
    if ":memory:" in url:
        engine = create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(url)
    TestingAsyncSession = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
    return engine, TestingAsyncSession


@pytest.fixture
async def session_factory():
    engine, SessionFactory = setup_async_test_db()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield SessionFactory
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------


def make_image(width: int = 800, height: int = 800, fmt: str = "PNG") -> bytes:
    img = Image.new("RGB", (width, height), color=(100, 150, 200))
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


async def seed_connection(
    db: AsyncSession,
    user_id: uuid.UUID,
    platform: str = "meta",
    *,
    token: str | None = "test-token",
    config: dict[str, Any] | None = None,
) -> PlatformConnection:
    connection = PlatformConnection(
        user_id=user_id,
        platform=platform,
        access_token_encrypted=encrypt_token(token, TEST_ENCRYPTION_KEY) if token else None,
        config_json=config or {},
    )
    db.add(connection)
    await db.commit()
    return connection


async def seed_draft(
    db: AsyncSession,
    *,
    user_id: uuid.UUID | None = None,
    platform: str = "meta",
    name: str = "Spring Sale",
    ad_sets: list[dict[str, Any]] | None = None,
    with_account: bool = True,
    with_connection: bool = True,
    **draft_fields: Any,
) -> CampaignDraft:
    """Create a draft with ad sets and ads.

    ``ad_sets`` is a list of ad set field dicts; each may carry an ``ads``
    list of ad field dicts.  Defaults to one ad set with one valid ad.
    """
    user_id = user_id or uuid.uuid4()
    account = None
    if with_account:
        account = AdAccount(user_id=user_id, platform=platform, platform_account_id="1234567890")
        db.add(account)
        await db.flush()
    if with_connection:
        await seed_connection(db, user_id, platform)

    draft = CampaignDraft(
        user_id=user_id,
        account_id=account.id if account else None,
        name=name,
        platform=platform,
        **draft_fields,
    )
    db.add(draft)
    await db.flush()

    if ad_sets is None:
        ad_sets = [{"name": "Ad Set 1", "budget_cents": 2000, "ads": [{"name": "Ad 1"}]}]

    for set_position, set_fields in enumerate(ad_sets):
        set_fields = dict(set_fields)
        ads = set_fields.pop("ads", [])
        ad_set = CampaignAdSet(draft_id=draft.id, position=set_position, **set_fields)
        db.add(ad_set)
        await db.flush()
        for ad_position, ad_fields in enumerate(ads):
            ad_fields = dict(ad_fields)
            ad_fields.setdefault(
                "creative_config",
                {"primary_text": "Buy now", "link_url": "https://example.com"},
            )
            db.add(CampaignAd(ad_set_id=ad_set.id, position=ad_position, **ad_fields))

    await db.commit()
    return draft


async def seed_media(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    file_path: str | None = None,
    public_url: str | None = None,
    filename: str = "hero.png",
    platform_handles: dict[str, str] | None = None,
) -> MediaUpload:
    media = MediaUpload(
        user_id=user_id,
        filename=filename,
        mime_type="image/png",
        file_path=file_path,
        public_url=public_url,
        platform_handles=platform_handles or {},
    )
    db.add(media)
    await db.commit()
    return media


def make_orchestrator(
    db: AsyncSession, adapter: AdPlatformAdapter, **kwargs: Any
) -> PublishOrchestrator:
    return PublishOrchestrator(
        db,
        adapter_for=lambda platform: adapter,
        credentials=CredentialResolver(db, TEST_ENCRYPTION_KEY),
        **kwargs,
    )
