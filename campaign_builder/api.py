import uuid

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_builder.async_db import get_async_db
from campaign_builder.exceptions import CredentialError, DraftNotFoundError, StateConflictError
from campaign_builder.platforms.exceptions import PlatformError
from campaign_builder.schemas import ActivationOut, PublishResult, ValidationReport
from campaign_builder.services.publisher import PublishOrchestrator
from campaign_builder.services.validator import DraftValidator

draft_router = APIRouter(prefix="/api/drafts", tags=["drafts"])


def _get_orchestrator(db: AsyncSession) -> PublishOrchestrator:
    """Build the orchestrator with the configured adapters. Patched in tests."""
    return PublishOrchestrator(db)


@draft_router.post("/{draft_id}/publish", response_model=PublishResult)
async def publish_draft(
    draft_id: uuid.UUID,
    user_id: uuid.UUID = Header(alias="X-User-Id"),
    db: AsyncSession = Depends(get_async_db),
):
    """Publish a draft to its ad platform.

    Partial failures are reported in the body with ``success=false``.
    """
    try:
        return await _get_orchestrator(db).publish(draft_id, user_id)
    except DraftNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StateConflictError as exc:
        raise HTTPException(
            status_code=409, detail={"reason": exc.reason.value, "message": str(exc)}
        ) from exc


@draft_router.post("/{draft_id}/activate", response_model=ActivationOut)
async def activate_draft(
    draft_id: uuid.UUID,
    user_id: uuid.UUID = Header(alias="X-User-Id"),
    db: AsyncSession = Depends(get_async_db),
):
    """Turn a published draft's paused campaign on."""
    try:
        remote_id = await _get_orchestrator(db).activate(draft_id, user_id)
    except DraftNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except CredentialError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except PlatformError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ActivationOut(remote_campaign_id=remote_id)


@draft_router.get("/{draft_id}/validate", response_model=ValidationReport)
async def validate_draft(
    draft_id: uuid.UUID,
    user_id: uuid.UUID = Header(alias="X-User-Id"),
    db: AsyncSession = Depends(get_async_db),
):
    return await DraftValidator(db).validate(draft_id, user_id)
