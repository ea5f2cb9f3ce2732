import uuid

from pydantic import BaseModel, Field


class EntityOutcome(BaseModel):
    """Per-entity publish result; error is set iff the entity failed."""

    local_id: uuid.UUID
    remote_id: str | None = None
    remote_creative_id: str | None = None
    error: str | None = None


class PublishResult(BaseModel):
    success: bool
    platform: str
    remote_campaign_id: str | None = None
    ad_sets: list[EntityOutcome] = Field(default_factory=list)
    ads: list[EntityOutcome] = Field(default_factory=list)
    error: str | None = None


class ValidationReport(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class ActivationOut(BaseModel):
    success: bool = True
    remote_campaign_id: str
