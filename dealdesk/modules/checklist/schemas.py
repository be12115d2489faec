"""Deal document checklist: Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from dealdesk.models.enums import ChecklistItemStatus, FundingTier, RequirementCategory


class ChecklistItemResponse(BaseModel):
    """A requirement merged with this deal's status for it."""

    requirement_id: uuid.UUID
    name: str
    description: str | None
    category: RequirementCategory
    is_required: bool
    is_core: bool
    is_active: bool
    asset_types: list[str] | None
    min_funding_tier: FundingTier | None
    display_order: int

    # Status fields (defaults describe an item with no status record yet)
    status_id: uuid.UUID | None = None
    status: ChecklistItemStatus = ChecklistItemStatus.PENDING
    document_id: uuid.UUID | None = None
    waived_reason: str | None = None
    is_manual_add: bool = False
    updated_at: datetime | None = None

    is_complete: bool = False
    needs_upload: bool = True


class CategoryProgress(BaseModel):
    category: RequirementCategory
    items: list[ChecklistItemResponse]
    completed: int
    total: int
    is_complete: bool


class ChecklistResponse(BaseModel):
    deal_id: uuid.UUID
    asset_type: str | None
    funding_tier: FundingTier | None
    items: list[ChecklistItemResponse]
    categories: list[CategoryProgress]
    completed_count: int
    total_count: int
    progress: float = Field(ge=0.0, le=1.0)
    required_outstanding: int
    is_complete: bool


class ChecklistStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    deal_id: uuid.UUID
    requirement_id: uuid.UUID
    status: ChecklistItemStatus
    document_id: uuid.UUID | None
    waived_reason: str | None
    is_manual_add: bool
    created_at: datetime
    updated_at: datetime


# ── Request schemas ───────────────────────────────────────────────────────────


class WaiveRequest(BaseModel):
    reason: str


class MarkUploadedRequest(BaseModel):
    document_id: uuid.UUID


class ManualAddRequest(BaseModel):
    requirement_id: uuid.UUID
