"""Requirement catalog: Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dealdesk.models.enums import AssetClass, FundingTier, RequirementCategory


class RequirementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None
    category: RequirementCategory
    is_required: bool
    asset_types: list[str] | None
    min_funding_tier: FundingTier | None
    is_core: bool
    display_order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class _AssetTypesMixin(BaseModel):
    asset_types: list[str] | None = None

    @field_validator("asset_types")
    @classmethod
    def _known_asset_types(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        known = {a.value for a in AssetClass}
        unknown = [v for v in value if v not in known]
        if unknown:
            raise ValueError(f"Unknown asset types: {', '.join(unknown)}")
        # An empty list means "no restriction", same as null.
        return list(dict.fromkeys(value)) or None


class CreateRequirementRequest(_AssetTypesMixin):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    category: str
    is_required: bool = False
    min_funding_tier: FundingTier | None = None
    is_core: bool = False
    display_order: int | None = None


class UpdateRequirementRequest(_AssetTypesMixin):
    """Partial update; only fields present in the payload are applied."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: str | None = None
    is_required: bool | None = None
    min_funding_tier: FundingTier | None = None
    is_core: bool | None = None
    display_order: int | None = None


class DealContextResponse(BaseModel):
    deal_id: uuid.UUID
    asset_type: str | None
    funding_tier: FundingTier | None
