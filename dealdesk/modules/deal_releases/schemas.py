"""Deal releases: Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from dealdesk.models.enums import AccessLevel, DealReleaseStatus, FundingTier, PartnerAction


# ── Response schemas ──────────────────────────────────────────────────────────


class DealReleaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    deal_id: uuid.UUID
    partner_id: uuid.UUID
    released_by: uuid.UUID
    released_at: datetime
    release_notes: str | None
    access_level: AccessLevel
    status: DealReleaseStatus
    first_viewed_at: datetime | None
    interest_expressed_at: datetime | None
    passed_at: datetime | None
    pass_reason: str | None
    partner_notes: str | None
    created_at: datetime
    updated_at: datetime


class PartnerAccessLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    partner_id: uuid.UUID
    deal_id: uuid.UUID
    user_id: uuid.UUID | None
    action: PartnerAction
    details: dict[str, Any]
    ip_address: str | None
    user_agent: str | None
    created_at: datetime


class PartnerDashboardStats(BaseModel):
    total: int = 0
    new: int = 0
    in_progress: int = 0
    due_diligence: int = 0
    passed: int = 0
    funded: int = 0


class ContactInfo(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None


class PartnerDealView(BaseModel):
    """What a partner sees of a released deal.

    Sections above the release's access level are null and listed in
    ``locked_sections``.
    """

    release_id: uuid.UUID
    deal_id: uuid.UUID
    status: DealReleaseStatus
    access_level: AccessLevel
    released_at: datetime
    release_notes: str | None = None
    partner_notes: str | None = None

    # summary
    qualification_code: str
    qualification_tier: str | None = None
    overall_score: float | None = None
    funding_tier: FundingTier | None = None
    opportunity_size: str | None = None
    geographic_focus: str | None = None
    asset_classes: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)

    # full
    company_name: str | None = None
    company_description: str | None = None
    capital_amount: str | None = None
    considerations: list[str] | None = None
    next_steps: list[str] | None = None
    portfolio_metrics: dict[str, Any] | None = None
    contact: ContactInfo | None = None

    # documents
    document_counts: dict[str, int] | None = None

    locked_sections: list[str] = Field(default_factory=list)


class PartnerDealListItem(BaseModel):
    release: DealReleaseResponse
    deal: PartnerDealView


class PartnerDashboardResponse(BaseModel):
    stats: PartnerDashboardStats
    deals: list[PartnerDealListItem]


# ── Request schemas ───────────────────────────────────────────────────────────


class CreateReleaseRequest(BaseModel):
    deal_id: uuid.UUID
    partner_id: uuid.UUID
    access_level: AccessLevel = AccessLevel.SUMMARY
    release_notes: str | None = None


class PassRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=2000)


class NoteRequest(BaseModel):
    notes: str = Field(min_length=1, max_length=5000)


class RecordAccessRequest(BaseModel):
    action: Literal["viewed_full", "downloaded_package", "downloaded_document"]
    document_id: uuid.UUID | None = None


class AdminTransitionRequest(BaseModel):
    status: DealReleaseStatus
    notes: str | None = None


class SetAccessLevelRequest(BaseModel):
    access_level: AccessLevel
    notes: str | None = None
