"""Document requirement catalog and per-deal checklist status models."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealdesk.models.base import BaseModel, UTCDateTime, enum_type
from dealdesk.models.enums import ChecklistItemStatus, FundingTier, RequirementCategory

if TYPE_CHECKING:
    from dealdesk.modules.requirements.context import DealContext


class RequirementDefinition(BaseModel):
    """A document a deal may have to provide, with its applicability rules.

    ``asset_types`` of None (or empty) applies to every asset type,
    ``min_funding_tier`` of None has no size floor, and ``is_core`` items
    apply to every deal regardless of either predicate.
    """

    __tablename__ = "document_checklist_items"
    __table_args__ = (
        Index("ix_checklist_items_category_order", "category", "display_order"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[RequirementCategory] = mapped_column(
        enum_type(RequirementCategory), nullable=False
    )
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    asset_types: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    min_funding_tier: Mapped[FundingTier | None] = mapped_column(
        enum_type(FundingTier), nullable=True
    )
    is_core: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def matches_asset_type(self, asset_type: str | None) -> bool:
        if not self.asset_types:
            return True
        if asset_type is None:
            return False
        return asset_type in self.asset_types

    def meets_funding_tier(self, tier: FundingTier | None) -> bool:
        if self.min_funding_tier is None:
            return True
        if tier is None:
            # Unknown size never satisfies a floor.
            return False
        return tier.rank >= self.min_funding_tier.rank

    def matches(self, context: DealContext) -> bool:
        if self.is_core:
            return True
        return self.matches_asset_type(context.asset_type) and self.meets_funding_tier(
            context.funding_tier
        )


class DealChecklistStatus(BaseModel):
    """Recorded state of one requirement for one deal. Absent row means pending."""

    __tablename__ = "deal_checklist_statuses"
    __table_args__ = (
        UniqueConstraint("deal_id", "requirement_id", name="uq_deal_checklist_status"),
        Index("ix_deal_checklist_status_deal", "deal_id"),
    )

    deal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False
    )
    requirement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("document_checklist_items.id"), nullable=False
    )
    status: Mapped[ChecklistItemStatus] = mapped_column(
        enum_type(ChecklistItemStatus), nullable=False, default=ChecklistItemStatus.PENDING
    )
    document_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    waived_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    waived_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    waived_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    uploaded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_manual_add: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    requirement: Mapped[RequirementDefinition] = relationship(lazy="joined")
