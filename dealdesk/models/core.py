"""Deal store models: Company, Deal, FundingPartner.

These rows are written by the intake and scoring flows. The disclosure engine
only reads them.
"""

import uuid
from typing import Any

from sqlalchemy import JSON, Float, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealdesk.models.base import BaseModel, enum_type
from dealdesk.models.enums import PartnerStatus


class Company(BaseModel):
    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    website: Mapped[str | None] = mapped_column(String(512))
    owner_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    # Business profile captured by the intake wizard: assetType, assets[], capitalAmount, ...
    qualification_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    deals: Mapped[list["Deal"]] = relationship(back_populates="company")

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name!r})>"


class Deal(BaseModel):
    __tablename__ = "deals"
    __table_args__ = (
        Index("ix_deals_company_id", "company_id"),
        Index("ix_deals_qualification_code", "qualification_code", unique=True),
    )

    company_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    qualification_code: Mapped[str] = mapped_column(String(32), nullable=False)
    # Free-form capital request as typed in the form, e.g. "$2,500,000" or "10m_50m"
    capital_amount: Mapped[str | None] = mapped_column(String(100))
    qualification_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Scoring output (summary disclosure)
    qualification_tier: Mapped[str | None] = mapped_column(String(50))
    overall_score: Mapped[float | None] = mapped_column(Float)
    opportunity_size: Mapped[str | None] = mapped_column(String(100))
    geographic_focus: Mapped[str | None] = mapped_column(String(100))
    asset_classes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    strengths: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Full disclosure
    considerations: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    next_steps: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # {annual_volume, avg_deal_size, portfolio_size, default_rate, doc_standard}
    portfolio_metrics: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    contact_name: Mapped[str | None] = mapped_column(String(255))
    contact_email: Mapped[str | None] = mapped_column(String(255))
    contact_phone: Mapped[str | None] = mapped_column(String(50))

    company: Mapped[Company] = relationship(back_populates="deals", lazy="joined")


class FundingPartner(BaseModel):
    __tablename__ = "funding_partners"
    __table_args__ = (
        Index("ix_funding_partners_slug", "slug", unique=True),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[PartnerStatus] = mapped_column(
        enum_type(PartnerStatus), nullable=False, default=PartnerStatus.ACTIVE
    )
    focus_asset_classes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<FundingPartner(id={self.id}, slug={self.slug!r})>"
