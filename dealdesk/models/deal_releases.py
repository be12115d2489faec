"""Partner deal releases and the append-only partner access log."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from dealdesk.models.base import BaseModel, TimestampedModel, UTCDateTime, enum_type, utcnow
from dealdesk.models.enums import AccessLevel, DealReleaseStatus, PartnerAction


class DealRelease(BaseModel):
    """Visibility grant of one deal to one funding partner.

    Status and access level are the current-state cache; the access log is the
    audit record.
    """

    __tablename__ = "deal_releases"
    __table_args__ = (
        UniqueConstraint("deal_id", "partner_id", name="uq_deal_release_pair"),
        Index("ix_deal_releases_partner_status", "partner_id", "status"),
    )

    deal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False
    )
    partner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("funding_partners.id", ondelete="CASCADE"), nullable=False
    )
    released_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    released_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    release_notes: Mapped[str | None] = mapped_column(Text)
    access_level: Mapped[AccessLevel] = mapped_column(
        enum_type(AccessLevel), nullable=False, default=AccessLevel.SUMMARY
    )
    status: Mapped[DealReleaseStatus] = mapped_column(
        enum_type(DealReleaseStatus), nullable=False, default=DealReleaseStatus.PENDING
    )
    first_viewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    interest_expressed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    passed_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    pass_reason: Mapped[str | None] = mapped_column(Text)
    partner_notes: Mapped[str | None] = mapped_column(Text)


class PartnerAccessLog(TimestampedModel):
    """Immutable record of a partner action on a released deal."""

    __tablename__ = "partner_access_logs"
    __table_args__ = (
        Index("ix_partner_access_logs_deal_created", "deal_id", "created_at"),
        Index("ix_partner_access_logs_partner", "partner_id"),
    )

    partner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("funding_partners.id", ondelete="CASCADE"), nullable=False
    )
    deal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    action: Mapped[PartnerAction] = mapped_column(enum_type(PartnerAction), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    ip_address: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(String(512))
