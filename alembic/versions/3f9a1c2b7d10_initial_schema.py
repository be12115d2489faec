"""initial_schema

Revision ID: 3f9a1c2b7d10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "3f9a1c2b7d10"
down_revision: str | None = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ── Deal store ────────────────────────────────────────────────────────────
    op.create_table(
        "companies",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("website", sa.String(512)),
        sa.Column("owner_id", sa.Uuid()),
        sa.Column("qualification_data", sa.JSON(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "deals",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "company_id",
            sa.Uuid(),
            sa.ForeignKey("companies.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("qualification_code", sa.String(32), nullable=False),
        sa.Column("capital_amount", sa.String(100)),
        sa.Column("qualification_data", sa.JSON(), nullable=False),
        sa.Column("qualification_tier", sa.String(50)),
        sa.Column("overall_score", sa.Float()),
        sa.Column("opportunity_size", sa.String(100)),
        sa.Column("geographic_focus", sa.String(100)),
        sa.Column("asset_classes", sa.JSON(), nullable=False),
        sa.Column("strengths", sa.JSON(), nullable=False),
        sa.Column("considerations", sa.JSON(), nullable=False),
        sa.Column("next_steps", sa.JSON(), nullable=False),
        sa.Column("portfolio_metrics", sa.JSON(), nullable=False),
        sa.Column("contact_name", sa.String(255)),
        sa.Column("contact_email", sa.String(255)),
        sa.Column("contact_phone", sa.String(50)),
        *_timestamps(),
    )
    op.create_index("ix_deals_company_id", "deals", ["company_id"])
    op.create_index("ix_deals_qualification_code", "deals", ["qualification_code"], unique=True)

    op.create_table(
        "funding_partners",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        sa.Column("focus_asset_classes", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_funding_partners_slug", "funding_partners", ["slug"], unique=True)

    # ── Requirement catalog + checklist statuses ──────────────────────────────
    op.create_table(
        "document_checklist_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("asset_types", sa.JSON()),
        sa.Column("min_funding_tier", sa.String(32)),
        sa.Column("is_core", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(
        "ix_checklist_items_category_order",
        "document_checklist_items",
        ["category", "display_order"],
    )

    op.create_table(
        "deal_checklist_statuses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("deal_id", sa.Uuid(), sa.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "requirement_id",
            sa.Uuid(),
            sa.ForeignKey("document_checklist_items.id"),
            nullable=False,
        ),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("document_id", sa.Uuid()),
        sa.Column("waived_reason", sa.Text()),
        sa.Column("waived_by", sa.Uuid()),
        sa.Column("waived_at", sa.DateTime(timezone=True)),
        sa.Column("uploaded_at", sa.DateTime(timezone=True)),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        sa.Column("is_manual_add", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.UniqueConstraint("deal_id", "requirement_id", name="uq_deal_checklist_status"),
    )
    op.create_index("ix_deal_checklist_status_deal", "deal_checklist_statuses", ["deal_id"])

    # ── Partner releases + access log ─────────────────────────────────────────
    op.create_table(
        "deal_releases",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("deal_id", sa.Uuid(), sa.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "partner_id",
            sa.Uuid(),
            sa.ForeignKey("funding_partners.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("released_by", sa.Uuid(), nullable=False),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("release_notes", sa.Text()),
        sa.Column("access_level", sa.String(32), nullable=False, server_default="summary"),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("first_viewed_at", sa.DateTime(timezone=True)),
        sa.Column("interest_expressed_at", sa.DateTime(timezone=True)),
        sa.Column("passed_at", sa.DateTime(timezone=True)),
        sa.Column("pass_reason", sa.Text()),
        sa.Column("partner_notes", sa.Text()),
        *_timestamps(),
        sa.UniqueConstraint("deal_id", "partner_id", name="uq_deal_release_pair"),
    )
    op.create_index("ix_deal_releases_partner_status", "deal_releases", ["partner_id", "status"])

    op.create_table(
        "partner_access_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "partner_id",
            sa.Uuid(),
            sa.ForeignKey("funding_partners.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("deal_id", sa.Uuid(), sa.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid()),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("ip_address", sa.String(64)),
        sa.Column("user_agent", sa.String(512)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "ix_partner_access_logs_deal_created", "partner_access_logs", ["deal_id", "created_at"]
    )
    op.create_index("ix_partner_access_logs_partner", "partner_access_logs", ["partner_id"])


def downgrade() -> None:
    op.drop_table("partner_access_logs")
    op.drop_table("deal_releases")
    op.drop_table("deal_checklist_statuses")
    op.drop_table("document_checklist_items")
    op.drop_table("funding_partners")
    op.drop_table("deals")
    op.drop_table("companies")
