#!/usr/bin/env python3
"""Requirement catalog seed script for DealDesk.

Loads the default document requirement catalog. Existing definitions (matched
by name) are left alone, so the script is safe to re-run after admins have
edited the catalog.

Usage:
    python scripts/seed_catalog.py
    python scripts/seed_catalog.py --dry-run
"""

from __future__ import annotations

import argparse
import os
import sys

# Allow running from a checkout without installing the package
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session as SyncSession

from dealdesk.core.config import settings
from dealdesk.models.checklist import RequirementDefinition
from dealdesk.models.enums import AssetClass, FundingTier, RequirementCategory

import dealdesk.models  # noqa: F401, register all tables

C = RequirementCategory
A = AssetClass

REAL_ESTATE = [A.RESIDENTIAL_RE.value, A.COMMERCIAL_RE.value]
LENDING = [
    A.CONSUMER_LOANS.value,
    A.SMB_LOANS.value,
    A.AUTO_LOANS.value,
    A.EQUIPMENT_FINANCE.value,
    A.FACTORING.value,
    A.CRYPTO_LENDING.value,
]

# ---------------------------------------------------------------------------
# Data definitions
# ---------------------------------------------------------------------------

DEFAULT_CATALOG: list[dict] = [
    # ── Corporate ────────────────────────────────────────────────────────────
    {
        "name": "Company Formation Documents",
        "category": C.CORPORATE,
        "description": "Articles of incorporation, operating agreement or bylaws",
        "is_required": True,
        "is_core": True,
    },
    {
        "name": "Ownership Structure",
        "category": C.CORPORATE,
        "description": "Cap table or member schedule",
        "is_required": True,
        "is_core": True,
    },
    {
        "name": "Board Resolutions",
        "category": C.CORPORATE,
        "description": "Resolutions authorising the financing",
        "min_funding_tier": FundingTier.FROM_2M_TO_10M,
    },
    # ── Financials ───────────────────────────────────────────────────────────
    {
        "name": "Financial Statements (3 years)",
        "category": C.FINANCIALS,
        "description": "Income statements and balance sheets, reviewed or audited",
        "is_required": True,
        "is_core": True,
    },
    {
        "name": "Bank Statements (6 months)",
        "category": C.FINANCIALS,
        "is_required": True,
        "is_core": True,
    },
    {
        "name": "Audited Financial Statements",
        "category": C.FINANCIALS,
        "description": "Independent audit for the most recent fiscal year",
        "min_funding_tier": FundingTier.FROM_10M_TO_50M,
    },
    # ── Legal ────────────────────────────────────────────────────────────────
    {
        "name": "Loan Agreements (samples)",
        "category": C.LEGAL,
        "description": "Representative executed loan agreements or promissory notes",
        "asset_types": LENDING,
    },
    {
        "name": "State Licensing",
        "category": C.LEGAL,
        "asset_types": [A.CONSUMER_LOANS.value, A.RESIDENTIAL_RE.value],
    },
    {
        "name": "Credit Policy Guidelines",
        "category": C.LEGAL,
        "asset_types": LENDING + [A.RESIDENTIAL_RE.value],
    },
    # ── Due diligence ────────────────────────────────────────────────────────
    {
        "name": "Insurance Certificates",
        "category": C.DUE_DILIGENCE,
        "min_funding_tier": FundingTier.FROM_500K_TO_2M,
    },
    {
        "name": "UCC Filing Samples",
        "category": C.DUE_DILIGENCE,
        "asset_types": [A.SMB_LOANS.value, A.EQUIPMENT_FINANCE.value, A.FACTORING.value],
    },
    # ── Loan tape ────────────────────────────────────────────────────────────
    {
        "name": "Loan Tape / Portfolio Data",
        "category": C.LOAN_TAPE,
        "description": "Loan-level data with balances, rates, terms and status",
        "is_required": True,
        "asset_types": LENDING + REAL_ESTATE,
    },
    {
        "name": "Performance History",
        "category": C.LOAN_TAPE,
        "description": "Delinquency, default and vintage performance",
        "asset_types": LENDING + REAL_ESTATE,
        "min_funding_tier": FundingTier.FROM_500K_TO_2M,
    },
    # ── Property ─────────────────────────────────────────────────────────────
    {
        "name": "Property Appraisals",
        "category": C.PROPERTY,
        "asset_types": REAL_ESTATE,
    },
    {
        "name": "Title Reports",
        "category": C.PROPERTY,
        "asset_types": REAL_ESTATE,
    },
    {
        "name": "Rent Rolls",
        "category": C.PROPERTY,
        "asset_types": [A.COMMERCIAL_RE.value],
    },
    {
        "name": "Property NOI Documentation",
        "category": C.PROPERTY,
        "asset_types": [A.COMMERCIAL_RE.value],
        "min_funding_tier": FundingTier.FROM_2M_TO_10M,
    },
    {
        "name": "Environmental Assessments",
        "category": C.PROPERTY,
        "description": "Phase I (and Phase II where flagged) site assessments",
        "asset_types": [A.COMMERCIAL_RE.value],
        "min_funding_tier": FundingTier.FROM_10M_TO_50M,
    },
    # ── Personal ─────────────────────────────────────────────────────────────
    {
        "name": "Principal Background Checks",
        "category": C.PERSONAL,
        "description": "KYC for owners with 20% or more",
        "is_required": True,
        "is_core": True,
    },
    {
        "name": "Personal Financial Statements",
        "category": C.PERSONAL,
        "asset_types": [A.SMB_LOANS.value, A.FACTORING.value],
    },
]


# ---------------------------------------------------------------------------
# Seeders
# ---------------------------------------------------------------------------


def seed_catalog(session: SyncSession, dry_run: bool) -> int:
    created = 0
    order_by_category: dict[RequirementCategory, int] = {}
    for item in DEFAULT_CATALOG:
        category = item["category"]
        order_by_category[category] = order_by_category.get(category, 0) + 10

        existing = session.execute(
            select(RequirementDefinition).where(RequirementDefinition.name == item["name"])
        ).scalar_one_or_none()
        if existing:
            print(f"  [skip]    Requirement '{item['name']}' already exists")
            continue

        scope = "core" if item.get("is_core") else ", ".join(item.get("asset_types") or ["all"])
        print(f"  [create]  Requirement '{item['name']}' ({category.value}; {scope})")
        if not dry_run:
            session.add(RequirementDefinition(
                name=item["name"],
                description=item.get("description"),
                category=category,
                is_required=item.get("is_required", False),
                asset_types=item.get("asset_types"),
                min_funding_tier=item.get("min_funding_tier"),
                is_core=item.get("is_core", False),
                display_order=order_by_category[category],
                is_active=True,
            ))
        created += 1
    return created


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    parser = argparse.ArgumentParser(description="DealDesk requirement catalog seed script")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be seeded without writing to the database",
    )
    args = parser.parse_args()

    dry_run: bool = args.dry_run

    if dry_run:
        print("=" * 60)
        print("DRY RUN: no changes will be committed")
        print("=" * 60)

    engine = create_engine(settings.DATABASE_URL_SYNC, echo=False)

    with SyncSession(engine) as session:
        print("\n--- Requirement Catalog ---")
        created = seed_catalog(session, dry_run)

        if not dry_run:
            session.commit()
            print("\n[OK] All changes committed.")
        else:
            session.rollback()
            print("\n[DRY RUN] No changes committed.")

    print(f"\n=== Seed Summary ===\n  {'requirements':25s}: {created} rows created")

    if dry_run:
        print("\nRe-run without --dry-run to apply changes.")


if __name__ == "__main__":
    main()
