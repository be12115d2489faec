"""Shared test fixtures for the DealDesk API test suite."""

import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-dealdesk-suite")

import uuid
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dealdesk.auth.dependencies import get_current_user
from dealdesk.core.database import Base, get_db
from dealdesk.main import app
from dealdesk.models.checklist import RequirementDefinition
from dealdesk.models.core import Company, Deal, FundingPartner
from dealdesk.models.deal_releases import DealRelease
from dealdesk.models.enums import (
    AccessLevel,
    DealReleaseStatus,
    FundingTier,
    RequirementCategory,
    UserRole,
)
from dealdesk.schemas.auth import CurrentUser


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


# ── Database ──────────────────────────────────────────────────────────────


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Fresh in-memory database per test; StaticPool keeps the single connection alive."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


# ── Identities ────────────────────────────────────────────────────────────

ADMIN_USER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
CLIENT_USER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000c1")
PARTNER_USER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000b1")
PARTNER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000f1")

ADMIN = CurrentUser(user_id=ADMIN_USER_ID, role=UserRole.ADMIN, email="ops@dealdesk.test")
CLIENT = CurrentUser(user_id=CLIENT_USER_ID, role=UserRole.CLIENT, email="owner@harbor.test")
PARTNER = CurrentUser(
    user_id=PARTNER_USER_ID,
    role=UserRole.PARTNER,
    email="analyst@northfund.test",
    partner_id=PARTNER_ID,
)


# ── HTTP clients ──────────────────────────────────────────────────────────


@pytest.fixture
def acting_as() -> dict[str, CurrentUser]:
    """Mutable identity holder; tests switch users with ``acting_as["user"] = ...``."""
    return {"user": ADMIN}


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    acting_as: dict[str, CurrentUser],
) -> AsyncGenerator[AsyncClient]:
    """AsyncClient on the app with the test database and an overridden caller."""

    async def _get_db() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: acting_as["user"]
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def unauthenticated_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient]:
    """AsyncClient that goes through real bearer-token verification."""

    async def _get_db() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


# ── Sample data fixtures ──────────────────────────────────────────────────


@pytest.fixture
async def company(db: AsyncSession) -> Company:
    company = Company(
        name="Harbor Commercial Lending",
        description="Bridge loans on small-bay industrial property",
        owner_id=CLIENT_USER_ID,
        qualification_data={"assetType": "commercial_re", "capitalAmount": "$3,000,000"},
    )
    db.add(company)
    await db.commit()
    return company


@pytest.fixture
async def deal(db: AsyncSession, company: Company) -> Deal:
    """commercial_re deal asking for $25M (10m_50m)."""
    deal = Deal(
        company_id=company.id,
        qualification_code="DD-2026-0042",
        capital_amount="$25,000,000",
        qualification_data={"assetType": "commercial_re"},
        qualification_tier="tier_1",
        overall_score=82.5,
        opportunity_size="$25M",
        geographic_focus="US Southeast",
        asset_classes=["commercial_re"],
        strengths=["Seasoned sponsor", "Low historical loss rate"],
        considerations=["Concentration in two metros"],
        next_steps=["Send loan tape"],
        portfolio_metrics={"annual_volume": "$60M", "default_rate": "0.8%"},
        contact_name="Dana Ortiz",
        contact_email="dana@harbor.test",
        contact_phone="+1 555 0100",
    )
    db.add(deal)
    await db.commit()
    await db.refresh(deal)
    return deal


@pytest.fixture
async def partner(db: AsyncSession) -> FundingPartner:
    partner = FundingPartner(
        id=PARTNER_ID,
        name="North Fund",
        slug="north-fund",
        focus_asset_classes=["commercial_re"],
    )
    db.add(partner)
    await db.commit()
    return partner


@pytest.fixture
async def release(db: AsyncSession, deal: Deal, partner: FundingPartner) -> DealRelease:
    release = DealRelease(
        deal_id=deal.id,
        partner_id=partner.id,
        released_by=ADMIN_USER_ID,
        access_level=AccessLevel.SUMMARY,
        status=DealReleaseStatus.PENDING,
    )
    db.add(release)
    await db.commit()
    await db.refresh(release)
    return release


def _requirement(
    name: str,
    category: RequirementCategory = RequirementCategory.OTHER,
    *,
    asset_types: list[str] | None = None,
    min_funding_tier: FundingTier | None = None,
    is_core: bool = False,
    is_required: bool = False,
    display_order: int = 0,
    is_active: bool = True,
) -> RequirementDefinition:
    return RequirementDefinition(
        id=uuid.uuid4(),
        name=name,
        category=category,
        asset_types=asset_types,
        min_funding_tier=min_funding_tier,
        is_core=is_core,
        is_required=is_required,
        display_order=display_order,
        is_active=is_active,
    )


@pytest.fixture
async def catalog(db: AsyncSession) -> dict[str, RequirementDefinition]:
    """A small catalog; against the sample deal, 'appraisal', 'formation' and 'audit' apply."""
    items = {
        "formation": _requirement(
            "Company Formation Documents",
            RequirementCategory.CORPORATE,
            is_core=True,
            is_required=True,
            display_order=10,
        ),
        "audit": _requirement(
            "Audited Financials",
            RequirementCategory.FINANCIALS,
            min_funding_tier=FundingTier.FROM_2M_TO_10M,
            is_required=True,
            display_order=10,
        ),
        "appraisal": _requirement(
            "Property Appraisals",
            RequirementCategory.PROPERTY,
            asset_types=["commercial_re", "residential_re"],
            min_funding_tier=FundingTier.FROM_2M_TO_10M,
            display_order=10,
        ),
        "mega": _requirement(
            "Rating Agency Report",
            RequirementCategory.DUE_DILIGENCE,
            min_funding_tier=FundingTier.OVER_50M,
            display_order=10,
        ),
        "consumer": _requirement(
            "Consumer Loan Agreement Template",
            RequirementCategory.LEGAL,
            asset_types=["consumer_loans"],
            display_order=10,
        ),
        "retired": _requirement(
            "Legacy Questionnaire",
            RequirementCategory.OTHER,
            is_core=True,
            is_active=False,
        ),
    }
    db.add_all(items.values())
    await db.commit()
    return items
