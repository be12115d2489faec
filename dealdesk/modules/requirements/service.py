"""Requirement catalog service: active catalog reads, admin maintenance, deal context."""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dealdesk.core.exceptions import NotFoundError, ValidationError
from dealdesk.models.checklist import RequirementDefinition
from dealdesk.models.core import Deal
from dealdesk.models.enums import RequirementCategory
from dealdesk.modules.requirements.context import DealContext, resolve_deal_context

logger = structlog.get_logger()

# Labels written by older intake forms.
LEGACY_CATEGORY_LABELS: dict[str, RequirementCategory] = {
    "Legal Documents": RequirementCategory.LEGAL,
    "Business Documents": RequirementCategory.CORPORATE,
    "Financial Documents": RequirementCategory.FINANCIALS,
    "Personal Documents": RequirementCategory.PERSONAL,
    "Property Documents": RequirementCategory.PROPERTY,
}

_UPDATABLE_FIELDS = (
    "name", "description", "is_required", "asset_types",
    "min_funding_tier", "is_core", "display_order",
)


def normalize_category(raw: str | RequirementCategory) -> RequirementCategory:
    """Map a category key or legacy label onto the fixed enumeration; unknown is OTHER."""
    if isinstance(raw, RequirementCategory):
        return raw
    if raw in LEGACY_CATEGORY_LABELS:
        return LEGACY_CATEGORY_LABELS[raw]
    try:
        return RequirementCategory(raw.strip().lower())
    except ValueError:
        return RequirementCategory.OTHER


def catalog_sort_key(definition: RequirementDefinition) -> tuple[int, int, str]:
    return (definition.category.rank, definition.display_order, definition.name)


# ── Catalog reads ─────────────────────────────────────────────────────────────


async def list_active(db: AsyncSession) -> list[RequirementDefinition]:
    """Active definitions ordered by category, then display order."""
    result = await db.execute(
        select(RequirementDefinition).where(RequirementDefinition.is_active.is_(True))
    )
    return sorted(result.scalars().all(), key=catalog_sort_key)


async def list_all(db: AsyncSession) -> list[RequirementDefinition]:
    """Every definition, including deactivated ones (admin view)."""
    result = await db.execute(select(RequirementDefinition))
    return sorted(result.scalars().all(), key=catalog_sort_key)


async def get_definition(db: AsyncSession, requirement_id: uuid.UUID) -> RequirementDefinition:
    definition = await db.get(RequirementDefinition, requirement_id)
    if definition is None:
        raise NotFoundError("Requirement", requirement_id)
    return definition


# ── Catalog administration ────────────────────────────────────────────────────


async def create_definition(
    db: AsyncSession,
    *,
    name: str,
    category: str | RequirementCategory,
    description: str | None = None,
    is_required: bool = False,
    asset_types: list[str] | None = None,
    min_funding_tier: Any = None,
    is_core: bool = False,
    display_order: int | None = None,
) -> RequirementDefinition:
    name = name.strip()
    if not name:
        raise ValidationError("Requirement name is required")

    normalized = normalize_category(category)
    if display_order is None:
        # Append after the last item of the category, leaving gaps for reordering.
        max_order = await db.scalar(
            select(func.max(RequirementDefinition.display_order)).where(
                RequirementDefinition.category == normalized
            )
        )
        display_order = (max_order or 0) + 10

    definition = RequirementDefinition(
        name=name,
        description=description or None,
        category=normalized,
        is_required=is_required,
        asset_types=asset_types or None,
        min_funding_tier=min_funding_tier,
        is_core=is_core,
        display_order=display_order,
        is_active=True,
    )
    db.add(definition)
    await db.commit()
    await db.refresh(definition)

    logger.info(
        "requirement.created",
        requirement_id=str(definition.id),
        category=normalized.value,
        is_core=is_core,
    )
    return definition


async def update_definition(
    db: AsyncSession,
    requirement_id: uuid.UUID,
    changes: dict[str, Any],
) -> RequirementDefinition:
    """Apply a partial update. Existing checklist statuses are left untouched."""
    definition = await get_definition(db, requirement_id)

    if "category" in changes and changes["category"] is not None:
        definition.category = normalize_category(changes["category"])
    for field in _UPDATABLE_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if field == "name":
            if not value or not value.strip():
                raise ValidationError("Requirement name cannot be empty")
            value = value.strip()
        if field in ("is_required", "is_core", "display_order") and value is None:
            continue
        setattr(definition, field, value)

    await db.commit()
    await db.refresh(definition)
    logger.info("requirement.updated", requirement_id=str(requirement_id), fields=sorted(changes))
    return definition


async def set_active(
    db: AsyncSession,
    requirement_id: uuid.UUID,
    active: bool,
) -> RequirementDefinition:
    """Deactivate or reactivate a definition. Definitions are never deleted."""
    definition = await get_definition(db, requirement_id)
    if definition.is_active != active:
        definition.is_active = active
        await db.commit()
        await db.refresh(definition)
        logger.info(
            "requirement.activated" if active else "requirement.deactivated",
            requirement_id=str(requirement_id),
        )
    return definition


# ── Deal context ──────────────────────────────────────────────────────────────


async def get_deal(db: AsyncSession, deal_id: uuid.UUID) -> Deal:
    deal = await db.get(Deal, deal_id)
    if deal is None:
        raise NotFoundError("Deal", deal_id)
    return deal


async def get_deal_context(db: AsyncSession, deal_id: uuid.UUID) -> DealContext:
    deal = await get_deal(db, deal_id)
    return resolve_deal_context(deal, deal.company)
