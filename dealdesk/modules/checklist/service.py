"""Deal document checklist service: per-deal status tracking.

A deal's checklist is the set of active catalog definitions that match its
context, plus items an admin attached by hand, plus deactivated definitions
the deal already tracks. A definition with no status row is pending.

Every status write is a compare-and-set on the status observed when the
change was planned. When another writer got there first the plan is
re-evaluated against the fresh row; a change that is still needed is
reported as a conflict rather than retried.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from collections.abc import Callable
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dealdesk.core.exceptions import (
    InvalidStateTransitionError,
    NotEligibleError,
    ValidationError,
)
from dealdesk.models.base import utcnow
from dealdesk.models.checklist import DealChecklistStatus, RequirementDefinition
from dealdesk.models.enums import ChecklistItemStatus, RequirementCategory
from dealdesk.modules.checklist.schemas import (
    CategoryProgress,
    ChecklistItemResponse,
    ChecklistResponse,
)
from dealdesk.modules.requirements import service as catalog
from dealdesk.modules.requirements.context import DealContext, resolve_deal_context
from dealdesk.modules.requirements.eligibility import filter_eligible, is_eligible

logger = structlog.get_logger()

COMPLETE_STATUSES = frozenset({ChecklistItemStatus.APPROVED, ChecklistItemStatus.WAIVED})

# A plan returns the column values to write, or None when nothing needs to change.
_Plan = Callable[[DealChecklistStatus], dict[str, Any] | None]


def status_for(record: DealChecklistStatus | None) -> ChecklistItemStatus:
    """Effective status of a requirement; no record means pending."""
    if record is None:
        return ChecklistItemStatus.PENDING
    return record.status


def is_complete(status: ChecklistItemStatus) -> bool:
    return status in COMPLETE_STATUSES


# ── Queries ───────────────────────────────────────────────────────────────────


async def _records_for_deal(
    db: AsyncSession, deal_id: uuid.UUID
) -> dict[uuid.UUID, DealChecklistStatus]:
    result = await db.execute(
        select(DealChecklistStatus).where(DealChecklistStatus.deal_id == deal_id)
    )
    return {r.requirement_id: r for r in result.scalars().all()}


async def _get_record(
    db: AsyncSession, deal_id: uuid.UUID, requirement_id: uuid.UUID
) -> DealChecklistStatus | None:
    result = await db.execute(
        select(DealChecklistStatus).where(
            DealChecklistStatus.deal_id == deal_id,
            DealChecklistStatus.requirement_id == requirement_id,
        )
    )
    return result.scalar_one_or_none()


def _on_checklist(
    definition: RequirementDefinition,
    context: DealContext,
    record: DealChecklistStatus | None,
) -> bool:
    if is_eligible(context, definition):
        return True
    if record is None:
        return False
    # Hand-attached items, and retired definitions the deal already tracks.
    return record.is_manual_add or not definition.is_active


async def checklist_entries(
    db: AsyncSession, deal_id: uuid.UUID
) -> tuple[DealContext, list[tuple[RequirementDefinition, DealChecklistStatus | None]]]:
    """Definitions on the deal's checklist, in catalog order, with their records."""
    deal = await catalog.get_deal(db, deal_id)
    context = resolve_deal_context(deal, deal.company)
    records = await _records_for_deal(db, deal_id)

    definitions: dict[uuid.UUID, RequirementDefinition] = {
        d.id: d for d in filter_eligible(context, await catalog.list_active(db))
    }
    for record in records.values():
        definition = record.requirement
        if definition.id not in definitions and _on_checklist(definition, context, record):
            definitions[definition.id] = definition

    ordered = sorted(definitions.values(), key=catalog.catalog_sort_key)
    return context, [(d, records.get(d.id)) for d in ordered]


def _item_response(
    definition: RequirementDefinition, record: DealChecklistStatus | None
) -> ChecklistItemResponse:
    status = status_for(record)
    return ChecklistItemResponse(
        requirement_id=definition.id,
        name=definition.name,
        description=definition.description,
        category=definition.category,
        is_required=definition.is_required,
        is_core=definition.is_core,
        is_active=definition.is_active,
        asset_types=definition.asset_types,
        min_funding_tier=definition.min_funding_tier,
        display_order=definition.display_order,
        status_id=record.id if record else None,
        status=status,
        document_id=record.document_id if record else None,
        waived_reason=record.waived_reason if record else None,
        is_manual_add=record.is_manual_add if record else False,
        updated_at=record.updated_at if record else None,
        is_complete=is_complete(status),
        needs_upload=status == ChecklistItemStatus.PENDING,
    )


async def get_checklist(db: AsyncSession, deal_id: uuid.UUID) -> ChecklistResponse:
    """Merged checklist for a deal, grouped by category with progress counts."""
    context, entries = await checklist_entries(db, deal_id)
    items = [_item_response(d, r) for d, r in entries]

    grouped: dict[RequirementCategory, list[ChecklistItemResponse]] = defaultdict(list)
    for item in items:
        grouped[item.category].append(item)

    categories = []
    for category in RequirementCategory:
        cat_items = grouped.get(category)
        if not cat_items:
            continue
        done = sum(1 for i in cat_items if i.is_complete)
        categories.append(
            CategoryProgress(
                category=category,
                items=cat_items,
                completed=done,
                total=len(cat_items),
                is_complete=done == len(cat_items),
            )
        )

    completed = sum(1 for i in items if i.is_complete)
    total = len(items)
    return ChecklistResponse(
        deal_id=deal_id,
        asset_type=context.asset_type,
        funding_tier=context.funding_tier,
        items=items,
        categories=categories,
        completed_count=completed,
        total_count=total,
        progress=completed / total if total else 0.0,
        required_outstanding=sum(1 for i in items if i.is_required and not i.is_complete),
        is_complete=total > 0 and completed == total,
    )


# ── Status writes ─────────────────────────────────────────────────────────────


async def _applicable(
    db: AsyncSession, deal_id: uuid.UUID, requirement_id: uuid.UUID
) -> tuple[RequirementDefinition, DealChecklistStatus | None]:
    """Load definition and record, refusing requirements not on the deal's checklist."""
    deal = await catalog.get_deal(db, deal_id)
    definition = await catalog.get_definition(db, requirement_id)
    record = await _get_record(db, deal_id, requirement_id)

    context = resolve_deal_context(deal, deal.company)
    if not _on_checklist(definition, context, record):
        raise NotEligibleError(
            f"'{definition.name}' does not apply to this deal",
            detail={
                "deal_id": str(deal_id),
                "requirement_id": str(requirement_id),
                "asset_type": context.asset_type,
                "funding_tier": context.funding_tier.value if context.funding_tier else None,
            },
        )
    return definition, record


async def _insert(
    db: AsyncSession, deal_id: uuid.UUID, requirement_id: uuid.UUID, values: dict[str, Any]
) -> DealChecklistStatus | None:
    """Create the status row; None when a concurrent writer created it first."""
    record = DealChecklistStatus(deal_id=deal_id, requirement_id=requirement_id, **values)
    db.add(record)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return None
    await db.refresh(record)
    return record


async def _compare_and_set(
    db: AsyncSession,
    record: DealChecklistStatus,
    expected: ChecklistItemStatus,
    values: dict[str, Any],
) -> bool:
    result = await db.execute(
        update(DealChecklistStatus)
        .where(
            DealChecklistStatus.id == record.id,
            DealChecklistStatus.status == expected,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        await db.refresh(record)
        return False
    await db.commit()
    await db.refresh(record)
    return True


async def _apply(
    db: AsyncSession,
    deal_id: uuid.UUID,
    requirement_id: uuid.UUID,
    target: ChecklistItemStatus,
    plan: _Plan,
    initial: dict[str, Any] | None = None,
) -> tuple[DealChecklistStatus | None, bool]:
    """Run ``plan`` against the current row and write its result.

    ``initial`` holds the values for a row that does not exist yet; None
    means a missing row needs no change. Returns the row and whether it
    was written.
    """
    _, record = await _applicable(db, deal_id, requirement_id)

    if record is None:
        if initial is None:
            return None, False
        created = await _insert(db, deal_id, requirement_id, initial)
        if created is not None:
            return created, True
        record = await _get_record(db, deal_id, requirement_id)

    values = plan(record)
    if values is None:
        return record, False
    if await _compare_and_set(db, record, record.status, values):
        return record, True

    # Lost a race: re-evaluate against what the other writer left behind.
    if plan(record) is None:
        return record, False
    raise InvalidStateTransitionError(
        record.status.value,
        target.value,
        message="Checklist item was changed concurrently",
    )


async def waive(
    db: AsyncSession,
    deal_id: uuid.UUID,
    requirement_id: uuid.UUID,
    reason: str,
    waived_by: uuid.UUID | None = None,
) -> DealChecklistStatus:
    """Mark a requirement as not needed for this deal. Admin only."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required to waive a checklist item")

    now = utcnow()
    values = {
        "status": ChecklistItemStatus.WAIVED,
        "waived_reason": reason,
        "waived_by": waived_by,
        "waived_at": now,
    }

    def plan(record: DealChecklistStatus) -> dict[str, Any] | None:
        if record.status == ChecklistItemStatus.WAIVED and record.waived_reason == reason:
            return None
        return values

    record, written = await _apply(
        db, deal_id, requirement_id, ChecklistItemStatus.WAIVED, plan, initial=values
    )
    if written:
        logger.info(
            "checklist.item_waived",
            deal_id=str(deal_id),
            requirement_id=str(requirement_id),
            waived_by=str(waived_by) if waived_by else None,
        )
    return record


async def restore(
    db: AsyncSession,
    deal_id: uuid.UUID,
    requirement_id: uuid.UUID,
) -> DealChecklistStatus | None:
    """Undo a waive. Returns None when the deal never had a row for it."""

    def plan(record: DealChecklistStatus) -> dict[str, Any] | None:
        if record.status == ChecklistItemStatus.PENDING:
            return None
        if record.status != ChecklistItemStatus.WAIVED:
            raise InvalidStateTransitionError(
                record.status.value,
                ChecklistItemStatus.PENDING.value,
                message="Only waived items can be restored",
            )
        return {
            "status": ChecklistItemStatus.PENDING,
            "waived_reason": None,
            "waived_by": None,
            "waived_at": None,
        }

    record, written = await _apply(
        db, deal_id, requirement_id, ChecklistItemStatus.PENDING, plan
    )
    if written:
        logger.info(
            "checklist.item_restored", deal_id=str(deal_id), requirement_id=str(requirement_id)
        )
    return record


async def set_uploaded(
    db: AsyncSession,
    deal_id: uuid.UUID,
    requirement_id: uuid.UUID,
    document_id: uuid.UUID,
) -> DealChecklistStatus:
    """Record that the document pipeline received a file for this requirement."""
    values = {
        "status": ChecklistItemStatus.UPLOADED,
        "document_id": document_id,
        "uploaded_at": utcnow(),
    }

    def plan(record: DealChecklistStatus) -> dict[str, Any] | None:
        if record.status == ChecklistItemStatus.UPLOADED and record.document_id == document_id:
            return None
        if record.status in (ChecklistItemStatus.PENDING, ChecklistItemStatus.UPLOADED):
            return values
        raise InvalidStateTransitionError(record.status.value, ChecklistItemStatus.UPLOADED.value)

    record, written = await _apply(
        db, deal_id, requirement_id, ChecklistItemStatus.UPLOADED, plan, initial=values
    )
    if written:
        logger.info(
            "checklist.item_uploaded",
            deal_id=str(deal_id),
            requirement_id=str(requirement_id),
            document_id=str(document_id),
        )
    return record


async def set_approved(
    db: AsyncSession,
    deal_id: uuid.UUID,
    requirement_id: uuid.UUID,
) -> DealChecklistStatus:
    """Accept the uploaded document."""

    def plan(record: DealChecklistStatus) -> dict[str, Any] | None:
        if record.status == ChecklistItemStatus.APPROVED:
            return None
        if record.status != ChecklistItemStatus.UPLOADED:
            raise InvalidStateTransitionError(
                record.status.value,
                ChecklistItemStatus.APPROVED.value,
                message="Only uploaded items can be approved",
            )
        return {"status": ChecklistItemStatus.APPROVED, "approved_at": utcnow()}

    record, written = await _apply(
        db, deal_id, requirement_id, ChecklistItemStatus.APPROVED, plan
    )
    if record is None:
        raise InvalidStateTransitionError(
            ChecklistItemStatus.PENDING.value,
            ChecklistItemStatus.APPROVED.value,
            message="Only uploaded items can be approved",
        )
    if written:
        logger.info(
            "checklist.item_approved", deal_id=str(deal_id), requirement_id=str(requirement_id)
        )
    return record


async def add_manual_item(
    db: AsyncSession,
    deal_id: uuid.UUID,
    requirement_id: uuid.UUID,
) -> DealChecklistStatus:
    """Attach a catalog definition to a deal outside the eligibility rules."""
    await catalog.get_deal(db, deal_id)
    definition = await catalog.get_definition(db, requirement_id)

    record = await _get_record(db, deal_id, requirement_id)
    if record is None:
        record = await _insert(db, deal_id, requirement_id, {"is_manual_add": True})
        if record is None:
            record = await _get_record(db, deal_id, requirement_id)
        else:
            logger.info(
                "checklist.item_added",
                deal_id=str(deal_id),
                requirement_id=str(requirement_id),
                name=definition.name,
            )
            return record

    if not record.is_manual_add:
        record.is_manual_add = True
        await db.commit()
        await db.refresh(record)
        logger.info(
            "checklist.item_added",
            deal_id=str(deal_id),
            requirement_id=str(requirement_id),
            name=definition.name,
        )
    return record
