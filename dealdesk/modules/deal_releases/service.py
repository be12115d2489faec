"""Deal release service: partner access control and the partner action log.

Status and access level on ``DealRelease`` only move through compare-and-set
updates guarded by the status (and, where the level changes, the access
level) observed when the change was planned. After a lost race the plan is
re-evaluated against the winning write: if nothing is left to do the call
succeeds as a no-op, otherwise it fails with a conflict.

Access log entries are written after the state change commits. A failed
log write is reported and never undoes the state change.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, NamedTuple

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dealdesk.core.exceptions import (
    AccessLockedError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from dealdesk.models.base import utcnow
from dealdesk.models.checklist import DealChecklistStatus, RequirementDefinition
from dealdesk.models.core import Deal, FundingPartner
from dealdesk.models.deal_releases import DealRelease, PartnerAccessLog
from dealdesk.models.enums import (
    AccessLevel,
    ChecklistItemStatus,
    DealReleaseStatus,
    PartnerAction,
    PartnerStatus,
)
from dealdesk.modules.deal_releases import transitions
from dealdesk.modules.deal_releases.disclosure import can_access, get_access_level, partner_deal_view
from dealdesk.modules.deal_releases.schemas import PartnerDashboardStats, PartnerDealView

logger = structlog.get_logger()

S = DealReleaseStatus

ACCESS_ACTIONS: dict[PartnerAction, AccessLevel] = {
    PartnerAction.VIEWED_FULL: AccessLevel.FULL,
    PartnerAction.DOWNLOADED_PACKAGE: AccessLevel.FULL,
    PartnerAction.DOWNLOADED_DOCUMENT: AccessLevel.DOCUMENTS,
}


@dataclass(frozen=True)
class Actor:
    """Who is acting and from where; recorded on access log entries."""

    user_id: uuid.UUID | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class _Step(NamedTuple):
    allowed: frozenset[DealReleaseStatus]
    values: dict[str, Any]
    expected_access: AccessLevel | None = None


_Plan = Callable[[DealRelease], _Step | None]


@dataclass
class _Outcome:
    release: DealRelease
    written: bool
    previous_status: DealReleaseStatus
    previous_access: AccessLevel
    extra: dict[str, Any] = field(default_factory=dict)


# ── Lookups ───────────────────────────────────────────────────────────────────


async def get_release(db: AsyncSession, release_id: uuid.UUID) -> DealRelease:
    release = await db.get(DealRelease, release_id)
    if release is None:
        raise NotFoundError("DealRelease", release_id)
    return release


async def get_partner_release(
    db: AsyncSession, partner_id: uuid.UUID, deal_id: uuid.UUID
) -> DealRelease:
    """The release of ``deal_id`` to ``partner_id``; unreleased deals do not exist for the partner."""
    result = await db.execute(
        select(DealRelease).where(
            DealRelease.partner_id == partner_id,
            DealRelease.deal_id == deal_id,
        )
    )
    release = result.scalar_one_or_none()
    if release is None:
        raise NotFoundError("DealRelease", deal_id)
    return release


async def list_releases_for_partner(
    db: AsyncSession,
    partner_id: uuid.UUID,
    status: DealReleaseStatus | None = None,
) -> list[DealRelease]:
    stmt = select(DealRelease).where(DealRelease.partner_id == partner_id)
    if status is not None:
        stmt = stmt.where(DealRelease.status == status)
    stmt = stmt.order_by(DealRelease.released_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_releases_for_deal(db: AsyncSession, deal_id: uuid.UUID) -> list[DealRelease]:
    result = await db.execute(
        select(DealRelease)
        .where(DealRelease.deal_id == deal_id)
        .order_by(DealRelease.released_at)
    )
    return list(result.scalars().all())


def dashboard_stats(releases: Iterable[DealRelease]) -> PartnerDashboardStats:
    """Pipeline counts for a partner's dashboard tabs."""
    stats = PartnerDashboardStats()
    for release in releases:
        stats.total += 1
        if release.status == S.PENDING:
            stats.new += 1
        elif release.status in (S.VIEWED, S.INTERESTED, S.REVIEWING):
            stats.in_progress += 1
        elif release.status == S.DUE_DILIGENCE:
            stats.due_diligence += 1
        elif release.status == S.PASSED:
            stats.passed += 1
        elif release.status == S.FUNDED:
            stats.funded += 1
    return stats


async def list_access_logs(
    db: AsyncSession,
    deal_id: uuid.UUID,
    partner_id: uuid.UUID | None = None,
) -> list[PartnerAccessLog]:
    """Partner actions on a deal, oldest first."""
    stmt = select(PartnerAccessLog).where(PartnerAccessLog.deal_id == deal_id)
    if partner_id is not None:
        stmt = stmt.where(PartnerAccessLog.partner_id == partner_id)
    stmt = stmt.order_by(PartnerAccessLog.created_at)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def document_counts(db: AsyncSession, deal_id: uuid.UUID) -> dict[str, int]:
    """Received documents per requirement category (uploaded or approved)."""
    result = await db.execute(
        select(RequirementDefinition.category, func.count(DealChecklistStatus.id))
        .join(RequirementDefinition, DealChecklistStatus.requirement_id == RequirementDefinition.id)
        .where(
            DealChecklistStatus.deal_id == deal_id,
            DealChecklistStatus.status.in_(
                [ChecklistItemStatus.UPLOADED, ChecklistItemStatus.APPROVED]
            ),
        )
        .group_by(RequirementDefinition.category)
    )
    return {category.value: count for category, count in result.all()}


async def build_partner_view(db: AsyncSession, release: DealRelease) -> PartnerDealView:
    deal = await db.get(Deal, release.deal_id)
    if deal is None:
        raise NotFoundError("Deal", release.deal_id)
    counts = None
    if can_access(release, AccessLevel.DOCUMENTS):
        counts = await document_counts(db, deal.id)
    return partner_deal_view(deal, release, counts)


# ── Access log ────────────────────────────────────────────────────────────────


async def _append_log(
    db: AsyncSession,
    release: DealRelease,
    action: PartnerAction,
    actor: Actor | None = None,
    details: dict[str, Any] | None = None,
) -> PartnerAccessLog | None:
    actor = actor or Actor()
    entry = PartnerAccessLog(
        partner_id=release.partner_id,
        deal_id=release.deal_id,
        user_id=actor.user_id,
        action=action,
        details=details or {},
        ip_address=actor.ip_address,
        user_agent=actor.user_agent,
    )
    db.add(entry)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        # The rollback expired the release; reload the committed state for the caller.
        await db.refresh(release)
        logger.warning(
            "partner_access_log_failed",
            release_id=str(release.id),
            action=action.value,
            error=str(exc),
        )
        return None
    return entry


def _status_details(outcome: _Outcome, **extra: Any) -> dict[str, Any]:
    return {
        "previous_status": outcome.previous_status.value,
        "new_status": outcome.release.status.value,
        **extra,
    }


# ── Compare-and-set ───────────────────────────────────────────────────────────


async def _compare_and_set(db: AsyncSession, release: DealRelease, step: _Step) -> bool:
    stmt = update(DealRelease).where(
        DealRelease.id == release.id,
        DealRelease.status.in_(step.allowed),
    )
    if step.expected_access is not None:
        stmt = stmt.where(DealRelease.access_level == step.expected_access)
    result = await db.execute(
        stmt.values(**step.values).execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        await db.refresh(release)
        return False
    await db.commit()
    await db.refresh(release)
    return True


async def _transition(
    db: AsyncSession,
    release: DealRelease,
    target: DealReleaseStatus,
    plan: _Plan,
) -> _Outcome:
    previous_status = release.status
    previous_access = release.access_level

    step = plan(release)
    if step is None:
        return _Outcome(release, False, previous_status, previous_access)
    if await _compare_and_set(db, release, step):
        return _Outcome(release, True, previous_status, previous_access)

    # Lost a race: see whether the winning write already did our work.
    if plan(release) is None:
        return _Outcome(release, False, release.status, release.access_level)
    raise InvalidStateTransitionError(
        release.status.value,
        target.value,
        message="Deal release was changed concurrently",
    )


def _refuse_terminal(release: DealRelease, target: DealReleaseStatus) -> None:
    if transitions.is_terminal(release.status):
        raise InvalidStateTransitionError(
            release.status.value,
            target.value,
            message=f"Deal release is closed ({release.status.value})",
        )


# ── Release management (admin) ────────────────────────────────────────────────


async def create_release(
    db: AsyncSession,
    *,
    deal_id: uuid.UUID,
    partner_id: uuid.UUID,
    released_by: uuid.UUID,
    access_level: AccessLevel = AccessLevel.SUMMARY,
    release_notes: str | None = None,
) -> DealRelease:
    """Make a deal visible to a funding partner. One release per pair."""
    if await db.get(Deal, deal_id) is None:
        raise NotFoundError("Deal", deal_id)
    partner = await db.get(FundingPartner, partner_id)
    if partner is None:
        raise NotFoundError("FundingPartner", partner_id)
    if partner.status != PartnerStatus.ACTIVE:
        raise ValidationError(
            f"Partner '{partner.name}' is not active",
            detail={"partner_id": str(partner_id)},
        )

    existing = await db.execute(
        select(DealRelease.id).where(
            DealRelease.deal_id == deal_id,
            DealRelease.partner_id == partner_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ValidationError(
            "Deal is already released to this partner",
            detail={"deal_id": str(deal_id), "partner_id": str(partner_id)},
        )

    release = DealRelease(
        deal_id=deal_id,
        partner_id=partner_id,
        released_by=released_by,
        released_at=utcnow(),
        access_level=access_level,
        status=S.PENDING,
        release_notes=release_notes or None,
    )
    db.add(release)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ValidationError(
            "Deal is already released to this partner",
            detail={"deal_id": str(deal_id), "partner_id": str(partner_id)},
        ) from exc
    await db.refresh(release)

    logger.info(
        "deal_release.created",
        release_id=str(release.id),
        deal_id=str(deal_id),
        partner_id=str(partner_id),
        access_level=access_level.value,
    )
    return release


async def admin_transition(
    db: AsyncSession,
    release_id: uuid.UUID,
    target: DealReleaseStatus,
    actor: Actor | None = None,
    notes: str | None = None,
) -> DealRelease:
    """Advance a release along the post-interest pipeline. Forward only."""
    if target not in transitions.ADMIN_TARGETS:
        raise ValidationError(
            f"'{target.value}' cannot be set by an admin",
            detail={"allowed": sorted(s.value for s in transitions.ADMIN_TARGETS)},
        )
    release = await get_release(db, release_id)
    sources = transitions.admin_sources(target)

    def plan(current: DealRelease) -> _Step | None:
        if current.status == target:
            return None
        _refuse_terminal(current, target)
        if current.status not in sources:
            raise InvalidStateTransitionError(current.status.value, target.value)
        return _Step(
            allowed=sources,
            values={
                "status": target,
                "access_level": transitions.raise_access(current.access_level, target),
            },
            expected_access=current.access_level,
        )

    outcome = await _transition(db, release, target, plan)
    if outcome.written:
        action = (
            PartnerAction.SUBMITTED_TERM_SHEET
            if target == S.TERM_SHEET
            else PartnerAction.ADDED_NOTE
        )
        logger.info(
            "deal_release.status_changed",
            release_id=str(release.id),
            previous_status=outcome.previous_status.value,
            new_status=target.value,
        )
        await _append_log(
            db, release, action, actor,
            _status_details(outcome, notes=notes or None, pass_reason=None),
        )
    return release


async def set_access_level(
    db: AsyncSession,
    release_id: uuid.UUID,
    level: AccessLevel,
    actor: Actor | None = None,
    notes: str | None = None,
) -> DealRelease:
    """Admin override of a release's access level, downgrades included."""
    release = await get_release(db, release_id)

    def plan(current: DealRelease) -> _Step | None:
        if current.access_level == level:
            return None
        return _Step(
            allowed=frozenset(S),
            values={"access_level": level},
            expected_access=current.access_level,
        )

    outcome = await _transition(db, release, release.status, plan)
    if outcome.written:
        logger.info(
            "deal_release.access_level_changed",
            release_id=str(release.id),
            previous_access_level=outcome.previous_access.value,
            access_level=level.value,
        )
        await _append_log(
            db, release, PartnerAction.ADDED_NOTE, actor,
            {
                "previous_access_level": outcome.previous_access.value,
                "new_access_level": level.value,
                "notes": notes or None,
            },
        )
    return release


# ── Partner actions ───────────────────────────────────────────────────────────


async def mark_viewed(
    db: AsyncSession, release: DealRelease, actor: Actor | None = None
) -> DealRelease:
    """First look at a pending release. Later views change nothing."""

    def plan(current: DealRelease) -> _Step | None:
        _refuse_terminal(current, S.VIEWED)
        if current.status not in transitions.VIEWABLE_STATUSES:
            return None
        return _Step(
            allowed=transitions.VIEWABLE_STATUSES,
            values={
                "status": S.VIEWED,
                "first_viewed_at": func.coalesce(DealRelease.first_viewed_at, utcnow()),
            },
        )

    outcome = await _transition(db, release, S.VIEWED, plan)
    if outcome.written:
        logger.info("deal_release.viewed", release_id=str(release.id))
        await _append_log(
            db, release, PartnerAction.VIEWED_SUMMARY, actor,
            {"access_level": release.access_level.value},
        )
    return release


async def express_interest(
    db: AsyncSession, release: DealRelease, actor: Actor | None = None
) -> DealRelease:
    """Move to interested and unlock full access in one write."""

    def plan(current: DealRelease) -> _Step | None:
        _refuse_terminal(current, S.INTERESTED)
        if current.status == S.INTERESTED:
            return None
        if current.status not in transitions.INTEREST_SOURCES:
            raise InvalidStateTransitionError(current.status.value, S.INTERESTED.value)
        return _Step(
            allowed=transitions.INTEREST_SOURCES,
            values={
                "status": S.INTERESTED,
                "access_level": transitions.raise_access(current.access_level, S.INTERESTED),
                "interest_expressed_at": utcnow(),
            },
            expected_access=current.access_level,
        )

    outcome = await _transition(db, release, S.INTERESTED, plan)
    if outcome.written:
        logger.info(
            "deal_release.interest_expressed",
            release_id=str(release.id),
            access_level=release.access_level.value,
        )
        await _append_log(
            db, release, PartnerAction.EXPRESSED_INTEREST, actor,
            _status_details(outcome, notes=None, pass_reason=None),
        )
    return release


async def start_due_diligence(
    db: AsyncSession, release: DealRelease, actor: Actor | None = None
) -> DealRelease:
    """Partner opens due diligence, which unlocks documents."""

    def plan(current: DealRelease) -> _Step | None:
        _refuse_terminal(current, S.DUE_DILIGENCE)
        if current.status == S.DUE_DILIGENCE:
            return None
        if current.status not in transitions.DUE_DILIGENCE_SOURCES:
            raise InvalidStateTransitionError(
                current.status.value,
                S.DUE_DILIGENCE.value,
                message="Express interest before starting due diligence",
            )
        return _Step(
            allowed=transitions.DUE_DILIGENCE_SOURCES,
            values={
                "status": S.DUE_DILIGENCE,
                "access_level": transitions.raise_access(current.access_level, S.DUE_DILIGENCE),
            },
            expected_access=current.access_level,
        )

    outcome = await _transition(db, release, S.DUE_DILIGENCE, plan)
    if outcome.written:
        logger.info("deal_release.due_diligence_started", release_id=str(release.id))
        await _append_log(
            db, release, PartnerAction.ADDED_NOTE, actor,
            _status_details(outcome, notes=None, pass_reason=None),
        )
    return release


async def pass_deal(
    db: AsyncSession,
    release: DealRelease,
    reason: str | None = None,
    actor: Actor | None = None,
) -> DealRelease:
    """Decline the deal. Allowed from any open status; access level is kept."""
    reason = (reason or "").strip() or None

    def plan(current: DealRelease) -> _Step:
        _refuse_terminal(current, S.PASSED)
        return _Step(
            allowed=transitions.ACTIVE_STATUSES,
            values={"status": S.PASSED, "passed_at": utcnow(), "pass_reason": reason},
        )

    outcome = await _transition(db, release, S.PASSED, plan)
    logger.info("deal_release.passed", release_id=str(release.id), has_reason=reason is not None)
    await _append_log(
        db, release, PartnerAction.PASSED, actor,
        _status_details(outcome, notes=None, pass_reason=reason),
    )
    return release


async def add_note(
    db: AsyncSession,
    release: DealRelease,
    notes: str,
    actor: Actor | None = None,
) -> DealRelease:
    """Store the partner's working notes on an open release."""
    notes = (notes or "").strip()
    if not notes:
        raise ValidationError("Note text is required")

    def plan(current: DealRelease) -> _Step | None:
        _refuse_terminal(current, current.status)
        if current.partner_notes == notes:
            return None
        return _Step(allowed=transitions.ACTIVE_STATUSES, values={"partner_notes": notes})

    outcome = await _transition(db, release, release.status, plan)
    if outcome.written:
        await _append_log(
            db, release, PartnerAction.ADDED_NOTE, actor,
            _status_details(outcome, notes=notes, pass_reason=None),
        )
    return release


async def record_access(
    db: AsyncSession,
    release: DealRelease,
    action: PartnerAction,
    actor: Actor | None = None,
    document_id: uuid.UUID | None = None,
) -> PartnerAccessLog | None:
    """Log a view or download that needs more than summary access."""
    required = ACCESS_ACTIONS.get(action)
    if required is None:
        raise ValidationError(
            f"'{action.value}' is not an access action",
            detail={"allowed": sorted(a.value for a in ACCESS_ACTIONS)},
        )
    level = get_access_level(release)
    if not can_access(release, required):
        raise AccessLockedError(
            "Express interest to unlock this content",
            detail={"access_level": level.value, "required": required.value},
        )

    details: dict[str, Any] = {"access_level": level.value}
    if document_id is not None:
        details["document_id"] = str(document_id)
    return await _append_log(db, release, action, actor, details)
