"""Deal release API routers: admin release management and the partner deal room."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from dealdesk.auth.dependencies import require_partner_permission, require_permission
from dealdesk.auth.rbac import Action, Resource
from dealdesk.core.database import get_db
from dealdesk.models.deal_releases import DealRelease
from dealdesk.models.enums import DealReleaseStatus, PartnerAction
from dealdesk.modules.deal_releases import service
from dealdesk.modules.deal_releases.schemas import (
    AdminTransitionRequest,
    CreateReleaseRequest,
    DealReleaseResponse,
    NoteRequest,
    PartnerAccessLogResponse,
    PartnerDashboardResponse,
    PartnerDashboardStats,
    PartnerDealListItem,
    PartnerDealView,
    PassRequest,
    RecordAccessRequest,
    SetAccessLevelRequest,
)
from dealdesk.schemas.auth import CurrentUser

logger = structlog.get_logger()

router = APIRouter(prefix="/deal-releases", tags=["deal-releases"])
partner_router = APIRouter(prefix="/partner/deals", tags=["partner-deals"])


def _actor(request: Request, user: CurrentUser) -> service.Actor:
    return service.Actor(
        user_id=user.user_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


# ── Admin ─────────────────────────────────────────────────────────────────────


@router.post("", response_model=DealReleaseResponse, status_code=status.HTTP_201_CREATED)
async def create_release(
    body: CreateReleaseRequest,
    current_user: CurrentUser = Depends(require_permission(Action.RELEASE, Resource.DEAL_RELEASE)),
    db: AsyncSession = Depends(get_db),
):
    """Release a deal to a funding partner."""
    return await service.create_release(
        db,
        deal_id=body.deal_id,
        partner_id=body.partner_id,
        released_by=current_user.user_id,
        access_level=body.access_level,
        release_notes=body.release_notes,
    )


@router.get("/deals/{deal_id}", response_model=list[DealReleaseResponse])
async def list_deal_releases(
    deal_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission(Action.RELEASE, Resource.DEAL_RELEASE)),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_releases_for_deal(db, deal_id)


@router.get("/deals/{deal_id}/access-logs", response_model=list[PartnerAccessLogResponse])
async def list_access_logs(
    deal_id: uuid.UUID,
    partner_id: uuid.UUID | None = Query(None),
    current_user: CurrentUser = Depends(require_permission(Action.VIEW, Resource.ACCESS_LOG)),
    db: AsyncSession = Depends(get_db),
):
    """Partner activity on a deal, oldest first."""
    return await service.list_access_logs(db, deal_id, partner_id=partner_id)


@router.get("/{release_id}", response_model=DealReleaseResponse)
async def get_release(
    release_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission(Action.RELEASE, Resource.DEAL_RELEASE)),
    db: AsyncSession = Depends(get_db),
):
    return await service.get_release(db, release_id)


@router.post("/{release_id}/transition", response_model=DealReleaseResponse)
async def transition_release(
    release_id: uuid.UUID,
    body: AdminTransitionRequest,
    request: Request,
    current_user: CurrentUser = Depends(
        require_permission(Action.TRANSITION, Resource.DEAL_RELEASE)
    ),
    db: AsyncSession = Depends(get_db),
):
    """Move a release to reviewing, due_diligence, term_sheet or funded."""
    return await service.admin_transition(
        db, release_id, body.status, actor=_actor(request, current_user), notes=body.notes
    )


@router.post("/{release_id}/access-level", response_model=DealReleaseResponse)
async def set_access_level(
    release_id: uuid.UUID,
    body: SetAccessLevelRequest,
    request: Request,
    current_user: CurrentUser = Depends(
        require_permission(Action.TRANSITION, Resource.DEAL_RELEASE)
    ),
    db: AsyncSession = Depends(get_db),
):
    return await service.set_access_level(
        db, release_id, body.access_level, actor=_actor(request, current_user), notes=body.notes
    )


# ── Partner ───────────────────────────────────────────────────────────────────


async def _partner_release(
    db: AsyncSession, current_user: CurrentUser, deal_id: uuid.UUID
) -> DealRelease:
    return await service.get_partner_release(db, current_user.partner_id, deal_id)


@partner_router.get("", response_model=PartnerDashboardResponse)
async def partner_dashboard(
    status_filter: DealReleaseStatus | None = Query(None, alias="status"),
    current_user: CurrentUser = Depends(require_partner_permission(Action.VIEW)),
    db: AsyncSession = Depends(get_db),
):
    """Deals released to the caller's firm, newest first, with pipeline counts."""
    releases = await service.list_releases_for_partner(db, current_user.partner_id)
    stats = service.dashboard_stats(releases)
    if status_filter is not None:
        releases = [r for r in releases if r.status == status_filter]

    deals = []
    for release in releases:
        view = await service.build_partner_view(db, release)
        deals.append(
            PartnerDealListItem(release=DealReleaseResponse.model_validate(release), deal=view)
        )
    return PartnerDashboardResponse(stats=stats, deals=deals)


@partner_router.get("/stats", response_model=PartnerDashboardStats)
async def partner_stats(
    current_user: CurrentUser = Depends(require_partner_permission(Action.VIEW)),
    db: AsyncSession = Depends(get_db),
):
    releases = await service.list_releases_for_partner(db, current_user.partner_id)
    return service.dashboard_stats(releases)


@partner_router.get("/{deal_id}", response_model=PartnerDealView)
async def get_partner_deal(
    deal_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_partner_permission(Action.VIEW)),
    db: AsyncSession = Depends(get_db),
):
    """The deal as far as the release's access level allows."""
    release = await _partner_release(db, current_user, deal_id)
    return await service.build_partner_view(db, release)


@partner_router.post("/{deal_id}/view", response_model=PartnerDealView)
async def view_deal(
    deal_id: uuid.UUID,
    request: Request,
    current_user: CurrentUser = Depends(require_partner_permission(Action.RESPOND)),
    db: AsyncSession = Depends(get_db),
):
    release = await _partner_release(db, current_user, deal_id)
    await service.mark_viewed(db, release, actor=_actor(request, current_user))
    return await service.build_partner_view(db, release)


@partner_router.post("/{deal_id}/interest", response_model=PartnerDealView)
async def express_interest(
    deal_id: uuid.UUID,
    request: Request,
    current_user: CurrentUser = Depends(require_partner_permission(Action.RESPOND)),
    db: AsyncSession = Depends(get_db),
):
    """Express interest; the response carries the unlocked full view."""
    release = await _partner_release(db, current_user, deal_id)
    await service.express_interest(db, release, actor=_actor(request, current_user))
    return await service.build_partner_view(db, release)


@partner_router.post("/{deal_id}/due-diligence", response_model=PartnerDealView)
async def start_due_diligence(
    deal_id: uuid.UUID,
    request: Request,
    current_user: CurrentUser = Depends(require_partner_permission(Action.RESPOND)),
    db: AsyncSession = Depends(get_db),
):
    release = await _partner_release(db, current_user, deal_id)
    await service.start_due_diligence(db, release, actor=_actor(request, current_user))
    return await service.build_partner_view(db, release)


@partner_router.post("/{deal_id}/pass", response_model=DealReleaseResponse)
async def pass_deal(
    deal_id: uuid.UUID,
    body: PassRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_partner_permission(Action.RESPOND)),
    db: AsyncSession = Depends(get_db),
):
    release = await _partner_release(db, current_user, deal_id)
    return await service.pass_deal(
        db, release, reason=body.reason, actor=_actor(request, current_user)
    )


@partner_router.post("/{deal_id}/notes", response_model=DealReleaseResponse)
async def add_note(
    deal_id: uuid.UUID,
    body: NoteRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_partner_permission(Action.RESPOND)),
    db: AsyncSession = Depends(get_db),
):
    release = await _partner_release(db, current_user, deal_id)
    return await service.add_note(db, release, body.notes, actor=_actor(request, current_user))


@partner_router.post("/{deal_id}/access", status_code=status.HTTP_204_NO_CONTENT)
async def record_access(
    deal_id: uuid.UUID,
    body: RecordAccessRequest,
    request: Request,
    current_user: CurrentUser = Depends(require_partner_permission(Action.RESPOND)),
    db: AsyncSession = Depends(get_db),
):
    """Record a full view or a download; refused below the needed access level."""
    release = await _partner_release(db, current_user, deal_id)
    await service.record_access(
        db,
        release,
        PartnerAction(body.action),
        actor=_actor(request, current_user),
        document_id=body.document_id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
