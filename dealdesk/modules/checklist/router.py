"""Deal document checklist API router."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from dealdesk.auth.dependencies import require_permission
from dealdesk.auth.rbac import Action, Resource
from dealdesk.core.database import get_db
from dealdesk.core.exceptions import NotFoundError
from dealdesk.modules.checklist import service
from dealdesk.modules.checklist.schemas import (
    ChecklistResponse,
    ChecklistStatusResponse,
    ManualAddRequest,
    MarkUploadedRequest,
    WaiveRequest,
)
from dealdesk.modules.requirements.service import get_deal
from dealdesk.schemas.auth import CurrentUser

logger = structlog.get_logger()

router = APIRouter(prefix="/checklists", tags=["checklists"])


async def _ensure_deal_visible(db: AsyncSession, deal_id: uuid.UUID, user: CurrentUser) -> None:
    """Clients only see deals of companies they own; admins see every deal."""
    deal = await get_deal(db, deal_id)
    if user.is_admin:
        return
    if deal.company is None or deal.company.owner_id != user.user_id:
        raise NotFoundError("Deal", deal_id)


@router.get("/{deal_id}", response_model=ChecklistResponse)
async def get_checklist(
    deal_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission(Action.VIEW, Resource.CHECKLIST)),
    db: AsyncSession = Depends(get_db),
):
    """Checklist for a deal, grouped by category with progress."""
    await _ensure_deal_visible(db, deal_id, current_user)
    return await service.get_checklist(db, deal_id)


@router.post(
    "/{deal_id}/items/{requirement_id}/waive",
    response_model=ChecklistStatusResponse,
)
async def waive_item(
    deal_id: uuid.UUID,
    requirement_id: uuid.UUID,
    body: WaiveRequest,
    current_user: CurrentUser = Depends(require_permission(Action.WAIVE, Resource.CHECKLIST)),
    db: AsyncSession = Depends(get_db),
):
    return await service.waive(
        db, deal_id, requirement_id, reason=body.reason, waived_by=current_user.user_id
    )


@router.post("/{deal_id}/items/{requirement_id}/restore")
async def restore_item(
    deal_id: uuid.UUID,
    requirement_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission(Action.WAIVE, Resource.CHECKLIST)),
    db: AsyncSession = Depends(get_db),
):
    """Return a waived item to pending. 204 when the deal never tracked it."""
    record = await service.restore(db, deal_id, requirement_id)
    if record is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return ChecklistStatusResponse.model_validate(record)


@router.post(
    "/{deal_id}/items/{requirement_id}/uploaded",
    response_model=ChecklistStatusResponse,
)
async def mark_uploaded(
    deal_id: uuid.UUID,
    requirement_id: uuid.UUID,
    body: MarkUploadedRequest,
    current_user: CurrentUser = Depends(require_permission(Action.UPLOAD, Resource.CHECKLIST)),
    db: AsyncSession = Depends(get_db),
):
    """Called by the document pipeline once a file is stored."""
    await _ensure_deal_visible(db, deal_id, current_user)
    return await service.set_uploaded(db, deal_id, requirement_id, body.document_id)


@router.post(
    "/{deal_id}/items/{requirement_id}/approved",
    response_model=ChecklistStatusResponse,
)
async def mark_approved(
    deal_id: uuid.UUID,
    requirement_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission(Action.APPROVE, Resource.CHECKLIST)),
    db: AsyncSession = Depends(get_db),
):
    return await service.set_approved(db, deal_id, requirement_id)


@router.post(
    "/{deal_id}/items",
    response_model=ChecklistStatusResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_manual_item(
    deal_id: uuid.UUID,
    body: ManualAddRequest,
    current_user: CurrentUser = Depends(require_permission(Action.MANAGE, Resource.CHECKLIST)),
    db: AsyncSession = Depends(get_db),
):
    """Attach a catalog requirement the rules did not select."""
    return await service.add_manual_item(db, deal_id, body.requirement_id)
