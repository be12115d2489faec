"""Requirement catalog API router."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from dealdesk.auth.dependencies import require_admin, require_permission
from dealdesk.auth.rbac import Action, Resource
from dealdesk.core.database import get_db
from dealdesk.modules.requirements import service
from dealdesk.modules.requirements.schemas import (
    CreateRequirementRequest,
    DealContextResponse,
    RequirementResponse,
    UpdateRequirementRequest,
)
from dealdesk.schemas.auth import CurrentUser

logger = structlog.get_logger()

router = APIRouter(prefix="/requirements", tags=["requirements"])


# ── Catalog reads ─────────────────────────────────────────────────────────────


@router.get("", response_model=list[RequirementResponse])
async def list_active_requirements(
    current_user: CurrentUser = Depends(require_permission(Action.VIEW, Resource.REQUIREMENT)),
    db: AsyncSession = Depends(get_db),
):
    """Active catalog, ordered by category then display order."""
    return await service.list_active(db)


@router.get("/all", response_model=list[RequirementResponse])
async def list_all_requirements(
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Whole catalog including deactivated definitions."""
    return await service.list_all(db)


@router.get("/deals/{deal_id}/context", response_model=DealContextResponse)
async def get_deal_context(
    deal_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission(Action.VIEW, Resource.CHECKLIST)),
    db: AsyncSession = Depends(get_db),
):
    """Asset type and funding tier the eligibility rules see for a deal."""
    context = await service.get_deal_context(db, deal_id)
    return DealContextResponse(
        deal_id=deal_id,
        asset_type=context.asset_type,
        funding_tier=context.funding_tier,
    )


@router.get("/{requirement_id}", response_model=RequirementResponse)
async def get_requirement(
    requirement_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission(Action.VIEW, Resource.REQUIREMENT)),
    db: AsyncSession = Depends(get_db),
):
    return await service.get_definition(db, requirement_id)


# ── Administration ────────────────────────────────────────────────────────────


@router.post("", response_model=RequirementResponse, status_code=status.HTTP_201_CREATED)
async def create_requirement(
    body: CreateRequirementRequest,
    current_user: CurrentUser = Depends(require_permission(Action.MANAGE, Resource.REQUIREMENT)),
    db: AsyncSession = Depends(get_db),
):
    return await service.create_definition(db, **body.model_dump())


@router.patch("/{requirement_id}", response_model=RequirementResponse)
async def update_requirement(
    requirement_id: uuid.UUID,
    body: UpdateRequirementRequest,
    current_user: CurrentUser = Depends(require_permission(Action.MANAGE, Resource.REQUIREMENT)),
    db: AsyncSession = Depends(get_db),
):
    return await service.update_definition(db, requirement_id, body.model_dump(exclude_unset=True))


@router.post("/{requirement_id}/deactivate", response_model=RequirementResponse)
async def deactivate_requirement(
    requirement_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission(Action.MANAGE, Resource.REQUIREMENT)),
    db: AsyncSession = Depends(get_db),
):
    """Hide from new checklists. Deals that already track it keep it."""
    return await service.set_active(db, requirement_id, active=False)


@router.post("/{requirement_id}/reactivate", response_model=RequirementResponse)
async def reactivate_requirement(
    requirement_id: uuid.UUID,
    current_user: CurrentUser = Depends(require_permission(Action.MANAGE, Resource.REQUIREMENT)),
    db: AsyncSession = Depends(get_db),
):
    return await service.set_active(db, requirement_id, active=True)
