"""FastAPI auth dependencies: current user, role gates and RBAC permission checks."""

import uuid

import sentry_sdk
import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError as PydanticValidationError

from dealdesk.auth.rbac import Resource, check_permission
from dealdesk.auth.tokens import JWTError, verify_access_token
from dealdesk.models.enums import UserRole
from dealdesk.schemas.auth import CurrentUser

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=True)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> CurrentUser:
    """
    Verify the bearer token and build the caller identity from its claims.

    The token is the whole contract with the login service: role decides
    admin rights and partner_id ties partner users to their firm.
    """
    token = credentials.credentials
    try:
        payload = verify_access_token(token)
    except JWTError as e:
        logger.warning("jwt_verification_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing subject claim",
        )

    try:
        current_user = CurrentUser(
            user_id=uuid.UUID(payload["sub"]),
            role=UserRole(payload.get("role", "")),
            email=payload.get("email", ""),
            partner_id=payload.get("partner_id"),
        )
    except (ValueError, PydanticValidationError) as e:
        logger.warning("jwt_claims_invalid", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token claims are invalid",
        ) from e

    sentry_sdk.set_user({"id": str(current_user.user_id)})
    sentry_sdk.set_tag("user_role", current_user.role.value)

    return current_user


async def require_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


async def require_partner(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Partner users only; the token must name the partner firm."""
    if current_user.role != UserRole.PARTNER or current_user.partner_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Partner access required",
        )
    return current_user


def require_permission(action: str, resource_type: str):
    """
    Dependency factory: checks a specific (action, resource_type) permission.

    Usage:
        @router.post("/requirements", dependencies=[Depends(require_permission("manage", "requirement"))])
    """

    async def _check_perm(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if not check_permission(current_user.role, action, resource_type):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {action} on {resource_type}",
            )
        return current_user

    return _check_perm


def require_partner_permission(action: str):
    """Partner routes: the role must hold ``action`` on deal releases and name its firm."""

    async def _check_partner_perm(
        current_user: CurrentUser = Depends(require_permission(action, Resource.DEAL_RELEASE)),
    ) -> CurrentUser:
        return await require_partner(current_user)

    return _check_partner_perm
