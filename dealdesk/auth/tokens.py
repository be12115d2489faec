"""HS256 bearer-token verification.

Sessions are owned by the login service; this API only checks the signature
and reads the identity claims (sub, role, email, partner_id).
"""

import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from dealdesk.core.config import settings


def verify_access_token(token: str) -> dict:
    """Decode and verify a token. Raises JWTError on any validation failure."""
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
        issuer=settings.JWT_ISSUER or None,
        options={
            "verify_aud": False,
            "verify_iss": bool(settings.JWT_ISSUER),
            "verify_exp": True,
        },
    )


def issue_access_token(
    user_id: uuid.UUID,
    role: str,
    email: str,
    partner_id: uuid.UUID | None = None,
    expires_in: timedelta = timedelta(hours=1),
) -> str:
    """Mint a token with the claims ``verify_access_token`` expects (dev and tests)."""
    now = datetime.now(timezone.utc)
    claims: dict = {
        "sub": str(user_id),
        "role": role,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    if partner_id is not None:
        claims["partner_id"] = str(partner_id)
    if settings.JWT_ISSUER:
        claims["iss"] = settings.JWT_ISSUER
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


__all__ = ["JWTError", "issue_access_token", "verify_access_token"]
