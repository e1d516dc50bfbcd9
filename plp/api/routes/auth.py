"""Admin login and token verification."""
from __future__ import annotations

import hmac
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from plp.auth import (
    AccessCodeError,
    TokenClaims,
    generate_access_code,
    get_token_expiration,
    require_valid_token,
)
from plp.config import settings
from plp.models.auth import AdminUser, LoginRequest, LoginResponse, VerifyResponse

router = APIRouter()
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)


def _credentials_match(email: str, password: str) -> bool:
    email_ok = hmac.compare_digest(
        email.strip().lower().encode("utf-8"), settings.admin_email.lower().encode("utf-8")
    )
    password_ok = hmac.compare_digest(password.encode("utf-8"), settings.admin_password.encode("utf-8"))
    return email_ok and password_ok


@router.post("/auth/login", response_model=LoginResponse, response_model_by_alias=True)
@limiter.limit(settings.login_rate_limit)
async def login(request: Request, body: LoginRequest) -> LoginResponse:
    """
    Exchange the admin credentials for a bearer token.

    Raises:
        HTTPException 401: Wrong e-mail or password
        HTTPException 500: Token signing is not configured
    """
    if not _credentials_match(body.email, body.password):
        logger.warning(f"Failed login attempt for {body.email!r}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid e-mail or password.",
        )

    try:
        token = generate_access_code(subject=settings.admin_email, is_admin=True)
    except AccessCodeError as e:
        logger.error(f"❌ Cannot issue token: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Token signing is not configured.",
        )

    logger.info(f"✅ Admin login: {settings.admin_email}")
    return LoginResponse(
        token=token,
        expires_at=get_token_expiration(token).isoformat(),
        user=AdminUser(email=settings.admin_email, role="admin"),
    )


@router.get("/auth/verify", response_model=VerifyResponse, response_model_by_alias=True)
async def verify(claims: TokenClaims = Depends(require_valid_token)) -> VerifyResponse:
    """Confirm the bearer token is still valid and say whose it is."""
    return VerifyResponse(
        user=AdminUser(email=claims.get("sub", ""), role=claims.get("role", "")),
        expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc).isoformat(),
    )

