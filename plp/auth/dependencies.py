"""
FastAPI Authentication Dependencies

Protects admin endpoints with bearer-token validation.
"""
from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from plp.auth.tokens import AccessCodeError, TokenClaims, validate_access_code

logger = logging.getLogger(__name__)

# HTTPBearer extracts the token from "Authorization: Bearer <token>" header
# auto_error=False allows us to provide custom error messages
security = HTTPBearer(auto_error=False)


async def require_valid_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> TokenClaims:
    """
    Validate the bearer token and return its claims.

    Raises:
        HTTPException 401: If the token is missing, invalid, or expired
    """
    if credentials is None:
        logger.warning("Access attempt without token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = validate_access_code(credentials.credentials)
    except AccessCodeError as e:
        logger.warning("Invalid token: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    logger.debug(f"Valid token for {claims.get('sub', 'anonymous')}, expires at {claims['exp']}")
    return claims


async def require_admin(
    claims: TokenClaims = Depends(require_valid_token),
) -> TokenClaims:
    """
    Require a valid token carrying the admin role.

    Raises:
        HTTPException 401: If the token is missing or invalid
        HTTPException 403: If the token is valid but not an admin token
    """
    if claims.get("role") != "admin":
        logger.warning(f"Non-admin token used on admin endpoint by {claims.get('sub', 'unknown')}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required.",
        )
    return claims


async def optional_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> TokenClaims | None:
    """
    Return admin claims when a valid admin token is sent, else ``None``.

    Public endpoints use this to widen their view for admins without
    rejecting anonymous callers. A bad token is treated as anonymous.
    """
    if credentials is None:
        return None
    try:
        claims = validate_access_code(credentials.credentials)
    except AccessCodeError:
        return None
    return claims if claims.get("role") == "admin" else None
