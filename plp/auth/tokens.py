"""
Admin Token Generation and Validation

Signed JWT bearer tokens for the admin panel. Tokens are self-contained:
nothing is stored server-side, so logging out is a client-side concern.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from typing_extensions import Required, TypedDict

from plp.config import settings


class AccessCodeError(Exception):
    """Raised when token generation or validation fails."""
    pass


class TokenClaims(TypedDict, total=False):
    """Decoded JWT payload returned by validate_access_code.

    ``type``, ``iat``, ``exp`` and ``iss`` are always present.
    ``sub`` is the account e-mail. ``role`` is ``"admin"`` for panel tokens.
    """

    type: Required[str]
    iat: Required[int]
    exp: Required[int]
    iss: Required[str]
    sub: str
    role: str


def _get_secret() -> str:
    """Get the token signing secret, raising if not configured."""
    if not settings.access_token_secret:
        raise AccessCodeError(
            "PLP_ACCESS_TOKEN_SECRET not configured. "
            "Generate one with: openssl rand -hex 32"
        )
    return settings.access_token_secret


def generate_access_code(
    subject: str | None = None,
    duration_hours: int | None = None,
    duration_minutes: int | None = None,
    is_admin: bool = False,
) -> str:
    """
    Generate a signed access code (JWT).

    Args:
        subject: Account e-mail to put in ``sub``
        duration_hours: Token validity in hours (defaults to the configured expiry)
        duration_minutes: Token validity in minutes, added to the hours
        is_admin: If True, adds the admin role to the token

    Raises:
        AccessCodeError: If the duration is not positive or the secret is missing
    """
    secret = _get_secret()

    if duration_hours is None and duration_minutes is None:
        duration_hours = settings.access_token_expiry_hours
    total_hours = float(duration_hours or 0) + (duration_minutes or 0) / 60
    if total_hours <= 0:
        raise AccessCodeError("Token duration must be positive")

    now = datetime.now(timezone.utc)
    expiration = now + timedelta(hours=total_hours)

    payload: dict[str, str | int] = {
        "type": "access",
        "iss": settings.access_token_issuer,
        "iat": int(now.timestamp()),
        "exp": int(expiration.timestamp()),
    }
    if subject:
        payload["sub"] = subject
    if is_admin:
        payload["role"] = "admin"

    return jwt.encode(payload, secret, algorithm=settings.access_token_algorithm)


def validate_access_code(token: str) -> TokenClaims:
    """
    Validate an access code and return its claims.

    Raises:
        AccessCodeError: If the token is invalid, expired, from another issuer, or malformed
    """
    secret = _get_secret()

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.access_token_algorithm],
            issuer=settings.access_token_issuer,
            options={"require": ["exp", "iat", "iss"]},
        )
    except jwt.ExpiredSignatureError:
        raise AccessCodeError("Access code has expired")
    except jwt.InvalidTokenError as e:
        raise AccessCodeError(f"Invalid access code: {e}")

    # jwt.decode() returns dict[str, Any]; narrow each claim explicitly.
    raw_type = payload.get("type")
    if raw_type != "access":
        raise AccessCodeError("Invalid token type")

    raw_iat = payload.get("iat")
    raw_exp = payload.get("exp")
    if not isinstance(raw_iat, int) or not isinstance(raw_exp, int):
        raise AccessCodeError("Malformed token: iat/exp must be integers")

    claims = TokenClaims(type=raw_type, iat=raw_iat, exp=raw_exp, iss=str(payload["iss"]))

    raw_sub = payload.get("sub")
    if raw_sub is not None:
        if not isinstance(raw_sub, str):
            raise AccessCodeError("Malformed token: sub must be a string")
        claims["sub"] = raw_sub

    raw_role = payload.get("role")
    if raw_role is not None:
        if not isinstance(raw_role, str):
            raise AccessCodeError("Malformed token: role must be a string")
        claims["role"] = raw_role

    return claims


def get_token_expiration(token: str) -> datetime:
    """
    Read the expiration of a token without verifying its signature.

    For display only; never use for access decisions.

    Raises:
        AccessCodeError: If the token is malformed or has no expiration
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        raise AccessCodeError(f"Invalid token format: {e}")
    exp_timestamp = payload.get("exp")
    if not exp_timestamp:
        raise AccessCodeError("Token has no expiration")
    return datetime.fromtimestamp(exp_timestamp, tz=timezone.utc)
