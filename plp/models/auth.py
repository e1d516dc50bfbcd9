"""Request/response models for the admin login endpoints."""
from __future__ import annotations

from pydantic import Field

from plp.models.base import CamelModel


class LoginRequest(CamelModel):
    """Admin credentials posted by the login form."""

    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=256)


class AdminUser(CamelModel):
    email: str
    role: str = "admin"


class LoginResponse(CamelModel):
    """Bearer token issued on successful login."""

    token: str
    token_type: str = "bearer"
    expires_at: str = Field(..., description="ISO-8601 UTC expiry of the token")
    user: AdminUser


class VerifyResponse(CamelModel):
    valid: bool = True
    user: AdminUser
    expires_at: str
