"""
PLP CMS Authentication Module

Provides JWT-based admin token generation and validation.
"""
from plp.auth.tokens import (
    generate_access_code,
    validate_access_code,
    get_token_expiration,
    AccessCodeError,
    TokenClaims,
)
from plp.auth.dependencies import require_valid_token, require_admin, optional_admin

__all__ = [
    "generate_access_code",
    "validate_access_code",
    "get_token_expiration",
    "AccessCodeError",
    "TokenClaims",
    "require_valid_token",
    "require_admin",
    "optional_admin",
]
