"""
Authentication and authorization utilities.

Tokens are issued by the external auth provider; this service only verifies
HS256 bearer JWTs and reads the caller's identity and roles from them.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
from fastapi import Header

from shared.config.settings import JWT_SECRET, JWT_ISSUER, JWT_AUDIENCE
from shared.config.logging import get_logger
from shared.utils.exceptions import InsufficientRoleError, UnauthorizedError

logger = get_logger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 15 * 60


# =============================================================================
# JWT Functions
# =============================================================================


def sign_jwt(payload: dict[str, Any], ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS) -> str:
    """
    Sign an access token with the given claims.

    Used by tooling and tests; production tokens come from the auth provider
    sharing JWT_SECRET.

    Args:
        payload: Claims to include (sub, roles, email, ...).
        ttl_seconds: Token lifetime in seconds.
    """
    now = int(time.time())
    data = {
        **payload,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": now,
        "exp": now + ttl_seconds,
        "type": "access",
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, JWT_SECRET, algorithm="HS256")


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Returns:
        Decoded token claims.

    Raises:
        UnauthorizedError: If token is invalid, expired, or lacks a subject.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError as e:
        # Log the real reason, return a generic message
        logger.warning("JWT validation failed", error=str(e))
        raise UnauthorizedError("Invalid token")

    subject = payload.get("sub")
    if not subject or not isinstance(subject, str):
        raise UnauthorizedError("Invalid token: missing subject claim")

    if payload.get("type") not in ("access", None):
        raise UnauthorizedError("Invalid token: invalid type claim", sub=subject)

    roles = payload.get("roles", [])
    if not isinstance(roles, list):
        raise UnauthorizedError("Invalid token: malformed roles claim", sub=subject)

    return payload


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        UnauthorizedError: If header is missing or malformed.
    """
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")
    if not authorization.startswith("Bearer "):
        raise UnauthorizedError("Invalid Authorization header format. Expected: Bearer <token>")
    return authorization.split(" ", 1)[1].strip()


def current_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    FastAPI dependency to get the current user context from JWT.

    Usage:
        @router.get("/api/cart")
        def get_cart(ctx: dict = Depends(current_user_context)):
            user_id = ctx["sub"]

    Returns:
        Dict with: sub (user id), roles, email (when present)
    """
    token = get_bearer_token(authorization)
    return verify_jwt(token)


def has_role(ctx: dict[str, Any], role: str) -> bool:
    """True when the caller carries the given role."""
    return role in ctx.get("roles", [])


def require_roles(ctx: dict[str, Any], allowed: list[str]) -> None:
    """
    Verify that the user has at least one of the allowed roles.

    Raises:
        InsufficientRoleError: If user lacks required role.
    """
    user_roles = set(ctx.get("roles", []))
    if not user_roles.intersection(set(allowed)):
        raise InsufficientRoleError(allowed, user_id=ctx.get("sub"))
