"""
Security module: bearer authentication, webhook signatures, rate limiting.
"""

from shared.security.auth import (
    sign_jwt,
    verify_jwt,
    get_bearer_token,
    current_user_context,
    has_role,
    require_roles,
)
from shared.security.webhook_signing import WebhookSigner, verify_provider_webhook
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler

__all__ = [
    # auth
    "sign_jwt",
    "verify_jwt",
    "get_bearer_token",
    "current_user_context",
    "has_role",
    "require_roles",
    # webhooks
    "WebhookSigner",
    "verify_provider_webhook",
    # rate limiting
    "limiter",
    "rate_limit_exceeded_handler",
]
