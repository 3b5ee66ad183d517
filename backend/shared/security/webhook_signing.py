"""
Webhook signature verification.

Provider callbacks are signed with HMAC-SHA256 over "v1.{timestamp}.{raw body}"
using a per-provider shared secret. The signature travels in X-Signature and the
Unix timestamp in X-Timestamp; stale timestamps are rejected to stop replays.
"""

import hashlib
import hmac
import time
from typing import Optional

from shared.config.settings import settings
from shared.config.constants import PaymentMethod
from shared.config.logging import get_logger

logger = get_logger(__name__)


class WebhookSigner:
    """
    HMAC-SHA256 signer/verifier for webhook bodies.

    Usage (verification):
        signer = WebhookSigner(secret="provider-secret")
        if signer.verify(body, timestamp, signature):
            ...

    Usage (signing, e.g. in tests or a relay):
        headers = signer.get_headers(body)
    """

    HEADER_SIGNATURE = "X-Signature"
    HEADER_TIMESTAMP = "X-Timestamp"

    VERSION = "v1"

    DEFAULT_MAX_AGE = 300

    def __init__(self, secret: str, max_age: int = DEFAULT_MAX_AGE):
        self._secret = secret.encode()
        self._max_age = max_age

    def sign(self, body: bytes | str, timestamp: Optional[int] = None) -> tuple[str, int]:
        """Return (hex signature, timestamp) for a body."""
        if timestamp is None:
            timestamp = int(time.time())

        if isinstance(body, str):
            body = body.encode()

        message = f"{self.VERSION}.{timestamp}.".encode() + body
        signature = hmac.new(self._secret, message, hashlib.sha256).hexdigest()
        return signature, timestamp

    def verify(
        self,
        body: bytes | str,
        timestamp: int | str | None,
        signature: str | None,
    ) -> bool:
        """True if the signature matches and the timestamp is fresh."""
        if not signature or timestamp is None:
            logger.warning("Webhook missing signature headers")
            return False

        try:
            ts = int(timestamp)
        except (ValueError, TypeError):
            logger.warning("Invalid webhook timestamp format", timestamp=timestamp)
            return False

        age = abs(int(time.time()) - ts)
        if age > self._max_age:
            logger.warning("Webhook signature expired", age=age, max_age=self._max_age)
            return False

        expected, _ = self.sign(body, ts)

        if not hmac.compare_digest(expected, signature.strip().lower()):
            logger.warning("Webhook signature mismatch", received=signature[:8])
            return False

        return True

    def get_headers(self, body: bytes | str) -> dict[str, str]:
        """Signing headers for a body."""
        signature, timestamp = self.sign(body)
        return {
            self.HEADER_SIGNATURE: signature,
            self.HEADER_TIMESTAMP: str(timestamp),
        }


def webhook_secret_for(provider: str) -> str:
    """Configured shared secret for a provider ("" when unset)."""
    if provider == PaymentMethod.MTN_MOMO:
        return settings.mtn_momo_webhook_secret
    if provider == PaymentMethod.ORANGE_MONEY:
        return settings.orange_money_webhook_secret
    return ""


def verify_provider_webhook(
    provider: str,
    body: bytes,
    signature: str | None,
    timestamp: str | None,
) -> bool:
    """
    Verify a provider webhook.

    Without a configured secret verification is skipped (development only;
    production startup refuses a configured provider with no secret).
    """
    secret = webhook_secret_for(provider)
    if not secret:
        logger.warning("Webhook signature verification skipped - no secret configured", provider=provider)
        return True

    signer = WebhookSigner(secret, max_age=settings.webhook_max_age_seconds)
    return signer.verify(body, timestamp, signature)
