"""
Tests for webhook HMAC signing.
"""

import time

from shared.config.constants import PaymentMethod
from shared.config.settings import settings
from shared.security.webhook_signing import WebhookSigner, verify_provider_webhook

BODY = b'{"externalId":"EVT-1","status":"SUCCESSFUL"}'


class TestWebhookSigner:
    def test_sign_and_verify(self):
        signer = WebhookSigner("secret")
        signature, timestamp = signer.sign(BODY)

        assert signer.verify(BODY, timestamp, signature) is True
        assert signer.verify(BODY, str(timestamp), signature.upper()) is True

    def test_str_and_bytes_sign_alike(self):
        signer = WebhookSigner("secret")
        assert signer.sign(BODY, 1700000000) == signer.sign(BODY.decode(), 1700000000)

    def test_tampered_body_rejected(self):
        signer = WebhookSigner("secret")
        signature, timestamp = signer.sign(BODY)

        assert signer.verify(BODY.replace(b"SUCCESSFUL", b"FAILED"), timestamp, signature) is False

    def test_stale_timestamp_rejected(self):
        signer = WebhookSigner("secret", max_age=60)
        old = int(time.time()) - 120
        signature, _ = signer.sign(BODY, old)

        assert signer.verify(BODY, old, signature) is False

    def test_missing_headers_rejected(self):
        signer = WebhookSigner("secret")
        assert signer.verify(BODY, None, "abc") is False
        assert signer.verify(BODY, "1700000000", None) is False
        assert signer.verify(BODY, "yesterday", "abc") is False

    def test_headers(self):
        headers = WebhookSigner("secret").get_headers(BODY)
        assert set(headers) == {"X-Signature", "X-Timestamp"}


class TestVerifyProviderWebhook:
    def test_skipped_without_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "orange_money_webhook_secret", "")
        assert verify_provider_webhook(PaymentMethod.ORANGE_MONEY, BODY, None, None) is True

    def test_enforced_with_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "orange_money_webhook_secret", "orange-secret")
        headers = WebhookSigner("orange-secret").get_headers(BODY)

        assert verify_provider_webhook(PaymentMethod.ORANGE_MONEY, BODY, None, None) is False
        assert verify_provider_webhook(
            PaymentMethod.ORANGE_MONEY, BODY, headers["X-Signature"], headers["X-Timestamp"]
        ) is True
