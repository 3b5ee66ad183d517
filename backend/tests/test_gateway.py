"""
Tests for the MTN MoMo / Orange Money clients using httpx.MockTransport.
"""

import json
import re

import httpx
import pytest

from shared.config.constants import PaymentMethod, PaymentStatus
from shared.config.settings import Settings
from rest_api.services.payments import (
    CircuitBreaker,
    CircuitBreakerConfig,
    MtnMomoClient,
    OrangeMoneyClient,
    PaymentGateway,
    PaymentGatewayError,
    PaymentRequest,
)

MTN_PHONE = "+237 677 123 456"
ORANGE_PHONE = "+237 690 123 456"


class Recorder:
    """MockTransport handler that routes by path and records requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes[request.url.path]
        return handler(request) if callable(handler) else handler

    def paths(self):
        return [r.url.path for r in self.requests]


def _mtn(recorder, **kwargs):
    return MtnMomoClient(
        base_url="https://mtn.test",
        primary_key="primary",
        api_user_id="api-user",
        api_key="api-key",
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )


def _orange(recorder):
    return OrangeMoneyClient(
        base_url="https://orange.test/v1",
        client_id="client",
        client_secret="secret",
        merchant_key="merchant",
        return_url="https://shop.test/ok",
        cancel_url="https://shop.test/cancel",
        notif_url="https://api.test/api/payment/orange/webhook",
        transport=httpx.MockTransport(recorder),
    )


MTN_TOKEN = httpx.Response(200, json={"access_token": "mtn-token", "expires_in": 3600})
ORANGE_TOKEN = httpx.Response(200, json={"access_token": "orange-token", "expires_in": 3600})


class TestMtnMomoClient:
    @pytest.mark.asyncio
    async def test_request_to_pay_accepted(self):
        recorder = Recorder({
            "/collection/token/": MTN_TOKEN,
            "/collection/v1_0/requesttopay": httpx.Response(202),
        })
        client = _mtn(recorder)

        result = await client.request_to_pay(357750, MTN_PHONE, "EVT-1", "Booking for Poulet DG")

        assert result.success is True
        assert result.status == PaymentStatus.PENDING
        pay_request = recorder.requests[1]
        assert result.transaction_id == pay_request.headers["X-Reference-Id"]
        assert result.payment_reference == result.transaction_id
        assert pay_request.headers["Authorization"] == "Bearer mtn-token"
        body = json.loads(pay_request.content)
        assert body["amount"] == "3577.50"
        assert body["externalId"] == "EVT-1"
        assert body["payer"] == {"partyIdType": "MSISDN", "partyId": "237677123456"}
        await client.aclose()

    @pytest.mark.asyncio
    async def test_token_is_cached(self):
        recorder = Recorder({
            "/collection/token/": MTN_TOKEN,
            "/collection/v1_0/requesttopay": httpx.Response(202),
        })
        client = _mtn(recorder)

        await client.request_to_pay(100, MTN_PHONE, "EVT-1", "a")
        await client.request_to_pay(100, MTN_PHONE, "EVT-2", "b")

        assert recorder.paths().count("/collection/token/") == 1
        await client.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code, message",
        [
            (400, "Invalid payment request. Please check your phone number and try again."),
            (409, "Duplicate transaction. Please try again with a different reference."),
            (403, "Failed to initiate payment. Please try again."),
        ],
    )
    async def test_rejections_are_failed_results(self, status_code, message):
        recorder = Recorder({
            "/collection/token/": MTN_TOKEN,
            "/collection/v1_0/requesttopay": httpx.Response(status_code),
        })
        client = _mtn(recorder)

        result = await client.request_to_pay(100, MTN_PHONE, "EVT-1", "a")

        assert result.success is False
        assert result.status == PaymentStatus.FAILED
        assert result.message == message
        await client.aclose()

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        recorder = Recorder({
            "/collection/token/": MTN_TOKEN,
            "/collection/v1_0/requesttopay": httpx.Response(503),
        })
        client = _mtn(recorder)

        with pytest.raises(PaymentGatewayError) as exc:
            await client.request_to_pay(100, MTN_PHONE, "EVT-1", "a")
        assert exc.value.retryable is True
        await client.aclose()

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        def timeout(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = _mtn(Recorder({"/collection/token/": timeout}))

        with pytest.raises(PaymentGatewayError) as exc:
            await client.request_to_pay(100, MTN_PHONE, "EVT-1", "a")
        assert exc.value.reason == "request timed out"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_token_rejected(self):
        client = _mtn(Recorder({"/collection/token/": httpx.Response(401)}))

        with pytest.raises(PaymentGatewayError) as exc:
            await client.request_to_pay(100, MTN_PHONE, "EVT-1", "a")
        assert exc.value.retryable is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_get_status(self):
        recorder = Recorder({
            "/collection/token/": MTN_TOKEN,
            "/collection/v1_0/requesttopay/rtp-1": httpx.Response(
                200, json={"status": "SUCCESSFUL", "financialTransactionId": "fin-1"}
            ),
        })
        client = _mtn(recorder)

        status = await client.get_status("rtp-1")

        assert status.status == "SUCCESSFUL"
        assert status.transaction_id == "fin-1"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_get_status_unparseable(self):
        recorder = Recorder({
            "/collection/token/": MTN_TOKEN,
            "/collection/v1_0/requesttopay/rtp-1": httpx.Response(200, content=b"<html>"),
        })
        client = _mtn(recorder)

        with pytest.raises(PaymentGatewayError):
            await client.get_status("rtp-1")
        await client.aclose()

    @pytest.mark.asyncio
    async def test_breaker_opens_after_failures(self):
        recorder = Recorder({"/collection/token/": httpx.Response(500)})
        breaker = CircuitBreaker(CircuitBreakerConfig(name="mtn_momo", failure_threshold=2))
        client = _mtn(recorder, breaker=breaker)

        for _ in range(2):
            with pytest.raises(PaymentGatewayError):
                await client.get_status("rtp-1")

        with pytest.raises(PaymentGatewayError) as exc:
            await client.get_status("rtp-1")

        assert exc.value.retry_after is not None
        assert len(recorder.requests) == 2
        await client.aclose()


class TestOrangeMoneyClient:
    @pytest.mark.asyncio
    async def test_web_payment(self):
        recorder = Recorder({
            "/v1/oauth/token": ORANGE_TOKEN,
            "/v1/webpayment": httpx.Response(
                201, json={"payment_url": "https://pay.orange.test/abc", "pay_token": "pt-1"}
            ),
        })
        client = _orange(recorder)

        result = await client.web_payment(500000, "EVT-9", "Booking for jazz night")

        assert result.status == PaymentStatus.PENDING
        assert result.payment_url == "https://pay.orange.test/abc"
        assert result.payment_reference == "pt-1"
        body = json.loads(recorder.requests[1].content)
        assert body["order_id"] == "EVT-9"
        assert body["amount"] == 5000.0
        assert body["merchant_key"] == "merchant"
        assert body["lang"] == "fr"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_web_payment_without_url_fails(self):
        recorder = Recorder({
            "/v1/oauth/token": ORANGE_TOKEN,
            "/v1/webpayment": httpx.Response(200, json={"status": "ERROR"}),
        })
        client = _orange(recorder)

        result = await client.web_payment(500000, "EVT-9", "x")

        assert result.status == PaymentStatus.FAILED
        await client.aclose()

    @pytest.mark.asyncio
    async def test_get_status(self):
        recorder = Recorder({
            "/v1/oauth/token": ORANGE_TOKEN,
            "/v1/transactionstatus": httpx.Response(200, json={"status": "SUCCESS", "txnid": "MP1"}),
        })
        client = _orange(recorder)

        status = await client.get_status("EVT-9", 500000, "pt-1")

        assert status.status == "SUCCESS"
        assert status.transaction_id == "MP1"
        assert json.loads(recorder.requests[1].content)["pay_token"] == "pt-1"
        await client.aclose()


class TestPaymentGateway:
    @pytest.mark.asyncio
    async def test_cash(self):
        result = await PaymentGateway().initiate(
            PaymentRequest(PaymentMethod.CASH, 1000, "EVT-1", "x")
        )
        assert result.status == PaymentStatus.PENDING
        assert re.fullmatch(r"CASH_\d+", result.payment_reference)

    @pytest.mark.asyncio
    async def test_invalid_phone_makes_no_call(self):
        recorder = Recorder({})
        gateway = PaymentGateway(mtn=_mtn(recorder))

        missing = await gateway.initiate(PaymentRequest(PaymentMethod.MTN_MOMO, 1000, "EVT-1", "x"))
        wrong = await gateway.initiate(
            PaymentRequest(PaymentMethod.MTN_MOMO, 1000, "EVT-1", "x", customer_phone=ORANGE_PHONE)
        )

        assert missing.message == "Phone number is required for MTN Mobile Money"
        assert wrong.status == PaymentStatus.FAILED
        assert recorder.requests == []
        await gateway.aclose()

    @pytest.mark.asyncio
    async def test_unconfigured_provider(self):
        gateway = PaymentGateway()

        assert gateway.supports(PaymentMethod.CASH) is True
        assert gateway.supports(PaymentMethod.ORANGE_MONEY) is False
        with pytest.raises(PaymentGatewayError):
            await gateway.initiate(
                PaymentRequest(PaymentMethod.ORANGE_MONEY, 1000, "EVT-1", "x", customer_phone=ORANGE_PHONE)
            )

    @pytest.mark.asyncio
    async def test_check_status_without_transaction(self):
        gateway = PaymentGateway()
        assert await gateway.check_status(PaymentMethod.MTN_MOMO, "EVT-1", 1000) is None
        assert await gateway.check_status(PaymentMethod.CASH, "EVT-1", 1000, "CASH_1") is None

    @pytest.mark.asyncio
    async def test_from_settings(self):
        cfg = Settings(
            mtn_momo_primary_key="k",
            mtn_momo_api_user_id="u",
            mtn_momo_api_key="s",
            orange_money_client_id="",
        )
        gateway = PaymentGateway.from_settings(cfg, transport=httpx.MockTransport(Recorder({})))

        assert gateway.supports(PaymentMethod.MTN_MOMO) is True
        assert gateway.supports(PaymentMethod.ORANGE_MONEY) is False
        assert [b.name for b in gateway.breakers] == ["mtn_momo"]
        await gateway.aclose()
