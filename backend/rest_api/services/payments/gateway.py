"""
Payment Gateway Adapter.

Talks to the MTN MoMo collection API and the Orange Money web payment API.
Each client owns a pooled httpx.AsyncClient with a bounded timeout and its
own circuit breaker; PaymentGateway dispatches on the payment method.

Business rejections from a provider (bad phone number, duplicate
transaction) come back as a FAILED PaymentResult. Anything that leaves the
outcome unknown (timeout, transport error, 5xx, unparseable body, open
circuit) raises PaymentGatewayError.
"""

import time
import uuid
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from shared.config.constants import PaymentMethod, PaymentStatus
from shared.config.logging import mask_phone, payment_logger as logger
from shared.config.settings import Settings, settings as default_settings
from shared.utils.validators import is_valid_mtn_phone, is_valid_orange_phone, to_msisdn
from rest_api.services.domain.pricing import cents_to_amount
from rest_api.services.payments.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
)

# MTN tokens live for one hour; refresh early
MTN_TOKEN_TTL_SECONDS = 50 * 60


class PaymentGatewayError(Exception):
    """The provider could not be reached or returned something unusable."""

    def __init__(
        self,
        provider: str,
        reason: str,
        retryable: bool = True,
        retry_after: float | None = None,
    ):
        self.provider = provider
        self.reason = reason
        self.retryable = retryable
        self.retry_after = retry_after
        super().__init__(f"{provider}: {reason}")


@dataclass
class PaymentRequest:
    method: str
    amount_cents: int
    reference: str
    description: str
    customer_phone: Optional[str] = None


@dataclass
class PaymentResult:
    """Outcome of initiating a payment."""

    success: bool
    status: str  # PENDING, COMPLETED, FAILED
    transaction_id: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_url: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def failed(cls, message: str) -> "PaymentResult":
        return cls(success=False, status=PaymentStatus.FAILED, message=message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status,
            "transactionId": self.transaction_id,
            "paymentReference": self.payment_reference,
            "paymentUrl": self.payment_url,
            "message": self.message,
        }


@dataclass
class ProviderStatus:
    """Raw status reported by a provider for one transaction."""

    status: str
    transaction_id: Optional[str] = None
    reason: Optional[str] = None
    raw: Optional[dict[str, Any]] = None


class _ProviderClient:
    """HTTP plumbing shared by the provider clients."""

    provider: str = ""

    def __init__(
        self,
        base_url: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        breaker: Optional[CircuitBreaker] = None,
        clock=time.monotonic,
    ):
        self.base_url = base_url.rstrip("/")
        self.breaker = breaker or CircuitBreaker(CircuitBreakerConfig(name=self.provider.lower()))
        self._clock = clock
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    async def aclose(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        One guarded request. 5xx replies count as breaker failures and raise.
        """
        try:
            async with self.breaker.call():
                response = await self._client.request(method, f"{self.base_url}{path}", **kwargs)
                if response.status_code >= 500:
                    raise PaymentGatewayError(
                        self.provider, f"provider returned HTTP {response.status_code}"
                    )
                return response
        except CircuitBreakerError as e:
            raise PaymentGatewayError(self.provider, str(e), retry_after=e.retry_after) from e
        except httpx.TimeoutException as e:
            raise PaymentGatewayError(self.provider, "request timed out") from e
        except httpx.HTTPError as e:
            raise PaymentGatewayError(self.provider, f"transport error: {e}") from e

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise PaymentGatewayError(self.provider, "unparseable response body") from e
        if not isinstance(data, dict):
            raise PaymentGatewayError(self.provider, "unexpected response shape")
        return data

    def _cached_token(self) -> Optional[str]:
        if self._token and self._clock() < self._token_expires_at:
            return self._token
        return None

    def _store_token(self, token: str, ttl: float) -> str:
        self._token = token
        self._token_expires_at = self._clock() + max(ttl, 0)
        return token


class MtnMomoClient(_ProviderClient):
    """MTN Mobile Money collection API (request-to-pay)."""

    provider = PaymentMethod.MTN_MOMO

    def __init__(
        self,
        base_url: str,
        primary_key: str,
        api_user_id: str,
        api_key: str,
        environment: str = "sandbox",
        currency: str = "EUR",
        timeout: float = 10.0,
        **kwargs: Any,
    ):
        super().__init__(base_url, timeout, **kwargs)
        self._primary_key = primary_key
        self._api_user_id = api_user_id
        self._api_key = api_key
        self._environment = environment
        self._currency = currency

    async def _access_token(self) -> str:
        token = self._cached_token()
        if token:
            return token

        response = await self._send(
            "POST",
            "/collection/token/",
            auth=(self._api_user_id, self._api_key),
            headers={
                "Ocp-Apim-Subscription-Key": self._primary_key,
                "X-Target-Environment": self._environment,
            },
        )
        if response.status_code != 200:
            logger.error("MTN token request rejected", status_code=response.status_code)
            raise PaymentGatewayError(
                self.provider, "Failed to authenticate with MTN MoMo API", retryable=False
            )

        data = self._json(response)
        if not data.get("access_token"):
            raise PaymentGatewayError(self.provider, "token response without access_token")
        return self._store_token(data["access_token"], MTN_TOKEN_TTL_SECONDS)

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "X-Target-Environment": self._environment,
            "Ocp-Apim-Subscription-Key": self._primary_key,
        }

    async def request_to_pay(
        self,
        amount_cents: int,
        phone: str,
        reference: str,
        description: str,
    ) -> PaymentResult:
        token = await self._access_token()
        transaction_id = str(uuid.uuid4())

        response = await self._send(
            "POST",
            "/collection/v1_0/requesttopay",
            headers={**self._headers(token), "X-Reference-Id": transaction_id},
            json={
                "amount": str(cents_to_amount(amount_cents)),
                "currency": self._currency,
                "externalId": reference,
                "payer": {"partyIdType": "MSISDN", "partyId": to_msisdn(phone)},
                "payerMessage": description,
                "payeeNote": f"Payment for booking {reference}",
            },
        )

        if response.status_code == 202:
            logger.info(
                "MTN request-to-pay accepted",
                reference=reference,
                transaction_id=transaction_id,
                phone=mask_phone(phone),
            )
            return PaymentResult(
                success=True,
                status=PaymentStatus.PENDING,
                transaction_id=transaction_id,
                payment_reference=transaction_id,
                message="Payment request sent to your phone. Please confirm the transaction.",
            )

        messages = {
            400: "Invalid payment request. Please check your phone number and try again.",
            401: "Authentication failed. Please contact support.",
            409: "Duplicate transaction. Please try again with a different reference.",
        }
        logger.warning(
            "MTN request-to-pay rejected",
            reference=reference,
            status_code=response.status_code,
        )
        if response.status_code == 401:
            # Force a fresh token next time
            self._token = None
        return PaymentResult.failed(
            messages.get(response.status_code, "Failed to initiate payment. Please try again.")
        )

    async def get_status(self, transaction_id: str) -> ProviderStatus:
        token = await self._access_token()
        response = await self._send(
            "GET",
            f"/collection/v1_0/requesttopay/{transaction_id}",
            headers=self._headers(token),
        )
        if response.status_code == 404:
            raise PaymentGatewayError(
                self.provider, f"unknown transaction {transaction_id}", retryable=False
            )
        if response.status_code != 200:
            raise PaymentGatewayError(
                self.provider, f"status check returned HTTP {response.status_code}"
            )

        data = self._json(response)
        status = data.get("status")
        if not isinstance(status, str) or not status:
            raise PaymentGatewayError(self.provider, "status missing from response")

        reason = data.get("reason")
        return ProviderStatus(
            status=status,
            transaction_id=data.get("financialTransactionId") or transaction_id,
            reason=str(reason) if reason else None,
            raw=data,
        )


class OrangeMoneyClient(_ProviderClient):
    """Orange Money web payment API."""

    provider = PaymentMethod.ORANGE_MONEY

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        merchant_key: str,
        return_url: str,
        cancel_url: str,
        notif_url: str,
        currency: str = "XAF",
        timeout: float = 10.0,
        **kwargs: Any,
    ):
        super().__init__(base_url, timeout, **kwargs)
        self._client_id = client_id
        self._client_secret = client_secret
        self._merchant_key = merchant_key
        self._return_url = return_url
        self._cancel_url = cancel_url
        self._notif_url = notif_url
        self._currency = currency

    async def _access_token(self) -> str:
        token = self._cached_token()
        if token:
            return token

        response = await self._send(
            "POST",
            "/oauth/token",
            auth=(self._client_id, self._client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
        )
        if response.status_code != 200:
            logger.error("Orange token request rejected", status_code=response.status_code)
            raise PaymentGatewayError(
                self.provider, "Failed to authenticate with Orange Money API", retryable=False
            )

        data = self._json(response)
        if not data.get("access_token"):
            raise PaymentGatewayError(self.provider, "token response without access_token")
        expires_in = int(data.get("expires_in") or 3600)
        return self._store_token(data["access_token"], expires_in - 60)

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Accept": "application/json"}

    async def web_payment(
        self,
        amount_cents: int,
        reference: str,
        description: str,
    ) -> PaymentResult:
        token = await self._access_token()
        response = await self._send(
            "POST",
            "/webpayment",
            headers=self._headers(token),
            json={
                "merchant_key": self._merchant_key,
                "currency": self._currency,
                "order_id": reference,
                "amount": float(cents_to_amount(amount_cents)),
                "return_url": self._return_url,
                "cancel_url": self._cancel_url,
                "notif_url": self._notif_url,
                "lang": "fr",
                "reference": description,
            },
        )

        if response.status_code not in (200, 201):
            logger.warning(
                "Orange web payment rejected",
                reference=reference,
                status_code=response.status_code,
            )
            return PaymentResult.failed("Failed to initiate Orange Money payment. Please try again.")

        data = self._json(response)
        if not data.get("payment_url"):
            return PaymentResult.failed("Failed to initiate Orange Money payment. Please try again.")

        pay_token = data.get("pay_token")
        logger.info("Orange web payment created", reference=reference, has_pay_token=bool(pay_token))
        return PaymentResult(
            success=True,
            status=PaymentStatus.PENDING,
            transaction_id=pay_token,
            payment_reference=pay_token or reference,
            payment_url=data["payment_url"],
            message="Please complete the payment in your Orange Money app.",
        )

    async def get_status(self, order_id: str, amount_cents: int, pay_token: str) -> ProviderStatus:
        token = await self._access_token()
        response = await self._send(
            "POST",
            "/transactionstatus",
            headers=self._headers(token),
            json={
                "order_id": order_id,
                "amount": float(cents_to_amount(amount_cents)),
                "pay_token": pay_token,
            },
        )
        if response.status_code not in (200, 201):
            raise PaymentGatewayError(
                self.provider, f"status check returned HTTP {response.status_code}"
            )

        data = self._json(response)
        status = data.get("status")
        if not isinstance(status, str) or not status:
            raise PaymentGatewayError(self.provider, "status missing from response")

        return ProviderStatus(
            status=status,
            transaction_id=data.get("txnid") or pay_token,
            raw=data,
        )


class PaymentGateway:
    """
    Dispatches payment operations to the configured provider clients.

    Built once per application (see core/lifespan.py) and injected into
    handlers; tests substitute a fake with the same interface.
    """

    def __init__(
        self,
        mtn: Optional[MtnMomoClient] = None,
        orange: Optional[OrangeMoneyClient] = None,
    ):
        self.mtn = mtn
        self.orange = orange

    @classmethod
    def from_settings(
        cls,
        cfg: Settings = default_settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "PaymentGateway":
        mtn = None
        if cfg.mtn_momo_configured:
            mtn = MtnMomoClient(
                base_url=cfg.mtn_momo_base_url,
                primary_key=cfg.mtn_momo_primary_key,
                api_user_id=cfg.mtn_momo_api_user_id,
                api_key=cfg.mtn_momo_api_key,
                environment=cfg.mtn_momo_environment,
                currency=cfg.mtn_momo_currency,
                timeout=cfg.payment_timeout_seconds,
                transport=transport,
            )

        orange = None
        if cfg.orange_money_configured:
            orange = OrangeMoneyClient(
                base_url=cfg.orange_money_base_url,
                client_id=cfg.orange_money_client_id,
                client_secret=cfg.orange_money_client_secret,
                merchant_key=cfg.orange_money_merchant_key,
                return_url=cfg.orange_money_return_url,
                cancel_url=cfg.orange_money_cancel_url,
                notif_url=cfg.orange_money_notif_url,
                currency=cfg.payment_currency,
                timeout=cfg.payment_timeout_seconds,
                transport=transport,
            )

        logger.info(
            "Payment gateway ready",
            mtn_configured=mtn is not None,
            orange_configured=orange is not None,
        )
        return cls(mtn=mtn, orange=orange)

    @property
    def breakers(self) -> list[CircuitBreaker]:
        return [client.breaker for client in (self.mtn, self.orange) if client is not None]

    async def aclose(self) -> None:
        for client in (self.mtn, self.orange):
            if client is not None:
                await client.aclose()

    def supports(self, method: str) -> bool:
        """CASH is always accepted; mobile money needs a configured client."""
        if method == PaymentMethod.CASH:
            return True
        if method == PaymentMethod.MTN_MOMO:
            return self.mtn is not None
        if method == PaymentMethod.ORANGE_MONEY:
            return self.orange is not None
        return False

    def _require(self, method: str) -> _ProviderClient:
        client = self.mtn if method == PaymentMethod.MTN_MOMO else self.orange
        if client is None:
            raise PaymentGatewayError(method, "provider is not configured", retryable=False)
        return client

    async def initiate(self, request: PaymentRequest) -> PaymentResult:
        """
        Start a payment.

        Raises:
            PaymentGatewayError: provider unreachable or not configured
        """
        if request.method == PaymentMethod.CASH:
            return PaymentResult(
                success=True,
                status=PaymentStatus.PENDING,
                payment_reference=f"CASH_{int(time.time() * 1000)}",
                message="Cash payment selected. Pay at the event venue.",
            )

        if request.method == PaymentMethod.MTN_MOMO:
            if not request.customer_phone:
                return PaymentResult.failed("Phone number is required for MTN Mobile Money")
            if not is_valid_mtn_phone(request.customer_phone):
                return PaymentResult.failed(
                    "Invalid MTN phone number format. Use +237 67X XXX XXX or +237 68X XXX XXX"
                )
            mtn = self._require(request.method)
            return await mtn.request_to_pay(
                request.amount_cents,
                request.customer_phone,
                request.reference,
                request.description,
            )

        if request.method == PaymentMethod.ORANGE_MONEY:
            if not request.customer_phone:
                return PaymentResult.failed("Phone number is required for Orange Money")
            if not is_valid_orange_phone(request.customer_phone):
                return PaymentResult.failed(
                    "Invalid Orange phone number format. Use +237 69X XXX XXX"
                )
            orange = self._require(request.method)
            return await orange.web_payment(
                request.amount_cents,
                request.reference,
                request.description,
            )

        return PaymentResult.failed("Unsupported payment method")

    async def check_status(
        self,
        method: str,
        reference: str,
        amount_cents: int,
        transaction_id: Optional[str] = None,
    ) -> Optional[ProviderStatus]:
        """
        Ask the provider for the current status of a transaction.

        For Orange the transaction id is the pay token issued at initiation.
        Returns None when there is nothing to ask (cash, or no id known).

        Raises:
            PaymentGatewayError: provider unreachable or not configured
        """
        if not transaction_id or method not in PaymentMethod.MOBILE_MONEY:
            return None

        if method == PaymentMethod.MTN_MOMO:
            mtn = self._require(method)
            return await mtn.get_status(transaction_id)

        orange = self._require(method)
        return await orange.get_status(reference, amount_cents, transaction_id)
