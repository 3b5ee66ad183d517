"""
Provider webhook payloads.

Each provider posts its own field names. Payloads are validated as a tagged
union keyed by provider and normalised into a ReconciliationInput before the
shared transition table is applied.
"""

from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from shared.config.constants import Limits, PaymentMethod
from shared.utils.exceptions import MissingCorrelationIdError, ValidationError


@dataclass(frozen=True)
class ReconciliationInput:
    """Provider-neutral transition input."""

    provider: str
    reference_number: str
    provider_status: str
    transaction_id: Optional[str] = None


class _WebhookBase(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    status: Optional[str] = None
    provider: str

    # Field naming the booking reference number
    correlation_field: ClassVar[str] = "reference"
    # Fields that may carry the provider transaction id, first non-empty wins
    transaction_fields: ClassVar[tuple[str, ...]] = ("transactionId",)

    def _field(self, name: str) -> Optional[str]:
        value = getattr(self, name, None)
        return value if isinstance(value, str) else None

    def _reference(self) -> Optional[str]:
        return self._field(self.correlation_field)

    def _transaction_id(self) -> Optional[str]:
        for name in self.transaction_fields:
            value = (self._field(name) or "").strip()
            if value:
                return value
        return None

    def to_input(self) -> ReconciliationInput:
        """
        Raises:
            MissingCorrelationIdError: the payload names no booking
        """
        reference = (self._reference() or "").strip()
        if not reference:
            raise MissingCorrelationIdError(self.correlation_field, provider=self.provider)

        transaction_id = (self._transaction_id() or "").strip() or None
        if transaction_id:
            transaction_id = transaction_id[: Limits.MAX_PAYMENT_REFERENCE_LENGTH]

        return ReconciliationInput(
            provider=self.provider,
            reference_number=reference,
            provider_status=self.status or "",
            transaction_id=transaction_id,
        )


class MtnWebhookPayload(_WebhookBase):
    """MTN MoMo request-to-pay callback."""

    provider: Literal["MTN_MOMO"] = PaymentMethod.MTN_MOMO
    correlation_field: ClassVar[str] = "externalId"
    transaction_fields: ClassVar[tuple[str, ...]] = ("financialTransactionId",)

    externalId: Optional[str] = None
    financialTransactionId: Optional[str] = None
    referenceId: Optional[str] = None


class OrangeWebhookPayload(_WebhookBase):
    """Orange Money web payment notification."""

    provider: Literal["ORANGE_MONEY"] = PaymentMethod.ORANGE_MONEY
    correlation_field: ClassVar[str] = "order_id"
    transaction_fields: ClassVar[tuple[str, ...]] = ("txnid", "pay_token")

    order_id: Optional[str] = None
    txnid: Optional[str] = None
    pay_token: Optional[str] = None
    notif_token: Optional[str] = None


WebhookPayload = Annotated[
    Union[MtnWebhookPayload, OrangeWebhookPayload],
    Field(discriminator="provider"),
]

_webhook_adapter: TypeAdapter[WebhookPayload] = TypeAdapter(WebhookPayload)


def parse_webhook(provider: str, body: Any) -> ReconciliationInput:
    """
    Validate a decoded webhook body for a provider and normalise it.

    Raises:
        ValidationError: body is not an object or has wrongly typed fields
        MissingCorrelationIdError: no booking reference in the body
    """
    if not isinstance(body, dict):
        raise ValidationError("Webhook body must be a JSON object", provider=provider)

    try:
        payload = _webhook_adapter.validate_python({**body, "provider": provider})
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid webhook payload",
            provider=provider,
            errors=e.error_count(),
        )

    return payload.to_input()
