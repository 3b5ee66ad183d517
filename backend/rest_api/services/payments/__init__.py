"""
Payment Services - mobile-money providers and status reconciliation.

Provides:
- MTN MoMo / Orange Money clients behind a PaymentGateway facade
- Provider webhook payload parsing
- Booking/payment status reconciliation with an audit trail
- Circuit breaker for provider API resilience
"""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerStats,
    CircuitBreakerError,
    CircuitState,
    breaker_stats,
)
from .gateway import (
    PaymentGateway,
    PaymentGatewayError,
    PaymentRequest,
    PaymentResult,
    ProviderStatus,
    MtnMomoClient,
    OrangeMoneyClient,
)
from .webhooks import (
    ReconciliationInput,
    MtnWebhookPayload,
    OrangeWebhookPayload,
    parse_webhook,
)
from .reconciliation import (
    ReconciliationService,
    ReconciliationOutcome,
    StatusCheckResult,
    Transition,
    resolve_transition,
    payload_hash,
)

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerStats",
    "CircuitBreakerError",
    "CircuitState",
    "breaker_stats",
    # Gateway
    "PaymentGateway",
    "PaymentGatewayError",
    "PaymentRequest",
    "PaymentResult",
    "ProviderStatus",
    "MtnMomoClient",
    "OrangeMoneyClient",
    # Webhooks
    "ReconciliationInput",
    "MtnWebhookPayload",
    "OrangeWebhookPayload",
    "parse_webhook",
    # Reconciliation
    "ReconciliationService",
    "ReconciliationOutcome",
    "StatusCheckResult",
    "Transition",
    "resolve_transition",
    "payload_hash",
]
