"""
FastAPI dependencies for application-scoped objects.
"""

from fastapi import Request

from rest_api.services.payments.gateway import PaymentGateway


def get_payment_gateway(request: Request) -> PaymentGateway:
    """
    The PaymentGateway built in the lifespan.

    Tests replace it through app.dependency_overrides.
    """
    return request.app.state.payment_gateway
