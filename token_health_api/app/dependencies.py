"""FastAPI dependencies shared by the routers."""

from fastapi import Depends, HTTPException, Path, Request, Response, status

from token_health_api.config.settings import APISettings
from token_health_api.services.health_service import TokenHealthService, validate_token_address
from token_health_api.services.payment_gateway import (
    PAYMENT_RESPONSE_HEADER,
    PaymentGateway,
    VerifiedPayment,
)


def _state(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized"
        )
    return component


def get_settings(request: Request) -> APISettings:
    """Get application settings."""
    return _state(request, "settings")


def get_payment_gateway(request: Request) -> PaymentGateway:
    """Get the payment gateway."""
    return _state(request, "payment_gateway")


def get_health_service(request: Request) -> TokenHealthService:
    """Get the health report service."""
    return _state(request, "health_service")


def validated_token_address(token_address: str = Path(..., alias="tokenAddress")) -> str:
    """Reject malformed token addresses before any payment handling."""
    return validate_token_address(token_address)


async def require_payment(
    request: Request,
    response: Response,
    token_address: str = Depends(validated_token_address),
    gateway: PaymentGateway = Depends(get_payment_gateway)
) -> VerifiedPayment:
    """Payment gate for the protected resource.

    Raises PaymentRequired, PaymentRejected or PaymentProcessingError, which
    the application's exception handlers turn into 402/500 responses.
    """
    admitted = await gateway.authorize(
        request.url.path,
        request.headers,
        request.query_params
    )

    receipt_header = admitted.response_header
    response.headers[PAYMENT_RESPONSE_HEADER] = receipt_header
    request.state.payment = admitted.payment
    request.state.payment_receipt_header = receipt_header

    return admitted.payment
