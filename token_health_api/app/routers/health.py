"""Payment-gated token health endpoint."""

from fastapi import APIRouter, Depends
import structlog

from token_health_api.app.dependencies import (
    get_health_service,
    require_payment,
    validated_token_address,
)
from token_health_api.services.health_service import TokenHealthService
from token_health_api.services.payment_gateway import VerifiedPayment

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/health/{tokenAddress}")
async def get_token_health(
    token_address: str = Depends(validated_token_address),
    payment: VerifiedPayment = Depends(require_payment),
    service: TokenHealthService = Depends(get_health_service)
):
    """
    Get the health report for a Stacks token.

    Without an ``X-PAYMENT`` header this answers 402 with a payment challenge.
    Select the settlement asset with ``?tokenType=STX|sBTC`` or the
    ``X-PAYMENT-TOKEN-TYPE`` header.

    **Report contents:**
    - `score`: composite health score (0-100) and letter `grade`
    - `breakdown`: concentration, fresh wallets, holder activity, volume trend
    - `flags`: human-readable risk warnings
    """
    logger.info("Health report requested",
                token=token_address,
                tx_id=payment.tx_id,
                asset=payment.asset_type.value)

    return await service.get_report(token_address)
