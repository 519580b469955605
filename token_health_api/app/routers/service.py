"""Service descriptor and x402 discovery endpoints."""

from decimal import Decimal
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from token_health_api.app.dependencies import get_payment_gateway, get_settings
from token_health_api.config.settings import APISettings
from token_health_api.schemas.models import AssetType, HealthReport, NetworkType
from token_health_api.schemas.responses import (
    AcceptedPayment,
    DiscoveryDocument,
    PricingInfo,
    ServiceDescriptor,
)
from token_health_api.services.health_service import EXAMPLE_TOKEN
from token_health_api.services.payment_gateway import (
    ASSET_CONTRACTS,
    ASSET_HEADER,
    ASSET_QUERY_PARAM,
    PAYMENT_HEADER,
    PaymentGateway,
)

router = APIRouter()

RESOURCE_TEMPLATE = "/health/{tokenAddress}"
SERVICE_DESCRIPTION = (
    "Get health score (0-100) for any Stacks token. Returns holder concentration, "
    "fresh wallet ratio, volume trends, and risk flags."
)

DISCOVERY_NETWORKS = {
    NetworkType.MAINNET: "stacks",
    NetworkType.TESTNET: "stacks-testnet",
}


def format_amount(amount: float) -> str:
    """Plain decimal rendering, so 1e-08 prints as 0.00000001."""
    return format(Decimal(str(amount)).normalize(), "f")


def _asset_identifier(gateway: PaymentGateway, asset: AssetType) -> str:
    contract = ASSET_CONTRACTS.get(gateway.config.network, {}).get(asset)
    if contract is None:
        return asset.value
    return f"{contract.address}.{contract.name}"


def _input_schema() -> Dict[str, Any]:
    return {
        "type": "http",
        "method": "GET",
        "pathParams": {
            "tokenAddress": {
                "type": "string",
                "pattern": r"^SP[A-Z0-9]+\.[a-z0-9-]+$",
                "description": "Token contract principal",
                "example": EXAMPLE_TOKEN,
            }
        },
        "queryParams": {
            ASSET_QUERY_PARAM: {
                "type": "string",
                "enum": [asset.value for asset in AssetType],
                "description": "Settlement asset",
            }
        },
        "headerFields": {
            PAYMENT_HEADER: {
                "type": "string",
                "description": "Signed transaction, hex encoded",
            },
            ASSET_HEADER: {
                "type": "string",
                "enum": [asset.value for asset in AssetType],
                "description": "Settlement asset, takes precedence over the query parameter",
            },
        },
    }


@router.get("/")
async def root(settings: APISettings = Depends(get_settings)):
    """Service descriptor with current pricing."""
    descriptor = ServiceDescriptor(
        name=settings.api_title,
        version=settings.api_version,
        endpoints={"health": "GET /health/:tokenAddress"},
        example=f"/health/{EXAMPLE_TOKEN}",
        pricing=PricingInfo(
            stx=format_amount(settings.payment_amount_stx),
            sbtc=format_amount(settings.payment_amount_sbtc) if settings.payment_amount_sbtc else None
        )
    )
    return descriptor.model_dump(by_alias=True, exclude_none=True)


@router.get("/.well-known/x402")
async def discovery(
    settings: APISettings = Depends(get_settings),
    gateway: PaymentGateway = Depends(get_payment_gateway)
):
    """Machine-readable x402 discovery document."""
    network = DISCOVERY_NETWORKS[gateway.config.network]
    output_schema = HealthReport.model_json_schema(by_alias=True)

    accepts: List[AcceptedPayment] = []
    for asset in AssetType:
        if not gateway.config.accepts(asset):
            continue
        accepts.append(AcceptedPayment(
            network=network,
            max_amount_required=str(gateway.required_amount(asset)),
            resource=RESOURCE_TEMPLATE,
            description=SERVICE_DESCRIPTION,
            pay_to=gateway.config.pay_to,
            max_timeout_seconds=gateway.config.expiration_seconds,
            asset=_asset_identifier(gateway, asset),
            input_schema=_input_schema(),
            output_schema=output_schema
        ))

    document = DiscoveryDocument(
        name=settings.api_title,
        description=SERVICE_DESCRIPTION,
        accepts=accepts
    )
    return document.to_response()
