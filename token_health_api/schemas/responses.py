"""Response schemas for the Token Health API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from token_health_api.schemas.models import AssetType, NetworkType


class AssetContract(BaseModel):
    """Contract of a non-native settlement asset."""

    address: str = Field(..., description="Deployer principal")
    name: str = Field(..., description="Contract name")


class PaymentChallenge(BaseModel):
    """Body of a 402 Payment Required response."""

    model_config = ConfigDict(populate_by_name=True)

    max_amount_required: str = Field(
        ...,
        alias="maxAmountRequired",
        pattern=r"^\d+$",
        description="Required amount in the asset's smallest unit"
    )
    resource: str = Field(..., description="Protected request path")
    pay_to: str = Field(..., alias="payTo", description="Recipient address")
    network: NetworkType = Field(..., description="Deployment network")
    nonce: str = Field(..., description="Per-challenge unique token")
    expires_at: str = Field(..., alias="expiresAt", description="ISO 8601 expiry instant")
    asset_type: AssetType = Field(..., alias="assetType", description="Settlement asset")
    asset_contract: Optional[AssetContract] = Field(
        None,
        alias="assetContract",
        description="Asset contract, present for non-native assets"
    )

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PaymentReceipt(BaseModel):
    """Settlement receipt carried base64-encoded in X-PAYMENT-RESPONSE."""

    model_config = ConfigDict(populate_by_name=True)

    tx_id: Optional[str] = Field(None, alias="txId")
    status: str = Field(default="pending")
    message: str = Field(default="Transaction broadcast successful")


class ErrorResponse(BaseModel):
    """Error body for failed requests."""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    details: Optional[str] = None
    payment_status: Optional[str] = Field(None, alias="paymentStatus")


class PricingInfo(BaseModel):
    """Current pricing shown on the service descriptor."""

    model_config = ConfigDict(populate_by_name=True)

    stx: str
    sbtc: Optional[str] = None
    protocol: str = "x402"
    token_type_param: str = Field(default="?tokenType=STX|sBTC", alias="tokenTypeParam")


class ServiceDescriptor(BaseModel):
    """Body of GET /."""

    name: str
    version: str
    endpoints: Dict[str, str]
    example: str
    pricing: PricingInfo


class AcceptedPayment(BaseModel):
    """One accepted payment option in the discovery document."""

    model_config = ConfigDict(populate_by_name=True)

    scheme: str = "exact"
    network: str
    max_amount_required: str = Field(..., alias="maxAmountRequired")
    resource: str
    description: str
    mime_type: str = Field(default="application/json", alias="mimeType")
    pay_to: str = Field(..., alias="payTo")
    max_timeout_seconds: int = Field(..., alias="maxTimeoutSeconds")
    asset: str
    input_schema: Dict[str, Any] = Field(default_factory=dict, alias="inputSchema")
    output_schema: Dict[str, Any] = Field(default_factory=dict, alias="outputSchema")


class DiscoveryDocument(BaseModel):
    """Body of GET /.well-known/x402."""

    model_config = ConfigDict(populate_by_name=True)

    x402_version: int = Field(default=1, alias="x402Version")
    name: str
    description: str
    accepts: List[AcceptedPayment]

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
