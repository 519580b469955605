"""Pydantic schemas for the Token Health API."""

from token_health_api.schemas.responses import (
    AssetContract,
    PaymentChallenge,
    PaymentReceipt,
    ErrorResponse,
    ServiceDescriptor,
    DiscoveryDocument
)

from token_health_api.schemas.models import (
    AssetType,
    NetworkType,
    Grade,
    TokenInfo,
    HolderPercentages,
    HolderStats,
    Candlestick,
    HealthReport
)

__all__ = [
    "AssetContract",
    "PaymentChallenge",
    "PaymentReceipt",
    "ErrorResponse",
    "ServiceDescriptor",
    "DiscoveryDocument",
    "AssetType",
    "NetworkType",
    "Grade",
    "TokenInfo",
    "HolderPercentages",
    "HolderStats",
    "Candlestick",
    "HealthReport"
]
