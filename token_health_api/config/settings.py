"""Configuration settings for the Token Health API."""

from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from token_health_api.schemas.models import AssetType, NetworkType
from token_health_api.services.payment_gateway import PaymentConfig


class APISettings(BaseSettings):
    """API configuration settings."""

    # API Configuration
    api_title: str = Field(default="Token Health Check", description="API title")
    api_description: str = Field(
        default="Pay-per-request health scores for Stacks tokens",
        description="API description"
    )
    api_version: str = Field(default="1.0.0", description="API version")
    debug: bool = Field(default=False, description="Debug mode")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    workers: int = Field(default=4, description="Number of worker processes")

    # Payment Configuration
    payment_address: str = Field(..., description="Recipient address for payments")
    payment_network: NetworkType = Field(default=NetworkType.MAINNET, description="Stacks network")
    payment_amount_stx: float = Field(default=0.01, description="Price per request in STX")
    payment_amount_sbtc: Optional[float] = Field(
        default=0.00000001,
        description="Price per request in sBTC, unset to accept STX only"
    )
    payment_expiration_seconds: int = Field(default=300, description="Challenge validity window")
    broadcast_url_mainnet: str = Field(default="https://api.hiro.so", description="Mainnet node API")
    broadcast_url_testnet: str = Field(default="https://api.testnet.hiro.so", description="Testnet node API")
    broadcast_timeout: float = Field(default=30.0, description="Broadcast request timeout in seconds")

    # Upstream Data Provider
    tenero_base_url: str = Field(default="https://api.tenero.io/v1/stacks", description="Tenero API base URL")
    upstream_timeout: float = Field(default=30.0, description="Upstream request timeout in seconds")
    ohlc_period: str = Field(default="1h", description="Candle period for volume trend")
    ohlc_limit: int = Field(default=168, description="Number of candles requested (7 days hourly)")

    # Security Configuration
    cors_origins: List[str] = Field(default=["*"], description="CORS allowed origins")
    cors_methods: List[str] = Field(default=["GET", "OPTIONS"], description="CORS allowed methods")

    # Caching Configuration
    enable_response_caching: bool = Field(default=True, description="Enable response caching")
    cache_backend: str = Field(default="memory", description="Cache backend (memory|redis)")
    cache_ttl_seconds: int = Field(default=300, description="Cache TTL in seconds")
    cache_max_size: int = Field(default=1000, description="Maximum in-memory cache entries")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL for the redis backend")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json|text)")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    access_log: bool = Field(default=True, description="Enable access logging")

    # Monitoring Configuration
    enable_metrics: bool = Field(default=True, description="Enable Prometheus metrics")
    metrics_path: str = Field(default="/metrics", description="Metrics endpoint path")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = "TOKEN_HEALTH_"

    @field_validator('payment_address')
    @classmethod
    def validate_payment_address(cls, v):
        """Payments need somewhere to go."""
        if not v or not v.strip():
            raise ValueError("payment_address must be configured")
        return v.strip()

    @field_validator('payment_amount_stx', 'payment_amount_sbtc')
    @classmethod
    def validate_amounts(cls, v):
        """Prices are expressed as non-negative amounts."""
        if v is not None and v < 0:
            raise ValueError("Payment amounts must be non-negative")
        return v

    @field_validator('payment_expiration_seconds')
    @classmethod
    def validate_expiration(cls, v):
        if v <= 0:
            raise ValueError("payment_expiration_seconds must be positive")
        return v

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v

    @field_validator('cache_backend')
    @classmethod
    def validate_cache_backend(cls, v):
        if v not in ("memory", "redis"):
            raise ValueError("cache_backend must be 'memory' or 'redis'")
        return v

    def get_broadcast_url(self) -> str:
        """Node API base URL for the configured network."""
        if self.payment_network == NetworkType.MAINNET:
            return self.broadcast_url_mainnet
        return self.broadcast_url_testnet

    def get_payment_config(self) -> PaymentConfig:
        """Build the gateway's payment configuration."""
        prices = {AssetType.STX: self.payment_amount_stx}
        if self.payment_amount_sbtc:
            prices[AssetType.SBTC] = self.payment_amount_sbtc

        return PaymentConfig(
            pay_to=self.payment_address,
            network=self.payment_network,
            prices=prices,
            expiration_seconds=self.payment_expiration_seconds
        )
