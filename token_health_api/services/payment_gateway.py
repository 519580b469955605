"""x402 payment gate for the protected health resource.

Every request to the protected resource ends in one of three outcomes:

- challenge: no ``X-PAYMENT`` header, answer 402 with a PaymentChallenge
- admit: the signed transaction was accepted by the network (or was already
  in its mempool), attach a VerifiedPayment and let the handler run
- reject: the network refused the transaction (402) or the broadcast could
  not be attempted at all (500)

Settlement is broadcast-then-trust: the transaction's recipient and amount are
not inspected, and challenge nonces/expiry are not tracked between requests.
A stricter ``TransactionSettler`` can replace ``BroadcastSettler`` without
touching the gateway.
"""

import base64
import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Mapping, Optional

import httpx
import structlog

from token_health_api.errors import (
    PaymentProcessingError,
    PaymentRejected,
    PaymentRequired,
    TokenHealthError,
)
from token_health_api.schemas.models import AssetType, NetworkType
from token_health_api.schemas.responses import AssetContract, PaymentChallenge, PaymentReceipt
from token_health_api.services.amounts import to_smallest_unit
from token_health_api.utils.metrics import metrics

logger = structlog.get_logger(__name__)

PAYMENT_HEADER = "X-PAYMENT"
ASSET_HEADER = "X-PAYMENT-TOKEN-TYPE"
ASSET_QUERY_PARAM = "tokenType"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"

DEFAULT_EXPIRATION_SECONDS = 300

# Substrings of a node rejection that mean the transaction is already known.
DUPLICATE_MARKERS = ("ConflictingNonceInMempool", "already")

ASSET_CONTRACTS: Dict[NetworkType, Dict[AssetType, AssetContract]] = {
    NetworkType.MAINNET: {
        AssetType.SBTC: AssetContract(
            address="SP3K8BC0PPEVCV7NZ6QSRWPQ2JE9E5B6N3PA0KBR9",
            name="token-sbtc"
        ),
    },
    NetworkType.TESTNET: {
        AssetType.SBTC: AssetContract(
            address="ST1F7QA2MDF17S807EPA36TSS8AMEFY4KA9TVGWXT",
            name="sbtc-token"
        ),
    },
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PaymentConfig:
    """Pricing and recipient for the protected resource."""

    pay_to: str
    network: NetworkType
    prices: Dict[AssetType, float] = field(default_factory=lambda: {AssetType.STX: 0.01})
    expiration_seconds: int = DEFAULT_EXPIRATION_SECONDS

    def accepts(self, asset: AssetType) -> bool:
        return self.prices.get(asset) is not None


@dataclass
class SettlementOutcome:
    """Result of handing a signed transaction to the network."""

    accepted: bool
    transaction_id: Optional[str] = None
    failure_detail: Optional[str] = None
    duplicate: bool = False


@dataclass
class VerifiedPayment:
    """Payment attached to the request once settlement was accepted.

    Recipient and amount are the configured values, not read from the
    transaction.
    """

    tx_id: str
    recipient: str
    amount: int
    asset_type: AssetType
    status: str = "pending"


@dataclass
class AdmittedPayment:
    """Gateway output for a request allowed through."""

    payment: VerifiedPayment
    receipt: PaymentReceipt

    @property
    def response_header(self) -> str:
        return encode_payment_receipt(self.receipt)


def encode_payment_receipt(receipt: PaymentReceipt) -> str:
    """Base64 JSON value of the X-PAYMENT-RESPONSE header."""
    payload = json.dumps(receipt.model_dump(by_alias=True), separators=(",", ":"))
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


def decode_transaction_hex(signed_tx_hex: str) -> bytes:
    """Raw bytes of a hex-encoded signed transaction."""
    try:
        return bytes.fromhex(signed_tx_hex.strip())
    except ValueError as e:
        raise PaymentProcessingError(f"Invalid transaction hex: {e}") from e


def interpret_broadcast_response(status_code: int, body: str) -> SettlementOutcome:
    """Map a node's reply to POST /v2/transactions onto a settlement outcome."""
    if 200 <= status_code < 300:
        return SettlementOutcome(accepted=True, transaction_id=body.strip().replace('"', ''))

    if any(marker in body for marker in DUPLICATE_MARKERS):
        return SettlementOutcome(
            accepted=True,
            failure_detail="Transaction already in mempool",
            duplicate=True
        )

    return SettlementOutcome(accepted=False, failure_detail=body)


class TransactionSettler(ABC):
    """Turns a caller-supplied signed transaction into a settlement outcome."""

    @abstractmethod
    async def settle(self, signed_tx_hex: str) -> SettlementOutcome:
        """Settle the transaction.

        Raises:
            PaymentProcessingError: when settlement could not be attempted
        """


class BroadcastSettler(TransactionSettler):
    """Broadcasts the transaction and trusts the node's acceptance."""

    def __init__(self, broadcast_url: str, http_client: httpx.AsyncClient, timeout: float = 30.0):
        self.broadcast_url = broadcast_url.rstrip('/')
        self.http_client = http_client
        self.timeout = timeout
        self.logger = logger.bind(component="broadcast_settler")

    async def settle(self, signed_tx_hex: str) -> SettlementOutcome:
        tx_bytes = decode_transaction_hex(signed_tx_hex)

        try:
            response = await self.http_client.post(
                f"{self.broadcast_url}/v2/transactions",
                content=tx_bytes,
                headers={"Content-Type": "application/octet-stream"},
                timeout=self.timeout
            )
        except httpx.HTTPError as e:
            self.logger.error("Broadcast request failed", error=str(e))
            raise PaymentProcessingError(str(e) or e.__class__.__name__) from e

        outcome = interpret_broadcast_response(response.status_code, response.text)

        self.logger.info("Broadcast completed",
                         status_code=response.status_code,
                         accepted=outcome.accepted,
                         duplicate=outcome.duplicate,
                         tx_id=outcome.transaction_id)

        return outcome


class PaymentGateway:
    """Decides per request whether to challenge, admit or reject."""

    def __init__(self,
                 config: PaymentConfig,
                 settler: TransactionSettler,
                 clock: Callable[[], datetime] = _utcnow):
        self.config = config
        self.settler = settler
        self.clock = clock
        self.logger = logger.bind(component="payment_gateway", network=config.network.value)

    def select_asset(self,
                     headers: Mapping[str, str],
                     query_params: Mapping[str, str]) -> AssetType:
        """Settlement asset requested by the caller; header wins over query."""
        requested = (
            _lookup(headers, ASSET_HEADER)
            or _lookup(query_params, ASSET_QUERY_PARAM)
            or AssetType.STX.value
        )

        if requested.upper() == AssetType.SBTC.value.upper() and self.config.accepts(AssetType.SBTC):
            return AssetType.SBTC
        return AssetType.STX

    def required_amount(self, asset: AssetType) -> int:
        """Price of one request in the asset's smallest unit."""
        return to_smallest_unit(asset, self.config.prices[asset])

    def create_challenge(self, resource: str, asset: AssetType) -> PaymentChallenge:
        """Fresh 402 challenge for ``resource``."""
        expiration = self.config.expiration_seconds or DEFAULT_EXPIRATION_SECONDS
        expires_at = self.clock() + timedelta(seconds=expiration)

        return PaymentChallenge(
            max_amount_required=str(self.required_amount(asset)),
            resource=resource,
            pay_to=self.config.pay_to,
            network=self.config.network,
            nonce=str(uuid.uuid4()),
            expires_at=_iso_millis(expires_at),
            asset_type=asset,
            asset_contract=ASSET_CONTRACTS.get(self.config.network, {}).get(asset)
        )

    async def authorize(self,
                        resource: str,
                        headers: Mapping[str, str],
                        query_params: Mapping[str, str]) -> AdmittedPayment:
        """Run the payment gate for one request.

        Returns:
            AdmittedPayment when the request may proceed

        Raises:
            PaymentRequired: no payment attached
            PaymentRejected: the network refused the transaction
            PaymentProcessingError: settlement could not be attempted
        """
        asset = self.select_asset(headers, query_params)
        signed_payment = _lookup(headers, PAYMENT_HEADER)

        request_logger = self.logger.bind(resource=resource, asset=asset.value)

        if not signed_payment:
            challenge = self.create_challenge(resource, asset)
            metrics.payment_challenges.labels(asset=asset.value).inc()
            request_logger.info("Payment challenge issued",
                                amount=challenge.max_amount_required,
                                nonce=challenge.nonce)
            raise PaymentRequired(challenge)

        try:
            outcome = await self.settler.settle(signed_payment)
        except PaymentProcessingError as e:
            metrics.payment_settlements.labels(outcome="error").inc()
            request_logger.error("Payment processing error", error=e.details)
            raise
        except TokenHealthError:
            raise
        except Exception as e:
            metrics.payment_settlements.labels(outcome="error").inc()
            request_logger.error("Payment processing error", error=str(e), exc_info=True)
            raise PaymentProcessingError(str(e) or "Unknown error") from e

        if not outcome.accepted:
            metrics.payment_settlements.labels(outcome="rejected").inc()
            request_logger.warning("Payment broadcast rejected", details=outcome.failure_detail)
            raise PaymentRejected(outcome.failure_detail)

        metrics.payment_settlements.labels(
            outcome="duplicate" if outcome.duplicate else "accepted"
        ).inc()

        payment = VerifiedPayment(
            tx_id=outcome.transaction_id or "pending",
            recipient=self.config.pay_to,
            amount=self.required_amount(asset),
            asset_type=asset
        )

        request_logger.info("Payment accepted",
                            tx_id=payment.tx_id,
                            duplicate=outcome.duplicate)

        return AdmittedPayment(
            payment=payment,
            receipt=PaymentReceipt(tx_id=outcome.transaction_id)
        )


def _lookup(mapping: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive lookup that works for plain dicts and Starlette headers."""
    value = mapping.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in mapping.items():
            if key.lower() == lowered:
                return candidate
    return value


def _iso_millis(moment: datetime) -> str:
    """ISO 8601 UTC timestamp with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
