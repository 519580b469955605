"""
Paying client for the Token Health API.

Drives the x402 round trip: request the resource, read the 402 challenge,
have a signer produce a signed transaction for it, then retry with the
``X-PAYMENT`` header. Signing is left to the caller.
"""

import base64
import binascii
import inspect
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from token_health_api.errors import TokenHealthError
from token_health_api.schemas.models import AssetType, NetworkType
from token_health_api.schemas.responses import PaymentChallenge
from token_health_api.services.payment_gateway import (
    ASSET_HEADER,
    ASSET_QUERY_PARAM,
    PAYMENT_HEADER,
    PAYMENT_RESPONSE_HEADER,
)

logger = structlog.get_logger(__name__)

CHALLENGE_STRING_FIELDS = ("maxAmountRequired", "resource", "payTo", "network", "nonce", "expiresAt")

Signer = Callable[[PaymentChallenge], Union[str, Awaitable[str]]]


class UnexpectedResponse(TokenHealthError):
    """The service answered with a status the flow did not expect."""

    def __init__(self, status_code: int, body: Any):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Unexpected response {status_code}: {body}")


@dataclass
class PaidReport:
    """Health report bought with one payment, plus the settlement receipt."""
    report: Dict[str, Any]
    receipt: Optional[Dict[str, Any]] = None


def validate_challenge(payload: Mapping[str, Any]) -> List[str]:
    """Shape problems of a 402 body; empty when the challenge looks usable."""
    problems = []

    for name in CHALLENGE_STRING_FIELDS:
        if not isinstance(payload.get(name), str):
            problems.append(f"{name} is not a string")

    networks = {network.value for network in NetworkType}
    if payload.get("network") not in networks:
        problems.append(f"network is not one of {sorted(networks)}")

    amount = payload.get("maxAmountRequired")
    if isinstance(amount, str) and not amount.isdigit():
        problems.append("maxAmountRequired is not an integer string")

    return problems


def decode_payment_response(header: str) -> Dict[str, Any]:
    """Decode an X-PAYMENT-RESPONSE header value."""
    try:
        return json.loads(base64.b64decode(header, validate=True))
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Malformed payment response header: {e}") from e


class TokenHealthClient:
    """Async client for the payment-gated health endpoint."""

    def __init__(self,
                 base_url: str,
                 http_client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 30.0):
        self.base_url = base_url.rstrip('/')
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self.logger = logger.bind(component="token_health_client", base_url=self.base_url)

    async def __aenter__(self) -> "TokenHealthClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    def _url(self, token_address: str) -> str:
        return f"{self.base_url}/health/{token_address}"

    async def get_challenge_body(self,
                                 token_address: str,
                                 asset: AssetType = AssetType.STX) -> Dict[str, Any]:
        """
        Request the resource without payment and return the 402 body as sent.

        Raises:
            UnexpectedResponse: the status was not 402, or the body was not a JSON object
        """
        response = await self.http_client.get(
            self._url(token_address),
            params={ASSET_QUERY_PARAM: asset.value}
        )

        body = _body(response)
        if response.status_code != 402 or not isinstance(body, dict):
            raise UnexpectedResponse(response.status_code, body)

        return body

    async def get_challenge(self,
                            token_address: str,
                            asset: AssetType = AssetType.STX) -> PaymentChallenge:
        """
        Request the resource without payment and return its challenge.

        Raises:
            UnexpectedResponse: the service did not answer 402 with a challenge
        """
        body = await self.get_challenge_body(token_address, asset)

        try:
            challenge = PaymentChallenge.model_validate(body)
        except PydanticValidationError as e:
            raise UnexpectedResponse(402, body) from e

        self.logger.info("Payment required",
                         token=token_address,
                         amount=challenge.max_amount_required,
                         asset=challenge.asset_type.value,
                         pay_to=challenge.pay_to)
        return challenge

    async def get_report(self,
                         token_address: str,
                         signed_tx_hex: str,
                         asset: AssetType = AssetType.STX) -> PaidReport:
        """
        Request the resource with a signed payment transaction attached.

        Raises:
            UnexpectedResponse: anything other than 200, e.g. a rejected payment
        """
        response = await self.http_client.get(
            self._url(token_address),
            headers={
                PAYMENT_HEADER: signed_tx_hex,
                ASSET_HEADER: asset.value,
            }
        )

        if response.status_code != 200:
            self.logger.warning("Paid request failed",
                                token=token_address,
                                status_code=response.status_code)
            raise UnexpectedResponse(response.status_code, _body(response))

        receipt_header = response.headers.get(PAYMENT_RESPONSE_HEADER)
        receipt = decode_payment_response(receipt_header) if receipt_header else None

        return PaidReport(report=response.json(), receipt=receipt)

    async def check_token(self,
                          token_address: str,
                          signer: Signer,
                          asset: AssetType = AssetType.STX) -> PaidReport:
        """Full challenge, sign and retry round trip."""
        challenge = await self.get_challenge(token_address, asset)

        signed = signer(challenge)
        if inspect.isawaitable(signed):
            signed = await signed

        self.logger.info("Submitting payment", token=token_address, tx_hex_length=len(signed))
        return await self.get_report(token_address, signed, challenge.asset_type)


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
