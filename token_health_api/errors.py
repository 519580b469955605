"""Error taxonomy for the Token Health API."""

from typing import Optional


class TokenHealthError(Exception):
    """Base class for all service errors."""


class ValidationError(TokenHealthError):
    """Caller supplied a malformed resource identifier."""

    def __init__(self, message: str = "Invalid token address format"):
        super().__init__(message)


class UpstreamProviderError(TokenHealthError):
    """The analytics data provider failed or returned an error envelope."""


class PaymentRequired(TokenHealthError):
    """No payment attached; carries the challenge to send back."""

    def __init__(self, challenge):
        self.challenge = challenge
        super().__init__(f"Payment required for {challenge.resource}")


class PaymentRejected(TokenHealthError):
    """The network explicitly refused the broadcast transaction."""

    def __init__(self, details: Optional[str]):
        self.details = details
        super().__init__(f"Payment broadcast failed: {details}")


class PaymentProcessingError(TokenHealthError):
    """Settlement could not be attempted (malformed hex, network fault)."""

    def __init__(self, details: str):
        self.details = details
        super().__init__(details)
