"""
Token Health Check API

Pay-per-request health scores for Stacks tokens. Requests to the protected
resource are answered with an HTTP 402 challenge until the caller attaches a
signed STX or sBTC transfer, which is broadcast to the network before the
report is computed.
"""

__version__ = "1.0.0"
__product__ = "token_health"
