"""
Onramp Exception Hierarchy

Every error raised by the core carries a stable error code and the HTTP
status it maps to, so the API layer can translate it without inspecting types.
"""
from typing import Optional, Dict, Any


class OnrampError(Exception):
    """
    Base exception for all onramp errors.

    Subclasses set `error_code` and `status_code`; the FastAPI exception
    handler in main.py renders `to_dict()` with that status.
    """

    error_code = "onramp_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


# ==================== Client faults ====================

class ValidationError(OnrampError):
    """Bad client input."""

    error_code = "validation_error"
    status_code = 400


class AmountOutOfRangeError(ValidationError):
    """
    Requested fiat amount is outside the configured transaction bounds.

    Example:
    - $5 purchase when MIN_TRANSACTION_USD is 10
    """

    error_code = "amount_out_of_range"


class UnsupportedAssetError(ValidationError):
    """Symbol is unknown or not enabled for purchase."""

    error_code = "unsupported_asset"


class InvalidWalletAddressError(ValidationError):
    """Destination address does not match the asset's address format."""

    error_code = "invalid_wallet_address"


class InvalidSignatureError(OnrampError):
    """
    Webhook authentication failed.

    Examples:
    - HMAC does not match the payload
    - Signature timestamp outside tolerance
    - Payload is not a decodable event
    """

    error_code = "invalid_signature"
    status_code = 400


class OrderNotFoundError(OnrampError):
    """No order for the given id or payment intent."""

    error_code = "order_not_found"
    status_code = 404


# ==================== Internal invariants ====================

class InvalidTransitionError(OnrampError):
    """Requested status change is not allowed by the order state machine."""

    error_code = "invalid_transition"
    status_code = 409


class InvalidPriceError(OnrampError):
    """A non-positive price reached the pricing engine."""

    error_code = "invalid_price"
    status_code = 500


# ==================== Upstream faults ====================

class UpstreamError(OnrampError):
    """An external dependency (price feed, payment gateway) failed."""

    error_code = "upstream_error"
    status_code = 502


class PriceFetchError(UpstreamError):
    """Price feed returned an error or malformed data."""

    error_code = "price_fetch_failed"


class GatewayError(UpstreamError):
    """Payment processor rejected or failed a request."""

    error_code = "gateway_error"


class UpstreamTimeoutError(UpstreamError):
    """An outbound call exceeded its timeout."""

    error_code = "upstream_timeout"
    status_code = 504
