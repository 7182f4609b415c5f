"""
Signature Service for Webhook Authentication

Implements the HMAC-SHA256 signing scheme payment webhooks are delivered
with: header `t=<unix timestamp>,v1=<hex digest>` where the digest covers
`"<timestamp>.<raw payload>"`.
"""
import hmac
import hashlib
import time
from typing import List, Optional, Tuple, Union

from ..exceptions import InvalidSignatureError

SCHEME = "v1"


def compute_signature(payload: Union[str, bytes], timestamp: int, secret: str) -> str:
    """
    Compute the hex HMAC-SHA256 digest for a payload.

    Args:
        payload: Raw request body exactly as received
        timestamp: Unix timestamp included in the header
        secret: Shared webhook secret

    Returns:
        Hexadecimal digest
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")

    signed_payload = f"{timestamp}.".encode("utf-8") + payload

    return hmac.new(
        secret.encode("utf-8"),
        signed_payload,
        hashlib.sha256
    ).hexdigest()


def sign_payload(payload: Union[str, bytes], secret: str, timestamp: Optional[int] = None) -> str:
    """Build a signature header for `payload`."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = compute_signature(payload, timestamp, secret)
    return f"t={timestamp},{SCHEME}={signature}"


def parse_signature_header(header: str) -> Tuple[int, List[str]]:
    """
    Split a signature header into its timestamp and candidate signatures.

    Raises:
        InvalidSignatureError: header is missing either part
    """
    timestamp = None
    signatures = []

    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise InvalidSignatureError("Malformed signature timestamp")
        elif key == SCHEME:
            signatures.append(value)

    if timestamp is None or not signatures:
        raise InvalidSignatureError("Malformed signature header")

    return timestamp, signatures


def verify_signature(
    payload: Union[str, bytes],
    header: str,
    secret: str,
    tolerance_seconds: int = 300,
    now: Optional[int] = None
) -> None:
    """
    Verify a webhook signature header using constant-time comparison.

    Raises:
        InvalidSignatureError: no signature matches, or the timestamp is
            outside the tolerance window
    """
    timestamp, signatures = parse_signature_header(header)

    expected = compute_signature(payload, timestamp, secret)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise InvalidSignatureError("No signatures found matching the expected signature for payload")

    now = int(time.time()) if now is None else now
    if tolerance_seconds and abs(now - timestamp) > tolerance_seconds:
        raise InvalidSignatureError(
            "Signature timestamp outside the tolerance zone",
            details={"timestamp": timestamp}
        )
