"""
Payment Gateway Contract

The order ledger and webhook reconciler depend only on this interface, so
they run unchanged against Stripe or the in-process mock processor.
"""
from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Union

from ..models.payments import GatewayEvent, PaymentIntentHandle, RefundRecord


def to_minor_units(amount: Decimal) -> int:
    """Convert a USD amount to cents, rounding half up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway(ABC):
    """Card-processing provider."""

    name = "base"

    @property
    @abstractmethod
    def publishable_key(self) -> str:
        """Key the client uses to complete payment directly with the provider."""

    @abstractmethod
    async def create_intent(
        self,
        amount_usd: Decimal,
        currency: str,
        metadata: Dict[str, str]
    ) -> PaymentIntentHandle:
        """
        Open a payment intent for `amount_usd` (rounded to cents).

        Raises:
            GatewayError: provider rejected the request
            UpstreamTimeoutError: provider did not answer in time
        """

    @abstractmethod
    async def get_intent(self, intent_id: str) -> PaymentIntentHandle:
        """Retrieve an intent's current state."""

    @abstractmethod
    async def confirm_intent(self, intent_id: str) -> PaymentIntentHandle:
        """Confirm an intent server-side."""

    @abstractmethod
    async def create_refund(
        self,
        intent_id: str,
        amount_usd: Optional[Decimal] = None,
        reason: Optional[str] = None
    ) -> RefundRecord:
        """Refund all of an intent, or `amount_usd` of it."""

    @abstractmethod
    async def create_customer(self, email: str, metadata: Optional[Dict[str, str]] = None) -> str:
        """Register a customer and return its provider id."""

    @abstractmethod
    def verify_and_parse_webhook(
        self,
        raw_payload: Union[str, bytes],
        signature_header: str
    ) -> GatewayEvent:
        """
        Authenticate a webhook delivery, then decode it.

        Raises:
            InvalidSignatureError: bad or stale signature, or malformed payload
        """

    async def aclose(self) -> None:
        """Release provider resources."""
