"""
Stripe Payment Gateway

PaymentGateway backed by the Stripe API. Stripe's SDK is blocking, so each
call runs in a worker thread bounded by GATEWAY_TIMEOUT_SECONDS.
"""
import asyncio
import json
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Union

import stripe

from ..config import Settings
from ..exceptions import GatewayError, InvalidSignatureError, UpstreamTimeoutError
from ..models.payments import GatewayEvent, PaymentIntentHandle, RefundRecord
from .base import PaymentGateway, to_minor_units

logger = logging.getLogger(__name__)


class StripeGateway(PaymentGateway):
    """
    Stripe PaymentIntents, Refunds and Customers.

    Args:
        secret_key: Stripe secret API key
        webhook_secret: Endpoint signing secret (whsec_...)
        publishable_key: Key handed to clients
        timeout_seconds: Upper bound for each API call
        webhook_tolerance_seconds: Max age of a webhook signature
    """

    name = "stripe"

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        publishable_key: str = "",
        timeout_seconds: float = 10.0,
        webhook_tolerance_seconds: int = 300
    ):
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._publishable_key = publishable_key
        self.timeout_seconds = timeout_seconds
        self.webhook_tolerance_seconds = webhook_tolerance_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeGateway":
        return cls(
            secret_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            publishable_key=settings.stripe_publishable_key,
            timeout_seconds=settings.gateway_timeout_seconds,
            webhook_tolerance_seconds=settings.webhook_tolerance_seconds,
        )

    @property
    def publishable_key(self) -> str:
        return self._publishable_key

    async def _call(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking Stripe call with the secret key and a timeout."""
        kwargs["api_key"] = self._secret_key
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args, **kwargs),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(f"Stripe {operation} timed out after {self.timeout_seconds}s")
            raise UpstreamTimeoutError(f"Payment gateway timed out during {operation}")
        except stripe.StripeError as e:
            logger.error(f"Error during Stripe {operation}: {e.user_message or e}")
            raise GatewayError(
                f"Failed to {operation}",
                details={"provider_code": getattr(e, "code", None)}
            ) from e

    @staticmethod
    def _intent_handle(intent: Any) -> PaymentIntentHandle:
        return PaymentIntentHandle(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            amount_minor=intent.amount,
            currency=intent.currency,
            status=intent.status,
        )

    async def create_intent(
        self,
        amount_usd: Decimal,
        currency: str,
        metadata: Dict[str, str]
    ) -> PaymentIntentHandle:
        intent = await self._call(
            "create payment intent",
            stripe.PaymentIntent.create,
            amount=to_minor_units(amount_usd),
            currency=currency,
            metadata=metadata,
            automatic_payment_methods={"enabled": True},
        )
        logger.info(f"Payment intent created: {intent.id}, amount={intent.amount}")
        return self._intent_handle(intent)

    async def get_intent(self, intent_id: str) -> PaymentIntentHandle:
        intent = await self._call("retrieve payment intent", stripe.PaymentIntent.retrieve, intent_id)
        return self._intent_handle(intent)

    async def confirm_intent(self, intent_id: str) -> PaymentIntentHandle:
        intent = await self._call("confirm payment intent", stripe.PaymentIntent.confirm, intent_id)
        return self._intent_handle(intent)

    async def create_refund(
        self,
        intent_id: str,
        amount_usd: Optional[Decimal] = None,
        reason: Optional[str] = None
    ) -> RefundRecord:
        params: Dict[str, Any] = {"payment_intent": intent_id}
        if amount_usd is not None:
            params["amount"] = to_minor_units(amount_usd)
        if reason:
            params["reason"] = reason

        refund = await self._call("create refund", stripe.Refund.create, **params)
        logger.info(f"Refund created: {refund.id}, payment_intent={intent_id}, amount={refund.amount}")

        return RefundRecord(
            refund_id=refund.id,
            intent_id=intent_id,
            amount_minor=refund.amount,
            status=refund.status,
            reason=refund.reason,
        )

    async def create_customer(self, email: str, metadata: Optional[Dict[str, str]] = None) -> str:
        customer = await self._call("create customer", stripe.Customer.create, email=email, metadata=metadata or {})
        return customer.id

    def verify_and_parse_webhook(
        self,
        raw_payload: Union[str, bytes],
        signature_header: str
    ) -> GatewayEvent:
        if isinstance(raw_payload, bytes):
            raw_payload = raw_payload.decode("utf-8", errors="replace")

        try:
            stripe.WebhookSignature.verify_header(
                raw_payload,
                signature_header,
                self._webhook_secret,
                self.webhook_tolerance_seconds
            )
        except stripe.SignatureVerificationError as e:
            raise InvalidSignatureError("Invalid webhook signature") from e

        try:
            return GatewayEvent.from_payload(json.loads(raw_payload))
        except (ValueError, KeyError, TypeError) as e:
            raise InvalidSignatureError("Malformed webhook payload") from e
