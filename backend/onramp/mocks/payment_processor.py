"""
Mock Payment Processor

In-process PaymentGateway for demo mode and tests. Intents, refunds and
customers live in memory; webhooks are signed and verified with the same
t=...,v1=... HMAC scheme Stripe uses, so signed fixtures can be generated
locally with build_webhook().
"""
import hashlib
import json
import logging
import time
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union

from ..exceptions import GatewayError, InvalidSignatureError
from ..gateways.base import PaymentGateway, to_minor_units
from ..models.payments import GatewayEvent, PaymentIntentHandle, RefundRecord
from ..services.signature_service import sign_payload, verify_signature

logger = logging.getLogger(__name__)


# Charge amounts (in cents) that trigger specific declines
DECLINE_AMOUNTS = {
    666: "card_declined",
    667: "insufficient_funds",
    668: "processing_error",
}


class MockPaymentGateway(PaymentGateway):
    """
    Deterministic in-memory processor.

    Mock Behavior:
    - Identifiers derive from a counter, so they are stable within a run
    - Amounts listed in DECLINE_AMOUNTS raise GatewayError
    - `calls` counts every outbound operation by name
    """

    name = "mock"

    def __init__(self, webhook_secret: str, webhook_tolerance_seconds: int = 300):
        self.webhook_secret = webhook_secret
        self.webhook_tolerance_seconds = webhook_tolerance_seconds
        self.intents: Dict[str, Dict[str, Any]] = {}
        self.refunds: Dict[str, RefundRecord] = {}
        self.customers: Dict[str, str] = {}
        self.calls: Dict[str, int] = {}
        self._counter = 0

    @property
    def publishable_key(self) -> str:
        return "pk_test_mock"

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        digest = hashlib.sha256(f"{prefix}:{self._counter}".encode()).hexdigest()[:16]
        return f"{prefix}_{digest}"

    def _record(self, operation: str) -> None:
        self.calls[operation] = self.calls.get(operation, 0) + 1

    def _get(self, intent_id: str) -> Dict[str, Any]:
        intent = self.intents.get(intent_id)
        if intent is None:
            raise GatewayError(f"No such payment intent: {intent_id}")
        return intent

    @staticmethod
    def _handle(intent: Dict[str, Any]) -> PaymentIntentHandle:
        return PaymentIntentHandle(
            intent_id=intent["id"],
            client_secret=intent["client_secret"],
            amount_minor=intent["amount"],
            currency=intent["currency"],
            status=intent["status"],
        )

    async def create_intent(
        self,
        amount_usd: Decimal,
        currency: str,
        metadata: Dict[str, str]
    ) -> PaymentIntentHandle:
        self._record("create_intent")
        amount_minor = to_minor_units(amount_usd)

        if amount_minor in DECLINE_AMOUNTS:
            raise GatewayError(
                "Failed to create payment intent",
                details={"provider_code": DECLINE_AMOUNTS[amount_minor]}
            )

        intent_id = self._next_id("pi")
        intent = {
            "id": intent_id,
            "object": "payment_intent",
            "client_secret": f"{intent_id}_secret_{hashlib.sha256(intent_id.encode()).hexdigest()[:12]}",
            "amount": amount_minor,
            "currency": currency,
            "status": "requires_payment_method",
            "metadata": dict(metadata),
        }
        self.intents[intent_id] = intent

        logger.info(f"Mock payment intent created: {intent_id}, amount={amount_minor}")
        return self._handle(intent)

    async def get_intent(self, intent_id: str) -> PaymentIntentHandle:
        self._record("get_intent")
        return self._handle(self._get(intent_id))

    async def confirm_intent(self, intent_id: str) -> PaymentIntentHandle:
        self._record("confirm_intent")
        intent = self._get(intent_id)
        intent["status"] = "succeeded"
        return self._handle(intent)

    async def create_refund(
        self,
        intent_id: str,
        amount_usd: Optional[Decimal] = None,
        reason: Optional[str] = None
    ) -> RefundRecord:
        self._record("create_refund")
        intent = self._get(intent_id)
        if intent["status"] != "succeeded":
            raise GatewayError(f"Payment intent {intent_id} has no successful charge to refund")

        amount_minor = intent["amount"] if amount_usd is None else to_minor_units(amount_usd)
        if amount_minor > intent["amount"]:
            raise GatewayError(f"Refund amount exceeds charge for {intent_id}")

        refund = RefundRecord(
            refund_id=self._next_id("re"),
            intent_id=intent_id,
            amount_minor=amount_minor,
            status="succeeded",
            reason=reason,
        )
        self.refunds[refund.refund_id] = refund
        logger.info(f"Mock refund created: {refund.refund_id}, payment_intent={intent_id}")
        return refund

    async def create_customer(self, email: str, metadata: Optional[Dict[str, str]] = None) -> str:
        self._record("create_customer")
        customer_id = self._next_id("cus")
        self.customers[customer_id] = email
        return customer_id

    def verify_and_parse_webhook(
        self,
        raw_payload: Union[str, bytes],
        signature_header: str
    ) -> GatewayEvent:
        verify_signature(
            raw_payload,
            signature_header,
            self.webhook_secret,
            tolerance_seconds=self.webhook_tolerance_seconds
        )

        try:
            return GatewayEvent.from_payload(json.loads(raw_payload))
        except (ValueError, KeyError, TypeError) as e:
            raise InvalidSignatureError("Malformed webhook payload") from e

    # ------------------------------------------------------------------
    # Webhook fixtures
    # ------------------------------------------------------------------

    def build_webhook(
        self,
        event_type: str,
        intent_id: str,
        amount_refunded_minor: Optional[int] = None,
        timestamp: Optional[int] = None
    ) -> Tuple[str, str]:
        """
        Produce a signed webhook delivery for an intent.

        Returns:
            (raw JSON payload, signature header)
        """
        timestamp = int(time.time()) if timestamp is None else timestamp

        if event_type.startswith("charge."):
            data_object = {
                "id": self._next_id("ch"),
                "object": "charge",
                "payment_intent": intent_id,
                "amount_refunded": amount_refunded_minor or 0,
            }
        else:
            intent = self.intents.get(intent_id, {"id": intent_id, "object": "payment_intent"})
            data_object = {k: v for k, v in intent.items() if k != "client_secret"}

        payload = json.dumps({
            "id": self._next_id("evt"),
            "object": "event",
            "type": event_type,
            "created": timestamp,
            "data": {"object": data_object},
        })

        return payload, sign_payload(payload, self.webhook_secret, timestamp)
