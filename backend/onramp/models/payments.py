"""
Pydantic Payment Gateway Models

Gateway-neutral views of payment intents, refunds and webhook events, so the
order ledger and reconciler never handle provider SDK objects directly.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


# Webhook event types the reconciler acts on
PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
PAYMENT_CANCELED = "payment_intent.canceled"
CHARGE_REFUNDED = "charge.refunded"


class PaymentIntentHandle(BaseModel):
    """Result of opening or reading a payment intent."""
    intent_id: str
    client_secret: Optional[str] = None
    amount_minor: int = Field(ge=0)
    currency: str = "usd"
    status: str


class RefundRecord(BaseModel):
    """Refund issued against a payment intent."""
    refund_id: str
    intent_id: str
    amount_minor: int = Field(ge=0)
    status: str
    reason: Optional[str] = None


class GatewayEvent(BaseModel):
    """
    Authenticated webhook event.

    object_id is the id of the event's data object: a payment intent for
    payment_intent.* events, a charge for charge.* events.
    """
    id: str
    type: str
    object_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    amount_refunded_minor: Optional[int] = None
    created: datetime
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "GatewayEvent":
        """
        Build an event from a decoded Stripe-format webhook body.

        Raises:
            KeyError, TypeError, ValueError: payload is not an event
        """
        obj = payload["data"]["object"]
        if not isinstance(obj, dict):
            raise TypeError("event data.object must be an object")

        event_type = payload["type"]
        if not isinstance(event_type, str):
            raise TypeError("event type must be a string")
        if obj.get("object") == "payment_intent" or event_type.startswith("payment_intent."):
            payment_intent_id = obj.get("id")
        else:
            payment_intent_id = obj.get("payment_intent")

        return cls(
            id=payload["id"],
            type=event_type,
            object_id=obj.get("id"),
            payment_intent_id=payment_intent_id,
            amount_refunded_minor=obj.get("amount_refunded"),
            created=datetime.fromtimestamp(int(payload.get("created", 0)), tz=timezone.utc),
            data=obj,
        )
