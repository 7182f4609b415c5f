"""
Webhook API Endpoints

Receives payment gateway notifications. The signature is verified against
the raw body before anything is decoded; after that every delivery is
acknowledged whatever the reconciliation outcome.
"""
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from typing import Dict, Any, Optional
import logging

from ..exceptions import InvalidSignatureError
from ..gateways.base import PaymentGateway
from ..services.webhook_reconciler import WebhookReconciler
from .deps import get_gateway, get_reconciler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe")
async def stripe_webhook_endpoint(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    gateway: PaymentGateway = Depends(get_gateway),
    reconciler: WebhookReconciler = Depends(get_reconciler)
) -> Dict[str, Any]:
    """
    Handle payment gateway webhooks.

    Headers:
        Stripe-Signature: t=<timestamp>,v1=<hmac>

    Returns:
        {"received": true} for every authenticated delivery
    """
    if not stripe_signature:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "missing_signature", "message": "Missing Stripe-Signature header"}
        )

    raw_body = await request.body()

    try:
        event = gateway.verify_and_parse_webhook(raw_body, stripe_signature)
    except InvalidSignatureError as e:
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Rejected webhook with invalid signature from {client}: {e.message}")
        raise

    logger.info(f"Webhook received: type={event.type}, id={event.id}")

    outcome = await reconciler.handle(event)
    logger.debug(f"Webhook {event.id} reconciled: {outcome}")

    return {"received": True}
