"""
FastAPI Dependencies

Components are built once in the application lifespan and stored on
app.state; routers reach them through these dependencies.
"""
import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, Request

from ..config import Settings
from ..gateways.base import PaymentGateway
from ..services.order_ledger import OrderLedger
from ..services.price_oracle import PriceOracle
from ..services.pricing_engine import PricingEngine
from ..services.webhook_reconciler import WebhookReconciler

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_oracle(request: Request) -> PriceOracle:
    return request.app.state.oracle


def get_pricing(request: Request) -> PricingEngine:
    return request.app.state.pricing


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


def get_ledger(request: Request) -> OrderLedger:
    return request.app.state.ledger


def get_reconciler(request: Request) -> WebhookReconciler:
    return request.app.state.reconciler


async def require_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias="X-API-Key")
) -> None:
    """
    Gate administrative endpoints behind the shared API key.

    Missing key -> 401, wrong key -> 403.
    """
    if not x_api_key:
        raise HTTPException(
            status_code=401,
            detail={"error_code": "api_key_required", "message": "API key is required"}
        )

    expected = request.app.state.settings.api_key
    if not hmac.compare_digest(x_api_key.encode("utf-8"), expected.encode("utf-8")):
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Invalid API key attempt from {client} on {request.url.path}")
        raise HTTPException(
            status_code=403,
            detail={"error_code": "invalid_api_key", "message": "Invalid API key"}
        )
