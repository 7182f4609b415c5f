"""
Payments API Endpoints

Client-side payment configuration. The client completes payment directly
with the gateway using this key and the order's client_secret.
"""
from fastapi import APIRouter, Depends
from typing import Dict, Any

from ..gateways.base import PaymentGateway
from .deps import get_gateway

router = APIRouter()


@router.get("/payments/config")
async def get_payment_config_endpoint(
    gateway: PaymentGateway = Depends(get_gateway)
) -> Dict[str, Any]:
    """
    Get the publishable gateway key.

    Returns:
        {
            "gateway": str,  # "stripe" or "mock"
            "publishable_key": str
        }
    """
    return {
        "gateway": gateway.name,
        "publishable_key": gateway.publishable_key
    }
