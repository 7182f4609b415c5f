"""
Orders API Endpoints

Quotes, order creation and order retrieval.

Notes:
- Quotes are recomputed at order creation; client quotes are never trusted
- The client_secret is returned once and never logged or stored
- Listing orders requires the administrative API key
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Dict, Any, Optional
import logging

from ..models.orders import OrderRequest, QuoteRequest
from ..services.order_ledger import OrderLedger
from ..services.pricing_engine import PricingEngine
from .deps import get_ledger, get_pricing, require_api_key

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/quote")
async def create_quote_endpoint(
    request: QuoteRequest,
    pricing: PricingEngine = Depends(get_pricing)
) -> Dict[str, Any]:
    """
    Get a price quote.

    Request Body:
        {
            "crypto_symbol": str,  # or cryptoSymbol
            "amount_usd": number   # or amountUSD
        }

    Returns:
        PriceQuote with Decimal fields as strings
    """
    quote = await pricing.quote(request.crypto_symbol, request.amount_usd)
    return quote.model_dump(mode="json")


@router.post("")
async def create_order_endpoint(
    request: OrderRequest,
    ledger: OrderLedger = Depends(get_ledger)
) -> Dict[str, Any]:
    """
    Create an order and open its payment intent.

    Request Body:
        {
            "crypto_symbol": str,
            "amount_usd": number,
            "customer_email": str,
            "wallet_address": str,
            "payment_method": "card" | "bank_transfer"  # optional
        }

    Returns:
        {
            "order": Order,
            "client_secret": str,  # complete payment with the gateway
            "message": str
        }
    """
    logger.info(f"Creating order: symbol={request.crypto_symbol}, amount_usd={request.amount_usd}")

    order, client_secret = await ledger.create_order(request)

    return {
        "order": order.model_dump(mode="json"),
        "client_secret": client_secret,
        "message": "Order created successfully. Use the client_secret to complete payment."
    }


@router.get("/{order_id}")
async def get_order_endpoint(
    order_id: str,
    ledger: OrderLedger = Depends(get_ledger)
) -> Dict[str, Any]:
    """
    Get order details.

    Example:
        GET /api/orders/ord_5f0c6c1d9b8e4a6f8a3b2c1d0e9f8a7b
    """
    order = await ledger.get_order(order_id)

    if not order:
        raise HTTPException(
            status_code=404,
            detail={
                "error_code": "order_not_found",
                "message": f"No order found with ID: {order_id}"
            }
        )

    return order.model_dump(mode="json")


@router.get("", dependencies=[Depends(require_api_key)])
async def list_orders_endpoint(
    email: Optional[str] = Query(None, description="Filter by customer email"),
    ledger: OrderLedger = Depends(get_ledger)
) -> Dict[str, Any]:
    """
    List orders, newest first (requires X-API-Key).

    Query Parameters:
        email: Optional customer email filter
    """
    if email:
        orders = await ledger.get_orders_by_email(email)
    else:
        orders = await ledger.get_all_orders()

    return {
        "orders": [o.model_dump(mode="json") for o in orders],
        "count": len(orders)
    }
