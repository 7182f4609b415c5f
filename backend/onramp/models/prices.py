"""
Pydantic Price Models

PriceSnapshot is what the price oracle caches; PriceQuote is the transient
result of a pricing computation. Neither is persisted.
"""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class PriceSnapshot(BaseModel):
    """Latest USD price of one asset as returned by the price feed."""
    symbol: str
    name: str
    price_usd: Decimal = Field(gt=0)
    price_change_24h: Decimal = Decimal("0")
    last_updated: datetime

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "symbol": "BTC",
                "name": "Bitcoin",
                "price_usd": "50000",
                "price_change_24h": "-1.25",
                "last_updated": "2025-10-17T14:30:00Z"
            }
        }
    }


class PriceQuote(BaseModel):
    """
    Fee-inclusive price quote.

    Notes:
    - total_charge == amount_usd + platform_fee, unrounded
    - expires_at is advisory; orders always re-quote at creation time
    """
    crypto_symbol: str
    amount_usd: Decimal
    crypto_amount: Decimal
    current_price: Decimal
    platform_fee: Decimal
    total_charge: Decimal
    expires_at: datetime

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "crypto_symbol": "BTC",
                "amount_usd": "100",
                "crypto_amount": "0.002",
                "current_price": "50000",
                "platform_fee": "2.5",
                "total_charge": "102.5",
                "expires_at": "2025-10-17T14:32:00Z"
            }
        }
    }
