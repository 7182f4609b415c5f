"""
Crypto API Endpoints

Price listing and the supported-asset catalog.
"""
from fastapi import APIRouter, Depends
from typing import Dict, Any
import logging

from ..exceptions import UnsupportedAssetError
from ..services.price_oracle import PriceOracle
from ..services.pricing_engine import PricingEngine
from .deps import get_oracle, get_pricing

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/prices")
async def get_prices_endpoint(
    oracle: PriceOracle = Depends(get_oracle),
    pricing: PricingEngine = Depends(get_pricing)
) -> Dict[str, Any]:
    """
    Get current prices for all supported assets.

    Returns:
        {
            "prices": List[PriceSnapshot],
            "count": int
        }
    """
    symbols = [asset.symbol for asset in pricing.supported_assets()]
    prices = await oracle.get_prices(symbols)

    return {
        "prices": [p.model_dump(mode="json") for p in prices],
        "count": len(prices)
    }


@router.get("/prices/{symbol}")
async def get_price_endpoint(
    symbol: str,
    oracle: PriceOracle = Depends(get_oracle),
    pricing: PricingEngine = Depends(get_pricing)
) -> Dict[str, Any]:
    """
    Get the current price for one asset.

    Path Parameters:
        symbol: Asset symbol, case-insensitive (e.g. btc)

    Example:
        GET /api/crypto/prices/BTC
    """
    upper_symbol = symbol.upper()
    if not pricing.is_supported(upper_symbol):
        raise UnsupportedAssetError(
            f"Cryptocurrency {upper_symbol} is not supported",
            details={"symbol": upper_symbol}
        )

    price = await oracle.get_price(upper_symbol)
    return price.model_dump(mode="json")


@router.get("/supported")
async def get_supported_endpoint(
    pricing: PricingEngine = Depends(get_pricing)
) -> Dict[str, Any]:
    """List the assets currently offered for purchase."""
    assets = pricing.supported_assets()

    return {
        "assets": [a.model_dump(mode="json") for a in assets],
        "count": len(assets)
    }
