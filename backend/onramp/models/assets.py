"""
Supported Asset Catalog

Static description of every crypto asset the onramp knows how to sell.
Which of them are actually offered is decided by SUPPORTED_CRYPTOS.
"""
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field


class Asset(str, Enum):
    """Closed set of asset symbols."""
    BTC = "BTC"
    ETH = "ETH"
    USDT = "USDT"
    USDC = "USDC"
    SOL = "SOL"
    BNB = "BNB"

    @classmethod
    def parse(cls, symbol: str) -> Optional["Asset"]:
        """Return the member for `symbol` (case-insensitive) or None."""
        try:
            return cls(symbol.strip().upper())
        except ValueError:
            return None


class SupportedAsset(BaseModel):
    """Catalog entry for a purchasable asset."""
    symbol: Asset
    name: str
    network: str
    min_purchase: Decimal = Field(gt=0)
    max_purchase: Decimal = Field(gt=0)
    enabled: bool = True

    model_config = {
        "frozen": True,
        "use_enum_values": True,
    }


ASSET_CATALOG: Dict[Asset, SupportedAsset] = {
    Asset.BTC: SupportedAsset(symbol=Asset.BTC, name="Bitcoin", network="Bitcoin",
                              min_purchase=Decimal("10"), max_purchase=Decimal("50000")),
    Asset.ETH: SupportedAsset(symbol=Asset.ETH, name="Ethereum", network="Ethereum",
                              min_purchase=Decimal("10"), max_purchase=Decimal("50000")),
    Asset.USDT: SupportedAsset(symbol=Asset.USDT, name="Tether", network="ERC-20",
                               min_purchase=Decimal("10"), max_purchase=Decimal("10000")),
    Asset.USDC: SupportedAsset(symbol=Asset.USDC, name="USD Coin", network="ERC-20",
                               min_purchase=Decimal("10"), max_purchase=Decimal("10000")),
    Asset.SOL: SupportedAsset(symbol=Asset.SOL, name="Solana", network="Solana",
                              min_purchase=Decimal("10"), max_purchase=Decimal("10000")),
    Asset.BNB: SupportedAsset(symbol=Asset.BNB, name="BNB", network="BSC",
                              min_purchase=Decimal("10"), max_purchase=Decimal("10000")),
}

# Price feed identifiers
COINGECKO_IDS: Dict[Asset, str] = {
    Asset.BTC: "bitcoin",
    Asset.ETH: "ethereum",
    Asset.USDT: "tether",
    Asset.USDC: "usd-coin",
    Asset.SOL: "solana",
    Asset.BNB: "binancecoin",
}


def enabled_assets(symbols: Iterable[str]) -> List[SupportedAsset]:
    """
    Catalog entries for the configured symbols, in configuration order.

    Unknown symbols and disabled entries are skipped.
    """
    result = []
    for symbol in symbols:
        asset = Asset.parse(symbol)
        if asset is None:
            continue
        entry = ASSET_CATALOG[asset]
        if entry.enabled and entry not in result:
            result.append(entry)
    return result
