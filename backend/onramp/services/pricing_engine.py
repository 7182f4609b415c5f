"""
Pricing Engine

Turns a fiat amount and a live price into a fee-inclusive quote.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from ..config import Settings
from ..exceptions import AmountOutOfRangeError, InvalidPriceError, UnsupportedAssetError
from ..models.assets import SupportedAsset, enabled_assets
from ..models.prices import PriceQuote
from .price_oracle import PriceOracle

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


class PricingEngine:
    """
    Quote computation against the price oracle.

    All arithmetic is Decimal; rounding to cents happens only at the payment
    gateway boundary.
    """

    def __init__(
        self,
        oracle: PriceOracle,
        supported_symbols: List[str],
        platform_fee_percent: Decimal = Decimal("2.5"),
        min_transaction_usd: Decimal = Decimal("10"),
        max_transaction_usd: Decimal = Decimal("10000"),
        quote_window_seconds: int = 120
    ):
        self.oracle = oracle
        self.platform_fee_percent = Decimal(str(platform_fee_percent))
        self.min_transaction_usd = Decimal(str(min_transaction_usd))
        self.max_transaction_usd = Decimal(str(max_transaction_usd))
        self.quote_window = timedelta(seconds=quote_window_seconds)
        self._assets = enabled_assets(supported_symbols)
        self._symbols = {a.symbol for a in self._assets}

    @classmethod
    def from_settings(cls, oracle: PriceOracle, settings: Settings) -> "PricingEngine":
        return cls(
            oracle,
            supported_symbols=settings.supported_symbols,
            platform_fee_percent=settings.platform_fee_percent,
            min_transaction_usd=settings.min_transaction_usd,
            max_transaction_usd=settings.max_transaction_usd,
            quote_window_seconds=settings.quote_window_seconds,
        )

    def supported_assets(self) -> List[SupportedAsset]:
        return list(self._assets)

    def is_supported(self, symbol: str) -> bool:
        return symbol.strip().upper() in self._symbols

    async def quote(self, symbol: str, amount_usd: Decimal, now: Optional[datetime] = None) -> PriceQuote:
        """
        Compute a quote for buying `amount_usd` worth of `symbol`.

        Raises:
            AmountOutOfRangeError: amount outside [min, max]; no price fetch
            UnsupportedAssetError: symbol not enabled
            InvalidPriceError: oracle produced a non-positive price
            PriceFetchError, UpstreamTimeoutError: from the oracle
        """
        amount_usd = Decimal(str(amount_usd))

        if amount_usd < self.min_transaction_usd:
            raise AmountOutOfRangeError(
                f"Minimum transaction amount is ${self.min_transaction_usd}",
                details={"amount_usd": str(amount_usd), "min": str(self.min_transaction_usd)}
            )
        if amount_usd > self.max_transaction_usd:
            raise AmountOutOfRangeError(
                f"Maximum transaction amount is ${self.max_transaction_usd}",
                details={"amount_usd": str(amount_usd), "max": str(self.max_transaction_usd)}
            )

        symbol = symbol.strip().upper()
        if symbol not in self._symbols:
            raise UnsupportedAssetError(
                f"Cryptocurrency {symbol} is not supported",
                details={"symbol": symbol}
            )

        snapshot = await self.oracle.get_price(symbol)
        price = snapshot.price_usd
        if price <= 0:
            logger.error(f"Oracle returned non-positive price for {symbol}: {price}")
            raise InvalidPriceError(f"Invalid price for {symbol}", details={"price_usd": str(price)})

        platform_fee = amount_usd * self.platform_fee_percent / HUNDRED
        total_charge = amount_usd + platform_fee
        crypto_amount = amount_usd / price

        now = now or datetime.now(timezone.utc)

        return PriceQuote(
            crypto_symbol=symbol,
            amount_usd=amount_usd,
            crypto_amount=crypto_amount,
            current_price=price,
            platform_fee=platform_fee,
            total_charge=total_charge,
            expires_at=now + self.quote_window,
        )
