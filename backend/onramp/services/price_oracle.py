"""
Price Oracle

Fetches current USD prices from CoinGecko and caches them per symbol for
PRICE_CACHE_TTL seconds. Concurrent misses for the same symbol share one
upstream fetch.
"""
import asyncio
import logging
import time
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

import aiohttp
from pydantic import ValidationError

from ..config import Settings
from ..exceptions import PriceFetchError, UnsupportedAssetError, UpstreamTimeoutError
from ..models.assets import ASSET_CATALOG, COINGECKO_IDS, Asset
from ..models.prices import PriceSnapshot

logger = logging.getLogger(__name__)


class PriceFeed(Protocol):
    """Upstream source of price snapshots."""

    async def fetch_price(self, asset: Asset) -> PriceSnapshot:
        ...


# ============================================================================
# CoinGecko Feed
# ============================================================================

class CoinGeckoPriceFeed:
    """
    CoinGecko /simple/price client.

    The aiohttp session is created lazily inside the running event loop and
    released by aclose().
    """

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com/api/v3",
        api_key: str = "",
        timeout_seconds: float = 5.0
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CoinGeckoPriceFeed":
        return cls(
            base_url=settings.coingecko_base_url,
            api_key=settings.coingecko_api_key,
            timeout_seconds=settings.price_fetch_timeout_seconds,
        )

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"x-cg-pro-api-key": self.api_key} if self.api_key else {}
            self._session = aiohttp.ClientSession(timeout=self.timeout, headers=headers)
        return self._session

    async def fetch_price(self, asset: Asset) -> PriceSnapshot:
        """
        Fetch the current price of one asset.

        Raises:
            UpstreamTimeoutError: request exceeded the configured timeout
            PriceFetchError: HTTP error, missing or malformed price data
        """
        coingecko_id = COINGECKO_IDS[asset]
        params = {
            "ids": coingecko_id,
            "vs_currencies": "usd",
            "include_24hr_change": "true",
        }

        try:
            session = self._get_session()
            async with session.get(f"{self.base_url}/simple/price", params=params) as response:
                if response.status != 200:
                    raise PriceFetchError(
                        f"Failed to fetch price for {asset.value}",
                        details={"symbol": asset.value, "http_status": response.status}
                    )
                body = await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.error(f"Price feed timed out for {asset.value}")
            raise UpstreamTimeoutError(
                f"Price feed timed out for {asset.value}",
                details={"symbol": asset.value}
            )
        except aiohttp.ClientError as e:
            logger.error(f"Error fetching crypto price for {asset.value}: {e}")
            raise PriceFetchError(
                f"Failed to fetch price for {asset.value}",
                details={"symbol": asset.value}
            ) from e
        except ValueError as e:
            logger.error(f"Undecodable price response for {asset.value}: {e}")
            raise PriceFetchError(
                f"Malformed price data for {asset.value}",
                details={"symbol": asset.value}
            ) from e

        return self._parse(asset, body)

    @staticmethod
    def _parse(asset: Asset, body) -> PriceSnapshot:
        data = body.get(COINGECKO_IDS[asset]) if isinstance(body, dict) else None
        if not isinstance(data, dict) or "usd" not in data:
            raise PriceFetchError(f"No price data for {asset.value}", details={"symbol": asset.value})

        try:
            price = Decimal(str(data["usd"]))
            change = Decimal(str(data.get("usd_24h_change") or 0))
        except InvalidOperation:
            raise PriceFetchError(f"Malformed price data for {asset.value}", details={"symbol": asset.value})

        if not price.is_finite() or price <= 0:
            raise PriceFetchError(f"Non-positive price for {asset.value}", details={"symbol": asset.value})
        if not change.is_finite():
            change = Decimal("0")

        try:
            return PriceSnapshot(
                symbol=asset.value,
                name=ASSET_CATALOG[asset].name,
                price_usd=price,
                price_change_24h=change,
                last_updated=datetime.now(timezone.utc),
            )
        except ValidationError as e:
            raise PriceFetchError(f"Malformed price data for {asset.value}", details={"symbol": asset.value}) from e

    async def aclose(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()


# ============================================================================
# Oracle
# ============================================================================

class PriceOracle:
    """
    TTL cache in front of a PriceFeed.

    Args:
        feed: Upstream price source
        supported_symbols: Symbols the oracle will look up
        cache_ttl_seconds: Freshness window for cached snapshots
        clock: Monotonic clock in seconds (overridable for tests)
    """

    def __init__(
        self,
        feed: PriceFeed,
        supported_symbols: Iterable[str],
        cache_ttl_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic
    ):
        self.feed = feed
        self.cache_ttl = cache_ttl_seconds
        self._clock = clock
        self._supported = {a for a in (Asset.parse(s) for s in supported_symbols) if a is not None}
        self._cache: Dict[Asset, Tuple[PriceSnapshot, float]] = {}
        self._locks: Dict[Asset, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _resolve(self, symbol: str) -> Asset:
        asset = Asset.parse(symbol)
        if asset is None or asset not in self._supported:
            raise UnsupportedAssetError(
                f"Cryptocurrency {symbol} is not supported",
                details={"symbol": symbol}
            )
        return asset

    def _fresh(self, asset: Asset) -> Optional[PriceSnapshot]:
        cached = self._cache.get(asset)
        if cached and self._clock() - cached[1] < self.cache_ttl:
            return cached[0]
        return None

    async def get_price(self, symbol: str) -> PriceSnapshot:
        """
        Current snapshot for `symbol`, from cache when fresh.

        Raises:
            UnsupportedAssetError: symbol not enabled
            PriceFetchError, UpstreamTimeoutError: feed failure; cache untouched
        """
        asset = self._resolve(symbol)

        snapshot = self._fresh(asset)
        if snapshot is not None:
            logger.debug(f"Cache hit for {asset.value}")
            return snapshot

        async with self._locks[asset]:
            # Another caller may have refreshed while we waited
            snapshot = self._fresh(asset)
            if snapshot is not None:
                logger.debug(f"Cache hit for {asset.value} after wait")
                return snapshot

            logger.debug(f"Fetching fresh price for {asset.value}")
            snapshot = await self.feed.fetch_price(asset)
            self._cache[asset] = (snapshot, self._clock())
            return snapshot

    async def get_prices(self, symbols: Iterable[str]) -> List[PriceSnapshot]:
        """Snapshots for several symbols, fetched concurrently, in input order."""
        return list(await asyncio.gather(*(self.get_price(s) for s in symbols)))
