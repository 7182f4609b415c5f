"""
Pytest configuration and fixtures for onramp tests.

Every test gets its own SQLite file, a fake price feed with call counters and
the in-process mock payment gateway. Nothing talks to the network.
"""
import asyncio
from decimal import Decimal
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from onramp.config import Settings
from onramp.db.init_db import create_engine_and_sessionmaker, initialize_database
from onramp.mocks.payment_processor import MockPaymentGateway
from onramp.models.assets import ASSET_CATALOG, Asset
from onramp.models.prices import PriceSnapshot
from onramp.services.order_ledger import OrderLedger
from onramp.services.price_oracle import PriceOracle
from onramp.services.pricing_engine import PricingEngine
from onramp.services.webhook_reconciler import WebhookReconciler

WEBHOOK_SECRET = "whsec_test_secret"
API_KEY = "test-admin-key"

ETH_ADDRESS = "0x" + "ab" * 20
BTC_ADDRESS = "bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq"
SOL_ADDRESS = "7EcDhSYGxXyscszYEp35KHN8vvw3svAuLKTzXwCFLtV"


class FakePriceFeed:
    """
    In-memory price feed.

    - `prices` maps Asset to USD price
    - `calls` counts fetches per symbol
    - set `error` to make every fetch raise it
    - set `delay` to hold each fetch open (for concurrency tests)
    """

    def __init__(self, prices=None):
        self.prices = prices or {
            Asset.BTC: Decimal("50000"),
            Asset.ETH: Decimal("2500"),
            Asset.USDT: Decimal("1"),
            Asset.USDC: Decimal("1"),
            Asset.SOL: Decimal("150"),
            Asset.BNB: Decimal("600"),
        }
        self.calls = {}
        self.error = None
        self.delay = 0.0

    @property
    def total_calls(self):
        return sum(self.calls.values())

    async def fetch_price(self, asset):
        self.calls[asset.value] = self.calls.get(asset.value, 0) + 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return PriceSnapshot(
            symbol=asset.value,
            name=ASSET_CATALOG[asset].name,
            price_usd=self.prices[asset],
            price_change_24h=Decimal("1.5"),
            last_updated=datetime.now(timezone.utc),
        )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def settings(tmp_path):
    return Settings(
        environment="test",
        demo_mode=True,
        payment_gateway="mock",
        stripe_webhook_secret=WEBHOOK_SECRET,
        api_key=API_KEY,
        database_path=str(tmp_path / "onramp-test.db"),
        platform_fee_percent=Decimal("2.5"),
        min_transaction_usd=Decimal("10"),
        max_transaction_usd=Decimal("10000"),
    )


@pytest.fixture
def feed():
    return FakePriceFeed()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return MockPaymentGateway(webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def oracle(feed, clock, settings):
    return PriceOracle(feed, settings.supported_symbols, cache_ttl_seconds=60, clock=clock)


@pytest.fixture
def pricing(oracle, settings):
    return PricingEngine.from_settings(oracle, settings)


@pytest_asyncio.fixture
async def session_factory(settings):
    engine, factory = create_engine_and_sessionmaker(settings.database_path)
    await initialize_database(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
def ledger(session_factory, pricing, gateway):
    return OrderLedger(session_factory, pricing, gateway)


@pytest.fixture
def reconciler(ledger):
    return WebhookReconciler(ledger)
