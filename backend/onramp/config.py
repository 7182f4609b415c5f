"""
Onramp Configuration Module

Loads environment variables for backend configuration: payment gateway
credentials, price feed settings, fee schedule and transaction bounds.
"""
from decimal import Decimal
from typing import List, Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Notes:
    - Gateway secrets are environment-based and never logged
    - Demo mode runs against the in-process mock payment processor
    - Fee and bound values are Decimal so quotes never drift through floats
    """

    # Runtime
    environment: Literal["development", "production", "test"] = "development"
    demo_mode: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Payment gateway
    payment_gateway: Literal["stripe", "mock"] = "mock"
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = "whsec_demo_only_change_me"
    stripe_publishable_key: str = ""
    gateway_timeout_seconds: float = 10.0
    webhook_tolerance_seconds: int = 300

    # Administrative API key (X-API-Key header)
    api_key: str = "dev-api-key-change-in-production"

    # Price feed
    coingecko_api_key: str = ""
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    price_cache_ttl: int = 60  # seconds
    price_fetch_timeout_seconds: float = 5.0
    supported_cryptos: str = "BTC,ETH,USDT,USDC,SOL,BNB"

    # Fees and bounds
    platform_fee_percent: Decimal = Decimal("2.5")
    min_transaction_usd: Decimal = Decimal("10")
    max_transaction_usd: Decimal = Decimal("10000")
    quote_window_seconds: int = 120

    # Database
    database_path: str = "./onramp.db"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def supported_symbols(self) -> List[str]:
        """Configured symbols, upper-cased, in declaration order."""
        return [s.strip().upper() for s in self.supported_cryptos.split(",") if s.strip()]

    @property
    def database_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.database_path}"


def validate_config(settings: Settings) -> None:
    """
    Fail fast on a production deployment that cannot take payments.

    Raises:
        ValueError: naming the missing environment variables
    """
    if settings.environment != "production" or settings.payment_gateway != "stripe":
        return

    missing = []
    if not settings.stripe_secret_key:
        missing.append("STRIPE_SECRET_KEY")
    if not settings.stripe_webhook_secret or settings.stripe_webhook_secret.startswith("whsec_demo"):
        missing.append("STRIPE_WEBHOOK_SECRET")

    if missing:
        raise ValueError(f"Missing required environment variables: {', '.join(missing)}")
