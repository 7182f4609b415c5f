"""
Onramp Backend - FastAPI Application

Fiat-to-crypto onramp: price quotes, order creation with a card payment
intent, and webhook-driven order completion.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging

from .config import Settings, validate_config
from .exceptions import OnrampError
from .db.init_db import create_engine_and_sessionmaker, initialize_database
from .gateways.base import PaymentGateway
from .gateways.stripe_gateway import StripeGateway
from .mocks.payment_processor import MockPaymentGateway
from .services.order_ledger import OrderLedger
from .services.price_oracle import CoinGeckoPriceFeed, PriceFeed, PriceOracle
from .services.pricing_engine import PricingEngine
from .services.webhook_reconciler import WebhookReconciler
from .api.crypto import router as crypto_router
from .api.orders import router as orders_router
from .api.payments import router as payments_router
from .api.webhooks import router as webhooks_router

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def build_gateway(settings: Settings) -> PaymentGateway:
    """Pick the payment gateway named by PAYMENT_GATEWAY."""
    if settings.payment_gateway == "stripe":
        return StripeGateway.from_settings(settings)
    return MockPaymentGateway(
        webhook_secret=settings.stripe_webhook_secret,
        webhook_tolerance_seconds=settings.webhook_tolerance_seconds
    )


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[PaymentGateway] = None,
    price_feed: Optional[PriceFeed] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration (loaded from the environment if omitted)
        gateway: Payment gateway override (tests, demos)
        price_feed: Price feed override (tests, demos)
    """
    settings = settings or Settings()
    validate_config(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Startup: build every component once and publish it on app.state.
        Shutdown: close the price feed, gateway and database engine.
        """
        logger.info("Starting onramp backend server...")
        logger.info(f"Environment: {settings.environment}, demo mode: {settings.demo_mode}")

        engine, session_factory = create_engine_and_sessionmaker(settings.database_path)
        try:
            await initialize_database(engine)
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

        feed = price_feed or CoinGeckoPriceFeed.from_settings(settings)
        app_gateway = gateway or build_gateway(settings)

        oracle = PriceOracle(feed, settings.supported_symbols, cache_ttl_seconds=settings.price_cache_ttl)
        pricing = PricingEngine.from_settings(oracle, settings)
        ledger = OrderLedger(session_factory, pricing, app_gateway)

        app.state.settings = settings
        app.state.oracle = oracle
        app.state.pricing = pricing
        app.state.gateway = app_gateway
        app.state.ledger = ledger
        app.state.reconciler = WebhookReconciler(ledger)

        logger.info(f"Supported cryptocurrencies: {[a.symbol for a in pricing.supported_assets()]}")
        logger.info(f"Payment gateway: {app_gateway.name}")
        logger.info("Server startup complete")

        yield

        logger.info("Shutting down onramp backend server...")
        aclose = getattr(feed, "aclose", None)
        if aclose is not None:
            await aclose()
        await app_gateway.aclose()
        await engine.dispose()

    app = FastAPI(
        title="Fiat-to-Crypto Onramp API",
        description="Crypto onramp with card payments and webhook reconciliation",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(OnrampError)
    async def onramp_error_handler(request: Request, exc: OnrampError):
        """
        Render onramp errors with their own status code.

        Client faults log at WARNING, server faults at ERROR.
        """
        if exc.status_code >= 500:
            logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}", extra={"details": exc.details})
        else:
            logger.warning(f"{exc.error_code} on {request.url.path}: {exc.message}")

        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def general_error_handler(request: Request, exc: Exception):
        """
        Catch-all handler for unexpected errors.

        Logs full exception for debugging but returns generic message to client.
        """
        logger.error(f"Unexpected error: {str(exc)}", exc_info=True)

        return JSONResponse(
            status_code=500,
            content={
                "error_code": "internal_error",
                "message": "An unexpected error occurred",
                "details": {"error_type": type(exc).__name__} if settings.demo_mode else {}
            }
        )

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint for monitoring and load balancers."""
        return {
            "status": "healthy",
            "version": VERSION,
            "environment": settings.environment,
            "demo_mode": settings.demo_mode,
            "payment_gateway": settings.payment_gateway,
        }

    @app.get("/")
    async def index():
        """Service description and endpoint index."""
        return {
            "name": "Fiat-to-Crypto Onramp API",
            "version": VERSION,
            "endpoints": {
                "crypto": {
                    "prices": "GET /api/crypto/prices",
                    "price_by_symbol": "GET /api/crypto/prices/{symbol}",
                    "supported": "GET /api/crypto/supported",
                },
                "orders": {
                    "quote": "POST /api/orders/quote",
                    "create": "POST /api/orders",
                    "get_by_id": "GET /api/orders/{order_id}",
                    "list": "GET /api/orders (requires X-API-Key)",
                },
                "payments": {
                    "config": "GET /api/payments/config",
                },
                "webhooks": {
                    "stripe": "POST /api/webhooks/stripe",
                },
            },
        }

    app.include_router(crypto_router, prefix="/api/crypto", tags=["Crypto"])
    app.include_router(orders_router, prefix="/api/orders", tags=["Orders"])
    app.include_router(payments_router, prefix="/api", tags=["Payments"])
    app.include_router(webhooks_router, prefix="/api/webhooks", tags=["Webhooks"])

    return app


# Configure logging
_settings = Settings()
logging.basicConfig(
    level=getattr(logging, _settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

app = create_app(_settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "onramp.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.demo_mode,
        log_level=_settings.log_level.lower()
    )
