"""
HTTP-level tests against the FastAPI app with the mock gateway and a fake
price feed.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from onramp.exceptions import PriceFetchError, UpstreamTimeoutError
from onramp.main import create_app
from onramp.models.payments import PAYMENT_FAILED, PAYMENT_SUCCEEDED

from .conftest import API_KEY, BTC_ADDRESS, ETH_ADDRESS


@pytest.fixture
def client(settings, gateway, feed):
    app = create_app(settings, gateway=gateway, price_feed=feed)
    with TestClient(app) as test_client:
        yield test_client


def order_body(**overrides):
    body = {
        "cryptoSymbol": "BTC",
        "amountUSD": 100,
        "customerEmail": "jane@example.com",
        "walletAddress": BTC_ADDRESS,
    }
    body.update(overrides)
    return body


def create_order(client, **overrides):
    response = client.post("/api/orders", json=order_body(**overrides))
    assert response.status_code == 200, response.text
    return response.json()


class TestServiceEndpoints:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["payment_gateway"] == "mock"

    def test_index(self, client):
        assert "orders" in client.get("/").json()["endpoints"]

    def test_payment_config(self, client):
        response = client.get("/api/payments/config")
        assert response.json() == {"gateway": "mock", "publishable_key": "pk_test_mock"}


class TestCryptoEndpoints:
    def test_all_prices(self, client):
        body = client.get("/api/crypto/prices").json()

        assert body["count"] == 6
        assert [p["symbol"] for p in body["prices"]] == ["BTC", "ETH", "USDT", "USDC", "SOL", "BNB"]

    def test_single_price_case_insensitive(self, client):
        response = client.get("/api/crypto/prices/eth")

        assert response.status_code == 200
        assert response.json()["symbol"] == "ETH"
        assert Decimal(response.json()["price_usd"]) == Decimal("2500")

    def test_unsupported_symbol(self, client):
        response = client.get("/api/crypto/prices/DOGE")

        assert response.status_code == 400
        assert response.json()["error_code"] == "unsupported_asset"

    def test_supported_assets(self, client):
        body = client.get("/api/crypto/supported").json()

        assert body["count"] == 6
        assert body["assets"][0]["symbol"] == "BTC"
        assert body["assets"][0]["name"] == "Bitcoin"

    def test_price_feed_down(self, client, feed):
        feed.error = PriceFetchError("feed down")
        response = client.get("/api/crypto/prices/BTC")

        assert response.status_code == 502
        assert response.json()["error_code"] == "price_fetch_failed"


class TestQuotes:
    def test_quote(self, client):
        response = client.post("/api/orders/quote", json={"cryptoSymbol": "btc", "amountUSD": 100})

        assert response.status_code == 200
        quote = response.json()
        assert quote["crypto_symbol"] == "BTC"
        assert Decimal(quote["crypto_amount"]) == Decimal("0.002")
        assert Decimal(quote["platform_fee"]) == Decimal("2.5")
        assert Decimal(quote["total_charge"]) == Decimal("102.5")
        assert quote["expires_at"]

    def test_quote_accepts_field_names(self, client):
        response = client.post("/api/orders/quote", json={"crypto_symbol": "SOL", "amount_usd": "150"})
        assert Decimal(response.json()["crypto_amount"]) == Decimal("1")

    def test_quote_below_minimum(self, client, feed):
        response = client.post("/api/orders/quote", json={"cryptoSymbol": "BTC", "amountUSD": 5})

        assert response.status_code == 400
        assert response.json()["error_code"] == "amount_out_of_range"
        assert feed.total_calls == 0

    def test_quote_upstream_timeout(self, client, feed):
        feed.error = UpstreamTimeoutError("slow feed")
        response = client.post("/api/orders/quote", json={"cryptoSymbol": "BTC", "amountUSD": 100})

        assert response.status_code == 504
        assert response.json()["error_code"] == "upstream_timeout"

    def test_malformed_body(self, client):
        response = client.post("/api/orders/quote", json={"cryptoSymbol": "BTC", "amountUSD": -1})
        assert response.status_code == 422


class TestOrders:
    def test_create_order(self, client, gateway):
        body = create_order(client)

        order = body["order"]
        assert order["id"].startswith("ord_")
        assert order["status"] == "pending"
        assert Decimal(order["total_charged"]) == Decimal("102.5")
        assert body["client_secret"] == gateway.intents[order["payment_intent_id"]]["client_secret"]

    def test_get_order(self, client):
        order = create_order(client)["order"]

        response = client.get(f"/api/orders/{order['id']}")

        assert response.status_code == 200
        assert response.json()["id"] == order["id"]
        assert "client_secret" not in response.json()

    def test_get_unknown_order(self, client):
        response = client.get("/api/orders/ord_missing")

        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == "order_not_found"

    def test_invalid_wallet(self, client, gateway):
        response = client.post("/api/orders", json=order_body(cryptoSymbol="ETH", walletAddress=BTC_ADDRESS))

        assert response.status_code == 400
        assert response.json()["error_code"] == "invalid_wallet_address"
        assert gateway.calls == {}

    def test_invalid_email(self, client):
        response = client.post("/api/orders", json=order_body(customerEmail="not-an-email"))
        assert response.status_code == 422

    def test_above_maximum(self, client, gateway):
        response = client.post("/api/orders", json=order_body(amountUSD=20000))

        assert response.status_code == 400
        assert response.json()["error_code"] == "amount_out_of_range"
        assert gateway.calls == {}


class TestAdminListing:
    def test_requires_api_key(self, client):
        response = client.get("/api/orders")

        assert response.status_code == 401
        assert response.json()["detail"]["error_code"] == "api_key_required"

    def test_rejects_wrong_api_key(self, client):
        response = client.get("/api/orders", headers={"X-API-Key": "wrong"})

        assert response.status_code == 403
        assert response.json()["detail"]["error_code"] == "invalid_api_key"

    def test_lists_orders(self, client):
        create_order(client)
        create_order(client, cryptoSymbol="ETH", walletAddress=ETH_ADDRESS, customerEmail="sam@example.com")

        all_orders = client.get("/api/orders", headers={"X-API-Key": API_KEY}).json()
        filtered = client.get(
            "/api/orders",
            params={"email": "sam@example.com"},
            headers={"X-API-Key": API_KEY}
        ).json()

        assert all_orders["count"] == 2
        assert filtered["count"] == 1
        assert filtered["orders"][0]["crypto_symbol"] == "ETH"


class TestWebhooks:
    def test_payment_success_completes_order(self, client, gateway):
        order = create_order(client)["order"]
        payload, header = gateway.build_webhook(PAYMENT_SUCCEEDED, order["payment_intent_id"])

        response = client.post(
            "/api/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": header, "Content-Type": "application/json"}
        )

        assert response.status_code == 200
        assert response.json() == {"received": True}

        stored = client.get(f"/api/orders/{order['id']}").json()
        assert stored["status"] == "completed"
        assert stored["completed_at"] is not None

    def test_payment_failure_fails_order(self, client, gateway):
        order = create_order(client)["order"]
        payload, header = gateway.build_webhook(PAYMENT_FAILED, order["payment_intent_id"])

        client.post("/api/webhooks/stripe", content=payload, headers={"Stripe-Signature": header})

        assert client.get(f"/api/orders/{order['id']}").json()["status"] == "failed"

    def test_invalid_signature_changes_nothing(self, client, gateway):
        order = create_order(client)["order"]
        payload, header = gateway.build_webhook(PAYMENT_SUCCEEDED, order["payment_intent_id"])
        forged = header.split(",v1=")[0] + ",v1=" + "0" * 64

        response = client.post("/api/webhooks/stripe", content=payload, headers={"Stripe-Signature": forged})

        assert response.status_code == 400
        assert response.json()["error_code"] == "invalid_signature"
        assert client.get(f"/api/orders/{order['id']}").json()["status"] == "pending"

    def test_missing_signature_header(self, client):
        response = client.post("/api/webhooks/stripe", content=b"{}")

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "missing_signature"

    def test_unknown_intent_still_acknowledged(self, client, gateway):
        payload, header = gateway.build_webhook(PAYMENT_SUCCEEDED, "pi_unknown")

        response = client.post("/api/webhooks/stripe", content=payload, headers={"Stripe-Signature": header})

        assert response.status_code == 200
        assert response.json() == {"received": True}

    def test_unexpected_reconciliation_error_still_acknowledged(self, client, gateway, monkeypatch):
        order = create_order(client)["order"]

        async def broken(intent_id):
            raise RuntimeError("corrupt order row")

        monkeypatch.setattr(client.app.state.ledger, "process_payment_success", broken)
        payload, header = gateway.build_webhook(PAYMENT_SUCCEEDED, order["payment_intent_id"])

        response = client.post("/api/webhooks/stripe", content=payload, headers={"Stripe-Signature": header})

        assert response.status_code == 200
        assert response.json() == {"received": True}
