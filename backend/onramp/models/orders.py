"""
Pydantic Order Models

Order is the audited record of one fiat-to-crypto purchase. Its status only
moves forward through the transitions in ALLOWED_TRANSITIONS.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


# Nothing moves back to pending; completed and failed are terminal.
# REFUNDED is a valid value but nothing transitions into it yet.
ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.FAILED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED, OrderStatus.FAILED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.FAILED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

PaymentMethod = Literal["card", "bank_transfer"]


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """True if `current -> new` is allowed. Same-status writes are allowed."""
    return current == new or new in ALLOWED_TRANSITIONS[current]


class QuoteRequest(BaseModel):
    """Request body for POST /api/orders/quote."""
    crypto_symbol: str = Field(min_length=1, max_length=10, alias="cryptoSymbol")
    amount_usd: Decimal = Field(gt=0, alias="amountUSD")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("crypto_symbol")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        return v.strip().upper()


class OrderRequest(QuoteRequest):
    """Request body for POST /api/orders."""
    customer_email: EmailStr = Field(alias="customerEmail")
    wallet_address: str = Field(min_length=10, alias="walletAddress")
    payment_method: PaymentMethod = Field(default="card", alias="paymentMethod")

    @field_validator("wallet_address")
    @classmethod
    def strip_address(cls, v: str) -> str:
        return v.strip()


class Order(BaseModel):
    """
    Persisted order record.

    Invariants:
    - total_charged == fiat_amount + platform_fee, fixed at creation
    - payment_intent_id is set at creation and never changes
    """
    id: str = Field(pattern="^ord_")
    crypto_symbol: str
    crypto_amount: Decimal
    fiat_amount: Decimal
    price_at_purchase: Decimal
    platform_fee: Decimal
    total_charged: Decimal
    customer_email: str
    wallet_address: str
    status: OrderStatus = OrderStatus.PENDING
    payment_intent_id: str
    payment_method: Optional[PaymentMethod] = "card"
    created_at: datetime
    completed_at: Optional[datetime] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "ord_5f0c6c1d9b8e4a6f8a3b2c1d0e9f8a7b",
                "crypto_symbol": "BTC",
                "crypto_amount": "0.002",
                "fiat_amount": "100",
                "price_at_purchase": "50000",
                "platform_fee": "2.5",
                "total_charged": "102.5",
                "customer_email": "jane@example.com",
                "wallet_address": "bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq",
                "status": "pending",
                "payment_intent_id": "pi_3Nabc123",
                "payment_method": "card",
                "created_at": "2025-10-17T14:30:00Z",
                "completed_at": None
            }
        }
    }

    @model_validator(mode="after")
    def validate_total(self):
        """Ensure total charged matches amount plus fee."""
        expected = self.fiat_amount + self.platform_fee
        if self.total_charged != expected:
            raise ValueError(f"Total charged {self.total_charged} != amount + fee ({expected})")
        return self
