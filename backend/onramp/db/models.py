"""
SQLAlchemy ORM Models for the Onramp

Orders are keyed by id with a unique secondary key on the payment intent,
so webhook reconciliation resolves an intent to exactly one order.
"""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, CheckConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class OrderModel(Base):
    """
    ORM model for orders table.

    Money and crypto quantities are stored as exact decimal strings.
    Datetimes are naive UTC.
    """
    __tablename__ = "orders"

    id = Column(String, primary_key=True)
    crypto_symbol = Column(String, nullable=False)
    crypto_amount = Column(String, nullable=False)
    fiat_amount = Column(String, nullable=False)
    price_at_purchase = Column(String, nullable=False)
    platform_fee = Column(String, nullable=False)
    total_charged = Column(String, nullable=False)
    customer_email = Column(String, nullable=False, index=True)
    wallet_address = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    payment_intent_id = Column(String, nullable=False, unique=True, index=True)
    payment_method = Column(String)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed', 'refunded')",
            name="order_status_check"
        ),
    )
