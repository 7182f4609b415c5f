"""
Order Ledger

Owns order records and their status transitions.

- Orders are created only after a fresh quote and a successful gateway
  intent, in a single INSERT covering both the id and the intent id
- Status changes go through the state machine in models.orders and are
  serialized per order
- Payment webhooks are applied idempotently
"""
import asyncio
import logging
import uuid
import weakref
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.models import OrderModel
from ..exceptions import InvalidTransitionError, OrderNotFoundError
from ..gateways.base import PaymentGateway
from ..models.orders import Order, OrderRequest, OrderStatus, can_transition
from .pricing_engine import PricingEngine
from .wallet_validation import validate_wallet_address

logger = logging.getLogger(__name__)


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def _to_order(row: OrderModel) -> Order:
    """Convert ORM row to Pydantic model."""
    return Order(
        id=row.id,
        crypto_symbol=row.crypto_symbol,
        crypto_amount=Decimal(row.crypto_amount),
        fiat_amount=Decimal(row.fiat_amount),
        price_at_purchase=Decimal(row.price_at_purchase),
        platform_fee=Decimal(row.platform_fee),
        total_charged=Decimal(row.total_charged),
        customer_email=row.customer_email,
        wallet_address=row.wallet_address,
        status=OrderStatus(row.status),
        payment_intent_id=row.payment_intent_id,
        payment_method=row.payment_method,
        created_at=_to_utc(row.created_at),
        completed_at=_to_utc(row.completed_at),
    )


class OrderLedger:
    """
    Order store and state machine.

    Args:
        session_factory: Async SQLAlchemy session factory
        pricing: Pricing engine used to re-quote every order
        gateway: Payment gateway that opens intents
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        pricing: PricingEngine,
        gateway: PaymentGateway
    ):
        self._session_factory = session_factory
        self.pricing = pricing
        self.gateway = gateway
        # Entries vanish once no coroutine holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, order_id: str) -> asyncio.Lock:
        lock = self._locks.get(order_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[order_id] = lock
        return lock

    # ========================================================================
    # Creation
    # ========================================================================

    async def create_order(self, request: OrderRequest) -> Tuple[Order, str]:
        """
        Create an order and open its payment intent.

        The quote is always recomputed; client-side quotes are never trusted.

        Returns:
            (order, client_secret) - the secret goes to the caller only

        Raises:
            ValidationError subclasses: amount, symbol or wallet rejected
            PriceFetchError, UpstreamTimeoutError: price unavailable
            GatewayError, UpstreamTimeoutError: intent not created; nothing persisted
        """
        quote = await self.pricing.quote(request.crypto_symbol, request.amount_usd)
        validate_wallet_address(quote.crypto_symbol, request.wallet_address)

        order_id = f"ord_{uuid.uuid4().hex}"
        created_at = datetime.now(timezone.utc)

        intent = await self.gateway.create_intent(
            quote.total_charge,
            "usd",
            {
                "orderId": order_id,
                "cryptoSymbol": quote.crypto_symbol,
                "cryptoAmount": str(quote.crypto_amount),
                "walletAddress": request.wallet_address,
            }
        )

        order = Order(
            id=order_id,
            crypto_symbol=quote.crypto_symbol,
            crypto_amount=quote.crypto_amount,
            fiat_amount=quote.amount_usd,
            price_at_purchase=quote.current_price,
            platform_fee=quote.platform_fee,
            total_charged=quote.total_charge,
            customer_email=str(request.customer_email),
            wallet_address=request.wallet_address,
            status=OrderStatus.PENDING,
            payment_intent_id=intent.intent_id,
            payment_method=request.payment_method,
            created_at=created_at,
        )

        try:
            async with self._session_factory() as db:
                db.add(OrderModel(
                    id=order.id,
                    crypto_symbol=order.crypto_symbol,
                    crypto_amount=str(order.crypto_amount),
                    fiat_amount=str(order.fiat_amount),
                    price_at_purchase=str(order.price_at_purchase),
                    platform_fee=str(order.platform_fee),
                    total_charged=str(order.total_charged),
                    customer_email=order.customer_email,
                    wallet_address=order.wallet_address,
                    status=order.status.value,
                    payment_intent_id=order.payment_intent_id,
                    payment_method=order.payment_method,
                    created_at=_to_naive_utc(created_at),
                ))
                await db.commit()
        except SQLAlchemyError:
            logger.error(
                f"Failed to persist order {order_id}; payment intent {intent.intent_id} left unattached",
                exc_info=True
            )
            raise

        logger.info(
            f"Order created: {order_id}, symbol={order.crypto_symbol}, "
            f"amount_usd={order.fiat_amount}, total_charge={order.total_charged}"
        )

        return order, intent.client_secret or ""

    # ========================================================================
    # Retrieval
    # ========================================================================

    async def _fetch(self, db: AsyncSession, column, value) -> Optional[OrderModel]:
        result = await db.execute(select(OrderModel).where(column == value))
        return result.scalar_one_or_none()

    async def get_order(self, order_id: str) -> Optional[Order]:
        async with self._session_factory() as db:
            row = await self._fetch(db, OrderModel.id, order_id)
            return _to_order(row) if row else None

    async def get_order_by_intent(self, intent_id: str) -> Optional[Order]:
        async with self._session_factory() as db:
            row = await self._fetch(db, OrderModel.payment_intent_id, intent_id)
            return _to_order(row) if row else None

    async def get_orders_by_email(self, email: str) -> List[Order]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(OrderModel)
                .where(OrderModel.customer_email == email)
                .order_by(OrderModel.created_at.desc())
            )
            return [_to_order(row) for row in result.scalars().all()]

    async def get_all_orders(self) -> List[Order]:
        async with self._session_factory() as db:
            result = await db.execute(select(OrderModel).order_by(OrderModel.created_at.desc()))
            return [_to_order(row) for row in result.scalars().all()]

    # ========================================================================
    # Status transitions
    # ========================================================================

    async def _apply(
        self,
        order_id: str,
        status: OrderStatus,
        completed_at: Optional[datetime] = None
    ) -> Order:
        """Validate and write one transition. Caller holds the order's lock."""
        async with self._session_factory() as db:
            row = await self._fetch(db, OrderModel.id, order_id)
            if row is None:
                raise OrderNotFoundError(f"Order {order_id} not found", details={"order_id": order_id})

            current = OrderStatus(row.status)
            if not can_transition(current, status):
                raise InvalidTransitionError(
                    f"Order {order_id} cannot move from {current.value} to {status.value}",
                    details={"order_id": order_id, "from": current.value, "to": status.value}
                )

            row.status = status.value
            if completed_at is not None and row.completed_at is None:
                row.completed_at = _to_naive_utc(completed_at)
            await db.commit()

            if current != status:
                logger.info(f"Order status updated: {order_id}, {current.value} -> {status.value}")
            return _to_order(row)

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        completed_at: Optional[datetime] = None
    ) -> Order:
        """
        Move an order to `status`.

        Writing the current status again is allowed and leaves completed_at
        untouched once set.

        Raises:
            OrderNotFoundError: unknown id
            InvalidTransitionError: transition not allowed
        """
        status = OrderStatus(status)
        async with self._lock_for(order_id):
            return await self._apply(order_id, status, completed_at)

    async def _require_by_intent(self, intent_id: str) -> Order:
        order = await self.get_order_by_intent(intent_id)
        if order is None:
            raise OrderNotFoundError(
                f"Order not found for payment intent {intent_id}",
                details={"payment_intent_id": intent_id}
            )
        return order

    async def process_payment_success(self, intent_id: str) -> Order:
        """
        Settle a paid order: pending -> processing -> completed.

        There is no on-chain settlement step yet, so completion is immediate.
        Redelivery for an already completed order returns it unchanged.
        """
        order = await self._require_by_intent(intent_id)

        async with self._lock_for(order.id):
            current = await self.get_order(order.id)
            if current.status == OrderStatus.COMPLETED:
                logger.info(f"Duplicate payment success for order {order.id}, already completed")
                return current

            if current.status != OrderStatus.PROCESSING:
                await self._apply(order.id, OrderStatus.PROCESSING)

            completed = await self._apply(order.id, OrderStatus.COMPLETED, datetime.now(timezone.utc))

        logger.info(f"Payment processed successfully: order={order.id}, payment_intent={intent_id}")
        return completed

    async def process_payment_failure(self, intent_id: str) -> Order:
        """Mark the order for `intent_id` failed."""
        order = await self._require_by_intent(intent_id)
        failed = await self.update_status(order.id, OrderStatus.FAILED)

        logger.warning(f"Payment failed: order={order.id}, payment_intent={intent_id}")
        return failed
