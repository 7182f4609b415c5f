"""
Webhook Reconciler

Maps authenticated payment events onto order ledger transitions. Handlers
never raise: the webhook endpoint acknowledges every authenticated delivery
so the gateway does not retry on application-level errors.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import InvalidTransitionError, OnrampError, OrderNotFoundError
from ..models.payments import (
    CHARGE_REFUNDED,
    PAYMENT_CANCELED,
    PAYMENT_FAILED,
    PAYMENT_SUCCEEDED,
    GatewayEvent,
)
from .order_ledger import OrderLedger

logger = logging.getLogger(__name__)

# Outcome labels
COMPLETED = "completed"
FAILED = "failed"
REFUND_RECORDED = "refund_recorded"
IGNORED = "ignored"
ORDER_NOT_FOUND = "order_not_found"
INVALID_TRANSITION = "invalid_transition"
ERROR = "error"


class WebhookReconciler:
    """Applies gateway events to the order ledger."""

    def __init__(self, ledger: OrderLedger):
        self.ledger = ledger

    async def handle(self, event: GatewayEvent) -> str:
        """
        Reconcile one event.

        Returns:
            Outcome label describing what happened
        """
        intent_id = event.payment_intent_id

        try:
            if event.type == PAYMENT_SUCCEEDED:
                await self.ledger.process_payment_success(intent_id)
                logger.info(f"Payment succeeded: payment_intent={intent_id}")
                return COMPLETED

            elif event.type == PAYMENT_FAILED:
                await self.ledger.process_payment_failure(intent_id)
                logger.warning(f"Payment failed: payment_intent={intent_id}")
                return FAILED

            elif event.type == PAYMENT_CANCELED:
                await self.ledger.process_payment_failure(intent_id)
                logger.info(f"Payment canceled: payment_intent={intent_id}")
                return FAILED

            elif event.type == CHARGE_REFUNDED:
                logger.info(
                    f"Refund processed: charge={event.object_id}, payment_intent={intent_id}, "
                    f"amount_refunded={event.amount_refunded_minor}"
                )
                return REFUND_RECORDED

            logger.debug(f"Unhandled webhook event type: {event.type}")
            return IGNORED

        except OrderNotFoundError as e:
            logger.warning(f"Webhook {event.id} ({event.type}): {e.message}")
            return ORDER_NOT_FOUND
        except InvalidTransitionError as e:
            logger.error(
                f"Webhook {event.id} ({event.type}) violates order state machine: {e.message}",
                extra={"details": e.details}
            )
            return INVALID_TRANSITION
        except OnrampError as e:
            logger.error(f"Error processing webhook {event.id} ({event.type}): {e.message}", exc_info=True)
            return ERROR
        except SQLAlchemyError:
            logger.error(f"Database error processing webhook {event.id} ({event.type})", exc_info=True)
            return ERROR
        except Exception:
            logger.error(f"Unexpected error processing webhook {event.id} ({event.type})", exc_info=True)
            return ERROR
