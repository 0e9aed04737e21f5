"""Payment confirmation: the payment provider's callback.

Verification fails closed: a gateway that raises is treated as a gateway
that said no, and the order is cancelled with a failed payment.
"""

import structlog
from protean import handle
from protean.fields import String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.history.order_event import EventType, record
from orders.order.order import Order, OrderStatus, Role
from orders.payment import get_gateway
from orders.shared.clock import utcnow

logger = structlog.get_logger(__name__)


@orders.command(part_of="Order")
class ConfirmPayment:
    order_number = String(required=True, max_length=20)
    provider = String(max_length=50)
    provider_payment_id = String(max_length=255)
    raw_payload = Text()


def _verify(command) -> bool:
    try:
        return bool(get_gateway().verify_payment(command.raw_payload, command.provider_payment_id))
    except Exception as exc:
        logger.error(
            "Payment verification raised, treating as failed",
            order_number=command.order_number,
            provider=command.provider,
            error=str(exc),
        )
        return False


@orders.command_handler(part_of=Order)
class ConfirmPaymentHandler:
    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_by_number(command.order_number)
        # Both outcomes leave PENDING_PAYMENT; check before calling the provider
        order.assert_transition(OrderStatus.UNDER_REVIEW, Role.SYSTEM)

        verified = _verify(command)
        now = utcnow()
        if verified:
            order.confirm_payment(now=now)
            record(
                order,
                EventType.PAYMENT_CONFIRMED,
                "Payment confirmed. Order moved to admin review.",
                from_status=OrderStatus.PENDING_PAYMENT.value,
                to_status=order.status,
                created_at=now,
            )
        else:
            order.fail_payment(now=now)
            record(
                order,
                EventType.PAYMENT_FAILED,
                "Payment verification failed. Order cancelled.",
                from_status=OrderStatus.PENDING_PAYMENT.value,
                to_status=order.status,
                created_at=now,
            )
        repo.add(order)

        logger.info(
            "Payment confirmation processed",
            order_number=order.order_number,
            provider=command.provider,
            verified=verified,
            status=order.status,
        )
        return verified
