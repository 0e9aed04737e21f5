"""Order cancellation: by the customer, an administrator, or the assigned operator.

The status change and its ``ORDER_CANCELLED`` entry are the primary effect.
Refund initiation and notification recording follow in the same unit of
work but are best-effort: a provider failure is written to the trail and
queued as a follow-up, and never undoes the cancellation.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.follow_up.follow_up import FollowUp
from orders.history.order_event import EventType, OrderEvent, record
from orders.order.order import (
    DEFAULT_CANCELLATION_REASON,
    MAX_REASON_LENGTH,
    Order,
    OrderStatus,
    PaymentStatus,
    Role,
)
from orders.payment import get_gateway
from orders.shared.clock import utcnow

logger = structlog.get_logger(__name__)

_CANCELLED_BY = {
    Role.CUSTOMER: "user",
    Role.ADMIN: "administrator",
    Role.OPERATOR: "operator",
}

_ADMIN_WATCHED = {OrderStatus.UNDER_REVIEW, OrderStatus.APPROVED}


@orders.command(part_of="Order")
class CancelOrder:
    order_number = String(required=True, max_length=20)
    customer_id = Identifier(required=True)
    reason = Text()
    expected_revision = Integer()


@orders.command(part_of="Order")
class CancelOrderAsAdmin:
    order_number = String(required=True, max_length=20)
    admin_id = Identifier(required=True)
    reason = Text()
    expected_revision = Integer()


def normalize_reason(reason) -> str:
    """Trim a cancellation reason, defaulting blanks and capping the length."""
    cleaned = (reason or "").strip()
    if not cleaned:
        return DEFAULT_CANCELLATION_REASON
    if len(cleaned) > MAX_REASON_LENGTH:
        raise ValidationError({"reason": [f"Reason cannot exceed {MAX_REASON_LENGTH} characters"]})
    return cleaned


def _initiate_refund(order, performed_by, reason, now):
    record(
        order,
        EventType.REFUND_INITIATED,
        "Refund process initiated due to order cancellation",
        performed_by=performed_by,
        created_at=now,
    )
    try:
        reference = get_gateway().initiate_refund(order.order_number, order.total, reason)
    except Exception as exc:
        logger.error(
            "Refund initiation failed",
            order_number=order.order_number,
            amount=order.order_total,
            error=str(exc),
        )
        record(
            order,
            EventType.REFUND_INITIATION_FAILED,
            f"Failed to initiate refund: {exc}",
            performed_by=performed_by,
            created_at=now,
        )
        follow_up = FollowUp.refund(
            order_id=order.id,
            order_number=order.order_number,
            amount=order.order_total,
            reason=reason,
            performed_by_user_id=performed_by,
            error=str(exc),
            now=now,
        )
        current_domain.repository_for(FollowUp).add(follow_up)
        return None

    logger.info("Refund initiated", order_number=order.order_number, refund_reference=reference)
    return reference


def _record_notifications(order, previous, assigned_operator_id, now):
    try:
        if previous in _ADMIN_WATCHED:
            record(order, EventType.ADMIN_NOTIFIED, "Admin notified about order cancellation", created_at=now)
        if assigned_operator_id:
            record(
                order,
                EventType.OPERATOR_NOTIFIED,
                "Assigned operator notified about order cancellation",
                created_at=now,
            )
    except Exception as exc:
        logger.warning(
            "Failed to record cancellation notifications",
            order_number=order.order_number,
            error=str(exc),
        )


def cancel(order, actor_id, role: Role, reason: str, now=None) -> OrderStatus:
    """Cancel ``order`` and run the refund and notification side effects.

    The caller persists the order afterwards. Returns the status the order
    had before it was cancelled.
    """
    now = now or utcnow()
    production_started_at = None
    if order.current_status is OrderStatus.IN_PRODUCTION:
        production_started_at = current_domain.repository_for(OrderEvent).production_started_at(order.id)
    assigned_operator_id = order.assigned_operator_id

    previous = order.cancel(
        actor_id,
        role,
        reason,
        production_started_at=production_started_at,
        now=now,
    )
    record(
        order,
        EventType.ORDER_CANCELLED,
        f"Order cancelled by {_CANCELLED_BY[role]}. Original status: {previous.value}. Reason: {reason}",
        performed_by=actor_id,
        from_status=previous.value,
        to_status=order.status,
        created_at=now,
    )

    if order.payment_status == PaymentStatus.REFUND_PENDING.value:
        _initiate_refund(order, actor_id, reason, now)
    _record_notifications(order, previous, assigned_operator_id, now)

    logger.info(
        "Order cancelled",
        order_number=order.order_number,
        previous_status=previous.value,
        cancelled_by=str(actor_id),
        role=role.value,
        payment_status=order.payment_status,
    )
    return previous


@orders.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        reason = normalize_reason(command.reason)
        repo = current_domain.repository_for(Order)
        order = repo.get_by_number(command.order_number)
        order.check_revision(command.expected_revision)

        cancel(order, command.customer_id, Role.CUSTOMER, reason)
        repo.add(order)

    @handle(CancelOrderAsAdmin)
    def cancel_order_as_admin(self, command):
        reason = normalize_reason(command.reason)
        repo = current_domain.repository_for(Order)
        order = repo.get_by_number(command.order_number)
        order.check_revision(command.expected_revision)

        cancel(order, command.admin_id, Role.ADMIN, reason)
        repo.add(order)
