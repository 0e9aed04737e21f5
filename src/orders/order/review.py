"""Administrator review: approve (assigning an operator) or reject."""

from datetime import date

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Date, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from orders.directory import get_directory
from orders.domain import orders
from orders.history.order_event import EventType, record
from orders.order.order import Order, OrderStatus, Role
from orders.shared.clock import utcnow

logger = structlog.get_logger(__name__)


@orders.command(part_of="Order")
class ApproveOrder:
    order_number = String(required=True, max_length=20)
    admin_id = Identifier(required=True)
    operator_id = Identifier(required=True)
    deadline = Date(required=True)
    admin_notes = Text()
    expected_revision = Integer()


@orders.command(part_of="Order")
class RejectOrder:
    order_number = String(required=True, max_length=20)
    admin_id = Identifier(required=True)
    reason = Text()
    expected_revision = Integer()


def _find_operator(operator_id):
    operator = get_directory().find_user(str(operator_id))
    if operator is None:
        raise ObjectNotFoundError(f"Operator {operator_id} does not exist")
    if not operator.has_role(Role.OPERATOR.value):
        raise ValidationError({"operator_id": [f"User {operator_id} is not an operator"]})
    return operator


@orders.command_handler(part_of=Order)
class ReviewOrderHandler:
    @handle(ApproveOrder)
    def approve_order(self, command):
        now = utcnow()
        deadline = command.deadline
        if isinstance(deadline, date) and deadline <= now.date():
            raise ValidationError({"deadline": ["Deadline must be in the future"]})

        repo = current_domain.repository_for(Order)
        order = repo.get_by_number(command.order_number)
        order.check_revision(command.expected_revision)
        order.assert_transition(OrderStatus.APPROVED, Role.ADMIN)
        operator = _find_operator(command.operator_id)

        order.approve(
            admin_id=command.admin_id,
            operator_id=command.operator_id,
            deadline=deadline,
            today=now.date(),
            now=now,
        )
        message = f"Order approved and assigned to operator {operator.name}. Deadline: {deadline.isoformat()}"
        if command.admin_notes:
            message += f". Notes: {command.admin_notes}"
        record(
            order,
            EventType.ORDER_APPROVED,
            message,
            performed_by=command.admin_id,
            from_status=OrderStatus.UNDER_REVIEW.value,
            to_status=order.status,
            created_at=now,
        )
        repo.add(order)

        logger.info(
            "Order approved",
            order_number=order.order_number,
            admin_id=str(command.admin_id),
            operator_id=str(command.operator_id),
            deadline=deadline.isoformat(),
        )

    @handle(RejectOrder)
    def reject_order(self, command):
        reason = (command.reason or "").strip()
        if not reason:
            raise ValidationError({"reason": ["Rejection reason is required"]})

        repo = current_domain.repository_for(Order)
        order = repo.get_by_number(command.order_number)
        order.check_revision(command.expected_revision)

        now = utcnow()
        order.reject(admin_id=command.admin_id, reason=reason, now=now)
        record(
            order,
            EventType.ORDER_REJECTED,
            f"Order rejected. Reason: {reason}",
            performed_by=command.admin_id,
            from_status=OrderStatus.UNDER_REVIEW.value,
            to_status=order.status,
            created_at=now,
        )
        repo.add(order)

        logger.info("Order rejected", order_number=order.order_number, admin_id=str(command.admin_id))
