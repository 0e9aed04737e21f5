"""Operator actions: production, delivery, and cancellation through the status endpoint.

Every operator action except delivery confirmation requires the acting
operator to be the one the order was assigned to at approval.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.history.order_event import EventType, record
from orders.order.cancellation import cancel, normalize_reason
from orders.order.order import OPERATOR_TARGETS, Order, OrderStatus, Role
from orders.shared.clock import utcnow

logger = structlog.get_logger(__name__)

_EVENT_FOR_TARGET = {
    OrderStatus.IN_PRODUCTION: EventType.STATUS_UPDATED_TO_IN_PRODUCTION,
    OrderStatus.OUT_FOR_DELIVERY: EventType.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED: EventType.ORDER_DELIVERED,
}


@orders.command(part_of="Order")
class AdvanceOrderStatus:
    order_number = String(required=True, max_length=20)
    operator_id = Identifier(required=True)
    new_status = String(required=True, max_length=30)
    notes = Text()
    tracking_number = String(max_length=100)
    expected_revision = Integer()


@orders.command(part_of="Order")
class StartProduction:
    order_number = String(required=True, max_length=20)
    operator_id = Identifier(required=True)
    notes = Text()
    expected_revision = Integer()


@orders.command(part_of="Order")
class MarkReadyForDelivery:
    order_number = String(required=True, max_length=20)
    operator_id = Identifier(required=True)
    preparation_notes = Text()
    expected_revision = Integer()


@orders.command(part_of="Order")
class MarkOutForDelivery:
    order_number = String(required=True, max_length=20)
    operator_id = Identifier(required=True)
    tracking_number = String(max_length=100)
    expected_revision = Integer()


@orders.command(part_of="Order")
class MarkDelivered:
    order_number = String(required=True, max_length=20)
    performed_by = Identifier()  # empty when the carrier integration reports delivery
    expected_revision = Integer()


def _parse_target(value) -> OrderStatus:
    try:
        target = OrderStatus(value)
    except ValueError:
        raise ValidationError({"new_status": [f"Unknown status: {value}"]}) from None
    if target not in OPERATOR_TARGETS:
        raise ValidationError({"new_status": [f"Operators cannot set status {target.value}"]})
    return target


def _message(previous: OrderStatus, target: OrderStatus, notes=None, tracking_number=None) -> str:
    if target is OrderStatus.OUT_FOR_DELIVERY:
        message = "Order is out for delivery"
        if tracking_number:
            message += f". Tracking: {tracking_number}"
        return message
    if target is OrderStatus.DELIVERED:
        return "Order successfully delivered to customer"
    message = f"Status changed from {previous.value} to {target.value}"
    if notes:
        message += f". Notes: {notes}"
    return message


def _record_progress(order, previous, target, performed_by, notes, tracking_number, now):
    record(
        order,
        _EVENT_FOR_TARGET.get(target, EventType.STATUS_UPDATED),
        _message(previous, target, notes, tracking_number),
        performed_by=performed_by,
        from_status=previous.value,
        to_status=target.value,
        created_at=now,
    )
    if target is OrderStatus.READY_FOR_DELIVERY:
        record(
            order,
            EventType.ORDER_READY,
            "Order completed and ready for delivery",
            performed_by=performed_by,
            created_at=now,
        )


def _advance(order_number, operator_id, target, notes=None, tracking_number=None, expected_revision=None):
    repo = current_domain.repository_for(Order)
    order = repo.get_by_number(order_number)
    order.check_revision(expected_revision)

    now = utcnow()
    if target is OrderStatus.CANCELLED:
        cancel(order, operator_id, Role.OPERATOR, normalize_reason(notes), now=now)
    else:
        previous = order.advance(operator_id, target, notes=notes, tracking_number=tracking_number, now=now)
        _record_progress(order, previous, target, operator_id, notes, tracking_number, now)
        logger.info(
            "Order status advanced",
            order_number=order.order_number,
            from_status=previous.value,
            to_status=target.value,
            operator_id=str(operator_id),
        )
    repo.add(order)


@orders.command_handler(part_of=Order)
class ProductionHandler:
    @handle(AdvanceOrderStatus)
    def advance_status(self, command):
        target = _parse_target(command.new_status)
        if target is OrderStatus.CANCELLED:
            # Validate before any lookup
            normalize_reason(command.notes)
        _advance(
            command.order_number,
            command.operator_id,
            target,
            notes=command.notes,
            tracking_number=command.tracking_number,
            expected_revision=command.expected_revision,
        )

    @handle(StartProduction)
    def start_production(self, command):
        _advance(
            command.order_number,
            command.operator_id,
            OrderStatus.IN_PRODUCTION,
            notes=command.notes,
            expected_revision=command.expected_revision,
        )

    @handle(MarkReadyForDelivery)
    def mark_ready_for_delivery(self, command):
        _advance(
            command.order_number,
            command.operator_id,
            OrderStatus.READY_FOR_DELIVERY,
            notes=command.preparation_notes,
            expected_revision=command.expected_revision,
        )

    @handle(MarkOutForDelivery)
    def mark_out_for_delivery(self, command):
        _advance(
            command.order_number,
            command.operator_id,
            OrderStatus.OUT_FOR_DELIVERY,
            tracking_number=command.tracking_number,
            expected_revision=command.expected_revision,
        )

    @handle(MarkDelivered)
    def mark_delivered(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get_by_number(command.order_number)
        order.check_revision(command.expected_revision)

        now = utcnow()
        previous = order.mark_delivered(performed_by=command.performed_by, now=now)
        _record_progress(order, previous, OrderStatus.DELIVERED, command.performed_by, None, None, now)
        repo.add(order)

        logger.info(
            "Order delivered",
            order_number=order.order_number,
            performed_by=str(command.performed_by) if command.performed_by else None,
        )
