"""Append-only audit trail of everything that happened to an order.

Each ``OrderEvent`` is written by a command handler in the same unit of work
that saves the ``Order``, and is never updated or deleted afterwards. The
trail is read back in ``(created_at, sequence)`` order: to show customers a
timeline, to find when production started, and to replay an order's status.
"""

from enum import Enum

from protean.exceptions import InvalidOperationError
from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from orders.domain import orders
from orders.shared.clock import as_utc, utcnow


class EventType(Enum):
    ORDER_CREATED = "ORDER_CREATED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    ORDER_APPROVED = "ORDER_APPROVED"
    ORDER_REJECTED = "ORDER_REJECTED"
    STATUS_UPDATED = "STATUS_UPDATED"
    STATUS_UPDATED_TO_IN_PRODUCTION = "STATUS_UPDATED_TO_IN_PRODUCTION"
    ORDER_READY = "ORDER_READY"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    ORDER_DELIVERED = "ORDER_DELIVERED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    REFUND_INITIATED = "REFUND_INITIATED"
    REFUND_INITIATION_FAILED = "REFUND_INITIATION_FAILED"
    ADMIN_NOTIFIED = "ADMIN_NOTIFIED"
    OPERATOR_NOTIFIED = "OPERATOR_NOTIFIED"


@orders.aggregate
class OrderEvent:
    """One entry in an order's audit trail.

    ``performed_by_user_id`` is empty for entries the system wrote on its
    own. ``from_status``/``to_status`` are set only on entries that changed
    the order's status.
    """

    order_id = Identifier(required=True)
    order_number = String(required=True, max_length=20)
    sequence = Integer(required=True, min_value=1)
    event_type = String(required=True, max_length=50)
    message = Text()
    performed_by_user_id = Identifier()
    from_status = String(max_length=30)
    to_status = String(max_length=30)
    created_at = DateTime(required=True)


def _sort_key(event):
    return (as_utc(event.created_at), event.sequence)


@orders.repository(part_of=OrderEvent)
class OrderEventRepository:
    def append(self, event: OrderEvent) -> OrderEvent:
        """Persist a new audit entry. Entries already written cannot be saved again."""
        if self._dao.query.filter(id=event.id).all().items:
            raise InvalidOperationError(f"Audit entry {event.id} has already been written")
        self.add(event)
        return event

    def history_for(self, order_id) -> list[OrderEvent]:
        events = self._dao.query.filter(order_id=str(order_id)).all().items
        return sorted(events, key=_sort_key)

    def production_started_at(self, order_id):
        """When the order first entered production, according to the trail."""
        started = [
            event
            for event in self.history_for(order_id)
            if event.event_type == EventType.STATUS_UPDATED_TO_IN_PRODUCTION.value
        ]
        if not started:
            return None
        return as_utc(started[0].created_at)


def record(
    order,
    event_type: EventType,
    message: str,
    performed_by=None,
    from_status=None,
    to_status=None,
    created_at=None,
) -> OrderEvent:
    """Append an audit entry for ``order`` and return it.

    Takes the next per-order sequence number from the order, so the order
    must be saved in the same unit of work.
    """
    event = OrderEvent(
        order_id=order.id,
        order_number=order.order_number,
        sequence=order.next_audit_sequence(),
        event_type=event_type.value,
        message=message,
        performed_by_user_id=performed_by,
        from_status=from_status,
        to_status=to_status,
        created_at=created_at or utcnow(),
    )
    return current_domain.repository_for(OrderEvent).append(event)


def replay_status(events) -> str | None:
    """The status an order ends up in after the given trail, in order."""
    status = None
    for event in sorted(events, key=_sort_key):
        if event.to_status:
            status = event.to_status
    return status
