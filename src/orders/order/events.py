"""Domain events for the Order aggregate.

These are the integration-facing facts other contexts (notifications,
fulfilment dashboards) subscribe to. The customer-visible audit trail is a
separate, richer record kept by ``orders.history``.
"""

from protean.fields import Date, DateTime, Identifier, String, Text

from orders.domain import orders


@orders.event(part_of="Order")
class OrderPlaced:
    """A customer placed an order and its prices were locked in."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    status = String(required=True)
    payment_method = String(required=True)
    order_total = String(required=True)  # decimal string
    items = Text(required=True)  # JSON: list of item dicts
    placed_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderPaymentConfirmed:
    """The payment provider confirmed the payment for an order."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    confirmed_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderPaymentFailed:
    """Payment verification failed and the order was cancelled."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    failed_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderApproved:
    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reviewed_by_id = Identifier(required=True)
    assigned_operator_id = Identifier(required=True)
    deadline = Date(required=True)
    approved_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderRejected:
    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reviewed_by_id = Identifier(required=True)
    reason = Text(required=True)
    rejected_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderStatusChanged:
    """An operator (or the system) moved an order along the production pipeline."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    performed_by = Identifier()
    notes = Text()
    changed_at = DateTime(required=True)


@orders.event(part_of="Order")
class OrderCancelled:
    """An order was cancelled by its customer, an administrator or its operator."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    cancelled_by = Identifier()
    cancelled_by_role = String(required=True)
    reason = Text(required=True)
    payment_status = String(required=True)
    cancelled_at = DateTime(required=True)
