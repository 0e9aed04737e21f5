"""Read-side views of orders for customers and for staff.

Customers see their own orders with the full audit timeline. Staff see
customer, operator and reviewer names; operators only see orders assigned
to them.
"""

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from orders.directory import get_directory
from orders.errors import AuthorizationError
from orders.history.order_event import OrderEvent
from orders.order.order import Order, OrderStatus, Role

SYSTEM_NAME = "System"
UNKNOWN_USER_NAME = "Unknown User"


def _iso(value):
    return value.isoformat() if value is not None else None


def display_name(user_id) -> str:
    if not user_id:
        return SYSTEM_NAME
    user = get_directory().find_user(str(user_id))
    return user.name if user is not None else UNKNOWN_USER_NAME


def _address(order) -> dict | None:
    address = order.shipping_address
    if address is None:
        return None
    return {
        "recipient_name": address.recipient_name,
        "phone": address.phone,
        "address_line": address.address_line,
        "city": address.city,
        "state": address.state,
        "zip": address.zip,
        "country": address.country,
    }


def _items(order) -> list[dict]:
    return [
        {
            "product_ref": item.product_ref,
            "product_name": item.product_name,
            "quantity": item.quantity,
            "size": item.size,
            "custom_note": item.custom_note,
            "unit_price": item.unit_price,
            "total_price": item.total_price,
        }
        for item in order.items
    ]


def order_summary(order) -> dict:
    return {
        "order_number": order.order_number,
        "status": order.status,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "order_total": order.order_total,
        "item_count": len(order.items),
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }


def order_detail(order) -> dict:
    return {
        **order_summary(order),
        "revision": order.revision,
        "shipping_address": _address(order),
        "delivery_instructions": order.delivery_instructions,
        "tracking_number": order.tracking_number,
        "estimated_delivery_date": _iso(order.estimated_delivery_date),
        "deadline": _iso(order.deadline),
        "rejection_reason": order.rejection_reason,
        "cancellation_reason": order.cancellation_reason,
        "cancelled_at": _iso(order.cancelled_at),
        "items": _items(order),
    }


def timeline(order) -> list[dict]:
    events = current_domain.repository_for(OrderEvent).history_for(order.id)
    return [
        {
            "event_type": event.event_type,
            "message": event.message,
            "performed_by": display_name(event.performed_by_user_id),
            "from_status": event.from_status,
            "to_status": event.to_status,
            "created_at": _iso(event.created_at),
        }
        for event in events
    ]


# ---------------------------------------------------------------------------
# Customer-facing
# ---------------------------------------------------------------------------
def customer_order(order_number: str, customer_id) -> dict:
    order = current_domain.repository_for(Order).get_by_number(order_number)
    if not order.is_owned_by(customer_id):
        raise AuthorizationError(f"Order {order_number} does not belong to you")
    return {**order_detail(order), "timeline": timeline(order)}


def customer_orders(customer_id) -> list[dict]:
    return [order_summary(order) for order in current_domain.repository_for(Order).for_customer(customer_id)]


# ---------------------------------------------------------------------------
# Staff-facing
# ---------------------------------------------------------------------------
def _assert_staff(role: Role):
    if role not in (Role.ADMIN, Role.OPERATOR):
        raise AuthorizationError("Only administrators and operators can view staff order screens")


def staff_detail(order) -> dict:
    return {
        **order_detail(order),
        "customer_id": order.customer_id,
        "customer_name": display_name(order.customer_id),
        "assigned_operator_id": order.assigned_operator_id,
        "assigned_operator_name": display_name(order.assigned_operator_id) if order.assigned_operator_id else None,
        "reviewed_by_name": display_name(order.reviewed_by_id) if order.reviewed_by_id else None,
        "production_started_at": _iso(order.production_started_at),
    }


def staff_order(order_number: str, actor_id, role: Role) -> dict:
    _assert_staff(role)
    order = current_domain.repository_for(Order).get_by_number(order_number)
    if role is Role.OPERATOR and str(order.assigned_operator_id or "") != str(actor_id):
        raise AuthorizationError(f"Order {order_number} is not assigned to you")
    return staff_detail(order)


def staff_orders(actor_id, role: Role, status: str | None = None) -> list[dict]:
    """Orders for staff, newest first. Operators only get their assigned orders."""
    _assert_staff(role)
    if status:
        try:
            status = OrderStatus(status).value
        except ValueError:
            raise ValidationError({"status": [f"Unknown status: {status}"]}) from None
    operator_id = actor_id if role is Role.OPERATOR else None
    orders_found = current_domain.repository_for(Order).staff_listing(status=status, operator_id=operator_id)
    return [
        {
            **order_summary(order),
            "customer_name": display_name(order.customer_id),
            "assigned_operator_name": display_name(order.assigned_operator_id) if order.assigned_operator_id else None,
            "deadline": _iso(order.deadline),
        }
        for order in orders_found
    ]
