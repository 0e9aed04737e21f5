from datetime import timedelta

import pytest

from orders.order.order import Order, OrderStatus
from orders.shared.clock import utcnow

SHIPPING = {"address_line": "12 MG Road", "city": "Bengaluru", "zip": "560001", "country": "India"}
DEFAULT_ITEMS = [{"product_ref": "tee-classic", "product_name": "Classic Tee", "quantity": 2, "unit_price": "100.00"}]


@pytest.fixture
def make_order():
    def _make_order(payment_method="CARD", items=None, customer_id="cust-1", order_number="ORD-20260101-1234"):
        return Order.place(
            customer_id=customer_id,
            order_number=order_number,
            items=DEFAULT_ITEMS if items is None else items,
            payment_method=payment_method,
            shipping_address=SHIPPING,
        )

    return _make_order


@pytest.fixture
def approved_order(make_order):
    def _approved_order(operator_id="op-1"):
        order = make_order()
        order.confirm_payment()
        order.approve(admin_id="admin-1", operator_id=operator_id, deadline=utcnow().date() + timedelta(days=5))
        order._events.clear()
        return order

    return _approved_order


@pytest.fixture
def order_at(approved_order):
    """A paid order approved for op-1, then forced into ``status``."""

    def _order_at(status: OrderStatus):
        order = approved_order()
        order.status = status.value
        return order

    return _order_at
