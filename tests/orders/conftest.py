import json
from datetime import timedelta
from types import SimpleNamespace

import pytest
from protean import current_domain

from orders.catalogue import reset_catalogue, set_catalogue
from orders.catalogue.fake_adapter import FakeCatalogue
from orders.directory import reset_directory, set_directory
from orders.directory.fake_adapter import FakeDirectory
from orders.history.order_event import OrderEvent
from orders.order.cancellation import CancelOrder
from orders.order.order import Order, OrderStatus
from orders.order.payment_confirmation import ConfirmPayment
from orders.order.placement import PlaceOrder
from orders.order.production import (
    MarkDelivered,
    MarkOutForDelivery,
    MarkReadyForDelivery,
    StartProduction,
)
from orders.order.review import ApproveOrder, RejectOrder
from orders.payment import reset_gateway, set_gateway
from orders.payment.fake_adapter import FakePaymentGateway
from orders.shared.clock import utcnow

ADDRESS = {
    "recipient_name": "Asha Rao",
    "phone": "+91 98450 00000",
    "address_line": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "zip": "560001",
    "country": "India",
}


@pytest.fixture(autouse=True)
def fakes():
    """Fresh collaborators for every test, seeded with a small cast."""
    catalogue = FakeCatalogue()
    catalogue.add_product("tee-classic", "Classic Tee", "100.00")
    catalogue.add_product("mug-photo", "Photo Mug", "12.50")

    directory = FakeDirectory()
    directory.add_user("cust-1", "Asha Rao", "CUSTOMER")
    directory.add_user("cust-2", "Ben Okafor", "CUSTOMER")
    directory.add_user("admin-1", "Ada Admin", "ADMIN")
    directory.add_user("op-1", "Olu Operator", "OPERATOR")
    directory.add_user("op-2", "Omar Operator", "OPERATOR")
    directory.add_user("clerk-1", "Cleo Clerk", "CUSTOMER")
    directory.add_address("addr-1", "cust-1", **ADDRESS)
    directory.add_address("addr-2", "cust-2", **{**ADDRESS, "recipient_name": "Ben Okafor"})

    gateway = FakePaymentGateway()

    set_catalogue(catalogue)
    set_directory(directory)
    set_gateway(gateway)

    yield SimpleNamespace(catalogue=catalogue, directory=directory, gateway=gateway)

    reset_catalogue()
    reset_directory()
    reset_gateway()


def _process(command):
    return current_domain.process(command, asynchronous=False)


@pytest.fixture
def place():
    def _place(payment_method="CARD", items=None, customer_id="cust-1", **extra):
        if "shipping_address" not in extra and "shipping_address_id" not in extra:
            extra["shipping_address"] = json.dumps(ADDRESS)
        return _process(
            PlaceOrder(
                customer_id=customer_id,
                items=json.dumps(items if items is not None else [{"product_ref": "tee-classic", "quantity": 2}]),
                payment_method=payment_method,
                **extra,
            )
        )

    return _place


@pytest.fixture
def order_in(place):
    """Drive a new order through commands until it reaches ``status``."""

    def _order_in(status: OrderStatus, payment_method="CARD", customer_id="cust-1", operator_id="op-1"):
        order_number = place(payment_method=payment_method, customer_id=customer_id)
        if status is OrderStatus.PENDING_PAYMENT:
            return order_number

        if payment_method != "COD":
            _process(ConfirmPayment(order_number=order_number, provider="fakepay", provider_payment_id="pay-1"))
        if status is OrderStatus.UNDER_REVIEW:
            return order_number

        if status is OrderStatus.CANCELLED:
            _process(CancelOrder(order_number=order_number, customer_id=customer_id, reason="Changed my mind"))
            return order_number
        if status is OrderStatus.REJECTED:
            _process(RejectOrder(order_number=order_number, admin_id="admin-1", reason="Artwork is too blurry"))
            return order_number
        if status is OrderStatus.PROCESSING:
            repo = current_domain.repository_for(Order)
            order = repo.get_by_number(order_number)
            order.status = OrderStatus.PROCESSING.value
            repo.add(order)
            return order_number

        _process(
            ApproveOrder(
                order_number=order_number,
                admin_id="admin-1",
                operator_id=operator_id,
                deadline=utcnow().date() + timedelta(days=7),
            )
        )
        if status is OrderStatus.APPROVED:
            return order_number

        _process(StartProduction(order_number=order_number, operator_id=operator_id))
        if status is OrderStatus.IN_PRODUCTION:
            return order_number

        _process(MarkReadyForDelivery(order_number=order_number, operator_id=operator_id))
        if status is OrderStatus.READY_FOR_DELIVERY:
            return order_number

        _process(MarkOutForDelivery(order_number=order_number, operator_id=operator_id, tracking_number="TRK-1"))
        if status is OrderStatus.OUT_FOR_DELIVERY:
            return order_number

        _process(MarkDelivered(order_number=order_number, performed_by=operator_id))
        return order_number

    return _order_in


@pytest.fixture
def load():
    def _load(order_number) -> Order:
        return current_domain.repository_for(Order).get_by_number(order_number)

    return _load


@pytest.fixture
def history(load):
    def _history(order_number) -> list[OrderEvent]:
        return current_domain.repository_for(OrderEvent).history_for(load(order_number).id)

    return _history
