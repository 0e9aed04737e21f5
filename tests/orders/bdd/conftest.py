"""Shared BDD fixtures and step definitions for the order lifecycle."""

from datetime import timedelta

import pytest
from protean import current_domain
from protean.exceptions import InvalidOperationError, ValidationError
from pytest_bdd import given, parsers, then

from orders.errors import AuthorizationError, ConcurrentModificationError
from orders.follow_up.follow_up import FollowUp, FollowUpKind, FollowUpStatus
from orders.history.order_event import EventType, record, replay_status
from orders.order.order import Order, OrderStatus
from orders.payment.fake_adapter import PaymentProviderError
from orders.shared.clock import utcnow

_REFUSALS = (InvalidOperationError, AuthorizationError, ValidationError, ConcurrentModificationError)


@pytest.fixture
def error():
    """Container for the exception a When step was refused with."""
    return {"exc": None}


@pytest.fixture
def attempt(error):
    def _attempt(command):
        try:
            current_domain.process(command, asynchronous=False)
        except _REFUSALS as exc:
            error["exc"] = exc

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('an order paid by "{payment_method}" in status "{status}"'),
    target_fixture="order_number",
)
def _(order_in, payment_method, status):
    return order_in(OrderStatus(status), payment_method=payment_method)


@given("the payment provider declines payments")
def _(fakes):
    fakes.gateway.configure(verifies=False)


@given("the refund service is down")
def _(fakes):
    fakes.gateway.configure(refund_error=PaymentProviderError("refund API down"))


@given(parsers.cfparse("production started {hours:d} hours ago"))
def _(order_number, hours):
    repo = current_domain.repository_for(Order)
    order = repo.get_by_number(order_number)
    started_at = utcnow() - timedelta(hours=hours)
    order.advance(order.assigned_operator_id, OrderStatus.IN_PRODUCTION, now=started_at)
    record(
        order,
        EventType.STATUS_UPDATED_TO_IN_PRODUCTION,
        "Status changed from APPROVED to IN_PRODUCTION",
        performed_by=order.assigned_operator_id,
        from_status=OrderStatus.APPROVED.value,
        to_status=OrderStatus.IN_PRODUCTION.value,
        created_at=started_at,
    )
    repo.add(order)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(load, order_number, status):
    assert load(order_number).status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def _(load, order_number, status):
    assert load(order_number).payment_status == status


@then("the action fails with a conflict")
def _(error):
    assert isinstance(error["exc"], InvalidOperationError)


@then("the action fails with an authorization error")
def _(error):
    assert isinstance(error["exc"], AuthorizationError)


@then(parsers.cfparse('the trail ends with "{event_type}"'))
def _(history, order_number, event_type):
    assert history(order_number)[-1].event_type == EventType(event_type).value


@then(parsers.cfparse('the trail includes "{event_type}"'))
def _(history, order_number, event_type):
    assert EventType(event_type).value in [event.event_type for event in history(order_number)]


@then("the trail replays to the order status")
def _(history, load, order_number):
    assert replay_status(history(order_number)) == load(order_number).status


@then("a refund follow-up is pending")
def _(load, order_number):
    follow_ups = current_domain.repository_for(FollowUp).for_order(load(order_number).id)
    assert [(f.kind, f.status) for f in follow_ups] == [
        (FollowUpKind.REFUND.value, FollowUpStatus.PENDING.value)
    ]
