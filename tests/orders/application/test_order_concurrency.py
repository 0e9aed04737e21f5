"""Concurrent writes to one order: stale saves and per-order serialization."""

import threading
from datetime import timedelta

import pytest
from protean import UnitOfWork, current_domain
from protean.exceptions import ExpectedVersionError, InvalidOperationError

from orders.domain import orders
from orders.errors import ConcurrentModificationError
from orders.history.order_event import EventType, record, replay_status
from orders.order.cancellation import CancelOrder
from orders.order.locking import lock_for, process_for_order
from orders.order.order import Order, OrderStatus, Role
from orders.order.production import StartProduction
from orders.order.review import ApproveOrder
from orders.shared.clock import utcnow


def _approve(order_number):
    current_domain.process(
        ApproveOrder(
            order_number=order_number,
            admin_id="admin-1",
            operator_id="op-1",
            deadline=utcnow().date() + timedelta(days=7),
        ),
        asynchronous=False,
    )


def _in_worker(command, barrier, outcomes):
    with orders.domain_context():
        barrier.wait()
        try:
            process_for_order(command)
        except (InvalidOperationError, ConcurrentModificationError) as exc:
            outcomes.append(type(exc).__name__)
        else:
            outcomes.append("ok")


class TestStaleSave:
    def test_stale_copy_cannot_overwrite_a_newer_save(self, order_in, load, history):
        order_number = order_in(OrderStatus.UNDER_REVIEW, payment_method="COD")
        repo = current_domain.repository_for(Order)
        stale = repo.get_by_number(order_number)
        _approve(order_number)
        events_before = len(history(order_number))

        with pytest.raises(ExpectedVersionError):
            with UnitOfWork():
                previous = stale.cancel("cust-1", Role.CUSTOMER, "Changed my mind")
                record(
                    stale,
                    EventType.ORDER_CANCELLED,
                    "Order cancelled by user",
                    performed_by="cust-1",
                    from_status=previous.value,
                    to_status=stale.status,
                )
                repo.add(stale)

        assert load(order_number).status == OrderStatus.APPROVED.value
        assert len(history(order_number)) == events_before


class TestPerOrderLock:
    def test_same_order_shares_a_lock(self):
        assert lock_for("ORD-20261018-1234") is lock_for("ORD-20261018-1234")

    def test_commands_wait_for_the_order_lock(self, order_in, load):
        order_number = order_in(OrderStatus.APPROVED)
        done = threading.Event()

        def _start_production():
            with orders.domain_context():
                process_for_order(StartProduction(order_number=order_number, operator_id="op-1"))
            done.set()

        worker = threading.Thread(target=_start_production)
        with lock_for(order_number):
            worker.start()
            assert not done.wait(timeout=0.2)
            assert load(order_number).status == OrderStatus.APPROVED.value
        worker.join(timeout=10)

        assert done.is_set()
        assert load(order_number).status == OrderStatus.IN_PRODUCTION.value

    def test_racing_writers_from_one_read(self, order_in, load, history):
        order_number = order_in(OrderStatus.APPROVED)
        revision = load(order_number).revision
        commands = [
            StartProduction(order_number=order_number, operator_id="op-1", expected_revision=revision),
            CancelOrder(
                order_number=order_number,
                customer_id="cust-1",
                reason="Changed my mind",
                expected_revision=revision,
            ),
        ]
        barrier = threading.Barrier(len(commands))
        outcomes = []
        workers = [threading.Thread(target=_in_worker, args=(command, barrier, outcomes)) for command in commands]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join(timeout=10)

        assert sorted(outcomes) == ["ConcurrentModificationError", "ok"]
        events = history(order_number)
        assert [event.sequence for event in events] == list(range(1, len(events) + 1))
        assert replay_status(events) == load(order_number).status
