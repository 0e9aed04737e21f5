"""Integration tests for the customer and payment callback endpoints."""

from datetime import timedelta

from protean import current_domain

from orders.history.order_event import EventType
from orders.order.order import Order, OrderStatus
from orders.order.review import ApproveOrder
from orders.shared.clock import utcnow

ADDRESS = {
    "recipient_name": "Asha Rao",
    "address_line": "12 MG Road",
    "city": "Bengaluru",
    "zip": "560001",
    "country": "India",
}


def _place(client, headers, **overrides):
    body = {
        "items": [{"product_ref": "tee-classic", "quantity": 2, "size": "L"}],
        "payment_method": "COD",
        "shipping_address": ADDRESS,
        **overrides,
    }
    return client.post("/orders", json=body, headers=headers)


class TestPlaceOrderEndpoint:
    def test_cod_order_goes_straight_to_review(self, client, as_user):
        response = _place(client, as_user("cust-1", "CUSTOMER"))

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == OrderStatus.UNDER_REVIEW.value
        assert data["payment_status"] == "PENDING"
        assert data["order_total"] == "200.00"
        assert data["timeline"][0]["event_type"] == EventType.ORDER_CREATED.value

        order = current_domain.repository_for(Order).get_by_number(data["order_number"])
        assert order.customer_id == "cust-1"

    def test_saved_address(self, client, as_user):
        response = _place(client, as_user("cust-1", "CUSTOMER"), shipping_address=None, shipping_address_id="addr-1")
        assert response.status_code == 201
        assert response.json()["shipping_address"]["city"] == "Bengaluru"

    def test_empty_items(self, client, as_user):
        response = _place(client, as_user("cust-1", "CUSTOMER"), items=[])
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_unknown_payment_method(self, client, as_user):
        response = _place(client, as_user("cust-1", "CUSTOMER"), payment_method="BARTER")
        assert response.status_code == 400

    def test_unknown_product(self, client, as_user):
        response = _place(client, as_user("cust-1", "CUSTOMER"), items=[{"product_ref": "nope"}])
        assert response.status_code == 404

    def test_missing_identity(self, client):
        response = client.post("/orders", json={"items": []})
        assert response.status_code == 403

    def test_staff_cannot_place_orders(self, client, as_user):
        response = _place(client, as_user("admin-1", "ADMIN"))
        assert response.status_code == 403


class TestCustomerOrderEndpoints:
    def test_list_and_get_own_orders(self, client, as_user):
        headers = as_user("cust-1", "CUSTOMER")
        order_number = _place(client, headers).json()["order_number"]

        listed = client.get("/orders/my", headers=headers)
        assert [o["order_number"] for o in listed.json()] == [order_number]

        detail = client.get(f"/orders/my/{order_number}", headers=headers)
        assert detail.status_code == 200
        assert detail.json()["order_number"] == order_number

    def test_other_customers_order_is_forbidden(self, client, as_user):
        order_number = _place(client, as_user("cust-1", "CUSTOMER")).json()["order_number"]
        response = client.get(f"/orders/my/{order_number}", headers=as_user("cust-2", "CUSTOMER"))
        assert response.status_code == 403

    def test_missing_order(self, client, as_user):
        response = client.get("/orders/my/ORD-20260101-0000", headers=as_user("cust-1", "CUSTOMER"))
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_cancel(self, client, as_user):
        headers = as_user("cust-1", "CUSTOMER")
        order_number = _place(client, headers).json()["order_number"]

        response = client.post(f"/orders/{order_number}/cancel", json={"reason": "Ordered twice"}, headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == OrderStatus.CANCELLED.value
        assert data["cancellation_reason"] == "Ordered twice"

    def test_cancel_twice_is_a_conflict(self, client, as_user):
        headers = as_user("cust-1", "CUSTOMER")
        order_number = _place(client, headers).json()["order_number"]
        client.post(f"/orders/{order_number}/cancel", json={}, headers=headers)

        response = client.post(f"/orders/{order_number}/cancel", json={}, headers=headers)

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_operation"

    def test_stale_revision(self, client, as_user):
        headers = as_user("cust-1", "CUSTOMER")
        order = _place(client, headers).json()

        response = client.post(
            f"/orders/{order['order_number']}/cancel",
            json={"expected_revision": order["revision"] + 1},
            headers=headers,
        )

        assert response.status_code == 409
        assert response.json()["error"] == "concurrent_modification"

    def test_losing_a_save_race(self, client, as_user, load, history, monkeypatch):
        headers = as_user("cust-1", "CUSTOMER")
        order_number = _place(client, headers).json()["order_number"]
        repo = current_domain.repository_for(Order)
        stale = repo.get_by_number(order_number)

        # Another worker approves the order after this request has read it
        current_domain.process(
            ApproveOrder(
                order_number=order_number,
                admin_id="admin-1",
                operator_id="op-1",
                deadline=utcnow().date() + timedelta(days=7),
            ),
            asynchronous=False,
        )
        events_before = len(history(order_number))

        real_get_by_number = type(repo).get_by_number
        served = []

        def _stale_first(self, number):
            if not served:
                served.append(number)
                return stale
            return real_get_by_number(self, number)

        monkeypatch.setattr(type(repo), "get_by_number", _stale_first)

        response = client.post(f"/orders/{order_number}/cancel", json={}, headers=headers)

        assert response.status_code == 409
        assert response.json()["error"] == "concurrent_modification"
        assert load(order_number).status == OrderStatus.APPROVED.value
        assert len(history(order_number)) == events_before


class TestPaymentConfirmationEndpoint:
    def test_verified_payment(self, client, as_user):
        order_number = _place(client, as_user("cust-1", "CUSTOMER"), payment_method="CARD").json()["order_number"]

        response = client.post(
            "/payments/confirm",
            json={"order_number": order_number, "provider": "fakepay", "provider_payment_id": "pay-1"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "order_number": order_number,
            "payment_verified": True,
            "status": OrderStatus.UNDER_REVIEW.value,
            "payment_status": "PAID",
        }

    def test_rejected_payment(self, client, as_user, fakes):
        order_number = _place(client, as_user("cust-1", "CUSTOMER"), payment_method="UPI").json()["order_number"]
        fakes.gateway.configure(verifies=False)

        response = client.post("/payments/confirm", json={"order_number": order_number})

        data = response.json()
        assert data["payment_verified"] is False
        assert data["status"] == OrderStatus.CANCELLED.value
        assert data["payment_status"] == "FAILED"

    def test_cod_order_is_not_awaiting_payment(self, client, as_user):
        order_number = _place(client, as_user("cust-1", "CUSTOMER")).json()["order_number"]
        response = client.post("/payments/confirm", json={"order_number": order_number})
        assert response.status_code == 409
