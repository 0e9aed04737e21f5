import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from orders.api import admin_router, customer_router, operator_router, payment_router, register_error_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(customer_router)
    app.include_router(payment_router)
    app.include_router(admin_router)
    app.include_router(operator_router)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def as_user():
    """Headers identifying the acting user, as the upstream gateway sets them."""

    def _as_user(user_id, role):
        return {"X-User-Id": user_id, "X-User-Role": role}

    return _as_user
