"""Orders domain API package."""

from orders.api.errors import register_error_handlers
from orders.api.routes import admin_router, customer_router, operator_router, payment_router

__all__ = [
    "admin_router",
    "customer_router",
    "operator_router",
    "payment_router",
    "register_error_handlers",
]
