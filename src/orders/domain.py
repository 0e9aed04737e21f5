"""Orders bounded context — print-on-demand order lifecycle.

Handles order placement, payment confirmation, administrator review,
operator production and delivery, cancellation with refund initiation,
and the append-only audit trail every one of those steps writes to.
"""

from protean.domain import Domain

from orders.utils.logging import configure_logging

configure_logging()

# Domain Composition Root
orders = Domain(name="orders")
