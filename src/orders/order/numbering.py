"""External order numbers: ``ORD-YYYYMMDD-NNNN``.

The suffix is random, so two orders placed on the same day can draw the same
number. Allocation retries a bounded number of times against numbers already
in use before giving up.
"""

import random
from datetime import date

import structlog
from protean.exceptions import InvalidOperationError

logger = structlog.get_logger(__name__)

MAX_ALLOCATION_ATTEMPTS = 10


def generate_order_number(today: date) -> str:
    return f"ORD-{today:%Y%m%d}-{random.randint(1000, 9999):04d}"


def allocate_order_number(repo, today: date) -> str:
    """Return an order number no existing order uses."""
    for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
        candidate = generate_order_number(today)
        if not repo.number_taken(candidate):
            return candidate
        logger.warning("Order number collision", order_number=candidate, attempt=attempt)

    raise InvalidOperationError(f"Could not allocate a unique order number after {MAX_ALLOCATION_ATTEMPTS} attempts")
