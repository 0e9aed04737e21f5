"""Payment gateway port (abstract interface).

Defines the two calls the order lifecycle makes to the payment provider:
verifying a payment-confirmation callback, and initiating a refund when a
paid order is cancelled. Both are blocking calls whose timeout policy
belongs to the adapter.
"""

from abc import ABC, abstractmethod
from decimal import Decimal


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def verify_payment(self, raw_payload: str | None, provider_payment_id: str | None) -> bool:
        """Verify that a payment callback is authentic and the payment settled."""
        ...

    @abstractmethod
    def initiate_refund(self, order_number: str, amount: Decimal, reason: str) -> str:
        """Ask the provider to refund an order. Returns the provider's refund reference."""
        ...
