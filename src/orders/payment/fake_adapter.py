"""Configurable fake payment gateway for development and testing.

Simulates the provider without external calls. It can be configured at
runtime to reject verifications, to raise from verification, or to raise
from refund initiation, which is how the fail-closed and best-effort
paths of the lifecycle are exercised.
"""

from decimal import Decimal
from uuid import uuid4

from orders.payment.port import PaymentGateway


class PaymentProviderError(Exception):
    """Raised by the fake gateway to simulate a provider outage."""


class FakePaymentGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.verifies: bool = True
        self.verify_error: Exception | None = None
        self.refund_error: Exception | None = None
        self.calls: list[dict] = []

    def configure(
        self,
        verifies: bool = True,
        verify_error: Exception | None = None,
        refund_error: Exception | None = None,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.verifies = verifies
        self.verify_error = verify_error
        self.refund_error = refund_error

    def verify_payment(self, raw_payload: str | None, provider_payment_id: str | None) -> bool:
        self.calls.append(
            {
                "method": "verify_payment",
                "raw_payload": raw_payload,
                "provider_payment_id": provider_payment_id,
            }
        )
        if self.verify_error is not None:
            raise self.verify_error
        return self.verifies

    def initiate_refund(self, order_number: str, amount: Decimal, reason: str) -> str:
        self.calls.append(
            {
                "method": "initiate_refund",
                "order_number": order_number,
                "amount": amount,
                "reason": reason,
            }
        )
        if self.refund_error is not None:
            raise self.refund_error
        return f"fake_ref_{uuid4().hex[:12]}"
