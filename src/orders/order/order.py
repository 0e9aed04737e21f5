"""Order aggregate — the mutable record at the centre of the order lifecycle.

Every status change goes through one generic check against ``_TRANSITIONS``,
an explicit table of ``(from, to) -> roles allowed to make that move``:

    PENDING_PAYMENT → UNDER_REVIEW (payment confirmed) | CANCELLED
    UNDER_REVIEW → APPROVED | REJECTED | CANCELLED
    APPROVED → IN_PRODUCTION → READY_FOR_DELIVERY → OUT_FOR_DELIVERY → DELIVERED
    (each production stage can also move to CANCELLED)

A move that is not in the table for the acting role is a state conflict
(``InvalidOperationError``). Ownership and operator assignment are checked
separately and fail with ``AuthorizationError``.

Methods mutate the aggregate and raise domain events. The audit trail rows
are written by the command handlers, in the same unit of work that persists
the order.
"""

import json
from datetime import timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import (
    Date,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from orders.domain import orders
from orders.errors import AuthorizationError, ConcurrentModificationError
from orders.order.events import (
    OrderApproved,
    OrderCancelled,
    OrderPaymentConfirmed,
    OrderPaymentFailed,
    OrderPlaced,
    OrderRejected,
    OrderStatusChanged,
)
from orders.shared.clock import as_utc, utcnow
from orders.shared.money import line_total, sum_amounts, to_decimal

CANCELLATION_WINDOW = timedelta(hours=2)
MAX_REASON_LENGTH = 500
DEFAULT_CANCELLATION_REASON = "No reason provided"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    IN_PRODUCTION = "IN_PRODUCTION"
    READY_FOR_DELIVERY = "READY_FOR_DELIVERY"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    # Legacy values still present on old rows; no transition leads into them
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    RETURNED = "RETURNED"


class PaymentStatus(Enum):
    PENDING = "PENDING"
    AUTHORIZED = "AUTHORIZED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    REFUND_PENDING = "REFUND_PENDING"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"


class PaymentMethod(Enum):
    COD = "COD"
    CARD = "CARD"
    UPI = "UPI"
    NET_BANKING = "NET_BANKING"
    WALLET = "WALLET"


class Role(Enum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
    SYSTEM = "SYSTEM"


TERMINAL_STATES = frozenset({OrderStatus.DELIVERED, OrderStatus.REJECTED, OrderStatus.CANCELLED})

_S = OrderStatus
_R = Role

# (from, to) -> roles allowed to perform the move
_TRANSITIONS = {
    (_S.PENDING_PAYMENT, _S.UNDER_REVIEW): {_R.SYSTEM},
    (_S.PENDING_PAYMENT, _S.CANCELLED): {_R.SYSTEM, _R.CUSTOMER, _R.ADMIN},
    (_S.UNDER_REVIEW, _S.APPROVED): {_R.ADMIN},
    (_S.UNDER_REVIEW, _S.REJECTED): {_R.ADMIN},
    (_S.UNDER_REVIEW, _S.CANCELLED): {_R.CUSTOMER, _R.ADMIN},
    (_S.APPROVED, _S.IN_PRODUCTION): {_R.OPERATOR},
    (_S.APPROVED, _S.CANCELLED): {_R.OPERATOR, _R.CUSTOMER, _R.ADMIN},
    (_S.IN_PRODUCTION, _S.READY_FOR_DELIVERY): {_R.OPERATOR},
    (_S.IN_PRODUCTION, _S.CANCELLED): {_R.OPERATOR, _R.CUSTOMER, _R.ADMIN},
    (_S.READY_FOR_DELIVERY, _S.OUT_FOR_DELIVERY): {_R.OPERATOR},
    (_S.READY_FOR_DELIVERY, _S.CANCELLED): {_R.OPERATOR},
    (_S.OUT_FOR_DELIVERY, _S.DELIVERED): {_R.OPERATOR, _R.SYSTEM},
    (_S.OUT_FOR_DELIVERY, _S.CANCELLED): {_R.OPERATOR},
    (_S.PROCESSING, _S.CANCELLED): {_R.CUSTOMER, _R.ADMIN},
}

# Statuses an operator may request through the generic advance action
OPERATOR_TARGETS = frozenset(
    {
        _S.IN_PRODUCTION,
        _S.READY_FOR_DELIVERY,
        _S.OUT_FOR_DELIVERY,
        _S.DELIVERED,
        _S.CANCELLED,
    }
)


def allowed_roles(from_status: OrderStatus, to_status: OrderStatus) -> frozenset:
    """Roles that may move an order between two statuses. Empty if the move is illegal."""
    return frozenset(_TRANSITIONS.get((from_status, to_status), ()))


def legal_targets(from_status: OrderStatus) -> set[OrderStatus]:
    return {target for (source, target) in _TRANSITIONS if source == from_status}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@orders.value_object(part_of="Order")
class ShippingAddress:
    """Where the order goes, captured when it was placed.

    A snapshot, not a reference: editing the saved address later does not
    move an order that has already been placed.
    """

    recipient_name = String(max_length=150)
    phone = String(max_length=30)
    address_line = String(required=True, max_length=500)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    zip = String(max_length=20)
    country = String(required=True, max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@orders.entity(part_of="Order")
class OrderItem:
    """A purchased line with the price it was sold at.

    ``unit_price`` and ``total_price`` are decimal strings copied from the
    catalogue at placement and never recomputed.
    """

    product_ref = String(required=True, max_length=100)
    product_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1, default=1)
    size = String(max_length=50)
    custom_note = Text()
    unit_price = String(required=True, max_length=32)
    total_price = String(required=True, max_length=32)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@orders.aggregate
class Order:
    customer_id = Identifier(required=True)
    order_number = String(required=True, max_length=20, unique=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING_PAYMENT.value)
    payment_method = String(choices=PaymentMethod, required=True)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    order_total = String(required=True, max_length=32)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)
    delivery_instructions = String(max_length=500)
    tracking_number = String(max_length=100)
    estimated_delivery_date = Date()
    assigned_operator_id = Identifier()
    reviewed_by_id = Identifier()
    deadline = Date()
    rejection_reason = Text()
    cancellation_reason = String(max_length=500)
    cancelled_by_user_id = Identifier()
    cancelled_at = DateTime()
    production_started_at = DateTime()
    # Client-visible counter for `expected_revision`. Protean's own `_version`
    # guards the save itself and is not exposed.
    revision = Integer(default=0)
    audit_sequence = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def rejected_and_cancelled_are_exclusive(self):
        if self.rejection_reason and self.cancelled_at:
            raise ValidationError({"status": ["An order cannot be both rejected and cancelled"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_id,
        order_number,
        items,
        payment_method,
        shipping_address,
        delivery_instructions=None,
        now=None,
    ):
        """Create an order from priced lines.

        Args:
            customer_id: The customer placing the order.
            order_number: A freshly allocated ``ORD-YYYYMMDD-NNNN`` number.
            items: List of dicts with product_ref, product_name, quantity,
                   unit_price and optional size / custom_note.
            payment_method: A ``PaymentMethod`` value.
            shipping_address: Dict of ``ShippingAddress`` fields.
        """
        if not items:
            raise ValidationError({"items": ["Order must contain at least one item"]})
        method = cls._parse_payment_method(payment_method)

        now = now or utcnow()
        lines = []
        for item in items:
            quantity = item.get("quantity", 1)
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
                raise ValidationError({"quantity": ["Quantity must be at least 1"]})
            unit_price = to_decimal(item["unit_price"], "unit_price")
            lines.append(
                OrderItem(
                    product_ref=item["product_ref"],
                    product_name=item.get("product_name"),
                    quantity=quantity,
                    size=item.get("size"),
                    custom_note=item.get("custom_note"),
                    unit_price=str(unit_price),
                    total_price=str(line_total(unit_price, quantity)),
                )
            )
        total = sum_amounts(line.total_price for line in lines)

        if method is PaymentMethod.COD:
            status = OrderStatus.UNDER_REVIEW
        else:
            status = OrderStatus.PENDING_PAYMENT

        order = cls(
            customer_id=customer_id,
            order_number=order_number,
            status=status.value,
            payment_method=method.value,
            payment_status=PaymentStatus.PENDING.value,
            order_total=str(total),
            items=lines,
            shipping_address=ShippingAddress(**shipping_address),
            delivery_instructions=delivery_instructions,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=order.id,
                order_number=order_number,
                customer_id=customer_id,
                status=status.value,
                payment_method=method.value,
                order_total=str(total),
                items=json.dumps(
                    [
                        {
                            "product_ref": line.product_ref,
                            "quantity": line.quantity,
                            "unit_price": line.unit_price,
                            "total_price": line.total_price,
                        }
                        for line in lines
                    ]
                ),
                placed_at=now,
            )
        )
        return order

    @staticmethod
    def _parse_payment_method(payment_method) -> PaymentMethod:
        if not payment_method:
            raise ValidationError({"payment_method": ["Payment method is required"]})
        try:
            return PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError({"payment_method": [f"Unknown payment method: {payment_method}"]}) from None

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def total(self):
        return to_decimal(self.order_total, "order_total")

    def assert_transition(self, target: OrderStatus, role: Role):
        """Check the transition table for a move by ``role``."""
        current = self.current_status
        if role not in allowed_roles(current, target):
            raise InvalidOperationError(
                f"Order {self.order_number} cannot move from {current.value} to {target.value} by {role.value.lower()}"
            )

    def _assert_assigned_to(self, operator_id):
        if not self.assigned_operator_id:
            raise AuthorizationError(f"Order {self.order_number} has no assigned operator")
        if str(self.assigned_operator_id) != str(operator_id):
            raise AuthorizationError(f"Order {self.order_number} is not assigned to you")

    def _touch(self, now):
        self.updated_at = now
        self.revision = (self.revision or 0) + 1

    def check_revision(self, expected_revision):
        """Reject a command issued against a stale read of this order.

        Unlike the save-time version check, this runs before any side effect,
        so a caller passing ``expected_revision`` never triggers a refund for a
        write that is then refused.
        """
        if expected_revision is not None and expected_revision != self.revision:
            raise ConcurrentModificationError(
                f"Order {self.order_number} is at revision {self.revision}, not {expected_revision}"
            )

    def next_audit_sequence(self) -> int:
        self.audit_sequence = (self.audit_sequence or 0) + 1
        return self.audit_sequence

    def is_owned_by(self, customer_id) -> bool:
        return str(self.customer_id) == str(customer_id)

    def _status_changed(self, previous, performed_by, notes, now):
        self.raise_(
            OrderStatusChanged(
                order_id=self.id,
                order_number=self.order_number,
                from_status=previous.value,
                to_status=self.status,
                performed_by=performed_by,
                notes=notes,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def confirm_payment(self, now=None):
        self.assert_transition(OrderStatus.UNDER_REVIEW, Role.SYSTEM)
        now = now or utcnow()

        self.payment_status = PaymentStatus.PAID.value
        self.status = OrderStatus.UNDER_REVIEW.value
        self._touch(now)

        self.raise_(OrderPaymentConfirmed(order_id=self.id, order_number=self.order_number, confirmed_at=now))

    def fail_payment(self, now=None):
        self.assert_transition(OrderStatus.CANCELLED, Role.SYSTEM)
        now = now or utcnow()

        with atomic_change(self):
            self.payment_status = PaymentStatus.FAILED.value
            self.status = OrderStatus.CANCELLED.value
            self.cancellation_reason = "Payment verification failed"
            self.cancelled_at = now
            self._touch(now)

        self.raise_(OrderPaymentFailed(order_id=self.id, order_number=self.order_number, failed_at=now))

    # -------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------
    def approve(self, admin_id, operator_id, deadline, today=None, now=None):
        self.assert_transition(OrderStatus.APPROVED, Role.ADMIN)
        if self.payment_status != PaymentStatus.PAID.value and self.payment_method != PaymentMethod.COD.value:
            raise InvalidOperationError(f"Payment for order {self.order_number} has not been settled")
        now = now or utcnow()
        today = today or now.date()
        if deadline is None or deadline <= today:
            raise ValidationError({"deadline": ["Deadline must be in the future"]})

        with atomic_change(self):
            self.status = OrderStatus.APPROVED.value
            self.assigned_operator_id = operator_id
            self.reviewed_by_id = admin_id
            self.deadline = deadline
            self._touch(now)

        self.raise_(
            OrderApproved(
                order_id=self.id,
                order_number=self.order_number,
                reviewed_by_id=admin_id,
                assigned_operator_id=operator_id,
                deadline=deadline,
                approved_at=now,
            )
        )

    def reject(self, admin_id, reason, now=None):
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["Rejection reason is required"]})
        self.assert_transition(OrderStatus.REJECTED, Role.ADMIN)
        now = now or utcnow()

        with atomic_change(self):
            self.status = OrderStatus.REJECTED.value
            self.rejection_reason = reason.strip()
            self.reviewed_by_id = admin_id
            self._touch(now)

        self.raise_(
            OrderRejected(
                order_id=self.id,
                order_number=self.order_number,
                reviewed_by_id=admin_id,
                reason=self.rejection_reason,
                rejected_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Production and delivery
    # -------------------------------------------------------------------
    def advance(self, operator_id, target: OrderStatus, notes=None, tracking_number=None, now=None) -> OrderStatus:
        """Move the order one step along production. Returns the previous status.

        The transition is checked before the assignment, so an illegal move
        reads as a state conflict whoever asks for it.
        """
        if target is OrderStatus.CANCELLED:
            raise InvalidOperationError("Use cancel() to cancel an order")
        self.assert_transition(target, Role.OPERATOR)
        self._assert_assigned_to(operator_id)
        now = now or utcnow()

        previous = self.current_status
        with atomic_change(self):
            self.status = target.value
            if target is OrderStatus.IN_PRODUCTION and self.production_started_at is None:
                self.production_started_at = now
            if target is OrderStatus.OUT_FOR_DELIVERY and tracking_number:
                self.tracking_number = tracking_number
            self._touch(now)

        self._status_changed(previous, operator_id, notes, now)
        return previous

    def mark_delivered(self, performed_by=None, now=None) -> OrderStatus:
        """Record delivery. Any operator or the system may do this."""
        role = Role.OPERATOR if performed_by else Role.SYSTEM
        self.assert_transition(OrderStatus.DELIVERED, role)
        now = now or utcnow()

        previous = self.current_status
        self.status = OrderStatus.DELIVERED.value
        self._touch(now)

        self._status_changed(previous, performed_by, None, now)
        return previous

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, actor_id, role: Role, reason, production_started_at=None, now=None) -> OrderStatus:
        """Cancel the order on behalf of ``role``. Returns the status it had before.

        Customers must own the order, and may cancel an order in production
        only within ``CANCELLATION_WINDOW`` of production starting. Operators
        must be the assigned operator. Payment is settled as part of the
        cancellation: a paid order becomes ``REFUND_PENDING`` and an unpaid
        prepaid order becomes ``CANCELLED``.
        """
        if role is Role.CUSTOMER and not self.is_owned_by(actor_id):
            raise AuthorizationError(f"Order {self.order_number} does not belong to you")
        if self.current_status is OrderStatus.CANCELLED:
            raise InvalidOperationError(f"Order {self.order_number} is already cancelled")
        self.assert_transition(OrderStatus.CANCELLED, role)
        if role is Role.OPERATOR:
            self._assert_assigned_to(actor_id)

        now = now or utcnow()
        previous = self.current_status
        if role is Role.CUSTOMER and previous is OrderStatus.IN_PRODUCTION:
            started = as_utc(production_started_at or self.production_started_at or self.updated_at)
            if started is not None and now - started >= CANCELLATION_WINDOW:
                raise InvalidOperationError(
                    f"Order {self.order_number} has been in production for more than 2 hours and can no longer be cancelled"
                )

        with atomic_change(self):
            self.status = OrderStatus.CANCELLED.value
            self.cancellation_reason = reason
            self.cancelled_by_user_id = actor_id
            self.cancelled_at = now
            if self.payment_status == PaymentStatus.PAID.value:
                self.payment_status = PaymentStatus.REFUND_PENDING.value
            elif (
                self.payment_status == PaymentStatus.PENDING.value
                and self.payment_method != PaymentMethod.COD.value
            ):
                self.payment_status = PaymentStatus.CANCELLED.value
            self._touch(now)

        self.raise_(
            OrderCancelled(
                order_id=self.id,
                order_number=self.order_number,
                previous_status=previous.value,
                cancelled_by=actor_id,
                cancelled_by_role=role.value,
                reason=reason,
                payment_status=self.payment_status,
                cancelled_at=now,
            )
        )
        return previous
