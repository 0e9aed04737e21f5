from protean.exceptions import ObjectNotFoundError

from orders.domain import orders
from orders.order.order import Order


@orders.repository(part_of=Order)
class OrderRepository:
    def get_by_number(self, order_number: str) -> Order:
        """Load an order by its external number."""
        found = self._dao.query.filter(order_number=order_number).all().items
        if not found:
            raise ObjectNotFoundError(f"Order {order_number} does not exist")
        return self.get(found[0].id)

    def number_taken(self, order_number: str) -> bool:
        return bool(self._dao.query.filter(order_number=order_number).all().items)

    def for_customer(self, customer_id) -> list[Order]:
        """A customer's orders, newest first."""
        found = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return sorted(found, key=lambda order: (order.created_at, order.order_number), reverse=True)

    def staff_listing(self, status: str | None = None, operator_id=None) -> list[Order]:
        """Orders for staff screens, newest first, optionally narrowed by status and operator."""
        criteria = {}
        if status:
            criteria["status"] = status
        if operator_id:
            criteria["assigned_operator_id"] = str(operator_id)
        query = self._dao.query.filter(**criteria) if criteria else self._dao.query
        found = query.all().items
        return sorted(found, key=lambda order: (order.created_at, order.order_number), reverse=True)
