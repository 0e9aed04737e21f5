"""Order placement: command and handler.

Placement validates the request before touching any collaborator, prices
every line from the catalogue, snapshots the shipping address, allocates an
order number and writes the order with its ``ORDER_CREATED`` entry.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from orders.catalogue import get_catalogue
from orders.directory import get_directory
from orders.domain import orders
from orders.errors import AuthorizationError
from orders.history.order_event import EventType, record
from orders.order.numbering import allocate_order_number
from orders.order.order import Order, PaymentMethod, ShippingAddress
from orders.shared.clock import utcnow

logger = structlog.get_logger(__name__)

_ADDRESS_FIELDS = ("recipient_name", "phone", "address_line", "city", "state", "zip", "country")


@orders.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{product_ref, quantity, size, custom_note}]
    payment_method = String(max_length=20)
    shipping_address = Text()  # JSON: inline address fields
    shipping_address_id = String(max_length=100)  # or a saved address
    delivery_instructions = String(max_length=500)


def _parse_items(raw) -> list[dict]:
    try:
        items = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError:
        raise ValidationError({"items": ["Items must be a JSON list"]}) from None
    if not items:
        raise ValidationError({"items": ["Order must contain at least one item"]})
    if not isinstance(items, list):
        raise ValidationError({"items": ["Items must be a JSON list"]})

    parsed = []
    for item in items:
        if not isinstance(item, dict) or not item.get("product_ref"):
            raise ValidationError({"items": ["Each item needs a product_ref"]})
        quantity = item.get("quantity", 1)
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        parsed.append(
            {
                "product_ref": str(item["product_ref"]),
                "quantity": quantity,
                "size": item.get("size"),
                "custom_note": item.get("custom_note"),
            }
        )
    return parsed


def _inline_address(raw) -> dict:
    try:
        fields = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError:
        raise ValidationError({"shipping_address": ["Shipping address must be a JSON object"]}) from None
    if not isinstance(fields, dict):
        raise ValidationError({"shipping_address": ["Shipping address must be a JSON object"]})
    address = {name: fields.get(name) for name in _ADDRESS_FIELDS}
    ShippingAddress(**address)  # validates required fields
    return address


def _saved_address(address_id, customer_id) -> dict:
    saved = get_directory().find_address(address_id)
    if saved is None:
        raise ObjectNotFoundError(f"Address {address_id} does not exist")
    if str(saved.owner_id) != str(customer_id):
        raise AuthorizationError(f"Address {address_id} does not belong to you")
    return {name: getattr(saved, name) for name in _ADDRESS_FIELDS}


def _price(item: dict) -> dict:
    product = get_catalogue().lookup(item["product_ref"])
    if product is None:
        raise ObjectNotFoundError(f"Product {item['product_ref']} does not exist")
    return {**item, "product_name": product.name, "unit_price": product.unit_price}


@orders.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items = _parse_items(command.items)
        Order._parse_payment_method(command.payment_method)
        if command.shipping_address:
            address = _inline_address(command.shipping_address)
        elif command.shipping_address_id:
            address = _saved_address(command.shipping_address_id, command.customer_id)
        else:
            raise ValidationError({"shipping_address": ["A shipping address or saved address is required"]})

        priced = [_price(item) for item in items]

        repo = current_domain.repository_for(Order)
        now = utcnow()
        order_number = allocate_order_number(repo, now.date())
        order = Order.place(
            customer_id=command.customer_id,
            order_number=order_number,
            items=priced,
            payment_method=command.payment_method,
            shipping_address=address,
            delivery_instructions=command.delivery_instructions,
            now=now,
        )

        if order.payment_method == PaymentMethod.COD.value:
            message = "Order placed successfully with cash on delivery. Awaiting review."
        else:
            message = "Order placed successfully. Awaiting payment."
        record(
            order,
            EventType.ORDER_CREATED,
            message,
            performed_by=command.customer_id,
            to_status=order.status,
            created_at=now,
        )
        repo.add(order)

        logger.info(
            "Order placed",
            order_number=order_number,
            customer_id=str(command.customer_id),
            status=order.status,
            order_total=order.order_total,
            item_count=len(priced),
        )
        return order_number
