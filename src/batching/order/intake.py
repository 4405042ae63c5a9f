"""Order intake — command and handler."""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import String, Text
from protean.utils.globals import current_domain

from batching.domain import batching
from batching.order.order import Order
from batching.shared.queries import find_one
from batching.utils.logging import get_logger

logger = get_logger(__name__)


@batching.command(part_of="Order")
class IngestOrder:
    """Register a warehouse order received from intake."""

    order_number = String(required=True, max_length=100)
    payload = Text(required=True)  # JSON order body


@batching.command_handler(part_of=Order)
class IngestOrderHandler:
    @handle(IngestOrder)
    def ingest_order(self, command):
        if find_one(Order, order_number=command.order_number.strip()) is not None:
            raise ValidationError({"order_number": [f"Order {command.order_number} already exists"]})
        payload = json.loads(command.payload) if isinstance(command.payload, str) else command.payload
        order = Order.ingest(command.order_number, payload)
        current_domain.repository_for(Order).add(order)
        logger.info("order_ingested", order_number=order.order_number, item_count=order.item_count)
        return str(order.id)


def get_order_by_number(order_number: str) -> Order:
    order = find_one(Order, order_number=order_number)
    if order is None:
        raise ObjectNotFoundError(f"Order {order_number} does not exist")
    return order
