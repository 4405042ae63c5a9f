"""Warehouse order domain events."""

from protean.fields import DateTime, Identifier, Integer, String

from batching.domain import batching


@batching.event(part_of="Order")
class OrderIngested:
    """An order arrived from intake and awaits batching."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    item_count = Integer(required=True)
    ingested_at = DateTime(required=True)


@batching.event(part_of="Order")
class OrderShipped:
    """A label was issued for the order and it left the station."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    batch_id = Identifier()
    chunk_id = Identifier()
    tracking_number = String()
    shipped_at = DateTime(required=True)


@batching.event(part_of="Order")
class OrderReturnedToQueue:
    """The order left its cart (out of stock, cancelled pick, released cart)."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    batch_id = Identifier()
    reason = String()
    returned_at = DateTime(required=True)
