"""Order aggregate: one warehouse order moving through batch, cart and bin.

The raw intake payload is kept verbatim in ``payload``; line items are always
read through ``batching.shared.line_items``. Batch, chunk, bin and shelf are
plain references that are attached at batching/checkout time and detached
when the order returns to the queue or its batch is deleted.

State Machine:
    AWAITING_SHIPMENT → SHIPPED
    SHIPPED → AWAITING_SHIPMENT (administrative reset only)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from batching.domain import batching
from batching.order.events import OrderIngested, OrderReturnedToQueue, OrderShipped
from batching.shared import line_items


class OrderStatus(Enum):
    AWAITING_SHIPMENT = "AWAITING_SHIPMENT"
    SHIPPED = "SHIPPED"


@batching.aggregate
class Order:
    order_number = String(required=True, max_length=100)
    payload = Text(required=True)  # JSON order body as received from intake
    status = String(choices=OrderStatus, default=OrderStatus.AWAITING_SHIPMENT.value)
    batch_id = Identifier()
    chunk_id = Identifier()
    bulk_batch_id = Identifier()  # bulk group within the batch
    bin_number = Integer()
    shelf_number = Integer()
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)
    label_url = String(max_length=500)
    label_cost = Float()
    picked_at = DateTime()
    engraved_at = DateTime()
    shipped_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def ingest(cls, order_number: str, payload) -> "Order":
        order_number = (order_number or "").strip()
        if not order_number:
            raise ValidationError({"order_number": ["Order number is required"]})
        body = line_items.order_body(payload)
        if not isinstance(body, dict):
            raise ValidationError({"payload": ["Order payload must be an object"]})
        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            payload=json.dumps(body),
            status=OrderStatus.AWAITING_SHIPMENT.value,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderIngested(
                order_id=str(order.id),
                order_number=order_number,
                item_count=order.item_count,
                ingested_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Derived views of the payload
    # -------------------------------------------------------------------
    @property
    def items(self) -> list[line_items.LineItem]:
        return line_items.line_items(self.payload)

    @property
    def item_count(self) -> int:
        return line_items.item_count(self.payload)

    @property
    def signature(self) -> str:
        return line_items.composition_signature(self.payload)

    @property
    def is_personalized(self) -> bool:
        return line_items.is_personalized_order(self.payload)

    @property
    def pick_location(self) -> str:
        return line_items.pick_location(self.payload)

    @property
    def is_shipped(self) -> bool:
        return self.status == OrderStatus.SHIPPED.value

    # -------------------------------------------------------------------
    # Batch and cart placement
    # -------------------------------------------------------------------
    def attach_to_batch(self, batch_id: str, bulk_batch_id: str | None = None) -> None:
        if self.batch_id and str(self.batch_id) != str(batch_id):
            raise ValidationError({"order_number": [f"Order {self.order_number} is already in another batch"]})
        if self.is_shipped:
            raise ValidationError({"order_number": [f"Order {self.order_number} has already shipped"]})
        self.batch_id = batch_id
        self.bulk_batch_id = bulk_batch_id
        self.updated_at = datetime.now(UTC)

    def place_in_bin(self, chunk_id: str, bin_number: int, shelf_number: int | None = None) -> None:
        self.chunk_id = chunk_id
        self.bin_number = bin_number
        self.shelf_number = shelf_number
        self.updated_at = datetime.now(UTC)

    def mark_picked(self) -> bool:
        """Record the first completed pick. Returns False when already counted."""
        if self.picked_at is not None:
            return False
        self.picked_at = datetime.now(UTC)
        return True

    def mark_engraved(self) -> bool:
        """Record engraving once. Returns False when already counted."""
        if self.engraved_at is not None:
            return False
        self.engraved_at = datetime.now(UTC)
        return True

    def return_to_queue(self, reason: str) -> None:
        """Leave the cart but stay in the batch, ready for the next checkout."""
        now = datetime.now(UTC)
        self.chunk_id = None
        self.bin_number = None
        self.shelf_number = None
        self.updated_at = now
        self.raise_(
            OrderReturnedToQueue(
                order_id=str(self.id),
                order_number=self.order_number,
                batch_id=self.batch_id,
                reason=reason,
                returned_at=now,
            )
        )

    def detach(self) -> None:
        """Unlink from batch, chunk and bin. The order itself is never deleted."""
        self.batch_id = None
        self.bulk_batch_id = None
        self.chunk_id = None
        self.bin_number = None
        self.shelf_number = None
        self.picked_at = None
        self.engraved_at = None
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Shipping
    # -------------------------------------------------------------------
    def mark_shipped(self, extra: dict | None = None) -> bool:
        """Move to SHIPPED. Repeating it is a no-op reported as False."""
        if self.is_shipped:
            return False
        extra = extra or {}
        now = datetime.now(UTC)
        self.status = OrderStatus.SHIPPED.value
        self.tracking_number = extra.get("tracking_number") or self.tracking_number
        self.carrier = extra.get("carrier") or self.carrier
        self.label_url = extra.get("label_url") or self.label_url
        if extra.get("label_cost") is not None:
            self.label_cost = float(extra["label_cost"])
        self.shipped_at = now
        self.updated_at = now
        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                order_number=self.order_number,
                batch_id=self.batch_id,
                chunk_id=self.chunk_id,
                tracking_number=self.tracking_number,
                shipped_at=now,
            )
        )
        return True

    def reset_shipment(self) -> None:
        """Clear batch, cart and shipment fields (administrative reset)."""
        self.detach()
        self.status = OrderStatus.AWAITING_SHIPMENT.value
        self.tracking_number = None
        self.carrier = None
        self.label_url = None
        self.label_cost = None
        self.shipped_at = None
