"""Chunk aggregate: the part of a batch checked out to one physical cart.

Orders reference their chunk (``Order.chunk_id``) together with their bin
and, for bulk carts, their shelf. The chunk carries the phase of the cart,
the people working it, timing metrics, and the engraving progress record
used to resume an interrupted engraving session.

State Machine:
    PICKING → PICKED → SHIPPING → COMPLETED
    PICKED → ENGRAVING → ENGRAVED → SHIPPING        (personalized)
    ENGRAVING → PICKED                              (engraving cancelled)
    {PICKING, PICKED} → CANCELLED                   (picking cancelled)
    any active → CANCELLED                          (cart released)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import InvalidStateError, ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from batching.batch.batch import BatchType
from batching.chunk.events import (
    ChunkCancelled,
    ChunkCheckedOut,
    ChunkCompleted,
    ChunkPicked,
    EngravingCompleted,
    EngravingStarted,
    ShippingStarted,
)
from batching.domain import batching
from batching.layout.bins import Shelf, SkuLayoutEntry
from batching.shared.engraving import clamp_index, next_incomplete_index


class ChunkStatus(Enum):
    PICKING = "PICKING"
    PICKED = "PICKED"
    ENGRAVING = "ENGRAVING"
    ENGRAVED = "ENGRAVED"
    SHIPPING = "SHIPPING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


ACTIVE_STATUSES = {
    ChunkStatus.PICKING.value,
    ChunkStatus.PICKED.value,
    ChunkStatus.ENGRAVING.value,
    ChunkStatus.ENGRAVED.value,
    ChunkStatus.SHIPPING.value,
}

_VALID_TRANSITIONS = {
    ChunkStatus.PICKING: {ChunkStatus.PICKED, ChunkStatus.CANCELLED},
    ChunkStatus.PICKED: {ChunkStatus.ENGRAVING, ChunkStatus.SHIPPING, ChunkStatus.CANCELLED},
    ChunkStatus.ENGRAVING: {ChunkStatus.ENGRAVED, ChunkStatus.PICKED, ChunkStatus.CANCELLED},
    ChunkStatus.ENGRAVED: {ChunkStatus.SHIPPING, ChunkStatus.CANCELLED},
    ChunkStatus.SHIPPING: {ChunkStatus.COMPLETED, ChunkStatus.CANCELLED},
    ChunkStatus.COMPLETED: set(),  # terminal
    ChunkStatus.CANCELLED: set(),  # terminal
}


def _seconds_since(start: datetime | None, end: datetime) -> int | None:
    if start is None:
        return None
    if start.tzinfo is None:
        start = start.replace(tzinfo=UTC)
    return max(0, int((end - start).total_seconds()))


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@batching.value_object(part_of="Chunk")
class EngravingProgress:
    """Persisted engraving cursor, consulted to resume a session."""

    completed_items = Text()  # JSON list of item indices
    current_index = Integer(default=0)
    total_paused_ms = Integer(default=0)

    @property
    def completed(self) -> list[int]:
        return sorted(json.loads(self.completed_items or "[]"))


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@batching.entity(part_of="Chunk")
class ChunkBulkBatchAssignment:
    """Binds a shelf of a bulk cart to one bulk group of the batch."""

    shelf_number = Integer(required=True, min_value=1, max_value=3)
    bulk_batch_id = Identifier(required=True)
    order_count = Integer(required=True, min_value=0)
    sku_layout = Text()  # JSON list of {sku, binQty, masterUnitIndex}

    def as_shelf(self) -> Shelf:
        entries = tuple(SkuLayoutEntry.from_dict(entry) for entry in json.loads(self.sku_layout or "[]"))
        return Shelf(
            shelf_number=self.shelf_number,
            order_count=self.order_count,
            sku_layout=entries,
            bulk_batch_id=str(self.bulk_batch_id),
        )


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@batching.aggregate
class Chunk:
    batch_id = Identifier(required=True)
    cart_id = Identifier(required=True)
    chunk_number = Integer(required=True, min_value=1)
    status = String(choices=ChunkStatus, default=ChunkStatus.PICKING.value)
    picking_mode = String(choices=BatchType, default=BatchType.ORDER_BY_SIZE.value)
    is_personalized = Boolean(default=False)
    order_count = Integer(default=0)
    out_of_stock_count = Integer(default=0)
    shipped_count = Integer(default=0)
    picker_name = String(max_length=100)
    engraver_name = String(max_length=100)
    shipper_name = String(max_length=100)
    engraving_progress = ValueObject(EngravingProgress)
    bulk_assignments = HasMany(ChunkBulkBatchAssignment)
    picking_started_at = DateTime()
    picked_at = DateTime()
    pick_duration_seconds = Integer()
    engraving_started_at = DateTime()
    engraved_at = DateTime()
    engraving_active_seconds = Integer()
    engraving_paused_seconds = Integer()
    engraved_item_count = Integer()
    shipping_started_at = DateTime()
    completed_at = DateTime()
    ship_duration_seconds = Integer()
    cancelled_at = DateTime()
    cancel_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def check_out(
        cls,
        batch_id: str,
        cart_id: str,
        chunk_number: int,
        picking_mode: str,
        is_personalized: bool,
        picker_name: str,
        order_count: int,
        shelves: list[Shelf] | None = None,
    ) -> "Chunk":
        now = datetime.now(UTC)
        chunk = cls(
            batch_id=batch_id,
            cart_id=cart_id,
            chunk_number=chunk_number,
            status=ChunkStatus.PICKING.value,
            picking_mode=picking_mode,
            is_personalized=is_personalized,
            order_count=order_count,
            picker_name=picker_name,
            picking_started_at=now,
            created_at=now,
            updated_at=now,
        )
        for shelf in shelves or []:
            chunk.add_bulk_assignments(
                ChunkBulkBatchAssignment(
                    shelf_number=shelf.shelf_number,
                    bulk_batch_id=shelf.bulk_batch_id,
                    order_count=shelf.order_count,
                    sku_layout=json.dumps([entry.to_dict() for entry in shelf.sku_layout]),
                )
            )
        chunk.raise_(
            ChunkCheckedOut(
                chunk_id=str(chunk.id),
                batch_id=batch_id,
                cart_id=cart_id,
                chunk_number=chunk_number,
                order_count=order_count,
                picker_name=picker_name,
                checked_out_at=now,
            )
        )
        return chunk

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: ChunkStatus) -> None:
        current = ChunkStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_ready_to_ship(self) -> bool:
        if self.is_personalized:
            return self.status == ChunkStatus.ENGRAVED.value
        return self.status == ChunkStatus.PICKED.value

    @property
    def shelves(self) -> list[Shelf]:
        return sorted((a.as_shelf() for a in self.bulk_assignments or []), key=lambda s: s.shelf_number)

    # -------------------------------------------------------------------
    # Picking
    # -------------------------------------------------------------------
    def record_out_of_stock(self, order_count: int) -> None:
        if self.status != ChunkStatus.PICKING.value:
            raise ValidationError({"status": ["Out-of-stock bins can only be reported while picking"]})
        self.out_of_stock_count = (self.out_of_stock_count or 0) + order_count
        self.order_count = max(0, (self.order_count or 0) - order_count)
        self.updated_at = datetime.now(UTC)

    def complete_picking(self) -> None:
        self._assert_can_transition(ChunkStatus.PICKED)
        now = datetime.now(UTC)
        self.status = ChunkStatus.PICKED.value
        self.picked_at = now
        self.pick_duration_seconds = _seconds_since(self.picking_started_at, now)
        self.updated_at = now
        self.raise_(
            ChunkPicked(
                chunk_id=str(self.id),
                batch_id=self.batch_id,
                order_count=self.order_count,
                pick_duration_seconds=self.pick_duration_seconds,
                picked_at=now,
            )
        )

    def cancel_picking(self, reason: str = "picking cancelled") -> None:
        if self.status not in (ChunkStatus.PICKING.value, ChunkStatus.PICKED.value):
            raise ValidationError({"status": [f"Picking cannot be cancelled once the cart is {self.status}"]})
        self.cancel(reason)

    def cancel(self, reason: str) -> None:
        previous = self.status
        self._assert_can_transition(ChunkStatus.CANCELLED)
        now = datetime.now(UTC)
        self.status = ChunkStatus.CANCELLED.value
        self.engraving_progress = None
        self.cancelled_at = now
        self.cancel_reason = reason
        self.updated_at = now
        self.raise_(
            ChunkCancelled(
                chunk_id=str(self.id),
                batch_id=self.batch_id,
                previous_status=previous,
                reason=reason,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Engraving
    # -------------------------------------------------------------------
    @property
    def has_engraving_progress(self) -> bool:
        return self.engraving_progress is not None and bool(self.engraver_name)

    def start_engraving(self, engraver_name: str) -> None:
        if not self.is_personalized:
            raise ValidationError({"chunk_id": ["Only personalized carts are engraved"]})
        self._assert_can_transition(ChunkStatus.ENGRAVING)
        now = datetime.now(UTC)
        self.status = ChunkStatus.ENGRAVING.value
        self.engraver_name = engraver_name
        self.engraving_started_at = now
        self.engraving_progress = EngravingProgress(completed_items="[]", current_index=0, total_paused_ms=0)
        self.updated_at = now
        self.raise_(EngravingStarted(chunk_id=str(self.id), engraver_name=engraver_name, started_at=now))

    def assert_engraver(self, engraver_name: str) -> None:
        if self.engraver_name and engraver_name and self.engraver_name != engraver_name:
            raise InvalidStateError(f"Cart is being engraved by {self.engraver_name}")

    def record_engraved_item(self, item_index: int, total_paused_ms: int, item_count: int) -> bool:
        """Persist one completed item. Returns False when it was already recorded."""
        if self.status != ChunkStatus.ENGRAVING.value:
            raise ValidationError({"status": ["Items can only be engraved during ENGRAVING phase"]})
        if item_index < 0 or item_index >= item_count:
            raise ValidationError({"item_index": [f"Item {item_index} is not on this cart"]})

        progress = self.engraving_progress or EngravingProgress(completed_items="[]")
        completed = set(progress.completed)
        is_new = item_index not in completed
        completed.add(item_index)
        self.engraving_progress = EngravingProgress(
            completed_items=json.dumps(sorted(completed)),
            current_index=next_incomplete_index(completed, item_index, item_count),
            total_paused_ms=max(progress.total_paused_ms or 0, total_paused_ms or 0),
        )
        self.updated_at = datetime.now(UTC)
        return is_new

    def clamp_progress(self, item_count: int) -> None:
        if self.engraving_progress is None:
            return
        progress = self.engraving_progress
        self.engraving_progress = EngravingProgress(
            completed_items=progress.completed_items,
            current_index=clamp_index(progress.current_index, item_count),
            total_paused_ms=progress.total_paused_ms,
        )

    def complete_engraving(self, active_seconds: int, paused_seconds: int, item_count: int) -> None:
        self._assert_can_transition(ChunkStatus.ENGRAVED)
        now = datetime.now(UTC)
        self.status = ChunkStatus.ENGRAVED.value
        self.engraved_at = now
        self.engraving_active_seconds = active_seconds
        self.engraving_paused_seconds = paused_seconds
        self.engraved_item_count = item_count
        self.engraving_progress = None
        self.updated_at = now
        self.raise_(
            EngravingCompleted(
                chunk_id=str(self.id),
                engraver_name=self.engraver_name,
                active_seconds=active_seconds,
                paused_seconds=paused_seconds,
                item_count=item_count,
                completed_at=now,
            )
        )

    def cancel_engraving(self) -> None:
        """Give the cart back before anything was engraved."""
        if self.status != ChunkStatus.ENGRAVING.value:
            raise ValidationError({"status": ["Cart is not being engraved"]})
        if self.engraving_progress is not None and self.engraving_progress.completed:
            raise ValidationError({"status": ["Engraving cannot be cancelled after items were engraved"]})
        self.status = ChunkStatus.PICKED.value
        self.engraver_name = None
        self.engraving_started_at = None
        self.engraving_progress = None
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Shipping
    # -------------------------------------------------------------------
    def start_shipping(self, shipper_name: str) -> None:
        if not self.is_ready_to_ship:
            raise ValidationError({"status": [f"Cart is {self.status} and not ready to ship"]})
        now = datetime.now(UTC)
        self.status = ChunkStatus.SHIPPING.value
        self.shipper_name = shipper_name
        self.shipping_started_at = now
        self.updated_at = now
        self.raise_(ShippingStarted(chunk_id=str(self.id), shipper_name=shipper_name, started_at=now))

    def record_shipped(self) -> None:
        if self.status != ChunkStatus.SHIPPING.value:
            raise ValidationError({"status": ["Orders can only be shipped during SHIPPING phase"]})
        self.shipped_count = (self.shipped_count or 0) + 1
        self.updated_at = datetime.now(UTC)

    def complete(self) -> None:
        self._assert_can_transition(ChunkStatus.COMPLETED)
        now = datetime.now(UTC)
        self.status = ChunkStatus.COMPLETED.value
        self.completed_at = now
        self.ship_duration_seconds = _seconds_since(self.shipping_started_at, now)
        self.updated_at = now
        self.raise_(
            ChunkCompleted(
                chunk_id=str(self.id),
                batch_id=self.batch_id,
                shipped_count=self.shipped_count or 0,
                ship_duration_seconds=self.ship_duration_seconds,
                completed_at=now,
            )
        )
