"""Chunk domain events — one cart's pass through pick, engrave and ship."""

from protean.fields import DateTime, Identifier, Integer, String

from batching.domain import batching


@batching.event(part_of="Chunk")
class ChunkCheckedOut:
    """A cart was loaded with the next orders of a batch."""

    __version__ = 1

    chunk_id = Identifier(required=True)
    batch_id = Identifier(required=True)
    cart_id = Identifier(required=True)
    chunk_number = Integer(required=True)
    order_count = Integer(required=True)
    picker_name = String()
    checked_out_at = DateTime(required=True)


@batching.event(part_of="Chunk")
class ChunkPicked:
    __version__ = 1

    chunk_id = Identifier(required=True)
    batch_id = Identifier(required=True)
    order_count = Integer(required=True)
    pick_duration_seconds = Integer()
    picked_at = DateTime(required=True)


@batching.event(part_of="Chunk")
class EngravingStarted:
    __version__ = 1

    chunk_id = Identifier(required=True)
    engraver_name = String(required=True)
    started_at = DateTime(required=True)


@batching.event(part_of="Chunk")
class EngravingCompleted:
    __version__ = 1

    chunk_id = Identifier(required=True)
    engraver_name = String()
    active_seconds = Integer()
    paused_seconds = Integer()
    item_count = Integer()
    completed_at = DateTime(required=True)


@batching.event(part_of="Chunk")
class ShippingStarted:
    __version__ = 1

    chunk_id = Identifier(required=True)
    shipper_name = String()
    started_at = DateTime(required=True)


@batching.event(part_of="Chunk")
class ChunkCompleted:
    """Every label on the cart was issued and the cart was emptied."""

    __version__ = 1

    chunk_id = Identifier(required=True)
    batch_id = Identifier(required=True)
    shipped_count = Integer(required=True)
    ship_duration_seconds = Integer()
    completed_at = DateTime(required=True)


@batching.event(part_of="Chunk")
class ChunkCancelled:
    __version__ = 1

    chunk_id = Identifier(required=True)
    batch_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)
