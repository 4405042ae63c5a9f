"""Batch domain events."""

from protean.fields import DateTime, Identifier, Integer, String, Text

from batching.domain import batching


@batching.event(part_of="Batch")
class BatchCreated:
    """A group of orders was queued for fulfillment."""

    __version__ = 1

    batch_id = Identifier(required=True)
    name = String(required=True)
    batch_type = String(required=True)
    total_orders = Integer(required=True)
    cell_ids = Text()  # JSON list of cell IDs
    created_at = DateTime(required=True)


@batching.event(part_of="Batch")
class BatchReordered:
    """The batch moved within one cell's queue."""

    __version__ = 1

    batch_id = Identifier(required=True)
    cell_id = Identifier()
    priority = Integer(required=True)
    reordered_at = DateTime(required=True)


@batching.event(part_of="Batch")
class BatchCellsChanged:
    """The set of cells working the batch was replaced."""

    __version__ = 1

    batch_id = Identifier(required=True)
    added_cell_ids = Text()  # JSON list
    removed_cell_ids = Text()  # JSON list
    changed_at = DateTime(required=True)


@batching.event(part_of="Batch")
class BatchStarted:
    """The first cart of the batch was checked out for picking."""

    __version__ = 1

    batch_id = Identifier(required=True)
    started_at = DateTime(required=True)


@batching.event(part_of="Batch")
class BatchCompleted:
    """Every order of the batch has shipped."""

    __version__ = 1

    batch_id = Identifier(required=True)
    total_orders = Integer(required=True)
    shipped_orders = Integer(required=True)
    completed_at = DateTime(required=True)
