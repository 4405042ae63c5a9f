"""Per-cell batch queues: ordering, drag-and-drop reorder and cell assignment.

A cell's queue is an explicit ordered list: batches sorted by their priority
in that cell, ties broken by insertion order (``created_at``) and then ID.
Drag-and-drop is computed with ``batching.shared.ordering.move``; the
persisted mutation is ``ReorderBatch``, which only touches the moved batch.
"""

import json
from collections.abc import Callable, Sequence

from protean import handle
from protean.fields import Identifier, Integer, Text
from protean.utils.globals import current_domain

from batching.batch.batch import Batch
from batching.batch.creation import next_cell_priority
from batching.cell.cell import PickCell
from batching.domain import batching
from batching.shared import ordering
from batching.shared.queries import find_all
from batching.utils.logging import get_logger

logger = get_logger(__name__)


def insertion_order(batch: Batch) -> tuple:
    """Default tie-break: older batches first, then by ID."""
    return ordering.insertion_order(batch.created_at, str(batch.id))


def order_queue(
    batches: Sequence[Batch],
    priority_of: Callable[[Batch], int],
    tie_break: Callable[[Batch], tuple] = insertion_order,
) -> list[Batch]:
    return ordering.order_by_priority(batches, priority_of, tie_break)


def list_for_cell(
    cell_id: str,
    include_completed: bool = False,
    tie_break: Callable[[Batch], tuple] = insertion_order,
) -> list[Batch]:
    """Batches queued in ``cell_id``, in picking order."""
    batches = [
        batch
        for batch in find_all(Batch)
        if batch.assignment_for(cell_id) is not None and (include_completed or not batch.is_completed)
    ]
    return order_queue(batches, lambda batch: batch.priority_for(cell_id), tie_break)


def list_personalized_pool(
    include_completed: bool = False,
    tie_break: Callable[[Batch], tuple] = insertion_order,
) -> list[Batch]:
    """Personalized batches not tied to any cell, by batch priority."""
    batches = [
        batch
        for batch in find_all(Batch)
        if batch.in_personalized_pool and (include_completed or not batch.is_completed)
    ]
    return order_queue(batches, lambda batch: batch.priority or 0, tie_break)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@batching.command(part_of="Batch")
class ReorderBatch:
    """Set a batch's priority in one cell's queue (personalized pool when no cell)."""

    batch_id = Identifier(required=True)
    cell_id = Identifier()
    priority = Integer(required=True)


@batching.command(part_of="Batch")
class SetCellAssignments:
    """Replace the set of cells working a batch."""

    batch_id = Identifier(required=True)
    cell_ids = Text(required=True)  # JSON list of cell IDs


@batching.command_handler(part_of=Batch)
class BatchQueueHandler:
    @handle(ReorderBatch)
    def reorder_batch(self, command):
        repo = current_domain.repository_for(Batch)
        batch = repo.get(command.batch_id)
        batch.reorder(command.cell_id, command.priority)
        repo.add(batch)
        logger.info(
            "batch_reordered",
            batch_id=str(batch.id),
            cell_id=command.cell_id,
            priority=command.priority,
        )
        return str(batch.id)

    @handle(SetCellAssignments)
    def set_cell_assignments(self, command):
        cell_ids = json.loads(command.cell_ids) if isinstance(command.cell_ids, str) else []
        repo = current_domain.repository_for(Batch)
        batch = repo.get(command.batch_id)

        cell_repo = current_domain.repository_for(PickCell)
        for cell_id in cell_ids:
            cell_repo.get(cell_id)

        others = [b for b in find_all(Batch) if str(b.id) != str(batch.id)]
        next_priorities = {str(cell_id): next_cell_priority(str(cell_id), others) for cell_id in cell_ids}
        added, removed = batch.set_cells(cell_ids, next_priorities)
        repo.add(batch)
        logger.info("batch_cells_changed", batch_id=str(batch.id), added=added, removed=removed)
        return {"added": added, "removed": removed, "cell_ids": batch.cell_ids}
