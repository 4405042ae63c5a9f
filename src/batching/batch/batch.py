"""Batch aggregate: a named group of orders queued for fulfillment.

A batch is worked by one or more pick cells (``CellAssignment``, each with
its own queue priority). Personalized batches without any cell form the
personalized pool. Bulk batches carry ``BulkBatchInfo`` groups of identical
orders, each staged on one cart shelf.

State Machine:
    ACTIVE → IN_PROGRESS → COMPLETED
    (legacy DRAFT and RELEASED behave as ACTIVE)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String, Text

from batching.batch.events import (
    BatchCellsChanged,
    BatchCompleted,
    BatchCreated,
    BatchReordered,
    BatchStarted,
)
from batching.domain import batching
from batching.layout.bins import SkuLayoutEntry


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class BatchType(Enum):
    SINGLES = "SINGLES"
    BULK = "BULK"
    ORDER_BY_SIZE = "ORDER_BY_SIZE"


class BatchStatus(Enum):
    DRAFT = "DRAFT"
    RELEASED = "RELEASED"
    ACTIVE = "ACTIVE"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class BulkBatchStatus(Enum):
    PENDING = "PENDING"
    PICKING = "PICKING"
    SHIPPED = "SHIPPED"


_ACTIVE_SYNONYMS = {BatchStatus.DRAFT.value, BatchStatus.RELEASED.value, BatchStatus.ACTIVE.value}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@batching.entity(part_of="Batch")
class CellAssignment:
    """A cell working the batch, with the batch's position in that cell's queue."""

    cell_id = Identifier(required=True)
    priority = Integer(required=True, default=0)
    assigned_at = DateTime()


@batching.entity(part_of="Batch")
class BulkBatchInfo:
    """A group of identical orders staged together on one shelf."""

    group_signature = String(required=True, max_length=500)
    order_count = Integer(required=True, min_value=0)
    split_index = Integer(default=1)
    total_splits = Integer(default=1)
    status = String(choices=BulkBatchStatus, default=BulkBatchStatus.PENDING.value)
    sku_layout = Text()  # JSON list of {sku, binQty, masterUnitIndex}

    @property
    def layout_entries(self) -> list[SkuLayoutEntry]:
        return [SkuLayoutEntry.from_dict(entry) for entry in json.loads(self.sku_layout or "[]")]


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@batching.aggregate
class Batch:
    name = String(required=True, max_length=100)
    batch_type = String(choices=BatchType, default=BatchType.ORDER_BY_SIZE.value)
    is_personalized = Boolean(default=False)
    status = String(choices=BatchStatus, default=BatchStatus.ACTIVE.value)
    priority = Integer(default=0)
    total_orders = Integer(default=0)
    picked_orders = Integer(default=0)
    shipped_orders = Integer(default=0)
    engraved_orders = Integer(default=0)
    cell_assignments = HasMany(CellAssignment)
    bulk_batches = HasMany(BulkBatchInfo)
    created_at = DateTime()
    completed_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def order_counters_are_ordered(self):
        total = self.total_orders or 0
        picked = self.picked_orders or 0
        shipped = self.shipped_orders or 0
        if not 0 <= shipped <= picked <= total:
            raise ValidationError(
                {"counters": [f"Expected 0 <= shipped ({shipped}) <= picked ({picked}) <= total ({total})"]}
            )

    @invariant.post
    def engraved_orders_within_total(self):
        if (self.engraved_orders or 0) > (self.total_orders or 0):
            raise ValidationError({"engraved_orders": ["Cannot engrave more orders than the batch holds"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        name: str,
        batch_type: BatchType,
        total_orders: int,
        is_personalized: bool = False,
        priority: int = 0,
        cell_priorities: dict[str, int] | None = None,
    ) -> "Batch":
        """Create an ACTIVE batch queued at the given priority in each cell."""
        cell_priorities = cell_priorities or {}
        if not cell_priorities and not is_personalized:
            raise ValidationError({"cell_ids": ["At least one cell is required for a non-personalized batch"]})

        now = datetime.now(UTC)
        batch = cls(
            name=name,
            batch_type=batch_type.value,
            is_personalized=is_personalized,
            status=BatchStatus.ACTIVE.value,
            priority=priority,
            total_orders=total_orders,
            created_at=now,
            updated_at=now,
        )
        for cell_id, cell_priority in cell_priorities.items():
            batch.add_cell_assignments(CellAssignment(cell_id=cell_id, priority=cell_priority, assigned_at=now))
        batch.raise_(
            BatchCreated(
                batch_id=str(batch.id),
                name=name,
                batch_type=batch_type.value,
                total_orders=total_orders,
                cell_ids=json.dumps(list(cell_priorities)),
                created_at=now,
            )
        )
        return batch

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    @property
    def effective_status(self) -> str:
        """Status with legacy DRAFT/RELEASED folded into ACTIVE."""
        if self.status in _ACTIVE_SYNONYMS:
            return BatchStatus.ACTIVE.value
        return self.status

    @property
    def is_completed(self) -> bool:
        return self.status == BatchStatus.COMPLETED.value

    def assert_mutable(self) -> None:
        if self.is_completed:
            raise ValidationError({"batch_id": [f"Batch {self.name} is already completed"]})

    def start(self) -> None:
        """ACTIVE → IN_PROGRESS on the first pick checkout. Later checkouts are no-ops."""
        self.assert_mutable()
        if self.effective_status != BatchStatus.ACTIVE.value:
            return
        now = datetime.now(UTC)
        self.status = BatchStatus.IN_PROGRESS.value
        self.updated_at = now
        self.raise_(BatchStarted(batch_id=str(self.id), started_at=now))

    def complete(self) -> None:
        if self.is_completed:
            return
        now = datetime.now(UTC)
        self.status = BatchStatus.COMPLETED.value
        self.completed_at = now
        self.updated_at = now
        self.raise_(
            BatchCompleted(
                batch_id=str(self.id),
                total_orders=self.total_orders,
                shipped_orders=self.shipped_orders,
                completed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Counters
    # -------------------------------------------------------------------
    def record_picked(self, count: int) -> None:
        if count <= 0:
            return
        self.picked_orders = (self.picked_orders or 0) + count
        self.updated_at = datetime.now(UTC)

    def record_shipped(self) -> None:
        self.shipped_orders = (self.shipped_orders or 0) + 1
        self.updated_at = datetime.now(UTC)

    def record_engraved(self) -> None:
        self.engraved_orders = (self.engraved_orders or 0) + 1
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Cell assignments
    # -------------------------------------------------------------------
    @property
    def cell_ids(self) -> list[str]:
        return [str(a.cell_id) for a in self.cell_assignments or []]

    @property
    def is_shared(self) -> bool:
        return len(self.cell_assignments or []) > 1

    @property
    def in_personalized_pool(self) -> bool:
        return bool(self.is_personalized) and not self.cell_assignments

    def assignment_for(self, cell_id: str) -> CellAssignment | None:
        return next((a for a in self.cell_assignments or [] if str(a.cell_id) == str(cell_id)), None)

    def priority_for(self, cell_id: str) -> int:
        """Queue priority in ``cell_id``, falling back to the batch priority."""
        assignment = self.assignment_for(cell_id)
        if assignment is not None and assignment.priority is not None:
            return assignment.priority
        return self.priority or 0

    def reorder(self, cell_id: str | None, new_priority: int) -> None:
        """Set this batch's priority in one cell's queue. No other batch moves."""
        self.assert_mutable()
        now = datetime.now(UTC)
        if cell_id is None:
            if not self.in_personalized_pool:
                raise ValidationError({"cell_id": ["A cell is required to reorder a cell-assigned batch"]})
            self.priority = new_priority
        else:
            assignment = self.assignment_for(cell_id)
            if assignment is None:
                raise ValidationError({"cell_id": [f"Batch {self.name} is not assigned to this cell"]})
            assignment.priority = new_priority
        self.updated_at = now
        self.raise_(
            BatchReordered(
                batch_id=str(self.id),
                cell_id=cell_id,
                priority=new_priority,
                reordered_at=now,
            )
        )

    def set_cells(self, cell_ids: list[str], next_priorities: dict[str, int]) -> tuple[list[str], list[str]]:
        """Reconcile assignments to exactly ``cell_ids``.

        New cells are queued at ``next_priorities[cell_id]``; kept cells keep
        their priority. Returns the added and removed cell IDs.
        """
        self.assert_mutable()
        wanted = list(dict.fromkeys(str(c) for c in cell_ids))
        if not wanted:
            raise ValidationError({"cell_ids": ["A batch must stay assigned to at least one cell"]})

        now = datetime.now(UTC)
        current = self.cell_ids
        removed = [cell_id for cell_id in current if cell_id not in wanted]
        added = [cell_id for cell_id in wanted if cell_id not in current]
        with atomic_change(self):
            for cell_id in removed:
                self.remove_cell_assignments(self.assignment_for(cell_id))
            for cell_id in added:
                self.add_cell_assignments(
                    CellAssignment(cell_id=cell_id, priority=next_priorities.get(cell_id, 0), assigned_at=now)
                )
            self.updated_at = now

        if added or removed:
            self.raise_(
                BatchCellsChanged(
                    batch_id=str(self.id),
                    added_cell_ids=json.dumps(added),
                    removed_cell_ids=json.dumps(removed),
                    changed_at=now,
                )
            )
        return added, removed

    # -------------------------------------------------------------------
    # Bulk groups
    # -------------------------------------------------------------------
    def add_bulk_group(
        self,
        group_signature: str,
        order_count: int,
        split_index: int,
        total_splits: int,
        sku_layout: list[SkuLayoutEntry],
    ) -> BulkBatchInfo:
        info = BulkBatchInfo(
            group_signature=group_signature,
            order_count=order_count,
            split_index=split_index,
            total_splits=total_splits,
            status=BulkBatchStatus.PENDING.value,
            sku_layout=json.dumps([entry.to_dict() for entry in sku_layout]),
        )
        self.add_bulk_batches(info)
        return info

    def bulk_group(self, bulk_batch_id: str) -> BulkBatchInfo | None:
        return next((b for b in self.bulk_batches or [] if str(b.id) == str(bulk_batch_id)), None)

    def pending_bulk_groups(self) -> list[BulkBatchInfo]:
        pending = [b for b in self.bulk_batches or [] if b.status == BulkBatchStatus.PENDING.value]
        return sorted(pending, key=lambda b: (b.group_signature, b.split_index or 0))

    def set_bulk_group_status(self, bulk_batch_id: str, status: BulkBatchStatus, order_count: int | None = None):
        group = self.bulk_group(bulk_batch_id)
        if group is None:
            return
        group.status = status.value
        if order_count is not None:
            group.order_count = order_count
        self.updated_at = datetime.now(UTC)
