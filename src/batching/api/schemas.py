"""Pydantic API schemas for the batching context.

These are the external API contracts, separate from domain commands. The
routes translate between these schemas and commands.
"""

from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class IngestOrderRequest(BaseModel):
    order_number: str
    payload: dict[str, Any]


class CreateCellRequest(BaseModel):
    name: str


class UpdateCellRequest(BaseModel):
    name: str | None = None
    active: bool | None = None


class CreateCartRequest(BaseModel):
    name: str
    color: str | None = None


class UpdateCartRequest(BaseModel):
    name: str | None = None
    color: str | None = None
    active: bool | None = None


class ReleaseCartRequest(BaseModel):
    reason: str | None = None


class CreateBatchRequest(BaseModel):
    order_numbers: list[str]
    cell_ids: list[str] = Field(default_factory=list)
    batch_type: str | None = None
    is_personalized: bool | None = None
    name: str | None = None


class ReorderBatchRequest(BaseModel):
    cell_id: str | None = None
    priority: int


class SetCellsRequest(BaseModel):
    cell_ids: list[str]


class ResetBatchesRequest(BaseModel):
    requested_by: str | None = None


class CheckoutCartRequest(BaseModel):
    worker_name: str
    phase: str = "PICK"
    cell_id: str | None = None
    batch_id: str | None = None


class OutOfStockRequest(BaseModel):
    bin_numbers: list[int]


class CompleteOrderRequest(BaseModel):
    tracking_number: str | None = None
    carrier: str | None = None
    label_url: str | None = None
    label_cost: float | None = None


class CompleteCartRequest(BaseModel):
    chunk_id: str


class MarkEngravedItemRequest(BaseModel):
    item_index: int
    total_paused_ms: int = 0


class CompleteEngravingRequest(BaseModel):
    active_seconds: int = 0
    paused_seconds: int = 0
    item_count: int = 0


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class IdResponse(BaseModel):
    id: str


class StatusResponse(BaseModel):
    status: str


class OrderResponse(BaseModel):
    id: str
    order_number: str
    status: str
    batch_id: str | None = None
    chunk_id: str | None = None
    bin_number: int | None = None
    shelf_number: int | None = None
    tracking_number: str | None = None
    item_count: int
    is_personalized: bool


class CellResponse(BaseModel):
    id: str
    name: str
    active: bool


class CartResponse(BaseModel):
    id: str
    name: str
    color: str | None = None
    active: bool
    status: str
    worker_name: str | None = None


class CellAssignmentResponse(BaseModel):
    cell_id: str
    priority: int


class BulkBatchResponse(BaseModel):
    id: str
    group_signature: str
    order_count: int
    split_index: int
    total_splits: int
    status: str


class BatchResponse(BaseModel):
    id: str
    name: str
    batch_type: str
    is_personalized: bool
    status: str
    priority: int
    queue_priority: int | None = None
    total_orders: int
    picked_orders: int
    shipped_orders: int
    engraved_orders: int
    is_shared: bool
    cell_assignments: list[CellAssignmentResponse]
    bulk_batches: list[BulkBatchResponse]
    created_at: str | None = None
    completed_at: str | None = None


class CreateBatchResponse(BaseModel):
    batches: list[dict[str, Any]]
    print_only: list[str]
    skipped: list[str]


class ResetResponse(BaseModel):
    orders_unlinked: int
    chunks_deleted: int
    bulk_batches_deleted: int
    assignments_deleted: int
    batches_deleted: int
    carts_reset: int
