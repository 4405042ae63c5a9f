"""FastAPI routes for the batching context."""

import json

from fastapi import APIRouter, HTTPException
from protean.utils.globals import current_domain

from batching.api.schemas import (
    BatchResponse,
    BulkBatchResponse,
    CartResponse,
    CellAssignmentResponse,
    CellResponse,
    CheckoutCartRequest,
    CompleteCartRequest,
    CompleteEngravingRequest,
    CompleteOrderRequest,
    CreateBatchRequest,
    CreateBatchResponse,
    CreateCartRequest,
    CreateCellRequest,
    IdResponse,
    IngestOrderRequest,
    MarkEngravedItemRequest,
    OrderResponse,
    OutOfStockRequest,
    ReleaseCartRequest,
    ReorderBatchRequest,
    ResetBatchesRequest,
    ResetResponse,
    SetCellsRequest,
    StatusResponse,
    UpdateCartRequest,
    UpdateCellRequest,
)
from batching.batch.batch import Batch
from batching.batch.creation import CreateBatch
from batching.batch.queue import ReorderBatch, SetCellAssignments, list_for_cell, list_personalized_pool
from batching.batch.removal import DeleteBatch, ResetAllBatches
from batching.cart.cart import PickCart
from batching.cart.management import CreateCart, DeleteCart, UpdateCart, list_carts
from batching.cell.cell import PickCell
from batching.cell.management import CreateCell, UpdateCell, list_cells
from batching.chunk.checkout import CheckoutCart
from batching.chunk.engraving import CancelEngraving, CompleteEngraving, MarkEngraved, MarkEngravedItem
from batching.chunk.picking import CancelPicking, CompletePicking, ReportOutOfStock
from batching.chunk.release import ReleaseCart
from batching.chunk.shipping import CompleteCart, CompleteOrder
from batching.chunk.views import current_chunk_view
from batching.order.intake import IngestOrder, get_order_by_number
from batching.order.order import Order
from batching.shared.queries import find_all


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------
def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        batch_id=str(order.batch_id) if order.batch_id else None,
        chunk_id=str(order.chunk_id) if order.chunk_id else None,
        bin_number=order.bin_number,
        shelf_number=order.shelf_number,
        tracking_number=order.tracking_number,
        item_count=order.item_count,
        is_personalized=order.is_personalized,
    )


def _cell_response(cell: PickCell) -> CellResponse:
    return CellResponse(id=str(cell.id), name=cell.name, active=bool(cell.active))


def _cart_response(cart: PickCart) -> CartResponse:
    return CartResponse(
        id=str(cart.id),
        name=cart.name,
        color=cart.color,
        active=bool(cart.active),
        status=cart.status,
        worker_name=cart.worker_name,
    )


def _batch_response(batch: Batch, cell_id: str | None = None) -> BatchResponse:
    return BatchResponse(
        id=str(batch.id),
        name=batch.name,
        batch_type=batch.batch_type,
        is_personalized=bool(batch.is_personalized),
        status=batch.effective_status,
        priority=batch.priority or 0,
        queue_priority=batch.priority_for(cell_id) if cell_id else None,
        total_orders=batch.total_orders or 0,
        picked_orders=batch.picked_orders or 0,
        shipped_orders=batch.shipped_orders or 0,
        engraved_orders=batch.engraved_orders or 0,
        is_shared=batch.is_shared,
        cell_assignments=[
            CellAssignmentResponse(cell_id=str(a.cell_id), priority=a.priority or 0)
            for a in batch.cell_assignments or []
        ],
        bulk_batches=[
            BulkBatchResponse(
                id=str(b.id),
                group_signature=b.group_signature,
                order_count=b.order_count,
                split_index=b.split_index or 1,
                total_splits=b.total_splits or 1,
                status=b.status,
            )
            for b in batch.bulk_batches or []
        ],
        created_at=_iso(batch.created_at),
        completed_at=_iso(batch.completed_at),
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=IdResponse)
async def ingest_order(body: IngestOrderRequest) -> IdResponse:
    """Register an order received from intake."""
    command = IngestOrder(order_number=body.order_number, payload=json.dumps(body.payload))
    result = current_domain.process(command, asynchronous=False)
    return IdResponse(id=result)


@order_router.get("/{order_number}", response_model=OrderResponse)
async def get_order(order_number: str) -> OrderResponse:
    return _order_response(get_order_by_number(order_number))


# ---------------------------------------------------------------------------
# Cell Router
# ---------------------------------------------------------------------------
cell_router = APIRouter(prefix="/cells", tags=["cells"])


@cell_router.post("", status_code=201, response_model=IdResponse)
async def create_cell(body: CreateCellRequest) -> IdResponse:
    result = current_domain.process(CreateCell(name=body.name), asynchronous=False)
    return IdResponse(id=result)


@cell_router.get("", response_model=list[CellResponse])
async def get_cells(active_only: bool = False) -> list[CellResponse]:
    return [_cell_response(cell) for cell in list_cells(active_only=active_only)]


@cell_router.put("/{cell_id}", response_model=CellResponse)
async def update_cell(cell_id: str, body: UpdateCellRequest) -> CellResponse:
    command = UpdateCell(cell_id=cell_id, name=body.name, active=body.active)
    current_domain.process(command, asynchronous=False)
    return _cell_response(current_domain.repository_for(PickCell).get(cell_id))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", status_code=201, response_model=IdResponse)
async def create_cart(body: CreateCartRequest) -> IdResponse:
    result = current_domain.process(CreateCart(name=body.name, color=body.color), asynchronous=False)
    return IdResponse(id=result)


@cart_router.get("", response_model=list[CartResponse])
async def get_carts() -> list[CartResponse]:
    return [_cart_response(cart) for cart in list_carts()]


@cart_router.get("/available", response_model=list[CartResponse])
async def get_available_carts() -> list[CartResponse]:
    return [_cart_response(cart) for cart in list_carts(available_only=True)]


@cart_router.put("/{cart_id}", response_model=CartResponse)
async def update_cart(cart_id: str, body: UpdateCartRequest) -> CartResponse:
    command = UpdateCart(cart_id=cart_id, name=body.name, color=body.color, active=body.active)
    current_domain.process(command, asynchronous=False)
    return _cart_response(current_domain.repository_for(PickCart).get(cart_id))


@cart_router.delete("/{cart_id}", response_model=StatusResponse)
async def delete_cart(cart_id: str) -> StatusResponse:
    current_domain.process(DeleteCart(cart_id=cart_id), asynchronous=False)
    return StatusResponse(status="deleted")


@cart_router.post("/{cart_id}/release")
async def release_cart(cart_id: str, body: ReleaseCartRequest) -> dict:
    """Cancel the cart's work and return unshipped orders to their batches."""
    command = ReleaseCart(cart_id=cart_id, reason=body.reason)
    return current_domain.process(command, asynchronous=False)


@cart_router.get("/{cart_id}/chunk")
async def get_cart_chunk(cart_id: str) -> dict:
    view = current_chunk_view(cart_id)
    if view is None:
        raise HTTPException(status_code=404, detail="Cart has no active chunk")
    return view


@cart_router.post("/{cart_id}/checkout")
async def checkout_cart(cart_id: str, body: CheckoutCartRequest) -> dict:
    """Claim a cart for picking, engraving or shipping."""
    command = CheckoutCart(
        cart_id=cart_id,
        worker_name=body.worker_name,
        phase=body.phase,
        cell_id=body.cell_id,
        batch_id=body.batch_id,
    )
    return current_domain.process(command, asynchronous=False)


@cart_router.post("/{cart_id}/complete")
async def complete_cart(cart_id: str, body: CompleteCartRequest) -> dict:
    command = CompleteCart(cart_id=cart_id, chunk_id=body.chunk_id)
    return current_domain.process(command, asynchronous=False)


# ---------------------------------------------------------------------------
# Batch Router
# ---------------------------------------------------------------------------
batch_router = APIRouter(prefix="/batches", tags=["batches"])


@batch_router.post("", status_code=201, response_model=CreateBatchResponse)
async def create_batch(body: CreateBatchRequest) -> CreateBatchResponse:
    """Queue orders for picking, split by size and personalization."""
    command = CreateBatch(
        order_numbers=json.dumps(body.order_numbers),
        cell_ids=json.dumps(body.cell_ids),
        batch_type=body.batch_type,
        is_personalized=body.is_personalized,
        name=body.name,
    )
    result = current_domain.process(command, asynchronous=False)
    return CreateBatchResponse(**result)


@batch_router.get("", response_model=list[BatchResponse])
async def get_batches(include_completed: bool = True) -> list[BatchResponse]:
    batches = [b for b in find_all(Batch) if include_completed or not b.is_completed]
    batches.sort(key=lambda b: (b.priority or 0, b.created_at))
    return [_batch_response(b) for b in batches]


@batch_router.get("/queue/{cell_id}", response_model=list[BatchResponse])
async def get_cell_queue(cell_id: str, include_completed: bool = False) -> list[BatchResponse]:
    current_domain.repository_for(PickCell).get(cell_id)
    return [_batch_response(b, cell_id) for b in list_for_cell(cell_id, include_completed)]


@batch_router.get("/personalized", response_model=list[BatchResponse])
async def get_personalized_pool(include_completed: bool = False) -> list[BatchResponse]:
    return [_batch_response(b) for b in list_personalized_pool(include_completed)]


@batch_router.post("/reset", response_model=ResetResponse)
async def reset_batches(body: ResetBatchesRequest) -> ResetResponse:
    """Unlink every order and clear all batch state. Safe to repeat."""
    result = current_domain.process(ResetAllBatches(requested_by=body.requested_by), asynchronous=False)
    return ResetResponse(**result)


@batch_router.post("/{batch_id}/reorder", response_model=StatusResponse)
async def reorder_batch(batch_id: str, body: ReorderBatchRequest) -> StatusResponse:
    command = ReorderBatch(batch_id=batch_id, cell_id=body.cell_id, priority=body.priority)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="reordered")


@batch_router.put("/{batch_id}/cells")
async def set_batch_cells(batch_id: str, body: SetCellsRequest) -> dict:
    command = SetCellAssignments(batch_id=batch_id, cell_ids=json.dumps(body.cell_ids))
    return current_domain.process(command, asynchronous=False)


@batch_router.delete("/{batch_id}")
async def delete_batch(batch_id: str) -> dict:
    return current_domain.process(DeleteBatch(batch_id=batch_id), asynchronous=False)


# ---------------------------------------------------------------------------
# Chunk Router
# ---------------------------------------------------------------------------
chunk_router = APIRouter(prefix="/chunks", tags=["chunks"])


@chunk_router.post("/{chunk_id}/out-of-stock")
async def report_out_of_stock(chunk_id: str, body: OutOfStockRequest) -> dict:
    command = ReportOutOfStock(chunk_id=chunk_id, bin_numbers=json.dumps(body.bin_numbers))
    return current_domain.process(command, asynchronous=False)


@chunk_router.post("/{chunk_id}/picked")
async def complete_picking(chunk_id: str) -> dict:
    return current_domain.process(CompletePicking(chunk_id=chunk_id), asynchronous=False)


@chunk_router.post("/{chunk_id}/cancel")
async def cancel_picking(chunk_id: str) -> dict:
    return current_domain.process(CancelPicking(chunk_id=chunk_id), asynchronous=False)


@chunk_router.post("/{chunk_id}/orders/{order_number}/complete")
async def complete_order(chunk_id: str, order_number: str, body: CompleteOrderRequest) -> dict:
    """Record a shipped order. Repeating the call reports ``already_shipped``."""
    command = CompleteOrder(
        chunk_id=chunk_id,
        order_number=order_number,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
        label_url=body.label_url,
        label_cost=body.label_cost,
    )
    return current_domain.process(command, asynchronous=False)


@chunk_router.post("/{chunk_id}/engraving/items")
async def mark_engraved_item(chunk_id: str, body: MarkEngravedItemRequest) -> dict:
    command = MarkEngravedItem(
        chunk_id=chunk_id,
        item_index=body.item_index,
        total_paused_ms=body.total_paused_ms,
    )
    return current_domain.process(command, asynchronous=False)


@chunk_router.post("/{chunk_id}/engraving/orders/{order_number}")
async def mark_engraved(chunk_id: str, order_number: str) -> dict:
    command = MarkEngraved(chunk_id=chunk_id, order_number=order_number)
    return current_domain.process(command, asynchronous=False)


@chunk_router.post("/{chunk_id}/engraving/complete")
async def complete_engraving(chunk_id: str, body: CompleteEngravingRequest) -> dict:
    command = CompleteEngraving(
        chunk_id=chunk_id,
        active_seconds=body.active_seconds,
        paused_seconds=body.paused_seconds,
        item_count=body.item_count,
    )
    return current_domain.process(command, asynchronous=False)


@chunk_router.post("/{chunk_id}/engraving/cancel")
async def cancel_engraving(chunk_id: str) -> dict:
    return current_domain.process(CancelEngraving(chunk_id=chunk_id), asynchronous=False)
