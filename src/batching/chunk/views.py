"""Read models for carts checked out to a station."""

from protean.utils.globals import current_domain

from batching.batch.batch import Batch, BatchType
from batching.cart.cart import PickCart
from batching.chunk.chunk import Chunk
from batching.chunk.support import active_chunks_for_cart, orders_in_chunk
from batching.layout.bins import BINS_PER_SHELF, MAX_SHELVES, bin_capacity
from batching.order.order import Order
from batching.shared.line_items import order_body


def _order_view(order: Order) -> dict:
    return {
        "order_number": order.order_number,
        "bin_number": order.bin_number,
        "shelf_number": order.shelf_number,
        "bulk_batch_id": str(order.bulk_batch_id) if order.bulk_batch_id else None,
        "status": order.status,
        "tracking_number": order.tracking_number,
        "payload": order_body(order.payload),
    }


def cart_bin_count(batch: Batch) -> int:
    if batch.batch_type == BatchType.BULK.value:
        return BINS_PER_SHELF * MAX_SHELVES
    return bin_capacity(batch.name)


def chunk_view(
    chunk: Chunk,
    orders: list[Order] | None = None,
    batch: Batch | None = None,
    cart: PickCart | None = None,
) -> dict:
    orders = orders if orders is not None else orders_in_chunk(str(chunk.id))
    batch = batch or current_domain.repository_for(Batch).get(chunk.batch_id)
    cart = cart or current_domain.repository_for(PickCart).get(chunk.cart_id)
    progress = chunk.engraving_progress
    return {
        "id": str(chunk.id),
        "chunk_number": chunk.chunk_number,
        "status": chunk.status,
        "picking_mode": chunk.picking_mode,
        "is_personalized": bool(chunk.is_personalized),
        "batch_id": str(batch.id),
        "batch_name": batch.name,
        "cart_id": str(cart.id),
        "cart_name": cart.name,
        "cart_color": cart.color,
        "bin_count": cart_bin_count(batch),
        "order_count": chunk.order_count or 0,
        "shipped_count": chunk.shipped_count or 0,
        "out_of_stock_count": chunk.out_of_stock_count or 0,
        "picker_name": chunk.picker_name,
        "engraver_name": chunk.engraver_name,
        "shipper_name": chunk.shipper_name,
        "orders": [_order_view(o) for o in sorted(orders, key=lambda o: (o.bin_number or 0, o.order_number))],
        "shelves": [
            {
                "shelf_number": shelf.shelf_number,
                "bulk_batch_id": shelf.bulk_batch_id,
                "order_count": shelf.order_count,
                "sku_layout": [entry.to_dict() for entry in shelf.sku_layout],
            }
            for shelf in chunk.shelves
        ],
        "engraving_progress": (
            {
                "completed_items": progress.completed,
                "current_index": progress.current_index or 0,
                "total_paused_ms": progress.total_paused_ms or 0,
            }
            if progress is not None
            else None
        ),
    }


def current_chunk_view(cart_id: str) -> dict | None:
    """The cart's oldest active chunk, or None when the cart is empty."""
    cart = current_domain.repository_for(PickCart).get(cart_id)
    chunks = active_chunks_for_cart(str(cart.id))
    if not chunks:
        return None
    return chunk_view(chunks[0], cart=cart)
