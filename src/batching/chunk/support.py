"""Lookups and cross-aggregate steps shared by the chunk command handlers."""

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from batching.batch.batch import Batch, BatchType, BulkBatchStatus
from batching.cart.cart import CartStatus, PickCart
from batching.chunk.chunk import Chunk
from batching.order.order import Order
from batching.shared.engraving import engraving_sequence
from batching.shared.queries import find_all


def orders_in_chunk(chunk_id: str) -> list[Order]:
    orders = find_all(Order, chunk_id=str(chunk_id))
    return sorted(orders, key=lambda o: (o.bin_number or 0, o.order_number))


def orders_in_batch(batch_id: str) -> list[Order]:
    return find_all(Order, batch_id=str(batch_id))


def active_chunks_for_cart(cart_id: str) -> list[Chunk]:
    chunks = [c for c in find_all(Chunk, cart_id=str(cart_id)) if c.is_active]
    return sorted(chunks, key=lambda c: c.created_at)


def chunk_for_cart(cart_id: str, chunk_id: str) -> Chunk:
    chunk = current_domain.repository_for(Chunk).get(chunk_id)
    if str(chunk.cart_id) != str(cart_id):
        raise ValidationError({"chunk_id": ["Chunk is not on this cart"]})
    return chunk


def order_in_chunk(chunk: Chunk, order_number: str) -> Order:
    orders = find_all(Order, order_number=order_number)
    if not orders:
        raise ObjectNotFoundError(f"Order {order_number} does not exist")
    order = orders[0]
    if str(order.chunk_id or "") != str(chunk.id):
        raise ValidationError({"order_number": [f"Order {order_number} is not on this cart"]})
    return order


def engraving_item_count(chunk: Chunk, orders: list[Order] | None = None) -> int:
    orders = orders if orders is not None else orders_in_chunk(str(chunk.id))
    return len(engraving_sequence([order_as_mapping(o) for o in orders]))


def order_as_mapping(order: Order) -> dict:
    return {
        "order_number": order.order_number,
        "bin_number": order.bin_number,
        "payload": order.payload,
    }


def return_unshipped_orders(orders: list[Order], reason: str) -> int:
    """Send the unshipped orders back to their batch queue. Returns how many moved."""
    repo = current_domain.repository_for(Order)
    returned = 0
    for order in orders:
        if order.is_shipped:
            continue
        order.return_to_queue(reason)
        repo.add(order)
        returned += 1
    return returned


def reconcile_bulk_groups(batch: Batch, chunk: Chunk) -> None:
    """Settle the bulk groups a chunk carried once it leaves the cart.

    A fully shipped group is SHIPPED. Any other group goes back to PENDING
    sized to its remaining orders, so the next checkout picks them up.
    """
    if batch.batch_type != BatchType.BULK.value:
        return
    batch_orders = orders_in_batch(str(batch.id))
    for assignment in chunk.bulk_assignments or []:
        members = [o for o in batch_orders if str(o.bulk_batch_id or "") == str(assignment.bulk_batch_id)]
        remaining = [o for o in members if not o.is_shipped]
        if remaining:
            batch.set_bulk_group_status(
                str(assignment.bulk_batch_id), BulkBatchStatus.PENDING, order_count=len(remaining)
            )
        else:
            batch.set_bulk_group_status(str(assignment.bulk_batch_id), BulkBatchStatus.SHIPPED)


def free_cart_if_idle(cart: PickCart, finished_chunk_id: str) -> bool:
    """Return the cart to AVAILABLE unless another chunk still occupies it."""
    others = [c for c in active_chunks_for_cart(str(cart.id)) if str(c.id) != str(finished_chunk_id)]
    if others or cart.status == CartStatus.AVAILABLE.value:
        return False
    cart.transition_to(CartStatus.AVAILABLE)
    return True
