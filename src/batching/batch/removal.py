"""Batch deletion and the administrative reset.

Both run inside a single command handler, so every change they make is
committed by one unit of work or not at all. Orders are never deleted, only
unlinked from their batch, cart and bin.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from batching.batch.batch import Batch
from batching.cart.cart import PickCart
from batching.chunk.chunk import Chunk
from batching.domain import batching
from batching.order.order import Order, OrderStatus
from batching.shared.queries import find_all
from batching.utils.logging import get_logger

logger = get_logger(__name__)


@batching.command(part_of="Batch")
class DeleteBatch:
    batch_id = Identifier(required=True)


@batching.command(part_of="Batch")
class ResetAllBatches:
    """Unlink every order and clear all batches, chunks and cart checkouts."""

    requested_by = String(max_length=100)


def _is_linked(order: Order) -> bool:
    return any(
        (
            order.batch_id,
            order.chunk_id,
            order.bin_number is not None,
            order.tracking_number,
            order.label_url,
            order.status != OrderStatus.AWAITING_SHIPMENT.value,
        )
    )


@batching.command_handler(part_of=Batch)
class BatchRemovalHandler:
    @handle(DeleteBatch)
    def delete_batch(self, command):
        batch_repo = current_domain.repository_for(Batch)
        batch = batch_repo.get(command.batch_id)

        order_repo = current_domain.repository_for(Order)
        orders = find_all(Order, batch_id=str(batch.id))
        for order in orders:
            order.detach()
            order_repo.add(order)

        chunk_repo = current_domain.repository_for(Chunk)
        cart_repo = current_domain.repository_for(PickCart)
        chunks = find_all(Chunk, batch_id=str(batch.id))
        carts_released = 0
        for chunk in chunks:
            if chunk.is_active:
                cart = cart_repo.get(chunk.cart_id)
                if cart.reset():
                    cart_repo.add(cart)
                    carts_released += 1
            chunk_repo._dao.delete(chunk)

        batch_repo._dao.delete(batch)
        logger.info(
            "batch_deleted",
            batch_id=str(batch.id),
            name=batch.name,
            orders_unlinked=len(orders),
            chunks_deleted=len(chunks),
            carts_released=carts_released,
        )
        return {
            "orders_unlinked": len(orders),
            "chunks_deleted": len(chunks),
            "carts_released": carts_released,
        }

    @handle(ResetAllBatches)
    def reset_all_batches(self, command):
        order_repo = current_domain.repository_for(Order)
        orders_unlinked = 0
        for order in find_all(Order):
            if _is_linked(order):
                order.reset_shipment()
                order_repo.add(order)
                orders_unlinked += 1

        chunk_repo = current_domain.repository_for(Chunk)
        chunks = find_all(Chunk)
        for chunk in chunks:
            chunk_repo._dao.delete(chunk)

        batch_repo = current_domain.repository_for(Batch)
        batches = find_all(Batch)
        bulk_batches = sum(len(b.bulk_batches or []) for b in batches)
        assignments = sum(len(b.cell_assignments or []) for b in batches)
        for batch in batches:
            batch_repo._dao.delete(batch)

        cart_repo = current_domain.repository_for(PickCart)
        carts_reset = 0
        for cart in find_all(PickCart):
            if cart.reset():
                cart_repo.add(cart)
                carts_reset += 1

        counts = {
            "orders_unlinked": orders_unlinked,
            "chunks_deleted": len(chunks),
            "bulk_batches_deleted": bulk_batches,
            "assignments_deleted": assignments,
            "batches_deleted": len(batches),
            "carts_reset": carts_reset,
        }
        logger.info("batches_reset", requested_by=command.requested_by, **counts)
        return counts
