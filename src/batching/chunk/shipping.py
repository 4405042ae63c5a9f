"""Shipping — per-order completion and cart completion."""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from batching.batch.batch import Batch
from batching.cart.cart import PickCart
from batching.chunk.chunk import Chunk
from batching.chunk.support import (
    chunk_for_cart,
    free_cart_if_idle,
    order_in_chunk,
    orders_in_batch,
    orders_in_chunk,
    reconcile_bulk_groups,
    return_unshipped_orders,
)
from batching.domain import batching
from batching.order.order import Order
from batching.shared.queries import find_all
from batching.utils.logging import get_logger

logger = get_logger(__name__)


@batching.command(part_of="Chunk")
class CompleteOrder:
    """A label was issued for the order; record it as shipped."""

    chunk_id = Identifier(required=True)
    order_number = String(required=True, max_length=100)
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)
    label_url = String(max_length=500)
    label_cost = Float()


@batching.command(part_of="Chunk")
class CompleteCart:
    cart_id = Identifier(required=True)
    chunk_id = Identifier(required=True)


@batching.command_handler(part_of=Chunk)
class ShippingHandler:
    @handle(CompleteOrder)
    def complete_order(self, command):
        repo = current_domain.repository_for(Chunk)
        chunk = repo.get(command.chunk_id)
        order = order_in_chunk(chunk, command.order_number)

        if order.is_shipped:
            logger.info("order_already_shipped", chunk_id=str(chunk.id), order_number=order.order_number)
            return {"order_number": order.order_number, "already_shipped": True}

        chunk.record_shipped()
        order.mark_shipped(
            {
                "tracking_number": command.tracking_number,
                "carrier": command.carrier,
                "label_url": command.label_url,
                "label_cost": command.label_cost,
            }
        )
        batch_repo = current_domain.repository_for(Batch)
        batch = batch_repo.get(chunk.batch_id)
        batch.record_shipped()

        current_domain.repository_for(Order).add(order)
        repo.add(chunk)
        batch_repo.add(batch)
        logger.info(
            "order_shipped",
            chunk_id=str(chunk.id),
            batch_id=str(batch.id),
            order_number=order.order_number,
            tracking_number=order.tracking_number,
        )
        return {
            "order_number": order.order_number,
            "already_shipped": False,
            "shipped_count": chunk.shipped_count,
        }

    @handle(CompleteCart)
    def complete_cart(self, command):
        repo = current_domain.repository_for(Chunk)
        chunk = chunk_for_cart(command.cart_id, command.chunk_id)
        chunk.complete()
        unshipped = return_unshipped_orders(orders_in_chunk(str(chunk.id)), "left on cart")

        batch_repo = current_domain.repository_for(Batch)
        batch = batch_repo.get(chunk.batch_id)
        reconcile_bulk_groups(batch, chunk)

        other_active = [
            c for c in find_all(Chunk, batch_id=str(batch.id)) if c.is_active and str(c.id) != str(chunk.id)
        ]
        batch_orders = orders_in_batch(str(batch.id))
        batch_completed = False
        if not other_active and batch_orders and all(o.is_shipped for o in batch_orders):
            batch.complete()
            batch_completed = True

        cart_repo = current_domain.repository_for(PickCart)
        cart = cart_repo.get(chunk.cart_id)
        free_cart_if_idle(cart, str(chunk.id))

        repo.add(chunk)
        batch_repo.add(batch)
        cart_repo.add(cart)
        logger.info(
            "cart_completed",
            cart_id=str(cart.id),
            chunk_id=str(chunk.id),
            batch_id=str(batch.id),
            shipped_count=chunk.shipped_count,
            orders_returned=unshipped,
            batch_completed=batch_completed,
            ship_duration_seconds=chunk.ship_duration_seconds,
        )
        return {
            "batch_completed": batch_completed,
            "cart_status": cart.status,
            "orders_returned": unshipped,
        }
