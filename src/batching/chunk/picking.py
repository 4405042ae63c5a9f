"""Picking — out-of-stock bins, pick completion and cancellation."""

import json

from protean import handle
from protean.fields import Identifier, Text
from protean.utils.globals import current_domain

from batching.batch.batch import Batch
from batching.cart.cart import CartStatus, PickCart
from batching.chunk.chunk import Chunk
from batching.chunk.support import free_cart_if_idle, orders_in_chunk, reconcile_bulk_groups, return_unshipped_orders
from batching.domain import batching
from batching.order.order import Order
from batching.utils.logging import get_logger

logger = get_logger(__name__)


@batching.command(part_of="Chunk")
class ReportOutOfStock:
    """Bins the picker could not fill; their orders go back to the queue."""

    chunk_id = Identifier(required=True)
    bin_numbers = Text(required=True)  # JSON list of bin numbers


@batching.command(part_of="Chunk")
class CompletePicking:
    chunk_id = Identifier(required=True)


@batching.command(part_of="Chunk")
class CancelPicking:
    chunk_id = Identifier(required=True)


@batching.command_handler(part_of=Chunk)
class PickingHandler:
    @handle(ReportOutOfStock)
    def report_out_of_stock(self, command):
        bin_numbers = {int(b) for b in json.loads(command.bin_numbers)}
        repo = current_domain.repository_for(Chunk)
        chunk = repo.get(command.chunk_id)
        affected = [o for o in orders_in_chunk(str(chunk.id)) if o.bin_number in bin_numbers]
        chunk.record_out_of_stock(len(affected))
        returned = return_unshipped_orders(affected, "out of stock")
        repo.add(chunk)
        logger.info(
            "bins_out_of_stock",
            chunk_id=str(chunk.id),
            bin_numbers=sorted(bin_numbers),
            orders_returned=returned,
        )
        return {"orders_returned": returned, "order_count": chunk.order_count}

    @handle(CompletePicking)
    def complete_picking(self, command):
        repo = current_domain.repository_for(Chunk)
        chunk = repo.get(command.chunk_id)
        chunk.complete_picking()

        order_repo = current_domain.repository_for(Order)
        newly_picked = 0
        for order in orders_in_chunk(str(chunk.id)):
            if order.mark_picked():
                order_repo.add(order)
                newly_picked += 1

        batch_repo = current_domain.repository_for(Batch)
        batch = batch_repo.get(chunk.batch_id)
        batch.record_picked(newly_picked)

        cart_repo = current_domain.repository_for(PickCart)
        cart = cart_repo.get(chunk.cart_id)
        cart.transition_to(CartStatus.PICKED_READY, cart.worker_name)

        repo.add(chunk)
        batch_repo.add(batch)
        cart_repo.add(cart)
        logger.info(
            "picking_completed",
            chunk_id=str(chunk.id),
            batch_id=str(batch.id),
            orders_picked=newly_picked,
            pick_duration_seconds=chunk.pick_duration_seconds,
        )
        return {"orders_picked": newly_picked, "picked_orders": batch.picked_orders}

    @handle(CancelPicking)
    def cancel_picking(self, command):
        repo = current_domain.repository_for(Chunk)
        chunk = repo.get(command.chunk_id)
        chunk.cancel_picking()
        returned = return_unshipped_orders(orders_in_chunk(str(chunk.id)), "picking cancelled")

        batch_repo = current_domain.repository_for(Batch)
        batch = batch_repo.get(chunk.batch_id)
        reconcile_bulk_groups(batch, chunk)

        cart_repo = current_domain.repository_for(PickCart)
        cart = cart_repo.get(chunk.cart_id)
        free_cart_if_idle(cart, str(chunk.id))

        repo.add(chunk)
        batch_repo.add(batch)
        cart_repo.add(cart)
        logger.info("picking_cancelled", chunk_id=str(chunk.id), orders_returned=returned)
        return {"orders_returned": returned}
