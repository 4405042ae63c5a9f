"""Engraving — per-item progress, per-order completion and session end."""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from batching.batch.batch import Batch
from batching.cart.cart import CartStatus, PickCart
from batching.chunk.chunk import Chunk
from batching.chunk.support import engraving_item_count, order_in_chunk, orders_in_chunk
from batching.domain import batching
from batching.order.order import Order
from batching.utils.logging import get_logger

logger = get_logger(__name__)


@batching.command(part_of="Chunk")
class MarkEngravedItem:
    """Persist one engraved item of the cart's personalized sequence."""

    chunk_id = Identifier(required=True)
    item_index = Integer(required=True, min_value=0)
    total_paused_ms = Integer(default=0)


@batching.command(part_of="Chunk")
class MarkEngraved:
    """Every personalized item of an order is engraved."""

    chunk_id = Identifier(required=True)
    order_number = String(required=True, max_length=100)


@batching.command(part_of="Chunk")
class CompleteEngraving:
    chunk_id = Identifier(required=True)
    active_seconds = Integer(default=0)
    paused_seconds = Integer(default=0)
    item_count = Integer(default=0)


@batching.command(part_of="Chunk")
class CancelEngraving:
    chunk_id = Identifier(required=True)


def _record_engraved(order: Order, batch: Batch) -> bool:
    if not order.mark_engraved():
        return False
    current_domain.repository_for(Order).add(order)
    batch.record_engraved()
    return True


@batching.command_handler(part_of=Chunk)
class EngravingHandler:
    @handle(MarkEngravedItem)
    def mark_engraved_item(self, command):
        repo = current_domain.repository_for(Chunk)
        chunk = repo.get(command.chunk_id)
        is_new = chunk.record_engraved_item(
            command.item_index,
            command.total_paused_ms or 0,
            engraving_item_count(chunk),
        )
        repo.add(chunk)
        progress = chunk.engraving_progress
        logger.info(
            "engraved_item_saved",
            chunk_id=str(chunk.id),
            item_index=command.item_index,
            duplicate=not is_new,
            current_index=progress.current_index,
        )
        return {
            "completed_items": progress.completed,
            "current_index": progress.current_index,
            "total_paused_ms": progress.total_paused_ms,
        }

    @handle(MarkEngraved)
    def mark_engraved(self, command):
        chunk = current_domain.repository_for(Chunk).get(command.chunk_id)
        order = order_in_chunk(chunk, command.order_number)
        batch_repo = current_domain.repository_for(Batch)
        batch = batch_repo.get(chunk.batch_id)
        recorded = _record_engraved(order, batch)
        batch_repo.add(batch)
        logger.info("order_engraved", chunk_id=str(chunk.id), order_number=order.order_number, duplicate=not recorded)
        return {"order_number": order.order_number, "already_engraved": not recorded}

    @handle(CompleteEngraving)
    def complete_engraving(self, command):
        repo = current_domain.repository_for(Chunk)
        chunk = repo.get(command.chunk_id)
        chunk.complete_engraving(command.active_seconds or 0, command.paused_seconds or 0, command.item_count or 0)

        # Orders whose mark-engraved call never arrived are engraved now
        batch_repo = current_domain.repository_for(Batch)
        batch = batch_repo.get(chunk.batch_id)
        late = sum(1 for order in orders_in_chunk(str(chunk.id)) if _record_engraved(order, batch))

        cart_repo = current_domain.repository_for(PickCart)
        cart = cart_repo.get(chunk.cart_id)
        cart.transition_to(CartStatus.PICKED_READY)

        repo.add(chunk)
        batch_repo.add(batch)
        cart_repo.add(cart)
        logger.info(
            "engraving_completed",
            chunk_id=str(chunk.id),
            engraver=chunk.engraver_name,
            active_seconds=chunk.engraving_active_seconds,
            paused_seconds=chunk.engraving_paused_seconds,
            item_count=chunk.engraved_item_count,
            orders_marked_late=late,
        )
        return {"status": chunk.status, "engraved_orders": batch.engraved_orders}

    @handle(CancelEngraving)
    def cancel_engraving(self, command):
        repo = current_domain.repository_for(Chunk)
        chunk = repo.get(command.chunk_id)
        engraver = chunk.engraver_name
        chunk.cancel_engraving()

        cart_repo = current_domain.repository_for(PickCart)
        cart = cart_repo.get(chunk.cart_id)
        cart.transition_to(CartStatus.PICKED_READY)

        repo.add(chunk)
        cart_repo.add(cart)
        logger.info("engraving_cancelled", chunk_id=str(chunk.id), engraver=engraver)
        return {"status": chunk.status}
