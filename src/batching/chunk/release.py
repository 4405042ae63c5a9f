"""Administrative cart release — command and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from batching.batch.batch import Batch
from batching.cart.cart import PickCart
from batching.chunk.chunk import Chunk
from batching.chunk.support import (
    active_chunks_for_cart,
    orders_in_chunk,
    reconcile_bulk_groups,
    return_unshipped_orders,
)
from batching.domain import batching
from batching.utils.logging import get_logger

logger = get_logger(__name__)


@batching.command(part_of="PickCart")
class ReleaseCart:
    """Free a stuck cart: cancel its work and send unshipped orders back."""

    cart_id = Identifier(required=True)
    reason = String(max_length=500)


@batching.command_handler(part_of=PickCart)
class ReleaseCartHandler:
    @handle(ReleaseCart)
    def release_cart(self, command):
        cart_repo = current_domain.repository_for(PickCart)
        cart = cart_repo.get(command.cart_id)
        reason = command.reason or "released by operator"
        cart.release(reason)

        chunk_repo = current_domain.repository_for(Chunk)
        batch_repo = current_domain.repository_for(Batch)
        chunks = active_chunks_for_cart(str(cart.id))
        orders_returned = 0
        for chunk in chunks:
            chunk.cancel(reason)
            orders_returned += return_unshipped_orders(orders_in_chunk(str(chunk.id)), reason)
            batch = batch_repo.get(chunk.batch_id)
            reconcile_bulk_groups(batch, chunk)
            chunk_repo.add(chunk)
            batch_repo.add(batch)

        cart_repo.add(cart)
        logger.info(
            "cart_released",
            cart_id=str(cart.id),
            reason=reason,
            chunks_cancelled=len(chunks),
            orders_returned=orders_returned,
        )
        return {"chunks_cancelled": len(chunks), "orders_returned": orders_returned}
