"""Cart checkout — command and handler.

A checkout claims a cart for one phase of work:

    PICK     load the next orders of a cell's queue onto an available cart
    ENGRAVE  claim (or resume) a picked personalized cart for engraving
    SHIP     start shipping a picked (or engraved) cart

The cart's status is the lock: checking out a cart another station holds is
rejected with ``InvalidStateError``. The same worker checking out a cart
they already hold gets the existing chunk back, which is how an interrupted
session is resumed.
"""

from collections import defaultdict
from enum import Enum

from protean import handle
from protean.exceptions import InvalidStateError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from batching.batch.batch import Batch, BatchType, BulkBatchStatus
from batching.batch.queue import list_for_cell, list_personalized_pool
from batching.cart.cart import CartStatus, PickCart
from batching.chunk.chunk import Chunk, ChunkStatus
from batching.chunk.support import active_chunks_for_cart, engraving_item_count, orders_in_chunk
from batching.chunk.views import chunk_view
from batching.domain import batching
from batching.layout.bins import (
    MAX_SHELVES,
    STANDARD_BIN_COUNT,
    Shelf,
    assign_bins,
    assign_singles_bins,
    bin_capacity,
    build_bulk_sku_layout,
)
from batching.order.order import Order
from batching.shared.queries import find_all
from batching.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutPhase(Enum):
    PICK = "PICK"
    ENGRAVE = "ENGRAVE"
    SHIP = "SHIP"


@batching.command(part_of="Chunk")
class CheckoutCart:
    cart_id = Identifier(required=True)
    worker_name = String(required=True, max_length=100)
    phase = String(choices=CheckoutPhase, default=CheckoutPhase.PICK.value)
    cell_id = Identifier()  # PICK: queue to draw from; empty means the personalized pool
    batch_id = Identifier()  # PICK: explicit batch instead of the head of the queue


# ---------------------------------------------------------------------------
# Bin planning
# ---------------------------------------------------------------------------
def _waiting_orders(batch: Batch) -> list[Order]:
    return [o for o in find_all(Order, batch_id=str(batch.id)) if not o.chunk_id and not o.is_shipped]


def _plan_by_order(batch: Batch, orders: list[Order]) -> list[tuple[Order, int, int | None]]:
    """One order per bin, walking the warehouse by first bin location."""
    ordered = sorted(orders, key=lambda o: (o.pick_location, o.order_number))
    selected = ordered[: bin_capacity(batch.name)]
    bins = assign_bins([o.order_number for o in selected], bin_capacity(batch.name))
    return [(o, bins[o.order_number], None) for o in selected]


def _plan_singles(orders: list[Order]) -> list[tuple[Order, int, int | None]]:
    by_sku: dict[str, list[str]] = defaultdict(list)
    by_number = {}
    for order in sorted(orders, key=lambda o: o.order_number):
        skus = list(order.items)
        key = skus[0].sku.strip().upper() if skus else ""
        by_sku[key].append(order.order_number)
        by_number[order.order_number] = order
    bins = assign_singles_bins(by_sku, STANDARD_BIN_COUNT)
    return [(by_number[number], bin_number, None) for number, bin_number in bins.items()]


def _plan_bulk(batch: Batch, orders: list[Order]) -> tuple[list[tuple[Order, int, int | None]], list[Shelf]]:
    """Bind up to three pending groups to shelves, writing orders shelf-major."""
    plan: list[tuple[Order, int, int | None]] = []
    shelves: list[Shelf] = []
    for group in batch.pending_bulk_groups():
        if len(shelves) == MAX_SHELVES:
            break
        members = sorted(
            (o for o in orders if str(o.bulk_batch_id or "") == str(group.id)),
            key=lambda o: o.order_number,
        )
        if not members:
            continue
        shelf_number = len(shelves) + 1
        layout = build_bulk_sku_layout(group.group_signature, len(members))
        shelves.append(
            Shelf(
                shelf_number=shelf_number,
                order_count=len(members),
                sku_layout=tuple(layout),
                bulk_batch_id=str(group.id),
            )
        )
        for order in members:
            plan.append((order, len(plan) + 1, shelf_number))
        batch.set_bulk_group_status(str(group.id), BulkBatchStatus.PICKING, order_count=len(members))
    return plan, shelves


def _plan(batch: Batch, orders: list[Order]) -> tuple[list[tuple[Order, int, int | None]], list[Shelf]]:
    if batch.batch_type == BatchType.BULK.value and not batch.is_personalized:
        return _plan_bulk(batch, orders)
    if batch.batch_type == BatchType.SINGLES.value and not batch.is_personalized:
        return _plan_singles(orders), []
    return _plan_by_order(batch, orders), []


def _next_chunk_number(batch_id: str) -> int:
    numbers = [c.chunk_number for c in find_all(Chunk, batch_id=str(batch_id))]
    return max(numbers) + 1 if numbers else 1


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------
@batching.command_handler(part_of=Chunk)
class CheckoutCartHandler:
    @handle(CheckoutCart)
    def checkout_cart(self, command):
        cart_repo = current_domain.repository_for(PickCart)
        cart = cart_repo.get(command.cart_id)
        if not cart.active:
            raise ValidationError({"cart_id": [f"Cart {cart.name} is deactivated"]})

        phase = CheckoutPhase(command.phase or CheckoutPhase.PICK.value)
        if phase == CheckoutPhase.PICK:
            return self._checkout_for_picking(cart, command)
        if phase == CheckoutPhase.ENGRAVE:
            return self._checkout_for_engraving(cart, command.worker_name)
        return self._checkout_for_shipping(cart, command.worker_name)

    def _resume(self, cart: PickCart, worker_name: str, status: CartStatus) -> dict | None:
        if cart.status != status.value:
            return None
        if cart.worker_name and cart.worker_name != worker_name:
            raise InvalidStateError(f"Cart {cart.name} is in use by {cart.worker_name}")
        chunks = active_chunks_for_cart(str(cart.id))
        if not chunks:
            return None
        logger.info("cart_checkout_resumed", cart_id=str(cart.id), chunk_id=str(chunks[0].id), worker=worker_name)
        return {**chunk_view(chunks[0], cart=cart), "resumed": True}

    def _checkout_for_picking(self, cart: PickCart, command) -> dict:
        resumed = self._resume(cart, command.worker_name, CartStatus.PICKING)
        if resumed is not None:
            return resumed
        if not cart.is_available:
            raise InvalidStateError(f"Cart {cart.name} is {cart.status} and cannot be checked out")

        batch_repo = current_domain.repository_for(Batch)
        if command.batch_id:
            candidates = [batch_repo.get(command.batch_id)]
            if command.cell_id and candidates[0].assignment_for(command.cell_id) is None:
                raise ValidationError({"batch_id": ["Batch is not queued in this cell"]})
        elif command.cell_id:
            candidates = list_for_cell(command.cell_id)
        else:
            candidates = list_personalized_pool()

        for batch in candidates:
            if batch.is_completed:
                continue
            waiting = _waiting_orders(batch)
            if not waiting:
                continue
            plan, shelves = _plan(batch, waiting)
            if plan:
                return self._load_cart(cart, batch, plan, shelves, command.worker_name)

        raise ValidationError({"cell_id": ["No batch in this queue has orders waiting to be picked"]})

    def _load_cart(self, cart, batch, plan, shelves, worker_name) -> dict:
        chunk = Chunk.check_out(
            batch_id=str(batch.id),
            cart_id=str(cart.id),
            chunk_number=_next_chunk_number(str(batch.id)),
            picking_mode=batch.batch_type,
            is_personalized=bool(batch.is_personalized),
            picker_name=worker_name,
            order_count=len(plan),
            shelves=shelves,
        )
        order_repo = current_domain.repository_for(Order)
        orders = []
        for order, bin_number, shelf_number in plan:
            order.place_in_bin(str(chunk.id), bin_number, shelf_number)
            order_repo.add(order)
            orders.append(order)

        batch.start()
        cart.transition_to(CartStatus.PICKING, worker_name)

        current_domain.repository_for(Chunk).add(chunk)
        current_domain.repository_for(Batch).add(batch)
        current_domain.repository_for(PickCart).add(cart)
        logger.info(
            "cart_checked_out",
            cart_id=str(cart.id),
            batch_id=str(batch.id),
            chunk_id=str(chunk.id),
            chunk_number=chunk.chunk_number,
            order_count=len(orders),
            shelves=len(shelves),
            picker=worker_name,
        )
        return chunk_view(chunk, orders=orders, batch=batch, cart=cart)

    def _checkout_for_engraving(self, cart: PickCart, engraver_name: str) -> dict:
        chunks = [c for c in active_chunks_for_cart(str(cart.id)) if c.is_personalized]
        chunk_repo = current_domain.repository_for(Chunk)

        engraving = next((c for c in chunks if c.status == ChunkStatus.ENGRAVING.value), None)
        if engraving is not None:
            engraving.assert_engraver(engraver_name)
            orders = orders_in_chunk(str(engraving.id))
            engraving.clamp_progress(engraving_item_count(engraving, orders))
            chunk_repo.add(engraving)
            logger.info("engraving_resumed", cart_id=str(cart.id), chunk_id=str(engraving.id), engraver=engraver_name)
            return {**chunk_view(engraving, orders=orders, cart=cart), "resumed": True}

        picked = next((c for c in chunks if c.status == ChunkStatus.PICKED.value), None)
        if picked is None:
            raise ValidationError({"cart_id": [f"Cart {cart.name} has no picked personalized orders"]})
        if cart.status != CartStatus.PICKED_READY.value:
            raise InvalidStateError(f"Cart {cart.name} is {cart.status} and cannot be engraved")

        picked.start_engraving(engraver_name)
        cart.transition_to(CartStatus.ENGRAVING, engraver_name)
        chunk_repo.add(picked)
        current_domain.repository_for(PickCart).add(cart)
        logger.info("engraving_claimed", cart_id=str(cart.id), chunk_id=str(picked.id), engraver=engraver_name)
        return {**chunk_view(picked, cart=cart), "resumed": False}

    def _checkout_for_shipping(self, cart: PickCart, shipper_name: str) -> dict:
        resumed = self._resume(cart, shipper_name, CartStatus.SHIPPING)
        if resumed is not None:
            return resumed
        if cart.status != CartStatus.PICKED_READY.value:
            raise InvalidStateError(f"Cart {cart.name} is {cart.status} and cannot be shipped")

        ready = [c for c in active_chunks_for_cart(str(cart.id)) if c.is_ready_to_ship]
        if not ready:
            raise ValidationError({"cart_id": [f"Cart {cart.name} has nothing ready to ship"]})

        chunk_repo = current_domain.repository_for(Chunk)
        for chunk in ready:
            chunk.start_shipping(shipper_name)
            chunk_repo.add(chunk)
        cart.transition_to(CartStatus.SHIPPING, shipper_name)
        current_domain.repository_for(PickCart).add(cart)
        logger.info(
            "shipping_started",
            cart_id=str(cart.id),
            chunk_ids=[str(c.id) for c in ready],
            shipper=shipper_name,
        )
        return {**chunk_view(ready[0], cart=cart), "resumed": False}
