"""Pick, ship and release a cart through the chunk command handlers."""

import json

import pytest
from batching.batch.batch import Batch, BatchStatus
from batching.cart.cart import CartStatus, PickCart
from batching.chunk.checkout import CheckoutCart
from batching.chunk.chunk import Chunk, ChunkStatus
from batching.chunk.picking import CancelPicking, CompletePicking, ReportOutOfStock
from batching.chunk.release import ReleaseCart
from batching.chunk.shipping import CompleteCart, CompleteOrder
from batching.chunk.views import current_chunk_view
from batching.order.intake import get_order_by_number
from protean import current_domain
from protean.exceptions import InvalidStateError, ValidationError


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _cart(cart_id):
    return current_domain.repository_for(PickCart).get(cart_id)


def _batch(batch_id):
    return current_domain.repository_for(Batch).get(batch_id)


@pytest.fixture()
def queued(ingest_order, new_cell, new_cart, new_batch):
    cell = new_cell()
    cart = new_cart()
    ingest_order("1003", ("C", 2), {"sku": "X", "quantity": 1, "binLocation": "C-1"})
    ingest_order("1001", {"sku": "A", "quantity": 2, "binLocation": "A-1"})
    ingest_order("1002", {"sku": "B", "quantity": 2, "binLocation": "B-1"})
    batch_id = new_batch(["1001", "1002", "1003"], [cell])["batches"][0]["id"]
    return {"cell": cell, "cart": cart, "batch": batch_id}


def _pick(queued, worker="Ann"):
    return _process(CheckoutCart(cart_id=queued["cart"], worker_name=worker, cell_id=queued["cell"]))


def _picked(queued):
    chunk = _pick(queued)
    _process(CompletePicking(chunk_id=chunk["id"]))
    return chunk


def _shipping(queued, worker="Bob"):
    chunk = _picked(queued)
    _process(CheckoutCart(cart_id=queued["cart"], worker_name=worker, phase="SHIP"))
    return chunk


class TestPickCheckout:
    def test_orders_get_bins_in_walk_order(self, queued):
        chunk = _pick(queued)
        bins = {o["order_number"]: o["bin_number"] for o in chunk["orders"]}
        assert bins == {"1001": 1, "1002": 2, "1003": 3}
        assert chunk["status"] == ChunkStatus.PICKING.value
        assert _cart(queued["cart"]).status == CartStatus.PICKING.value
        assert _batch(queued["batch"]).status == BatchStatus.IN_PROGRESS.value

    def test_same_worker_resumes(self, queued):
        first = _pick(queued)
        again = _pick(queued)
        assert again["id"] == first["id"]
        assert again["resumed"] is True

    def test_other_worker_is_rejected(self, queued):
        _pick(queued)
        with pytest.raises(InvalidStateError):
            _pick(queued, worker="Mallory")

    def test_empty_queue(self, queued, new_cart):
        _pick(queued)
        other_cart = new_cart("Cart 2")
        with pytest.raises(ValidationError):
            _process(CheckoutCart(cart_id=other_cart, worker_name="Cy", cell_id=queued["cell"]))


class TestPicking:
    def test_out_of_stock_returns_orders_to_the_queue(self, queued, new_cart):
        chunk = _pick(queued)
        result = _process(ReportOutOfStock(chunk_id=chunk["id"], bin_numbers=json.dumps([2])))
        assert result == {"orders_returned": 1, "order_count": 2}
        order = get_order_by_number("1002")
        assert order.chunk_id is None and str(order.batch_id) == queued["batch"]

        next_cart = new_cart("Cart 2")
        refill = _process(CheckoutCart(cart_id=next_cart, worker_name="Cy", cell_id=queued["cell"]))
        assert [o["order_number"] for o in refill["orders"]] == ["1002"]

    def test_complete_picking_counts_once(self, queued):
        chunk = _pick(queued)
        result = _process(CompletePicking(chunk_id=chunk["id"]))
        assert result == {"orders_picked": 3, "picked_orders": 3}
        assert _cart(queued["cart"]).status == CartStatus.PICKED_READY.value

    def test_cancel_picking_frees_the_cart(self, queued):
        chunk = _pick(queued)
        assert _process(CancelPicking(chunk_id=chunk["id"])) == {"orders_returned": 3}
        assert _cart(queued["cart"]).status == CartStatus.AVAILABLE.value
        assert current_chunk_view(queued["cart"]) is None


class TestShipping:
    def test_ship_checkout_requires_picked_cart(self, queued):
        _pick(queued)
        with pytest.raises(InvalidStateError):
            _process(CheckoutCart(cart_id=queued["cart"], worker_name="Bob", phase="SHIP"))

    def test_complete_order_is_idempotent(self, queued):
        chunk = _shipping(queued)
        first = _process(CompleteOrder(chunk_id=chunk["id"], order_number="1001", tracking_number="T-1"))
        second = _process(CompleteOrder(chunk_id=chunk["id"], order_number="1001", tracking_number="T-2"))
        assert first == {"order_number": "1001", "already_shipped": False, "shipped_count": 1}
        assert second == {"order_number": "1001", "already_shipped": True}
        assert get_order_by_number("1001").tracking_number == "T-1"
        batch = _batch(queued["batch"])
        assert (batch.shipped_orders, batch.picked_orders, batch.total_orders) == (1, 3, 3)

    def test_order_from_another_cart(self, queued, ingest_order):
        chunk = _shipping(queued)
        ingest_order("stray", ("Q", 2))
        with pytest.raises(ValidationError):
            _process(CompleteOrder(chunk_id=chunk["id"], order_number="stray"))

    def test_completing_every_order_completes_the_batch(self, queued):
        chunk = _shipping(queued)
        for number in ("1001", "1002", "1003"):
            _process(CompleteOrder(chunk_id=chunk["id"], order_number=number))
        result = _process(CompleteCart(cart_id=queued["cart"], chunk_id=chunk["id"]))
        assert result == {"batch_completed": True, "cart_status": CartStatus.AVAILABLE.value, "orders_returned": 0}
        assert _batch(queued["batch"]).status == BatchStatus.COMPLETED.value

    def test_partial_cart_returns_unshipped_orders(self, queued):
        chunk = _shipping(queued)
        _process(CompleteOrder(chunk_id=chunk["id"], order_number="1001"))
        result = _process(CompleteCart(cart_id=queued["cart"], chunk_id=chunk["id"]))
        assert result["batch_completed"] is False
        assert result["orders_returned"] == 2
        assert current_domain.repository_for(Chunk).get(chunk["id"]).status == ChunkStatus.COMPLETED.value


class TestRelease:
    def test_release_cancels_work(self, queued):
        chunk = _shipping(queued)
        _process(CompleteOrder(chunk_id=chunk["id"], order_number="1001"))
        result = _process(ReleaseCart(cart_id=queued["cart"], reason="jammed"))
        assert result == {"chunks_cancelled": 1, "orders_returned": 2}
        assert _cart(queued["cart"]).status == CartStatus.AVAILABLE.value
        cancelled = current_domain.repository_for(Chunk).get(chunk["id"])
        assert cancelled.status == ChunkStatus.CANCELLED.value
        assert cancelled.cancel_reason == "jammed"

    def test_release_available_cart(self, queued):
        with pytest.raises(ValidationError):
            _process(ReleaseCart(cart_id=queued["cart"]))
