"""StationCoordinator against a mocked store."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
from batching.shared import ordering
from station.config import StationSettings
from station.coordinator import FailureKind, Phase, StationCoordinator
from station.labels.fake_adapter import FakeLabelPrinter
from station.store.errors import StoreConflictError, StoreNotFoundError, StoreTransientError
from station.verification import VerificationState


def _queue(*entries):
    return [{"id": batch_id, "priority": 0, "queue_priority": priority} for batch_id, priority in entries]


@pytest.fixture()
def store():
    store = MagicMock()
    store.get_queue.return_value = _queue(("b1", 0), ("b2", 1), ("b3", 2))
    store.get_cells.return_value = [{"id": "cell-1", "name": "Cell A", "active": True}]
    store.reset_all_batches.return_value = {"batches_deleted": 0}
    return store


@pytest.fixture()
def printer():
    return FakeLabelPrinter()


@pytest.fixture()
def coordinator(store, printer, clock):
    return StationCoordinator(
        "Ann",
        cell_id="cell-1",
        store=store,
        printer=printer,
        settings=StationSettings(poll_interval_seconds=30, spot_check_rate=0.2),
        clock=clock,
        random_source=lambda: 0.99,
    )


class TestRefetch:
    def test_every_mutation_refetches(self, coordinator, store):
        coordinator.create_batch(["1001"], ["cell-1"])
        coordinator.delete_batch("b2")
        coordinator.reset_all()
        assert store.get_queue.call_count == 3
        assert store.get_cells.call_count == 3

    def test_failed_mutation_still_refetches(self, coordinator, store):
        store.delete_batch.side_effect = StoreNotFoundError("gone", status_code=404)
        outcome = coordinator.delete_batch("b2")
        assert not outcome.ok
        assert outcome.kind == FailureKind.NOT_FOUND
        assert store.get_queue.call_count == 1

    def test_conflict_banner(self, coordinator, store):
        store.checkout_cart.side_effect = StoreConflictError("Cart 1 is in use by Bob", status_code=409)
        outcome = coordinator.start_picking("cart-1")
        assert outcome.kind == FailureKind.CONFLICT
        assert coordinator.take_banners() == ["Cart 1 is in use by Bob. Refreshed; try again."]
        assert coordinator.take_banners() == []
        assert coordinator.phase == Phase.IDLE

    def test_failed_refresh_is_reported(self, coordinator, store):
        store.get_queue.side_effect = StoreTransientError("offline")
        assert coordinator.refresh().kind == FailureKind.TRANSIENT


class TestQueueEdits:
    def test_reorder_sends_neighbour_priority(self, coordinator, store):
        coordinator.refresh()
        coordinator.reorder("b3", 1)
        store.reorder_batch.assert_called_once_with("b3", "cell-1", 0)

    def test_reorder_to_front(self, coordinator, store):
        coordinator.refresh()
        coordinator.reorder("b3", 0)
        store.reorder_batch.assert_called_once_with("b3", "cell-1", -1)

    def test_head_dragged_to_tail_stays_last_after_refetch(self, coordinator, store):
        store.get_queue.return_value = [
            {"id": "z-first", "priority": 0, "queue_priority": 0, "created_at": "2026-10-18T08:00:00+00:00"},
            {"id": "m-second", "priority": 0, "queue_priority": 1, "created_at": "2026-10-18T08:05:00+00:00"},
            {"id": "a-third", "priority": 0, "queue_priority": 2, "created_at": "2026-10-18T08:10:00+00:00"},
        ]
        coordinator.refresh()
        coordinator.reorder("z-first", 2)
        _, _, priority = store.reorder_batch.call_args.args

        stored = [
            {**b, "queue_priority": priority} if b["id"] == "z-first" else b for b in store.get_queue.return_value
        ]
        refetched = ordering.order_by_priority(
            stored,
            lambda b: b["queue_priority"],
            lambda b: ordering.insertion_order(datetime.fromisoformat(b["created_at"]), b["id"]),
        )
        assert [b["id"] for b in refetched] == ["m-second", "a-third", "z-first"]

    def test_reorder_down_steps_past_tied_neighbour(self, coordinator, store):
        coordinator.refresh()
        coordinator.reorder("b1", 2)
        store.reorder_batch.assert_called_once_with("b1", "cell-1", 3)

    def test_reorder_unknown_batch(self, coordinator, store):
        coordinator.refresh()
        outcome = coordinator.reorder("zz", 0)
        assert outcome.kind == FailureKind.VALIDATION
        store.reorder_batch.assert_not_called()

    def test_empty_cell_edit_never_reaches_the_store(self, coordinator, store):
        outcome = coordinator.edit_cells("b1", [])
        assert outcome.kind == FailureKind.VALIDATION
        store.set_cell_assignments.assert_not_called()


class TestPolling:
    def test_polls_when_idle_after_interval(self, coordinator, store, clock):
        assert coordinator.poll() is True
        clock.advance(10)
        assert coordinator.poll() is False
        clock.advance(25)
        assert coordinator.poll() is True
        assert store.get_queue.call_count == 2

    def test_no_polling_during_a_session(self, coordinator, store, clock):
        store.checkout_cart.return_value = {"id": "chunk-1", "cart_id": "cart-1", "orders": []}
        coordinator.start_picking("cart-1")
        calls = store.get_queue.call_count
        clock.advance(120)
        assert coordinator.poll() is False
        assert store.get_queue.call_count == calls


def _shipping_chunk(make_chunk, make_order):
    return make_chunk(make_order("1001", 1, ("A", 1)), make_order("1002", 2, ("B", 1)))


class TestShipping:
    def test_ship_a_cart(self, coordinator, store, printer, make_chunk, make_order):
        chunk = _shipping_chunk(make_chunk, make_order)
        store.checkout_cart.return_value = chunk
        store.get_cart_chunk.return_value = chunk
        assert coordinator.start_shipping("cart-1").ok

        assert coordinator.scan("Z").kind == FailureKind.VALIDATION
        coordinator.scan("A")
        assert coordinator.print_labels().value == ["1001"]
        assert printer.printed == ["1001"]
        assert store.complete_order.call_args.args[:2] == ("chunk-1", "1001")

        coordinator.advance()
        coordinator.scan("B")
        coordinator.print_labels()
        coordinator.advance()
        assert coordinator.engine.state == VerificationState.CART_COMPLETE
        assert coordinator.complete_cart().ok
        store.complete_cart.assert_called_once_with("cart-1", "chunk-1")
        assert coordinator.phase == Phase.IDLE

    def test_reprint_after_store_failure_reuses_the_label(self, coordinator, store, printer, make_chunk, make_order):
        chunk = _shipping_chunk(make_chunk, make_order)
        store.checkout_cart.return_value = chunk
        store.get_cart_chunk.return_value = chunk
        store.complete_order.side_effect = [StoreTransientError("offline"), {"already_shipped": False}]
        coordinator.start_shipping("cart-1")
        coordinator.scan("A")

        assert coordinator.print_labels().kind == FailureKind.TRANSIENT
        assert coordinator.print_labels().ok
        assert printer.printed == ["1001"]

    def test_cart_cannot_complete_early(self, coordinator, store, make_chunk, make_order):
        chunk = _shipping_chunk(make_chunk, make_order)
        store.checkout_cart.return_value = chunk
        store.get_cart_chunk.return_value = chunk
        coordinator.start_shipping("cart-1")
        assert coordinator.complete_cart().kind == FailureKind.STATE
        store.complete_cart.assert_not_called()

    def test_cart_released_elsewhere_ends_the_session(self, coordinator, store, make_chunk, make_order):
        store.checkout_cart.return_value = _shipping_chunk(make_chunk, make_order)
        store.get_cart_chunk.side_effect = StoreNotFoundError("Cart has no active chunk", status_code=404)
        coordinator.start_shipping("cart-1")
        assert coordinator.phase == Phase.IDLE
        assert "This cart is no longer checked out." in coordinator.take_banners()


class TestEngraving:
    def test_mark_done_does_not_refetch(self, coordinator, store, make_chunk, make_order):
        store.checkout_cart.return_value = make_chunk(
            make_order("1001", 1, {"sku": "MUG-PERS", "quantity": 1}),
            personalized=True,
        )
        coordinator.start_engraving("cart-1")
        calls = store.get_queue.call_count
        assert coordinator.mark_done(0).ok
        assert store.get_queue.call_count == calls
        store.mark_engraved_item.assert_called_once()

    def test_complete_engraving_returns_to_idle(self, coordinator, store, make_chunk, make_order):
        store.checkout_cart.return_value = make_chunk(
            make_order("1001", 1, {"sku": "MUG-PERS", "quantity": 1}),
            personalized=True,
        )
        store.complete_engraving.return_value = {"status": "ENGRAVED"}
        coordinator.start_engraving("cart-1")
        coordinator.mark_done(0)
        assert coordinator.complete_engraving().value == {"status": "ENGRAVED"}
        assert coordinator.phase == Phase.IDLE
