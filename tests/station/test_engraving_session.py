"""Engraving session: cursor, timer, background saves and completion."""

from unittest.mock import MagicMock

import pytest
from station.engraving.retry import SaveState
from station.engraving.session import EngravingError, EngravingSession
from station.store.errors import StoreConflictError, StoreTransientError, StoreValidationError


def _pers(sku):
    return {"sku": sku, "quantity": 1, "customizationBarcode": f"CB-{sku}"}


@pytest.fixture()
def engraving_chunk(make_chunk, make_order):
    return make_chunk(
        make_order("1001", 1, _pers("MUG"), _pers("PEN"), ("SOCKS", 1)),
        make_order("1002", 2, _pers("CUP")),
        make_order("1003", 3, _pers("BOWL"), _pers("PLATE")),
        status="ENGRAVING",
        personalized=True,
    )


@pytest.fixture()
def store():
    return MagicMock()


def _session(store, chunk, clock):
    return EngravingSession(store, chunk, "Eve", clock=clock)


class TestCursor:
    def test_sequence_holds_only_personalized_items(self, store, engraving_chunk, clock):
        session = _session(store, engraving_chunk, clock)
        assert [item.sku for item in session.items] == ["MUG", "PEN", "CUP", "BOWL", "PLATE"]
        assert session.current_item.sku == "MUG"

    def test_resume_restores_progress(self, store, engraving_chunk, clock):
        engraving_chunk["engraving_progress"] = {"completed_items": [0, 2], "current_index": 1, "total_paused_ms": 700}
        engraving_chunk["resumed"] = True
        session = _session(store, engraving_chunk, clock)
        assert session.resumed
        assert session.current_index == 1
        assert session.total_paused_ms == 700
        assert session.mark_done(1) == 3

    def test_stale_cursor_is_clamped(self, store, engraving_chunk, clock):
        engraving_chunk["engraving_progress"] = {"completed_items": [9], "current_index": 40, "total_paused_ms": 0}
        session = _session(store, engraving_chunk, clock)
        assert session.current_index == 4
        assert session.completed == set()

    def test_next_and_prev_stay_in_range(self, store, engraving_chunk, clock):
        session = _session(store, engraving_chunk, clock)
        assert session.prev() == 0
        for _ in range(10):
            session.next()
        assert session.current_index == 4


class TestSaving:
    def test_item_and_finished_order_are_saved(self, store, engraving_chunk, clock):
        session = _session(store, engraving_chunk, clock)
        session.mark_done(2)
        store.mark_engraved_item.assert_called_once_with("chunk-1", 2, 0)
        store.mark_engraved.assert_called_once_with("chunk-1", "1002")

    def test_repeat_mark_does_not_save_again(self, store, engraving_chunk, clock):
        session = _session(store, engraving_chunk, clock)
        session.mark_done(0)
        session.mark_done(0)
        assert store.mark_engraved_item.call_count == 1

    def test_failed_save_is_retried_after_backoff(self, store, engraving_chunk, clock):
        store.mark_engraved_item.side_effect = [StoreTransientError("offline"), {"current_index": 1}]
        session = _session(store, engraving_chunk, clock)

        assert session.mark_done(0) == 1
        assert session.save_indicator().state == SaveState.RETRYING

        clock.advance(4)
        session.tick()
        assert store.mark_engraved_item.call_count == 1

        clock.advance(1)
        session.tick()
        assert store.mark_engraved_item.call_count == 2
        assert session.save_indicator().state == SaveState.SAVED

        clock.advance(60)
        session.tick()
        assert store.mark_engraved_item.call_count == 2

    def test_conflicts_are_retried_too(self, store, engraving_chunk, clock):
        store.mark_engraved_item.side_effect = StoreConflictError("busy", status_code=409)
        session = _session(store, engraving_chunk, clock)
        session.mark_done(0)
        assert session.retries.get(("item", 0)).attempts == 1

    def test_rejected_save_is_not_retried(self, store, engraving_chunk, clock):
        store.mark_engraved_item.side_effect = StoreValidationError("bad index", status_code=400)
        session = _session(store, engraving_chunk, clock)
        session.mark_done(0)
        assert len(session.retries) == 0

    def test_out_of_range_item(self, store, engraving_chunk, clock):
        with pytest.raises(EngravingError):
            _session(store, engraving_chunk, clock).mark_done(5)


class TestTimer:
    def test_ticks_count_only_while_running(self, store, engraving_chunk, clock):
        session = _session(store, engraving_chunk, clock)
        session.tick()
        session.tick()
        session.pause()
        clock.advance(3)
        session.tick()
        session.resume()
        assert session.active_seconds == 2
        assert session.total_paused_ms == 3000

    def test_active_timer_restarts_on_resume(self, store, engraving_chunk, clock):
        engraving_chunk["engraving_progress"] = {"completed_items": [0], "current_index": 1, "total_paused_ms": 0}
        assert _session(store, engraving_chunk, clock).active_seconds == 0


class TestCompletion:
    def test_requires_every_item(self, store, engraving_chunk, clock):
        session = _session(store, engraving_chunk, clock)
        session.mark_done(0)
        with pytest.raises(EngravingError):
            session.complete()

    def test_flushes_pending_saves_and_reports_once(self, store, engraving_chunk, clock):
        store.mark_engraved_item.side_effect = [StoreTransientError("offline")] + [{}] * 10
        store.complete_engraving.return_value = {"status": "ENGRAVED"}
        session = _session(store, engraving_chunk, clock)
        for index in range(5):
            session.mark_done(index)
        session.tick()
        session.pause()
        clock.advance(2)

        assert session.complete() == {"status": "ENGRAVED"}
        assert session.complete() == {"status": "ENGRAVED"}
        store.complete_engraving.assert_called_once_with(
            "chunk-1", {"active_seconds": 1, "paused_seconds": 2, "item_count": 5}
        )
        assert store.mark_engraved_item.call_count == 6
        assert len(session.retries) == 0

    def test_cancel_only_before_first_item(self, store, engraving_chunk, clock):
        session = _session(store, engraving_chunk, clock)
        session.mark_done(0)
        with pytest.raises(EngravingError):
            session.cancel()

    def test_cancel_ends_the_session(self, store, engraving_chunk, clock):
        session = _session(store, engraving_chunk, clock)
        session.cancel()
        store.cancel_engraving.assert_called_once_with("chunk-1")
        with pytest.raises(EngravingError):
            session.mark_done(0)
