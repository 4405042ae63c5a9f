"""Tests for queue ordering as list operations."""

from datetime import UTC, datetime, timedelta

import pytest
from batching.shared.ordering import insertion_order, move, order_by_priority, priority_for_position

T0 = datetime(2026, 10, 18, 8, 0, tzinfo=UTC)


class TestMove:
    def test_move_down(self):
        assert move(["a", "b", "c", "d"], "a", 2) == ["b", "c", "a", "d"]

    def test_move_to_front(self):
        assert move(["a", "b", "c"], "c", 0) == ["c", "a", "b"]

    def test_index_is_clamped(self):
        assert move(["a", "b", "c"], "a", 99) == ["b", "c", "a"]
        assert move(["a", "b", "c"], "c", -3) == ["c", "a", "b"]

    def test_input_is_not_mutated(self):
        items = ["a", "b"]
        move(items, "a", 1)
        assert items == ["a", "b"]

    def test_unknown_id(self):
        with pytest.raises(ValueError):
            move(["a"], "z", 0)


class TestOrderByPriority:
    def test_ties_fall_back_to_insertion_order(self):
        items = [
            {"id": "late", "priority": 1, "created_at": T0 + timedelta(minutes=5)},
            {"id": "early", "priority": 1, "created_at": T0},
            {"id": "first", "priority": 0, "created_at": T0 + timedelta(hours=1)},
        ]
        ordered = order_by_priority(
            items,
            lambda item: item["priority"],
            lambda item: insertion_order(item["created_at"], item["id"]),
        )
        assert [item["id"] for item in ordered] == ["first", "early", "late"]

    def test_naive_and_missing_timestamps_compare(self):
        assert insertion_order(None, "a") < insertion_order(datetime(2026, 1, 1), "a")


def _entry(identifier, priority, minutes):
    return (identifier, priority, insertion_order(T0 + timedelta(minutes=minutes), identifier))


def _resorted(queue, moved_id, priority):
    """Queue order after the store applies ``priority`` to ``moved_id``."""
    updated = [(i, priority if i == moved_id else p, key) for i, p, key in queue]
    return [i for i, _, _ in order_by_priority(updated, lambda e: e[1], lambda e: e[2])]


class TestPriorityForPosition:
    QUEUE = [_entry("a", 0, 0), _entry("b", 1, 1), _entry("c", 2, 2), _entry("d", 3, 3)]

    @pytest.mark.parametrize(
        "moved_id, target_index",
        [("a", 3), ("a", 2), ("a", 1), ("b", 3), ("d", 0), ("c", 1), ("d", 2)],
    )
    def test_store_order_matches_move(self, moved_id, target_index):
        priority = priority_for_position(self.QUEUE, moved_id, target_index)
        ids = [i for i, _, _ in self.QUEUE]
        assert _resorted(self.QUEUE, moved_id, priority) == move(ids, moved_id, target_index)

    def test_head_dragged_to_tail_lands_last(self):
        queue = [_entry("first", 0, 0), _entry("second", 1, 1), _entry("third", 2, 2)]
        priority = priority_for_position(queue, "first", 2)
        assert priority == 3
        assert _resorted(queue, "first", priority) == ["second", "third", "first"]

    def test_later_batch_takes_predecessor_priority(self):
        assert priority_for_position(self.QUEUE, "d", 1) == 0

    def test_front_goes_below_head(self):
        assert priority_for_position(self.QUEUE, "c", 0) == -1

    def test_older_batch_to_front_shares_head_priority(self):
        queue = [_entry("new", 0, 5), _entry("old", 1, 0)]
        assert priority_for_position(queue, "old", 0) == 0

    def test_equal_neighbours_fall_back_after_predecessor_group(self):
        queue = [_entry("a", 0, 1), _entry("b", 0, 2), _entry("z", 0, 0)]
        assert priority_for_position(queue, "z", 1) == 1

    def test_single_item_queue(self):
        assert priority_for_position([_entry("a", 5, 0)], "a", 0) == 0
