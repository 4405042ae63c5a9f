"""CreateBatch: grouping, classification, naming and bulk groups."""

import pytest
from batching.batch.batch import Batch, BatchType, BulkBatchStatus
from batching.order.intake import get_order_by_number
from protean import current_domain
from protean.exceptions import ValidationError


def _get(batch_id):
    return current_domain.repository_for(Batch).get(batch_id)


class TestClassification:
    def test_mixed_orders_are_picked_by_order(self, ingest_order, new_cell, new_batch):
        ingest_order("1", ("A", 1), ("B", 1))
        ingest_order("2", ("C", 3))
        result = new_batch(["1", "2"], [new_cell()])
        assert [b["batch_type"] for b in result["batches"]] == [BatchType.ORDER_BY_SIZE.value]

    def test_single_unit_orders_are_singles(self, ingest_order, new_cell, new_batch):
        for number in ("1", "2", "3"):
            ingest_order(number, ("A", 1))
        result = new_batch(["1", "2", "3"], [new_cell()])
        assert result["batches"][0]["batch_type"] == BatchType.SINGLES.value

    def test_identical_multi_unit_orders_are_bulk(self, ingest_order, new_cell, new_batch):
        numbers = [str(n) for n in range(1, 6)]
        for number in numbers:
            ingest_order(number, ("A", 2))
        result = new_batch(numbers, [new_cell()])
        batch = _get(result["batches"][0]["id"])
        assert batch.batch_type == BatchType.BULK.value
        assert len(batch.bulk_batches) == 1
        group = batch.bulk_batches[0]
        assert group.group_signature == "A:2"
        assert group.order_count == 5
        assert group.status == BulkBatchStatus.PENDING.value
        assert all(str(get_order_by_number(n).bulk_batch_id) == str(group.id) for n in numbers)

    def test_explicit_batch_type_wins(self, ingest_order, new_cell, new_batch):
        ingest_order("1", ("A", 1))
        result = new_batch(["1"], [new_cell()], batch_type=BatchType.ORDER_BY_SIZE.value)
        assert result["batches"][0]["batch_type"] == BatchType.ORDER_BY_SIZE.value


class TestGrouping:
    def test_standard_oversized_and_print_only_split(self, ingest_order, new_cell, new_batch):
        ingest_order("small", ("A", 2))
        ingest_order("big", ("A", 20))
        ingest_order("huge", ("A", 30))
        result = new_batch(["small", "big", "huge"], [new_cell()])
        names = sorted(b["name"] for b in result["batches"])
        assert names[0].startswith("O-") and names[1].startswith("S-")
        assert result["print_only"] == ["huge"]
        assert get_order_by_number("huge").batch_id is None

    def test_personalized_batch_goes_to_the_pool(self, ingest_order, new_batch):
        ingest_order("p1", {"sku": "MUG-PERS", "quantity": 1})
        result = new_batch(["p1"], [])
        batch = _get(result["batches"][0]["id"])
        assert batch.is_personalized
        assert batch.name.startswith("P-")
        assert batch.in_personalized_pool

    def test_names_count_up_per_prefix(self, ingest_order, new_cell, new_batch):
        cell = new_cell()
        ingest_order("1", ("A", 2))
        ingest_order("2", ("B", 2))
        first = new_batch(["1"], [cell])["batches"][0]["name"]
        second = new_batch(["2"], [cell])["batches"][0]["name"]
        assert first.endswith("-001")
        assert second.endswith("-002")

    def test_explicit_name(self, ingest_order, new_cell, new_batch):
        ingest_order("1", ("A", 2))
        assert new_batch(["1"], [new_cell()], name="Rush")["batches"][0]["name"] == "Rush"


class TestEligibility:
    def test_batched_and_unknown_orders_are_skipped(self, ingest_order, new_cell, new_batch):
        cell = new_cell()
        ingest_order("1", ("A", 2))
        ingest_order("2", ("B", 2))
        new_batch(["1"], [cell])
        result = new_batch(["1", "2", "ghost"], [cell])
        assert result["skipped"] == ["1", "ghost"]
        assert result["batches"][0]["total_orders"] == 1

    def test_nothing_eligible(self, new_cell, new_batch):
        with pytest.raises(ValidationError):
            new_batch(["ghost"], [new_cell()])

    def test_standard_batch_needs_a_cell(self, ingest_order, new_batch):
        ingest_order("1", ("A", 2))
        with pytest.raises(ValidationError):
            new_batch(["1"], [])

    def test_new_batches_queue_after_existing_ones(self, ingest_order, new_cell, new_batch):
        cell = new_cell()
        ingest_order("1", ("A", 2))
        ingest_order("2", ("B", 2))
        first = _get(new_batch(["1"], [cell])["batches"][0]["id"])
        second = _get(new_batch(["2"], [cell])["batches"][0]["id"])
        assert second.priority_for(cell) == first.priority_for(cell) + 1
