"""Batch creation — command and handler.

Turns a list of awaiting orders into one or more queued batches. Orders are
split by size category (standard, oversized) and personalization, each
split becoming its own batch. Orders too large for a cart are reported back
as print-only and left unbatched.
"""

import json
from collections import defaultdict
from datetime import UTC, datetime

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, String, Text
from protean.utils.globals import current_domain

from batching.batch.batch import Batch, BatchType
from batching.batch.classification import (
    SizeCategory,
    classify,
    generate_name,
    name_prefix,
    size_category,
    split_groups,
)
from batching.cell.cell import PickCell
from batching.domain import batching
from batching.layout.bins import build_bulk_sku_layout
from batching.order.order import Order, OrderStatus
from batching.shared.queries import find_all
from batching.utils.logging import get_logger

logger = get_logger(__name__)


@batching.command(part_of="Batch")
class CreateBatch:
    """Queue a set of orders for picking."""

    order_numbers = Text(required=True)  # JSON list of order numbers
    cell_ids = Text()  # JSON list of cell IDs
    batch_type = String(choices=BatchType)
    is_personalized = Boolean()
    name = String(max_length=100)


def next_cell_priority(cell_id: str, batches: list[Batch]) -> int:
    """One past the highest priority queued in ``cell_id`` (0 for an empty cell)."""
    priorities = [
        b.assignment_for(cell_id).priority for b in batches if not b.is_completed and b.assignment_for(cell_id)
    ]
    return max(priorities) + 1 if priorities else 0


def next_batch_priority(batches: list[Batch], personalized_pool: bool) -> int:
    priorities = [
        b.priority or 0
        for b in batches
        if not b.is_completed and (b.in_personalized_pool if personalized_pool else True)
    ]
    return max(priorities) + 1 if priorities else 0


def _load_cells(cell_ids: list[str]) -> list[PickCell]:
    repo = current_domain.repository_for(PickCell)
    cells = [repo.get(cell_id) for cell_id in dict.fromkeys(cell_ids)]
    inactive = [cell.name for cell in cells if not cell.active]
    if inactive:
        raise ValidationError({"cell_ids": [f"Inactive cells cannot receive batches: {', '.join(inactive)}"]})
    return cells


@batching.command_handler(part_of=Batch)
class CreateBatchHandler:
    @handle(CreateBatch)
    def create_batch(self, command):
        order_numbers = json.loads(command.order_numbers) if isinstance(command.order_numbers, str) else []
        cell_ids = json.loads(command.cell_ids) if command.cell_ids else []

        orders_by_number = {o.order_number: o for o in find_all(Order) if o.order_number in set(order_numbers)}
        eligible, skipped = [], []
        for number in dict.fromkeys(order_numbers):
            order = orders_by_number.get(number)
            if order is None or order.batch_id or order.status != OrderStatus.AWAITING_SHIPMENT.value:
                skipped.append(number)
            else:
                eligible.append(order)
        if not eligible:
            raise ValidationError({"order_numbers": ["None of the orders can be batched"]})

        cells = _load_cells(cell_ids)

        # Split into (personalized, category) groups
        groups: dict[tuple[bool, SizeCategory], list[Order]] = defaultdict(list)
        print_only = []
        for order in eligible:
            category = size_category(order.item_count)
            if category == SizeCategory.PRINT_ONLY:
                print_only.append(order.order_number)
                continue
            personalized = command.is_personalized if command.is_personalized is not None else order.is_personalized
            groups[(bool(personalized), category)].append(order)

        if not groups:
            return {"batches": [], "print_only": print_only, "skipped": skipped}

        if any(not personalized for personalized, _ in groups) and not cells:
            raise ValidationError({"cell_ids": ["At least one active cell is required for a non-personalized batch"]})

        batch_repo = current_domain.repository_for(Batch)
        order_repo = current_domain.repository_for(Order)
        existing = find_all(Batch)
        now = datetime.now(UTC)
        created = []

        ordered_groups = sorted(groups.items(), key=lambda g: (g[0][0], g[0][1].value))
        for index, ((personalized, category), orders) in enumerate(ordered_groups):
            batch_type = BatchType(command.batch_type) if command.batch_type else None
            if batch_type is None:
                batch_type = classify([(o.signature, o.item_count) for o in orders])

            if command.name:
                name = command.name if len(groups) == 1 else f"{command.name}-{index + 1}"
            else:
                name = generate_name(
                    name_prefix(personalized, category),
                    [b.name for b in existing + created],
                    now,
                )

            batch = Batch.create(
                name=name,
                batch_type=batch_type,
                total_orders=len(orders),
                is_personalized=personalized,
                priority=next_batch_priority(existing + created, personalized_pool=personalized and not cells),
                cell_priorities={
                    str(cell.id): next_cell_priority(str(cell.id), existing + created) for cell in cells
                },
            )

            bulk_of_order: dict[str, str] = {}
            if batch_type == BatchType.BULK:
                by_signature: dict[str, list[Order]] = defaultdict(list)
                for order in sorted(orders, key=lambda o: o.order_number):
                    by_signature[order.signature].append(order)
                for signature, split_index, total_splits, members in split_groups(by_signature):
                    try:
                        layout = build_bulk_sku_layout(signature, len(members))
                    except ValueError as exc:
                        raise ValidationError({"batch_type": [str(exc)]}) from exc
                    info = batch.add_bulk_group(signature, len(members), split_index, total_splits, layout)
                    for member in members:
                        bulk_of_order[member.order_number] = str(info.id)

            for order in orders:
                order.attach_to_batch(str(batch.id), bulk_of_order.get(order.order_number))
                order_repo.add(order)
            batch_repo.add(batch)
            created.append(batch)

            logger.info(
                "batch_created",
                batch_id=str(batch.id),
                name=batch.name,
                batch_type=batch.batch_type,
                total_orders=batch.total_orders,
                cell_ids=batch.cell_ids,
                bulk_groups=len(batch.bulk_batches or []),
            )

        if print_only:
            logger.info("print_only_orders_skipped", order_numbers=print_only)

        return {
            "batches": [
                {"id": str(b.id), "name": b.name, "batch_type": b.batch_type, "total_orders": b.total_orders}
                for b in created
            ],
            "print_only": print_only,
            "skipped": skipped,
        }
