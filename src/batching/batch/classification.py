"""Batch classification rules.

Pure functions used by batch creation: item-count categories, picking-mode
classification, bulk group splitting and generated batch names.
"""

import math
import re
from collections.abc import Iterable, Sequence
from datetime import datetime
from enum import Enum

from batching.batch.batch import BatchType

STANDARD_MAX_ITEMS = 12
OVERSIZED_MAX_ITEMS = 24
BULK_MIN_ORDERS = 4
BULK_MIN_UNITS = 2
BULK_MAX_UNITS = 4
BULK_GROUP_MAX_ORDERS = 24


class SizeCategory(Enum):
    STANDARD = "standard"
    OVERSIZED = "oversized"
    PRINT_ONLY = "print_only"


class NamePrefix(Enum):
    PERSONALIZED = "P"
    OVERSIZED = "O"
    STANDARD = "S"


def size_category(item_count: int) -> SizeCategory:
    """Orders over 24 units are too big for a cart and only get a label printed."""
    if item_count <= STANDARD_MAX_ITEMS:
        return SizeCategory.STANDARD
    if item_count <= OVERSIZED_MAX_ITEMS:
        return SizeCategory.OVERSIZED
    return SizeCategory.PRINT_ONLY


def classify(orders: Sequence[tuple[str, int]]) -> BatchType:
    """Pick the picking mode for ``(signature, item_count)`` pairs.

    Every order a single unit → SINGLES. At least four orders sharing one
    composition of 2 to 4 units → BULK. Anything else is picked order by
    order (ORDER_BY_SIZE).
    """
    if not orders:
        return BatchType.ORDER_BY_SIZE
    if all(count == 1 for _, count in orders):
        return BatchType.SINGLES
    signatures = {signature for signature, _ in orders}
    if (
        len(signatures) == 1
        and len(orders) >= BULK_MIN_ORDERS
        and all(BULK_MIN_UNITS <= count <= BULK_MAX_UNITS for _, count in orders)
    ):
        return BatchType.BULK
    return BatchType.ORDER_BY_SIZE


def split_balanced(total: int, max_size: int = BULK_GROUP_MAX_ORDERS) -> list[int]:
    """Split ``total`` into ``ceil(total / max_size)`` near-equal parts.

    The first ``total % parts`` parts get one extra, e.g. 50 → [17, 17, 16].
    """
    if total <= 0:
        return []
    parts = math.ceil(total / max_size)
    base, extra = divmod(total, parts)
    return [base + 1 if index < extra else base for index in range(parts)]


def split_groups(orders_by_signature: dict[str, list]) -> list[tuple[str, int, int, list]]:
    """Split each signature's orders into balanced bulk groups.

    Returns ``(signature, split_index, total_splits, orders)`` tuples with
    1-based split indexes, signatures in sorted order.
    """
    groups = []
    for signature in sorted(orders_by_signature):
        orders = orders_by_signature[signature]
        sizes = split_balanced(len(orders))
        offset = 0
        for index, size in enumerate(sizes, start=1):
            groups.append((signature, index, len(sizes), orders[offset : offset + size]))
            offset += size
    return groups


def name_prefix(is_personalized: bool, category: SizeCategory) -> NamePrefix:
    if is_personalized:
        return NamePrefix.PERSONALIZED
    if category == SizeCategory.OVERSIZED:
        return NamePrefix.OVERSIZED
    return NamePrefix.STANDARD


def generate_name(prefix: NamePrefix, existing_names: Iterable[str], now: datetime) -> str:
    """``<prefix>-<Mon><DD>-<NNN>`` with NNN one past the highest in use for the prefix."""
    pattern = re.compile(rf"^{prefix.value}-[A-Za-z]{{3}}\d{{2}}-(\d+)$")
    highest = 0
    for name in existing_names:
        match = pattern.match(name or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix.value}-{now.strftime('%b')}{now.day:02d}-{highest + 1:03d}"
