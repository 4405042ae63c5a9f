"""Bin and shelf layout for carts.

Pure functions, no persistence. The same rules run at chunk checkout (to
write bin and shelf numbers) and on the stations (to re-derive the layout
for display and scan hints), so both sides always agree.

Cart geometry:
    - Standard and personalized chunks use one order per bin, 12 bins per
      cart, 6 for oversized batches (name prefix ``O-``).
    - Singles chunks stack up to 24 identical single-item orders per bin.
    - Bulk chunks use 3 shelves of 4 bins. Each shelf is bound to one bulk
      group and every bin on the shelf holds one unit position of that
      group's composition.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from batching.shared.line_items import normalize_scan, signature_items

STANDARD_BIN_COUNT = 12
OVERSIZED_BIN_COUNT = 6
OVERSIZED_PREFIX = "O-"
SINGLES_ORDERS_PER_BIN = 24
BINS_PER_SHELF = 4
MAX_SHELVES = 3


@dataclass(frozen=True)
class SkuLayoutEntry:
    """One physical bin position of a bulk shelf."""

    sku: str
    bin_qty: int
    master_unit_index: int

    def to_dict(self) -> dict:
        return {"sku": self.sku, "binQty": self.bin_qty, "masterUnitIndex": self.master_unit_index}

    @classmethod
    def from_dict(cls, data: dict) -> "SkuLayoutEntry":
        return cls(
            sku=data["sku"],
            bin_qty=int(data.get("binQty", data.get("bin_qty", 0))),
            master_unit_index=int(data.get("masterUnitIndex", data.get("master_unit_index", 0))),
        )


@dataclass(frozen=True)
class Shelf:
    """A shelf of a bulk chunk bound to one bulk group."""

    shelf_number: int
    order_count: int
    sku_layout: tuple[SkuLayoutEntry, ...] = field(default_factory=tuple)
    bulk_batch_id: str | None = None


def bin_capacity(batch_name: str | None) -> int:
    """Number of order bins on a cart for a batch."""
    if batch_name and batch_name.upper().startswith(OVERSIZED_PREFIX):
        return OVERSIZED_BIN_COUNT
    return STANDARD_BIN_COUNT


def assign_bins(order_numbers: Sequence[str], capacity: int = STANDARD_BIN_COUNT) -> dict[str, int]:
    """Give each order, in pick order, the next bin number starting at 1."""
    if len(order_numbers) > capacity:
        raise ValueError(f"{len(order_numbers)} orders do not fit in {capacity} bins")
    return {order_number: index + 1 for index, order_number in enumerate(order_numbers)}


def assign_singles_bins(
    orders_by_sku: dict[str, Sequence[str]],
    capacity: int = STANDARD_BIN_COUNT,
    per_bin: int = SINGLES_ORDERS_PER_BIN,
) -> dict[str, int]:
    """Stack identical single-item orders into shared bins.

    SKUs are visited in sorted order so the same input always yields the same
    layout. Orders that do not fit in ``capacity`` bins are left out and stay
    in the batch queue for the next cart.
    """
    assignment: dict[str, int] = {}
    bin_number = 0
    for sku in sorted(orders_by_sku):
        orders = list(orders_by_sku[sku])
        for start in range(0, len(orders), per_bin):
            bin_number += 1
            if bin_number > capacity:
                return assignment
            for order_number in orders[start : start + per_bin]:
                assignment[order_number] = bin_number
    return assignment


def empty_bins(occupied: Iterable[int], capacity: int = STANDARD_BIN_COUNT) -> list[int]:
    """Bins without any order. Stations skip them with a single tap."""
    taken = set(occupied)
    return [bin_number for bin_number in range(1, capacity + 1) if bin_number not in taken]


# ---------------------------------------------------------------------------
# Bulk shelves
# ---------------------------------------------------------------------------
def build_bulk_sku_layout(group_signature: str, order_count: int) -> list[SkuLayoutEntry]:
    """One layout entry per unit of the group's composition.

    A group ``A:2|B:1`` of 10 orders stages 10 units of A in the first two
    bins of its shelf and 10 units of B in the third.
    """
    entries = []
    for sku, quantity in signature_items(group_signature):
        for _ in range(quantity):
            entries.append(SkuLayoutEntry(sku=sku, bin_qty=order_count, master_unit_index=len(entries)))
    if len(entries) > BINS_PER_SHELF:
        raise ValueError(f"Composition {group_signature!r} needs {len(entries)} bins, a shelf has {BINS_PER_SHELF}")
    return entries


def physical_bin(entry: SkuLayoutEntry, shelf_number: int) -> int:
    return entry.master_unit_index + 1 + (shelf_number - 1) * BINS_PER_SHELF


def shelf_bin_map(shelf: Shelf) -> dict[int, SkuLayoutEntry]:
    """Physical bin number -> layout entry for one shelf."""
    return {physical_bin(entry, shelf.shelf_number): entry for entry in shelf.sku_layout}


def bins_for_sku(shelf: Shelf, sku: str) -> list[int]:
    """Physical bins on ``shelf`` holding ``sku``, ascending."""
    wanted = normalize_scan(sku)
    return sorted(
        physical_bin(entry, shelf.shelf_number)
        for entry in shelf.sku_layout
        if normalize_scan(entry.sku) == wanted
    )


def _shelf_of(order) -> int | None:
    if isinstance(order, dict):
        return order.get("shelf_number", order.get("shelfNumber"))
    return getattr(order, "shelf_number", None)


def _bin_of(order) -> int:
    if isinstance(order, dict):
        value = order.get("bin_number", order.get("binNumber"))
    else:
        value = getattr(order, "bin_number", None)
    return value if value is not None else 0


def group_orders_by_shelf(orders: Sequence, shelves: Sequence[Shelf]) -> dict[int, list]:
    """Split a bulk chunk's orders across its shelves.

    Orders written by a current checkout carry their shelf number and are
    grouped by it. Legacy orders without one are grouped positionally: the
    bin-sorted list is consumed shelf by shelf, each shelf taking as many
    orders as its group's ``order_count``.
    """
    ordered_shelves = sorted(shelves, key=lambda s: s.shelf_number)
    groups: dict[int, list] = {shelf.shelf_number: [] for shelf in ordered_shelves}
    ordered = sorted(orders, key=_bin_of)

    if ordered and all(_shelf_of(order) is not None for order in ordered):
        for order in ordered:
            groups.setdefault(_shelf_of(order), []).append(order)
        return groups

    offset = 0
    for shelf in ordered_shelves:
        groups[shelf.shelf_number] = list(ordered[offset : offset + shelf.order_count])
        offset += shelf.order_count
    return groups
