"""Bulk verification: identical orders shipped shelf by shelf.

Each order is verified like a standard order, with a hint of which bins on
the current shelf hold every SKU. Shelf progress is derived from the order
statuses, never stored.
"""

from batching.layout.bins import Shelf, SkuLayoutEntry, bins_for_sku, group_orders_by_shelf
from station.verification.base import Unit, VerificationEngine


def shelves_from_view(chunk: dict) -> list[Shelf]:
    return [
        Shelf(
            shelf_number=shelf["shelf_number"],
            order_count=shelf.get("order_count") or 0,
            sku_layout=tuple(SkuLayoutEntry.from_dict(entry) for entry in shelf.get("sku_layout") or []),
            bulk_batch_id=shelf.get("bulk_batch_id"),
        )
        for shelf in chunk.get("shelves") or []
    ]


class BulkVerification(VerificationEngine):
    mode = "BULK"

    def build_units(self, chunk: dict) -> list[Unit]:
        self.shelves = {shelf.shelf_number: shelf for shelf in shelves_from_view(chunk)}
        grouped = group_orders_by_shelf(chunk.get("orders") or [], list(self.shelves.values()))
        units: list[Unit] = []
        for shelf_number in sorted(grouped):
            orders = grouped[shelf_number]
            if not orders:
                units.append(Unit(orders=[], shelf_number=shelf_number))
                continue
            for order in orders:
                units.append(Unit(orders=[order], bin_number=order.get("bin_number"), shelf_number=shelf_number))
        return units

    def bin_hints(self) -> dict[str, list[int]]:
        """SKU -> physical bins on the current shelf to grab it from."""
        unit = self.current_unit
        if unit is None or self.tally is None:
            return {}
        shelf = self.shelves.get(unit.shelf_number)
        if shelf is None:
            return {}
        return {sku: bins_for_sku(shelf, sku) for sku in self.tally.expected}

    def shelf_progress(self) -> dict[int, tuple[int, int]]:
        """Shelf number -> (shipped, total) orders."""
        progress: dict[int, tuple[int, int]] = {}
        for unit in self.units:
            shipped, total = progress.get(unit.shelf_number, (0, 0))
            progress[unit.shelf_number] = (
                shipped + sum(1 for number in unit.order_numbers if number in self.shipped),
                total + len(unit.orders),
            )
        return progress

    def shelf_done(self, shelf_number: int) -> bool:
        shipped, total = self.shelf_progress().get(shelf_number, (0, 0))
        return shipped == total

    def snapshot(self) -> dict:
        snapshot = super().snapshot()
        snapshot["bin_hints"] = self.bin_hints()
        snapshot["shelves"] = {
            number: {"shipped": shipped, "total": total} for number, (shipped, total) in self.shelf_progress().items()
        }
        return snapshot
