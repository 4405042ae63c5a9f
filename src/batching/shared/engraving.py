"""Engraving item sequence and cursor rules.

Progress records store indices into the personalized-only, bin-sorted item
sequence of a cart. The store and the engraving station both derive that
sequence and the next cursor position from here.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from batching.shared.line_items import line_items


@dataclass(frozen=True)
class EngravingItem:
    """One personalized line item on an engraving cart."""

    index: int
    order_number: str
    bin_number: int
    sku: str
    name: str
    quantity: int
    customization_barcode: str | None = None
    engraving_text: str | None = None


def engraving_sequence(orders) -> list[EngravingItem]:
    """Flatten the personalized line items of a cart, sorted by bin.

    ``orders`` are mappings with ``order_number``, ``bin_number`` and
    ``payload``.
    """
    ordered = sorted(orders, key=lambda o: (o.get("bin_number") or 0, o.get("order_number") or ""))
    sequence: list[EngravingItem] = []
    for order in ordered:
        for item in line_items(order.get("payload")):
            if not item.is_personalized:
                continue
            sequence.append(
                EngravingItem(
                    index=len(sequence),
                    order_number=order.get("order_number"),
                    bin_number=order.get("bin_number") or 0,
                    sku=item.sku,
                    name=item.name,
                    quantity=item.quantity,
                    customization_barcode=item.customization_barcode,
                    engraving_text=item.engraving_text,
                )
            )
    return sequence


def clamp_index(index: int | None, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(index or 0, total - 1))


def next_incomplete_index(completed: Iterable[int], start: int, total: int) -> int:
    """First index after ``start`` not yet completed, wrapping to the front.

    Returns ``start`` (clamped) when every item is complete.
    """
    done = set(completed)
    for offset in range(1, total + 1):
        candidate = (start + offset) % total
        if candidate not in done:
            return candidate
    return clamp_index(start, total)


def order_items_done(sequence: list[EngravingItem], completed: Iterable[int], order_number: str) -> bool:
    """True when every personalized item of ``order_number`` is completed."""
    done = set(completed)
    indices = [item.index for item in sequence if item.order_number == order_number]
    return bool(indices) and all(index in done for index in indices)
