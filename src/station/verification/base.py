"""Scan verification shared by every shipping protocol.

A verification engine walks the units of a cart (an order, a bin of orders,
or a shelf's orders) and gates label printing on scans::

    AWAITING_SCAN -> VERIFIED -> LABEL_ISSUED -> (advance) -> next unit
                                                           -> CART_COMPLETE

A unit with no orders is EMPTY and is skipped with one tap. A unit whose
orders have no scannable items is VERIFIED on entry. Engines hold no I/O:
the coordinator prints labels, reports shipped orders and feeds the
results back in.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

from batching.shared.line_items import expected_quantities, normalize_scan
from batching.utils.logging import get_logger

logger = get_logger(__name__)

SHIPPED = "SHIPPED"


class VerificationState(Enum):
    AWAITING_SCAN = "AWAITING_SCAN"
    VERIFIED = "VERIFIED"
    LABEL_ISSUED = "LABEL_ISSUED"
    EMPTY = "EMPTY"
    CART_COMPLETE = "CART_COMPLETE"


class ScanOutcome(Enum):
    ACCEPTED = "ACCEPTED"
    OVER_SCAN = "OVER_SCAN"  # accepted, but more than the order needs
    NOT_IN_ORDER = "NOT_IN_ORDER"
    WRONG_ITEM = "WRONG_ITEM"
    IGNORED = "IGNORED"  # nothing to scan in the current state


@dataclass(frozen=True)
class ScanResult:
    outcome: ScanOutcome
    sku: str
    verified: bool
    message: str = ""

    @property
    def accepted(self) -> bool:
        return self.outcome in (ScanOutcome.ACCEPTED, ScanOutcome.OVER_SCAN)


class VerificationError(Exception):
    """An action was requested in a state that does not allow it."""


@dataclass
class ScanTally:
    """Scanned units per SKU against the quantities an order expects."""

    expected: dict[str, int]
    scanned: Counter = field(default_factory=Counter)

    @classmethod
    def for_orders(cls, orders: list[dict]) -> "ScanTally":
        expected: Counter = Counter()
        for order in orders:
            expected.update(expected_quantities(order.get("payload")))
        return cls(expected=dict(expected))

    def scan(self, sku: str) -> ScanOutcome:
        if sku not in self.expected:
            return ScanOutcome.NOT_IN_ORDER
        self.scanned[sku] += 1
        if self.scanned[sku] > self.expected[sku]:
            return ScanOutcome.OVER_SCAN
        return ScanOutcome.ACCEPTED

    @property
    def is_complete(self) -> bool:
        return all(self.scanned[sku] >= quantity for sku, quantity in self.expected.items())

    def remaining(self) -> dict[str, int]:
        return {
            sku: quantity - self.scanned[sku]
            for sku, quantity in self.expected.items()
            if self.scanned[sku] < quantity
        }


@dataclass
class Unit:
    """One step of a shipping pass."""

    orders: list[dict]
    bin_number: int | None = None
    shelf_number: int | None = None

    @property
    def order_numbers(self) -> list[str]:
        return [order["order_number"] for order in self.orders]

    @property
    def is_empty(self) -> bool:
        return not self.orders


class VerificationEngine:
    """Walks a cart's units and tracks scans for the current one.

    Subclasses build the unit list and decide how scans verify a unit.
    """

    mode = "STANDARD"

    def __init__(self, chunk: dict):
        self.chunk_id = chunk["id"]
        self.shipped: set[str] = {
            order["order_number"] for order in chunk.get("orders") or [] if order.get("status") == SHIPPED
        }
        self.labels: dict[str, object] = {}
        self.units = self.build_units(chunk)
        self.position = 0
        self.state = VerificationState.CART_COMPLETE
        self.tally: ScanTally | None = None
        self._enter(skip_shipped=True)

    # -- hooks ---------------------------------------------------------------
    def build_units(self, chunk: dict) -> list[Unit]:
        raise NotImplementedError

    def start_unit(self, unit: Unit) -> None:
        self.tally = ScanTally.for_orders(unit.orders)

    def show_labelled_unit(self, unit: Unit) -> None:
        """Show a unit whose labels are already issued, with nothing scanned."""
        self.start_unit(unit)

    def apply_scan(self, sku: str) -> ScanResult:
        outcome = self.tally.scan(sku)
        if outcome == ScanOutcome.NOT_IN_ORDER:
            return ScanResult(outcome, sku, self.is_verified, f"{sku} is not in this order")
        if outcome == ScanOutcome.OVER_SCAN:
            return ScanResult(outcome, sku, self.is_verified, f"{sku} scanned more times than ordered")
        return ScanResult(outcome, sku, self.is_verified)

    @property
    def is_verified(self) -> bool:
        return self.tally is not None and self.tally.is_complete

    # -- navigation ----------------------------------------------------------
    @property
    def current_unit(self) -> Unit | None:
        if self.position >= len(self.units):
            return None
        return self.units[self.position]

    def _unit_shipped(self, unit: Unit) -> bool:
        return bool(unit.orders) and all(number in self.shipped for number in unit.order_numbers)

    def _enter(self, skip_shipped: bool = False) -> None:
        if skip_shipped:
            while self.position < len(self.units) and self._unit_shipped(self.units[self.position]):
                self.position += 1
        unit = self.current_unit
        if unit is None:
            self.tally = None
            self.state = VerificationState.CART_COMPLETE
            return
        if unit.is_empty:
            self.tally = None
            self.state = VerificationState.EMPTY
            return
        if self._unit_shipped(unit):
            self.show_labelled_unit(unit)
            self.state = VerificationState.LABEL_ISSUED
            return
        self.start_unit(unit)
        self.state = VerificationState.VERIFIED if self.is_verified else VerificationState.AWAITING_SCAN

    def go_to(self, position: int) -> None:
        """Re-enter the unit at ``position`` with a fresh scan tally."""
        self.position = max(0, min(position, len(self.units)))
        self._enter()

    def advance(self) -> VerificationState:
        """Move past a labelled or empty unit."""
        if self.state not in (VerificationState.LABEL_ISSUED, VerificationState.EMPTY):
            raise VerificationError(f"Cannot advance while {self.state.value}")
        self.position += 1
        self._enter(skip_shipped=True)
        return self.state

    # -- scanning and labels -------------------------------------------------
    def scan(self, raw: str) -> ScanResult:
        sku = normalize_scan(raw)
        if not sku or self.state not in (VerificationState.AWAITING_SCAN, VerificationState.VERIFIED):
            return ScanResult(ScanOutcome.IGNORED, sku, self.state == VerificationState.VERIFIED)
        result = self.apply_scan(sku)
        if not result.accepted:
            logger.warning("scan_rejected", chunk_id=self.chunk_id, sku=sku, outcome=result.outcome.value)
        if self.state == VerificationState.AWAITING_SCAN and self.is_verified:
            self.state = VerificationState.VERIFIED
        return ScanResult(result.outcome, sku, self.is_verified, result.message)

    @property
    def can_print(self) -> bool:
        return self.state == VerificationState.VERIFIED

    def orders_to_label(self) -> list[dict]:
        """Orders of the current unit still waiting for a label."""
        if not self.can_print:
            raise VerificationError(f"Cannot print while {self.state.value}")
        return [order for order in self.current_unit.orders if order["order_number"] not in self.shipped]

    def record_shipped(self, order_number: str, label=None) -> VerificationState:
        """Note a shipped order; the unit is LABEL_ISSUED once all its orders are."""
        self.shipped.add(order_number)
        if label is not None:
            self.labels[order_number] = label
        unit = self.current_unit
        if unit is not None and self.state == VerificationState.VERIFIED and self._unit_shipped(unit):
            self.state = VerificationState.LABEL_ISSUED
        return self.state

    def sync_statuses(self, chunk: dict) -> None:
        """Fold order statuses from a refetched chunk into the shipped set."""
        for order in chunk.get("orders") or []:
            if order.get("status") == SHIPPED:
                self.shipped.add(order["order_number"])
        unit = self.current_unit
        if unit is not None and self.state == VerificationState.VERIFIED and self._unit_shipped(unit):
            self.state = VerificationState.LABEL_ISSUED

    # -- presentation --------------------------------------------------------
    @property
    def progress(self) -> tuple[int, int]:
        """(shipped, total) orders on the cart."""
        numbers = [number for unit in self.units for number in unit.order_numbers]
        return sum(1 for number in numbers if number in self.shipped), len(numbers)

    def snapshot(self) -> dict:
        unit = self.current_unit
        return {
            "mode": self.mode,
            "state": self.state.value,
            "position": self.position,
            "unit_count": len(self.units),
            "bin_number": unit.bin_number if unit else None,
            "shelf_number": unit.shelf_number if unit else None,
            "order_numbers": unit.order_numbers if unit else [],
            "expected": dict(self.tally.expected) if self.tally else {},
            "scanned": dict(self.tally.scanned) if self.tally else {},
            "verified": self.state in (VerificationState.VERIFIED, VerificationState.LABEL_ISSUED),
        }


def bins_with_gaps(orders: list[dict]) -> list[Unit]:
    """One unit per bin from 1 to the highest occupied bin.

    Bins emptied by out-of-stock picks become empty units; bins past the last
    occupied one are not visited.
    """
    by_bin: dict[int, list[dict]] = {}
    for order in orders:
        by_bin.setdefault(order.get("bin_number") or 0, []).append(order)
    if not by_bin:
        return []
    last = max(by_bin)
    return [
        Unit(orders=sorted(by_bin.get(bin_number, []), key=lambda o: o["order_number"]), bin_number=bin_number)
        for bin_number in range(1, last + 1)
    ]
