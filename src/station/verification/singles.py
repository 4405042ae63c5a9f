"""Singles verification: a bin of identical one-item orders.

One confirming scan verifies the bin. On each bin entry a spot check is
drawn from the injected random source; when it hits, a second confirming
scan is required. Printing labels the whole bin at once.
"""

import random
from collections.abc import Callable

from batching.shared.line_items import line_items, normalize_scan
from batching.utils.logging import get_logger
from station.verification.base import (
    ScanOutcome,
    ScanResult,
    Unit,
    VerificationEngine,
    bins_with_gaps,
)

logger = get_logger(__name__)

DEFAULT_SPOT_CHECK_RATE = 0.20


def bin_sku(orders: list[dict]) -> str | None:
    for order in orders:
        items = line_items(order.get("payload"))
        if items:
            return normalize_scan(items[0].sku)
    return None


class SinglesVerification(VerificationEngine):
    mode = "SINGLES"

    def __init__(
        self,
        chunk: dict,
        random_source: Callable[[], float] = random.random,
        spot_check_rate: float = DEFAULT_SPOT_CHECK_RATE,
    ):
        self.random_source = random_source
        self.spot_check_rate = spot_check_rate
        self.expected_sku: str | None = None
        self.spot_check = False
        self.confirmations = 0
        super().__init__(chunk)

    def build_units(self, chunk: dict) -> list[Unit]:
        return bins_with_gaps(chunk.get("orders") or [])

    def start_unit(self, unit: Unit) -> None:
        self.tally = None
        self.expected_sku = bin_sku(unit.orders)
        self.confirmations = 0
        self.spot_check = self.random_source() < self.spot_check_rate
        if self.spot_check:
            logger.info("spot_check_required", chunk_id=self.chunk_id, bin_number=unit.bin_number)

    def show_labelled_unit(self, unit: Unit) -> None:
        self.tally = None
        self.expected_sku = bin_sku(unit.orders)
        self.confirmations = 0
        self.spot_check = False

    @property
    def required_scans(self) -> int:
        return 2 if self.spot_check else 1

    @property
    def is_verified(self) -> bool:
        if self.current_unit is None or self.current_unit.is_empty:
            return False
        if self.expected_sku is None:
            return True
        return self.confirmations >= self.required_scans

    def apply_scan(self, sku: str) -> ScanResult:
        if self.expected_sku is None or sku != self.expected_sku:
            return ScanResult(
                ScanOutcome.WRONG_ITEM,
                sku,
                self.is_verified,
                f"Wrong item: expected {self.expected_sku}, scanned {sku}",
            )
        self.confirmations += 1
        if self.confirmations > self.required_scans:
            return ScanResult(ScanOutcome.OVER_SCAN, sku, self.is_verified, "Bin already verified")
        return ScanResult(ScanOutcome.ACCEPTED, sku, self.is_verified)

    def snapshot(self) -> dict:
        snapshot = super().snapshot()
        snapshot.update(
            {
                "expected_sku": self.expected_sku,
                "spot_check": self.spot_check,
                "confirmations": self.confirmations,
                "required_scans": self.required_scans,
            }
        )
        return snapshot
