"""Standard verification: one order per bin, every unit scanned."""

from station.verification.base import Unit, VerificationEngine, bins_with_gaps


class StandardVerification(VerificationEngine):
    """Order-by-size and personalized carts.

    An order is verified once every eligible line item has been scanned at
    least as many times as ordered.
    """

    mode = "STANDARD"

    def build_units(self, chunk: dict) -> list[Unit]:
        return bins_with_gaps(chunk.get("orders") or [])
