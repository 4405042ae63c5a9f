"""Fake label adapter — deterministic labels for testing and development."""

import hashlib

from station.labels.port import Label, LabelError, LabelPort


class FakeLabelPrinter(LabelPort):
    """Fake printer that always succeeds by default."""

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Printer offline"
        self.printed: list[str] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Printer offline"):
        """Configure the fake printer behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def print_label(self, order_number: str, payload: dict) -> Label:
        if not self.should_succeed:
            raise LabelError(self.failure_reason)

        digest = hashlib.sha1(order_number.encode()).hexdigest()[:12].upper()
        carrier = (payload or {}).get("carrierCode") or "fake"
        self.printed.append(order_number)
        return Label(
            tracking_number=f"FAKE-{digest}",
            carrier=carrier,
            label_url=f"https://labels.example.com/{digest}.pdf",
            cost=0.0,
        )
