"""Fake label printer and printer factory."""

import pytest
from station.labels import get_label_printer, reset_label_printer, set_label_printer
from station.labels.fake_adapter import FakeLabelPrinter
from station.labels.port import LabelError


class TestFakeLabelPrinter:
    def test_labels_are_deterministic(self):
        printer = FakeLabelPrinter()
        first = printer.print_label("1001", {"carrierCode": "ups"})
        second = printer.print_label("1001", {})
        assert first.tracking_number == second.tracking_number
        assert first.tracking_number.startswith("FAKE-")
        assert first.carrier == "ups"
        assert second.carrier == "fake"
        assert printer.printed == ["1001", "1001"]

    def test_completion_fields(self):
        label = FakeLabelPrinter().print_label("1001", {})
        assert set(label.as_completion()) == {"tracking_number", "carrier", "label_url", "label_cost"}

    def test_configured_failure(self):
        printer = FakeLabelPrinter()
        printer.configure(should_succeed=False, failure_reason="Out of paper")
        with pytest.raises(LabelError, match="Out of paper"):
            printer.print_label("1001", {})
        assert printer.printed == []


class TestFactory:
    def test_default_is_fake_and_overridable(self):
        reset_label_printer()
        assert isinstance(get_label_printer(), FakeLabelPrinter)
        custom = FakeLabelPrinter()
        set_label_printer(custom)
        assert get_label_printer() is custom
        reset_label_printer()
