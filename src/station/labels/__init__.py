"""Label printer factory.

Provides get_label_printer() / set_label_printer() to swap implementations.
Only the fake printer ships here; carrier integrations plug in via set_label_printer().
"""

from station.config import get_settings
from station.labels.fake_adapter import FakeLabelPrinter
from station.labels.port import LabelPort

_current_printer: LabelPort | None = None


def get_label_printer() -> LabelPort:
    """Return the current label printer. Defaults to FakeLabelPrinter."""
    global _current_printer
    if _current_printer is None:
        adapter = get_settings().label_adapter
        if adapter != "fake":
            raise ValueError(f"Unknown label adapter: {adapter}")
        _current_printer = FakeLabelPrinter()
    return _current_printer


def set_label_printer(printer: LabelPort) -> None:
    """Override the active label printer (useful for tests)."""
    global _current_printer
    _current_printer = printer


def reset_label_printer() -> None:
    """Reset to the default printer."""
    global _current_printer
    _current_printer = None
