"""Label port — abstract interface for shipping label printers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class LabelError(Exception):
    """Label could not be bought or printed."""


@dataclass(frozen=True)
class Label:
    tracking_number: str
    carrier: str
    label_url: str
    cost: float

    def as_completion(self) -> dict:
        """Fields recorded with the shipped order."""
        return {
            "tracking_number": self.tracking_number,
            "carrier": self.carrier,
            "label_url": self.label_url,
            "label_cost": self.cost,
        }


class LabelPort(ABC):
    """Abstract interface for label adapters."""

    @abstractmethod
    def print_label(self, order_number: str, payload: dict) -> Label:
        """Buy and print a label for ``order_number``.

        Raises:
            LabelError: the carrier or printer rejected the request
        """
        ...
