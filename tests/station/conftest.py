import pytest


def _order(order_number, bin_number, *items, status="AWAITING_SHIPMENT", shelf_number=None):
    """Order as it appears in a chunk view. Items are ``(sku, quantity)`` or dicts."""
    return {
        "order_number": order_number,
        "bin_number": bin_number,
        "shelf_number": shelf_number,
        "status": status,
        "payload": {
            "items": [item if isinstance(item, dict) else {"sku": item[0], "quantity": item[1]} for item in items]
        },
    }


def _chunk(*orders, picking_mode="ORDER_BY_SIZE", personalized=False, **extra):
    return {
        "id": "chunk-1",
        "cart_id": "cart-1",
        "status": "SHIPPING",
        "picking_mode": picking_mode,
        "is_personalized": personalized,
        "orders": list(orders),
        "shelves": [],
        "engraving_progress": None,
        **extra,
    }


@pytest.fixture()
def make_order():
    return _order


@pytest.fixture()
def make_chunk():
    return _chunk


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def clock():
    return ManualClock()
