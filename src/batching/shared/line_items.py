"""Order payload helpers shared by the batch store and the stations.

Intake stores the raw order payload as received. Every consumer (batching,
bin assignment, scan verification, engraving) reads line items through these
helpers so the insurance/shipping exclusion and the personalization rules are
applied identically on the pick and ship sides.
"""

import json
from dataclasses import dataclass

# Legacy orders predating customization barcodes mark engraved items by SKU
PERSONALIZED_SKU_SUFFIX = "-PERS"

_EXCLUDED_SKU_MARKERS = ("INSURANCE", "SHIPPING")
_EXCLUDED_NAME_MARKERS = ("INSURANCE", "SHIPPING PROTECTION")


@dataclass(frozen=True)
class LineItem:
    """An eligible (pickable, scannable) line item of an order."""

    sku: str
    name: str
    quantity: int
    bin_location: str | None = None
    customization_barcode: str | None = None
    engraving_text: str | None = None

    @property
    def is_personalized(self) -> bool:
        if self.customization_barcode:
            return True
        return self.sku.upper().endswith(PERSONALIZED_SKU_SUFFIX)


def normalize_scan(value: str | None) -> str:
    """Scans compare case-insensitively after trimming whitespace."""
    return (value or "").strip().upper()


def order_body(payload) -> dict:
    """Return the order dict from a stored payload.

    Payloads arrive either as a JSON string, a dict, or a one-element list
    wrapping the dict (the ERP export format).
    """
    if isinstance(payload, str):
        payload = json.loads(payload) if payload else {}
    if isinstance(payload, list):
        payload = payload[0] if payload else {}
    return payload or {}


def is_excluded_item(sku: str | None, name: str | None = None) -> bool:
    upper_sku = (sku or "").upper()
    upper_name = (name or "").upper()
    if any(marker in upper_sku for marker in _EXCLUDED_SKU_MARKERS):
        return True
    return any(marker in upper_name for marker in _EXCLUDED_NAME_MARKERS)


def _engraving_text(item: dict) -> str | None:
    if item.get("engravingText"):
        return item["engravingText"]
    for key in ("customization", "personalization"):
        value = item.get(key)
        if isinstance(value, dict) and value.get("text"):
            return value["text"]
    for option in item.get("options") or []:
        if any(word in (option.get("name") or "").lower() for word in ("engrav", "personal", "custom")):
            return option.get("value") or ""
    return None


def line_items(payload) -> list[LineItem]:
    """Eligible line items of an order, insurance and shipping lines removed."""
    items = []
    for raw in order_body(payload).get("items") or []:
        if is_excluded_item(raw.get("sku"), raw.get("name")):
            continue
        sku = raw.get("sku") or "UNKNOWN"
        items.append(
            LineItem(
                sku=sku,
                name=raw.get("name") or sku,
                quantity=int(raw.get("quantity") or 1),
                bin_location=raw.get("binLocation"),
                customization_barcode=raw.get("customizationBarcode") or None,
                engraving_text=_engraving_text(raw),
            )
        )
    return items


def item_count(payload) -> int:
    """Total units of an order (sum of quantities of eligible items)."""
    return sum(item.quantity for item in line_items(payload))


def expected_quantities(payload) -> dict[str, int]:
    """Expected scan count per normalized SKU."""
    expected: dict[str, int] = {}
    for item in line_items(payload):
        key = normalize_scan(item.sku)
        expected[key] = expected.get(key, 0) + item.quantity
    return expected


def composition_signature(payload) -> str:
    """Deterministic ``SKU:QTY|SKU:QTY`` signature of an order's composition.

    Two orders with the same signature are identical for bulk picking.
    """
    return "|".join(f"{sku}:{qty}" for sku, qty in sorted(expected_quantities(payload).items()))


def signature_items(signature: str) -> list[tuple[str, int]]:
    if not signature:
        return []
    pairs = []
    for part in signature.split("|"):
        sku, _, qty = part.rpartition(":")
        pairs.append((sku, int(qty)))
    return pairs


def is_personalized_order(payload) -> bool:
    body = order_body(payload)
    if body.get("isPersonalized"):
        return True
    return any(item.is_personalized for item in line_items(payload))


def pick_location(payload) -> str:
    """Sort key used to walk the warehouse: first eligible item's bin location."""
    items = line_items(payload)
    if items and items[0].bin_location:
        return items[0].bin_location
    return "ZZZ"

