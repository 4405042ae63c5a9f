"""Tests for order payload helpers."""

import json

from batching.shared.line_items import (
    composition_signature,
    expected_quantities,
    is_excluded_item,
    is_personalized_order,
    item_count,
    line_items,
    normalize_scan,
    order_body,
    pick_location,
    signature_items,
)


class TestOrderBody:
    def test_json_string(self):
        assert order_body(json.dumps({"items": []})) == {"items": []}

    def test_wrapped_in_list(self):
        assert order_body([{"orderNumber": "1"}]) == {"orderNumber": "1"}

    def test_empty(self):
        assert order_body("") == {}


class TestExclusions:
    def test_insurance_sku(self):
        assert is_excluded_item("ROUTE-INSURANCE")

    def test_shipping_sku(self):
        assert is_excluded_item("shipping-fee")

    def test_shipping_protection_name(self):
        assert is_excluded_item("SP-1", "Shipping Protection by Route")

    def test_regular_item(self):
        assert not is_excluded_item("MUG-11", "Mug")

    def test_excluded_lines_are_dropped(self):
        payload = {"items": [{"sku": "MUG", "quantity": 2}, {"sku": "INSURANCE", "quantity": 1}]}
        assert [item.sku for item in line_items(payload)] == ["MUG"]
        assert item_count(payload) == 2


class TestQuantities:
    def test_quantity_defaults_to_one(self):
        assert line_items({"items": [{"sku": "A"}]})[0].quantity == 1

    def test_expected_quantities_are_normalized_and_summed(self):
        payload = {"items": [{"sku": "a", "quantity": 1}, {"sku": " A ", "quantity": 2}, {"sku": "b"}]}
        assert expected_quantities(payload) == {"A": 3, "B": 1}

    def test_signature_is_order_independent(self):
        first = {"items": [{"sku": "B", "quantity": 1}, {"sku": "A", "quantity": 2}]}
        second = {"items": [{"sku": "a", "quantity": 2}, {"sku": "b", "quantity": 1}]}
        assert composition_signature(first) == composition_signature(second) == "A:2|B:1"

    def test_signature_items(self):
        assert signature_items("A:2|B:1") == [("A", 2), ("B", 1)]


class TestPersonalization:
    def test_customization_barcode(self):
        assert is_personalized_order({"items": [{"sku": "MUG", "customizationBarcode": "CB-1"}]})

    def test_legacy_suffix(self):
        assert is_personalized_order({"items": [{"sku": "MUG-PERS"}]})

    def test_order_flag(self):
        assert is_personalized_order({"isPersonalized": True, "items": [{"sku": "MUG"}]})

    def test_plain_order(self):
        assert not is_personalized_order({"items": [{"sku": "MUG"}]})

    def test_engraving_text_from_personalization(self):
        item = line_items({"items": [{"sku": "MUG", "personalization": {"text": "Ada"}}]})[0]
        assert item.engraving_text == "Ada"


class TestScanNormalization:
    def test_trim_and_upper(self):
        assert normalize_scan("  mug-11\n") == "MUG-11"

    def test_none(self):
        assert normalize_scan(None) == ""


class TestPickLocation:
    def test_first_item_location(self):
        assert pick_location({"items": [{"sku": "A", "binLocation": "B-02"}]}) == "B-02"

    def test_missing_location_sorts_last(self):
        assert pick_location({"items": [{"sku": "A"}]}) == "ZZZ"
