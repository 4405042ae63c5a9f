"""BDD tests for scan verification."""

from pytest_bdd import given, parsers, scenarios, when
from station.verification import SinglesVerification, StandardVerification

scenarios("features/scan_verification.feature")


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse(
        'a standard cart with order "{number}" needing {qty_a:d} of "{sku_a}" and {qty_b:d} of "{sku_b}"'
    ),
    target_fixture="engine",
)
def standard_cart(make_chunk, make_order, number, qty_a, sku_a, qty_b, sku_b):
    chunk = make_chunk(make_order(number, 1, (sku_a, qty_a), (sku_b, qty_b)))
    return StandardVerification(chunk)


@given(parsers.cfparse('a singles bin of "{sku}" drawn for a spot check'), target_fixture="engine")
def singles_spot_checked(make_chunk, make_order, sku):
    chunk = make_chunk(make_order("1", 1, (sku, 1)), make_order("2", 1, (sku, 1)), picking_mode="SINGLES")
    return SinglesVerification(chunk, random_source=lambda: 0.0)


@given(parsers.cfparse('a singles bin of "{sku}" not drawn for a spot check'), target_fixture="engine")
def singles_not_spot_checked(make_chunk, make_order, sku):
    chunk = make_chunk(make_order("1", 1, (sku, 1)), picking_mode="SINGLES")
    return SinglesVerification(chunk, random_source=lambda: 0.99)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse("the shipper scans {codes}"))
def shipper_scans(engine, scans, codes):
    for code in codes.split(","):
        scans.append(engine.scan(code.strip().strip('"')))
