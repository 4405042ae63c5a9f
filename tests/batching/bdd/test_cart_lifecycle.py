"""BDD tests for the pick cart lifecycle."""

from batching.cart.cart import CartStatus
from protean.exceptions import InvalidStateError, ValidationError
from pytest_bdd import parsers, scenarios, when

scenarios("features/cart_lifecycle.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('"{worker}" checks the cart out for picking'))
def check_out_for_picking(cart, worker, error):
    try:
        cart.transition_to(CartStatus.PICKING, worker)
    except InvalidStateError as exc:
        error["exc"] = exc


@when("picking is finished")
def picking_finished(cart):
    cart.transition_to(CartStatus.PICKED_READY, cart.worker_name)


@when(parsers.cfparse('"{worker}" starts shipping the cart'))
def start_shipping(cart, worker):
    cart.transition_to(CartStatus.SHIPPING, worker)


@when(parsers.cfparse('"{worker}" starts engraving the cart'))
def start_engraving(cart, worker):
    cart.transition_to(CartStatus.ENGRAVING, worker)


@when("engraving is finished")
def engraving_finished(cart):
    cart.transition_to(CartStatus.PICKED_READY)


@when("the cart is released")
def release_cart(cart, error):
    try:
        cart.release("operator")
    except ValidationError as exc:
        error["exc"] = exc
