"""Shared BDD fixtures and step definitions for the Batching domain."""

import pytest
from batching.batch.batch import Batch, BatchType
from batching.cart.cart import CartStatus, PickCart
from batching.cart.events import CartReleased
from protean.exceptions import InvalidStateError, ValidationError
from pytest_bdd import given, parsers, then

_CART_EVENT_CLASSES = {
    "CartReleased": CartReleased,
}


@pytest.fixture()
def error():
    """Container for a captured domain error."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("an available cart", target_fixture="cart")
def available_cart():
    return PickCart.create(name="Cart 1", color="red")


@given(parsers.cfparse('a cart being picked by "{worker}"'), target_fixture="cart")
def cart_being_picked(worker):
    cart = PickCart.create(name="Cart 1", color="red")
    cart.transition_to(CartStatus.PICKING, worker)
    return cart


@given("a picked cart", target_fixture="cart")
def picked_cart():
    cart = PickCart.create(name="Cart 1", color="red")
    cart.transition_to(CartStatus.PICKING, "Ann")
    cart.transition_to(CartStatus.PICKED_READY, "Ann")
    return cart


@given(parsers.cfparse("a batch of {count:d} orders"), target_fixture="batch")
def batch_of(count):
    return Batch.create(
        name="S-Oct18-001",
        batch_type=BatchType.ORDER_BY_SIZE,
        total_orders=count,
        cell_priorities={"cell-a": 0},
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the cart status is "{status}"'))
def cart_status_is(cart, status):
    assert cart.status == status


@then(parsers.cfparse('the cart is held by "{worker}"'))
def cart_held_by(cart, worker):
    assert cart.worker_name == worker


@then("the cart action fails with a conflict")
def cart_conflict(error):
    assert isinstance(error["exc"], InvalidStateError)


@then("the cart action fails with a validation error")
def cart_validation_error(error):
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse("a {event_type} cart event is raised"))
def cart_event_raised(cart, event_type):
    event_cls = _CART_EVENT_CLASSES[event_type]
    assert any(isinstance(event, event_cls) for event in cart._events)


@then("the batch action fails with a validation error")
def batch_validation_error(error):
    assert isinstance(error["exc"], ValidationError)
