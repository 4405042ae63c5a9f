"""Order intake, cells and carts through the command handlers."""

import pytest
from batching.cart.cart import CartStatus, PickCart
from batching.cart.management import DeleteCart, UpdateCart, list_carts
from batching.cell.cell import PickCell
from batching.cell.management import UpdateCell, list_cells
from batching.order.intake import get_order_by_number
from batching.order.order import OrderStatus
from protean import current_domain
from protean.exceptions import InvalidStateError, ObjectNotFoundError, ValidationError


class TestIntake:
    def test_ingested_order_awaits_shipment(self, ingest_order):
        ingest_order("1001", ("MUG", 2), ("ROUTE-INSURANCE", 1))
        order = get_order_by_number("1001")
        assert order.status == OrderStatus.AWAITING_SHIPMENT.value
        assert order.item_count == 2

    def test_duplicate_order_number_is_rejected(self, ingest_order):
        ingest_order("1002", ("MUG", 1))
        with pytest.raises(ValidationError):
            ingest_order("1002", ("MUG", 1))

    def test_unknown_order(self):
        with pytest.raises(ObjectNotFoundError):
            get_order_by_number("nope")


class TestCells:
    def test_create_and_list(self, new_cell):
        new_cell("Cell B")
        new_cell("Cell A")
        assert [c.name for c in list_cells()] == ["Cell A", "Cell B"]

    def test_names_are_unique_ignoring_case(self, new_cell):
        new_cell("Cell A")
        with pytest.raises(ValidationError):
            new_cell("cell a")

    def test_deactivated_cell_drops_out_of_active_list(self, new_cell):
        cell_id = new_cell("Cell A")
        current_domain.process(UpdateCell(cell_id=cell_id, active=False), asynchronous=False)
        assert list_cells(active_only=True) == []
        assert current_domain.repository_for(PickCell).get(cell_id).active is False


class TestCarts:
    def test_available_carts(self, new_cart):
        first = new_cart("Cart 1")
        new_cart("Cart 2")
        current_domain.process(UpdateCart(cart_id=first, active=False), asynchronous=False)
        assert [c.name for c in list_carts(available_only=True)] == ["Cart 2"]

    def test_delete_unused_cart(self, new_cart):
        cart_id = new_cart()
        current_domain.process(DeleteCart(cart_id=cart_id), asynchronous=False)
        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(PickCart).get(cart_id)

    def test_busy_cart_cannot_be_deleted(self, new_cart):
        cart_id = new_cart()
        repo = current_domain.repository_for(PickCart)
        cart = repo.get(cart_id)
        cart.transition_to(CartStatus.PICKING, "Ann")
        repo.add(cart)
        with pytest.raises(InvalidStateError):
            current_domain.process(DeleteCart(cart_id=cart_id), asynchronous=False)
