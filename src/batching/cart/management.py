"""Pick cart administration — commands and handler."""

from protean import handle
from protean.exceptions import InvalidStateError, ValidationError
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from batching.cart.cart import CartStatus, PickCart
from batching.chunk.chunk import Chunk
from batching.domain import batching
from batching.shared.queries import find_all
from batching.utils.logging import get_logger

logger = get_logger(__name__)


@batching.command(part_of="PickCart")
class CreateCart:
    name = String(required=True, max_length=100)
    color = String(max_length=50)


@batching.command(part_of="PickCart")
class UpdateCart:
    cart_id = Identifier(required=True)
    name = String(max_length=100)
    color = String(max_length=50)
    active = Boolean()


@batching.command(part_of="PickCart")
class DeleteCart:
    cart_id = Identifier(required=True)


def _assert_unique_name(name: str, exclude_id: str | None = None) -> None:
    wanted = name.strip().lower()
    for cart in find_all(PickCart):
        if cart.name.lower() == wanted and str(cart.id) != exclude_id:
            raise ValidationError({"name": [f"A cart named '{name.strip()}' already exists"]})


@batching.command_handler(part_of=PickCart)
class PickCartCommandHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        _assert_unique_name(command.name)
        cart = PickCart.create(command.name, command.color)
        current_domain.repository_for(PickCart).add(cart)
        logger.info("cart_created", cart_id=str(cart.id), name=cart.name)
        return str(cart.id)

    @handle(UpdateCart)
    def update_cart(self, command):
        repo = current_domain.repository_for(PickCart)
        cart = repo.get(command.cart_id)
        if command.name is not None:
            _assert_unique_name(command.name, exclude_id=str(cart.id))
        cart.update(name=command.name, color=command.color, active=command.active)
        repo.add(cart)
        logger.info("cart_updated", cart_id=str(cart.id), name=cart.name, active=cart.active)
        return str(cart.id)

    @handle(DeleteCart)
    def delete_cart(self, command):
        repo = current_domain.repository_for(PickCart)
        cart = repo.get(command.cart_id)
        if cart.status != CartStatus.AVAILABLE.value:
            raise InvalidStateError(f"Cart {cart.name} is in use and cannot be deleted")
        if find_all(Chunk, cart_id=str(cart.id)):
            raise ValidationError({"cart_id": [f"Cart {cart.name} has picking history; deactivate it instead"]})
        repo._dao.delete(cart)
        logger.info("cart_deleted", cart_id=str(command.cart_id))
        return str(command.cart_id)


def list_carts(available_only: bool = False) -> list[PickCart]:
    carts = find_all(PickCart)
    if available_only:
        carts = [cart for cart in carts if cart.is_available]
    return sorted(carts, key=lambda cart: cart.name)
