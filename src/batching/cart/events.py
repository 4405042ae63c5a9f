"""Pick cart domain events."""

from protean.fields import DateTime, Identifier, String

from batching.domain import batching


@batching.event(part_of="PickCart")
class CartCreated:
    """A physical cart was registered."""

    __version__ = 1

    cart_id = Identifier(required=True)
    name = String(required=True)
    color = String()
    created_at = DateTime(required=True)


@batching.event(part_of="PickCart")
class CartStatusChanged:
    """A cart moved between pick, engrave and ship phases."""

    __version__ = 1

    cart_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    worker_name = String()
    changed_at = DateTime(required=True)


@batching.event(part_of="PickCart")
class CartReleased:
    """An operator forced a cart back to AVAILABLE."""

    __version__ = 1

    cart_id = Identifier(required=True)
    reason = String()
    released_at = DateTime(required=True)
