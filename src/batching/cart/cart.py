"""PickCart aggregate: a physical multi-bin cart.

The cart's status is the store-side lock that keeps a cart checked out by at
most one station at a time.

State Machine:
    AVAILABLE → PICKING → PICKED_READY → SHIPPING → AVAILABLE
    PICKED_READY → ENGRAVING → PICKED_READY
    PICKING → AVAILABLE (picking cancelled)
    any → AVAILABLE (administrative release)
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import InvalidStateError, ValidationError
from protean.fields import Boolean, DateTime, String

from batching.cart.events import CartCreated, CartReleased, CartStatusChanged
from batching.domain import batching


class CartStatus(Enum):
    AVAILABLE = "AVAILABLE"
    PICKING = "PICKING"
    PICKED_READY = "PICKED_READY"
    ENGRAVING = "ENGRAVING"
    SHIPPING = "SHIPPING"


_VALID_TRANSITIONS = {
    CartStatus.AVAILABLE: {CartStatus.PICKING},
    CartStatus.PICKING: {CartStatus.PICKED_READY, CartStatus.AVAILABLE},
    CartStatus.PICKED_READY: {CartStatus.ENGRAVING, CartStatus.SHIPPING, CartStatus.AVAILABLE},
    CartStatus.ENGRAVING: {CartStatus.PICKED_READY},
    CartStatus.SHIPPING: {CartStatus.AVAILABLE, CartStatus.PICKED_READY},
}


@batching.aggregate
class PickCart:
    name = String(required=True, max_length=100)
    color = String(max_length=50)
    active = Boolean(default=True)
    status = String(choices=CartStatus, default=CartStatus.AVAILABLE.value)
    worker_name = String(max_length=100)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, name: str, color: str | None = None) -> "PickCart":
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": ["Cart name is required"]})
        now = datetime.now(UTC)
        cart = cls(
            name=name,
            color=color,
            active=True,
            status=CartStatus.AVAILABLE.value,
            created_at=now,
            updated_at=now,
        )
        cart.raise_(CartCreated(cart_id=str(cart.id), name=name, color=color, created_at=now))
        return cart

    @property
    def is_available(self) -> bool:
        return bool(self.active) and self.status == CartStatus.AVAILABLE.value

    def update(self, name: str | None = None, color: str | None = None, active: bool | None = None) -> None:
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError({"name": ["Cart name cannot be blank"]})
            self.name = name
        if color is not None:
            self.color = color
        if active is not None:
            if not active and self.status != CartStatus.AVAILABLE.value:
                raise InvalidStateError(f"Cart {self.name} is in use and cannot be deactivated")
            self.active = active
        self.updated_at = datetime.now(UTC)

    def transition_to(self, target: CartStatus, worker_name: str | None = None) -> None:
        current = CartStatus(self.status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateError(f"Cart {self.name} is {current.value} and cannot move to {target.value}")
        now = datetime.now(UTC)
        self.status = target.value
        self.worker_name = None if target == CartStatus.AVAILABLE else worker_name
        self.updated_at = now
        self.raise_(
            CartStatusChanged(
                cart_id=str(self.id),
                from_status=current.value,
                to_status=target.value,
                worker_name=worker_name,
                changed_at=now,
            )
        )

    def release(self, reason: str | None = None) -> None:
        """Force the cart back to AVAILABLE regardless of its phase."""
        if self.status == CartStatus.AVAILABLE.value:
            raise ValidationError({"status": [f"Cart {self.name} is already available"]})
        now = datetime.now(UTC)
        self.status = CartStatus.AVAILABLE.value
        self.worker_name = None
        self.updated_at = now
        self.raise_(CartReleased(cart_id=str(self.id), reason=reason, released_at=now))

    def reset(self) -> bool:
        """Return to AVAILABLE without an event. Reports whether anything changed."""
        if self.status == CartStatus.AVAILABLE.value and not self.worker_name:
            return False
        self.status = CartStatus.AVAILABLE.value
        self.worker_name = None
        self.updated_at = datetime.now(UTC)
        return True
