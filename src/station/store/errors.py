"""Failures raised by store adapters.

Adapters translate transport and HTTP failures into this hierarchy so the
station never sees httpx (or any other transport) exceptions.
"""


class StoreError(Exception):
    """A store call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StoreValidationError(StoreError):
    """The store rejected the request (bad input or a broken business rule)."""


class StoreNotFoundError(StoreError):
    """The cart, chunk, batch or order does not exist (any more)."""


class StoreConflictError(StoreError):
    """Another station holds the resource (e.g. the cart is already in use)."""


class StoreTransientError(StoreError):
    """Network failure or server error; the same call may succeed later."""
