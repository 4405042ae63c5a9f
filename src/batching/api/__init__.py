"""Batching API package."""

from batching.api.routes import batch_router, cart_router, cell_router, chunk_router, order_router

__all__ = ["order_router", "cell_router", "cart_router", "batch_router", "chunk_router"]
