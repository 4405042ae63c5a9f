"""Store port — abstract interface to the batch store.

The station programs against this port. ``HttpStore`` is the production
adapter; tests substitute doubles through ``set_store``.
"""

from abc import ABC, abstractmethod


class StorePort(ABC):
    """Abstract interface for batch store adapters.

    Every method returns decoded JSON (dicts and lists) and raises a
    ``StoreError`` subclass on failure.
    """

    # Queues and administration
    @abstractmethod
    def get_cells(self, active_only: bool = False) -> list[dict]: ...

    @abstractmethod
    def get_batches(self) -> list[dict]: ...

    @abstractmethod
    def get_queue(self, cell_id: str) -> list[dict]:
        """Batches queued in a cell, in picking order."""
        ...

    @abstractmethod
    def get_personalized_pool(self) -> list[dict]: ...

    @abstractmethod
    def create_batch(
        self,
        order_numbers: list[str],
        cell_ids: list[str],
        batch_type: str | None = None,
        is_personalized: bool | None = None,
        name: str | None = None,
    ) -> dict: ...

    @abstractmethod
    def reorder_batch(self, batch_id: str, cell_id: str | None, priority: int) -> dict: ...

    @abstractmethod
    def set_cell_assignments(self, batch_id: str, cell_ids: list[str]) -> dict: ...

    @abstractmethod
    def delete_batch(self, batch_id: str) -> dict: ...

    @abstractmethod
    def reset_all_batches(self) -> dict:
        """Returns per-entity counts."""
        ...

    # Carts
    @abstractmethod
    def checkout_cart(
        self,
        cart_id: str,
        worker_name: str,
        phase: str,
        cell_id: str | None = None,
    ) -> dict:
        """Claim a cart for PICK, ENGRAVE or SHIP. Returns the chunk view."""
        ...

    @abstractmethod
    def get_cart_chunk(self, cart_id: str) -> dict: ...

    @abstractmethod
    def release_cart(self, cart_id: str, reason: str | None = None) -> dict: ...

    # Picking
    @abstractmethod
    def report_out_of_stock(self, chunk_id: str, bin_numbers: list[int]) -> dict: ...

    @abstractmethod
    def complete_picking(self, chunk_id: str) -> dict: ...

    @abstractmethod
    def cancel_picking(self, chunk_id: str) -> dict: ...

    # Shipping
    @abstractmethod
    def complete_order(self, chunk_id: str, order_number: str, extra: dict | None = None) -> dict:
        """Idempotent: a repeat reports ``already_shipped``."""
        ...

    @abstractmethod
    def complete_cart(self, cart_id: str, chunk_id: str) -> dict: ...

    # Engraving
    @abstractmethod
    def mark_engraved_item(self, chunk_id: str, item_index: int, total_paused_ms: int) -> dict: ...

    @abstractmethod
    def mark_engraved(self, chunk_id: str, order_number: str) -> dict: ...

    @abstractmethod
    def complete_engraving(self, chunk_id: str, metrics: dict) -> dict:
        """``metrics`` carries active_seconds, paused_seconds and item_count."""
        ...

    @abstractmethod
    def cancel_engraving(self, chunk_id: str) -> dict: ...
