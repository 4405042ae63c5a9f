"""One engraver's pass over a cart's personalized items.

The session keeps the item cursor, the set of completed items and a
pausable timer. Completing an item is optimistic: the cursor moves on at
once and the save runs in the background. A save that fails for a
transient reason is queued and retried with backoff for as long as it
takes, while the operator sees a "retrying" indicator. Engraving cannot be
undone, so a failed save never blocks the next item.
"""

import time
from collections.abc import Callable

from batching.shared.engraving import (
    EngravingItem,
    clamp_index,
    engraving_sequence,
    next_incomplete_index,
    order_items_done,
)
from batching.utils.logging import get_logger
from station.engraving.retry import RetryQueue, SaveIndicator
from station.store.errors import StoreConflictError, StoreError, StoreTransientError
from station.store.port import StorePort

logger = get_logger(__name__)

ITEM = "item"
ORDER = "order"

_RETRYABLE = (StoreTransientError, StoreConflictError)


class EngravingError(Exception):
    """The session cannot do what was asked in its current state."""


class EngravingSession:
    def __init__(
        self,
        store: StorePort,
        chunk: dict,
        engraver_name: str,
        clock: Callable[[], float] = time.monotonic,
        retry_base_seconds: float = 5.0,
        retry_max_seconds: float = 60.0,
    ):
        self.store = store
        self.chunk_id = chunk["id"]
        self.cart_id = chunk.get("cart_id")
        self.engraver_name = engraver_name
        self.clock = clock
        self.retries = RetryQueue(retry_base_seconds, retry_max_seconds)

        self.items: list[EngravingItem] = engraving_sequence(chunk.get("orders") or [])
        progress = chunk.get("engraving_progress") or {}
        self.resumed = bool(chunk.get("resumed"))
        self.completed: set[int] = {i for i in progress.get("completed_items") or [] if 0 <= i < len(self.items)}
        self.current_index = clamp_index(progress.get("current_index"), len(self.items))
        self.total_paused_ms = int(progress.get("total_paused_ms") or 0)

        # The active timer restarts at zero on every checkout, resumed or not
        self.active_seconds = 0
        self.running = True
        self.paused_since: float | None = None
        self.saving = False
        self.result: dict | None = None
        self.cancelled = False

    @classmethod
    def checkout(cls, store: StorePort, cart_id: str, engraver_name: str, **kwargs) -> "EngravingSession":
        """Claim the cart for engraving, or resume the engraver's own session."""
        chunk = store.checkout_cart(cart_id, engraver_name, "ENGRAVE")
        session = cls(store, chunk, engraver_name, **kwargs)
        logger.info(
            "engraving_session_started",
            chunk_id=session.chunk_id,
            engraver=engraver_name,
            resumed=session.resumed,
            completed=len(session.completed),
            total=session.total,
        )
        return session

    # -- cursor ----------------------------------------------------------------
    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def current_item(self) -> EngravingItem | None:
        if not self.items:
            return None
        return self.items[self.current_index]

    @property
    def is_finished(self) -> bool:
        return len(self.completed) == self.total

    @property
    def progress_fraction(self) -> float:
        return len(self.completed) / self.total if self.total else 1.0

    def next(self) -> int:
        self.current_index = clamp_index(self.current_index + 1, self.total)
        return self.current_index

    def prev(self) -> int:
        self.current_index = clamp_index(self.current_index - 1, self.total)
        return self.current_index

    # -- timer -----------------------------------------------------------------
    @property
    def paused(self) -> bool:
        return self.paused_since is not None

    def tick(self, now: float | None = None) -> None:
        """Called once a second by the station loop."""
        now = self.clock() if now is None else now
        if self.running and not self.paused:
            self.active_seconds += 1
        self.pump_retries(now)

    def pause(self, now: float | None = None) -> None:
        if self.paused or not self.running:
            return
        self.paused_since = self.clock() if now is None else now

    def resume(self, now: float | None = None) -> None:
        if not self.paused:
            return
        now = self.clock() if now is None else now
        self.total_paused_ms += int((now - self.paused_since) * 1000)
        self.paused_since = None

    def paused_ms(self, now: float | None = None) -> int:
        """Total paused time including a pause still in progress."""
        if not self.paused:
            return self.total_paused_ms
        now = self.clock() if now is None else now
        return self.total_paused_ms + int((now - self.paused_since) * 1000)

    # -- saving ----------------------------------------------------------------
    def _persist(self, key: tuple) -> None:
        kind, value = key
        if kind == ITEM:
            self.store.mark_engraved_item(self.chunk_id, value, self.total_paused_ms)
        else:
            self.store.mark_engraved(self.chunk_id, value)

    def _save(self, key: tuple, now: float) -> bool:
        self.saving = True
        try:
            self._persist(key)
        except _RETRYABLE as exc:
            entry = self.retries.record_failure(key, now)
            logger.warning(
                "engraving_save_failed",
                chunk_id=self.chunk_id,
                key=list(key),
                attempts=entry.attempts,
                retry_in=self.retries.delay_for(entry.attempts),
                error=exc.message,
            )
            return False
        except StoreError as exc:
            # Rejected outright; retrying cannot change the answer
            self.retries.record_success(key)
            logger.warning("engraving_save_rejected", chunk_id=self.chunk_id, key=list(key), error=exc.message)
            return False
        finally:
            self.saving = False
        if self.retries.record_success(key):
            logger.info("engraving_save_recovered", chunk_id=self.chunk_id, key=list(key))
        return True

    def pump_retries(self, now: float | None = None) -> int:
        """Retry every save whose backoff has elapsed. Returns saves recovered."""
        now = self.clock() if now is None else now
        return sum(1 for key in self.retries.due(now) if self._save(key, now))

    def save_indicator(self, now: float | None = None) -> SaveIndicator:
        now = self.clock() if now is None else now
        return self.retries.indicator(now, saving=self.saving)

    # -- work ------------------------------------------------------------------
    def mark_done(self, index: int, now: float | None = None) -> int:
        """Complete item ``index`` and move the cursor to the next open item."""
        if not 0 <= index < self.total:
            raise EngravingError(f"No engraving item {index}")
        if self.result is not None or self.cancelled:
            raise EngravingError("Engraving session has ended")
        now = self.clock() if now is None else now
        if index in self.completed:
            return self.current_index

        self.completed.add(index)
        self.current_index = next_incomplete_index(self.completed, index, self.total)
        self._save((ITEM, index), now)

        order_number = self.items[index].order_number
        if order_items_done(self.items, self.completed, order_number):
            self._save((ORDER, order_number), now)
        return self.current_index

    def metrics(self, now: float | None = None) -> dict:
        return {
            "active_seconds": self.active_seconds,
            "paused_seconds": self.paused_ms(now) // 1000,
            "item_count": self.total,
        }

    def complete(self, now: float | None = None) -> dict:
        """Report the finished session. Later calls return the same result."""
        if self.result is not None:
            return self.result
        if not self.is_finished:
            raise EngravingError(f"{self.total - len(self.completed)} items are not engraved yet")
        now = self.clock() if now is None else now
        self.resume(now)

        for key in self.retries.keys():
            self._save(key, now)

        self.result = self.store.complete_engraving(self.chunk_id, self.metrics(now))
        self.running = False
        self.retries.clear()
        logger.info("engraving_session_completed", chunk_id=self.chunk_id, **self.metrics(now))
        return self.result

    def cancel(self) -> dict:
        if self.completed:
            raise EngravingError("Items are already engraved; finish the cart instead")
        if self.result is not None:
            raise EngravingError("Engraving session has ended")
        result = self.store.cancel_engraving(self.chunk_id)
        self.running = False
        self.cancelled = True
        logger.info("engraving_session_cancelled", chunk_id=self.chunk_id)
        return result

    def snapshot(self, now: float | None = None) -> dict:
        item = self.current_item
        indicator = self.save_indicator(now)
        return {
            "chunk_id": self.chunk_id,
            "current_index": self.current_index,
            "current_item": None if item is None else {
                "order_number": item.order_number,
                "bin_number": item.bin_number,
                "sku": item.sku,
                "name": item.name,
                "text": item.engraving_text,
            },
            "completed": sorted(self.completed),
            "total": self.total,
            "progress": self.progress_fraction,
            "active_seconds": self.active_seconds,
            "paused": self.paused,
            "total_paused_ms": self.paused_ms(now),
            "save_state": indicator.state.value,
            "pending_saves": indicator.pending,
            "retrying_for": indicator.retrying_for,
        }
