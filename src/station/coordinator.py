"""Station coordinator: one physical station's session against the store.

The coordinator is the only station component that calls the store. It
never lets an exception escape: every action returns an ``Outcome`` and
failures also leave a banner for the operator. Cached queue and cart state
is a read-through cache; every mutating call is followed by a refetch, and
nothing is merged optimistically.
"""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from batching.shared import ordering
from batching.utils.logging import configure_logging, get_logger
from station.config import StationSettings, get_settings
from station.engraving.session import EngravingError, EngravingSession
from station.labels import get_label_printer
from station.labels.port import LabelError, LabelPort
from station.store import get_store
from station.store.errors import (
    StoreConflictError,
    StoreError,
    StoreNotFoundError,
    StoreTransientError,
    StoreValidationError,
)
from station.store.port import StorePort
from station.verification import VerificationEngine, VerificationError, VerificationState, engine_for

configure_logging()

logger = get_logger(__name__)


class FailureKind(Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    TRANSIENT = "TRANSIENT"
    STATE = "STATE"
    LABEL = "LABEL"


_STORE_FAILURES = (
    (StoreValidationError, FailureKind.VALIDATION),
    (StoreNotFoundError, FailureKind.NOT_FOUND),
    (StoreConflictError, FailureKind.CONFLICT),
    (StoreTransientError, FailureKind.TRANSIENT),
)


def failure_kind(exc: Exception) -> FailureKind:
    for error_class, kind in _STORE_FAILURES:
        if isinstance(exc, error_class):
            return kind
    if isinstance(exc, LabelError):
        return FailureKind.LABEL
    if isinstance(exc, (VerificationError, EngravingError)):
        return FailureKind.STATE
    return FailureKind.TRANSIENT


@dataclass(frozen=True)
class Outcome:
    ok: bool
    value: Any = None
    kind: FailureKind | None = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: FailureKind, message: str) -> "Outcome":
        return cls(ok=False, kind=kind, message=message)


class Phase(Enum):
    IDLE = "IDLE"
    PICKING = "PICKING"
    SHIPPING = "SHIPPING"
    ENGRAVING = "ENGRAVING"


_HANDLED = (StoreError, LabelError, VerificationError, EngravingError)


class StationCoordinator:
    def __init__(
        self,
        worker_name: str,
        cell_id: str | None = None,
        store: StorePort | None = None,
        printer: LabelPort | None = None,
        settings: StationSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        random_source: Callable[[], float] = random.random,
    ):
        self.worker_name = worker_name
        self.cell_id = cell_id
        self.store = store or get_store()
        self.printer = printer or get_label_printer()
        self.settings = settings or get_settings()
        self.clock = clock
        self.random_source = random_source

        self.phase = Phase.IDLE
        self.queue: list[dict] = []
        self.cells: list[dict] = []
        self.chunk: dict | None = None
        self.engine: VerificationEngine | None = None
        self.engraving: EngravingSession | None = None
        self.banners: list[str] = []
        self._last_poll: float | None = None

    # -- plumbing ----------------------------------------------------------------
    def _fail(self, action: str, exc: Exception) -> Outcome:
        kind = failure_kind(exc)
        message = getattr(exc, "message", None) or str(exc)
        if kind == FailureKind.CONFLICT:
            self.banners.append(f"{message}. Refreshed; try again.")
        else:
            self.banners.append(message)
        logger.warning("station_action_failed", action=action, kind=kind.value, error=message)
        return Outcome.failure(kind, message)

    def _call(self, action: str, fn: Callable, *args, **kwargs) -> Outcome:
        try:
            return Outcome.success(fn(*args, **kwargs))
        except _HANDLED as exc:
            return self._fail(action, exc)

    def _mutate(self, action: str, fn: Callable, *args, **kwargs) -> Outcome:
        outcome = self._call(action, fn, *args, **kwargs)
        self.refresh()
        return outcome

    def take_banners(self) -> list[str]:
        banners, self.banners = self.banners, []
        return banners

    @property
    def is_busy(self) -> bool:
        return self.phase != Phase.IDLE

    def _end_session(self) -> None:
        self.phase = Phase.IDLE
        self.chunk = None
        self.engine = None
        self.engraving = None

    # -- reads -------------------------------------------------------------------
    def refresh(self) -> Outcome:
        """Refetch the queue, the cells and the checked-out cart."""
        try:
            if self.cell_id:
                self.queue = self.store.get_queue(self.cell_id)
            else:
                self.queue = self.store.get_personalized_pool()
            self.cells = self.store.get_cells(active_only=True)
            if self.chunk is not None and self.phase in (Phase.PICKING, Phase.SHIPPING):
                self._refresh_chunk()
        except StoreError as exc:
            return self._fail("refresh", exc)
        self._last_poll = self.clock()
        return Outcome.success(self.queue)

    def _refresh_chunk(self) -> None:
        try:
            chunk = self.store.get_cart_chunk(self.chunk["cart_id"])
        except StoreNotFoundError:
            # Released or completed elsewhere
            self.banners.append("This cart is no longer checked out.")
            self._end_session()
            return
        self.chunk = chunk
        if self.engine is not None:
            self.engine.sync_statuses(chunk)

    def poll(self, now: float | None = None) -> bool:
        """Refresh the queue when idle and the poll interval has passed."""
        if self.is_busy:
            return False
        now = self.clock() if now is None else now
        if self._last_poll is not None and now - self._last_poll < self.settings.poll_interval_seconds:
            return False
        self.refresh()
        self._last_poll = now
        return True

    def tick(self, now: float | None = None) -> None:
        """Drive timers once a second."""
        now = self.clock() if now is None else now
        if self.engraving is not None:
            self.engraving.tick(now)
        else:
            self.poll(now)

    # -- queue administration ----------------------------------------------------
    def create_batch(self, order_numbers: list[str], cell_ids: list[str], **options) -> Outcome:
        return self._mutate("create_batch", self.store.create_batch, order_numbers, cell_ids, **options)

    def _queue_priority(self, batch: dict) -> int:
        if self.cell_id and batch.get("queue_priority") is not None:
            return batch["queue_priority"]
        return batch.get("priority") or 0

    @staticmethod
    def _tie_key(batch: dict) -> tuple:
        created_at = batch.get("created_at")
        return ordering.insertion_order(datetime.fromisoformat(created_at) if created_at else None, batch["id"])

    def reorder(self, batch_id: str, target_index: int) -> Outcome:
        """Drag ``batch_id`` to ``target_index`` in this station's queue."""
        try:
            entries = [(batch["id"], self._queue_priority(batch), self._tie_key(batch)) for batch in self.queue]
            priority = ordering.priority_for_position(entries, batch_id, target_index)
        except ValueError as exc:
            self.banners.append(str(exc))
            return Outcome.failure(FailureKind.VALIDATION, str(exc))
        # Advisory until the refetch below replaces it
        by_id = {batch["id"]: batch for batch in self.queue}
        self.queue = [by_id[i] for i in ordering.move(list(by_id), batch_id, target_index)]
        return self._mutate("reorder", self.store.reorder_batch, batch_id, self.cell_id, priority)

    def edit_cells(self, batch_id: str, cell_ids: list[str]) -> Outcome:
        if not cell_ids:
            message = "A batch must stay assigned to at least one cell"
            self.banners.append(message)
            return Outcome.failure(FailureKind.VALIDATION, message)
        return self._mutate("edit_cells", self.store.set_cell_assignments, batch_id, cell_ids)

    def delete_batch(self, batch_id: str) -> Outcome:
        return self._mutate("delete_batch", self.store.delete_batch, batch_id)

    def reset_all(self) -> Outcome:
        outcome = self._mutate("reset_all", self.store.reset_all_batches)
        if outcome.ok:
            logger.info("batches_reset", **outcome.value)
        return outcome

    def release_cart(self, cart_id: str, reason: str | None = None) -> Outcome:
        outcome = self._call("release_cart", self.store.release_cart, cart_id, reason)
        if outcome.ok and self.chunk is not None and self.chunk.get("cart_id") == cart_id:
            self._end_session()
        self.refresh()
        return outcome

    # -- sessions ----------------------------------------------------------------
    def _start(self, phase: Phase, cart_id: str, checkout_phase: str) -> Outcome:
        if self.is_busy:
            return Outcome.failure(FailureKind.STATE, f"Finish the current {self.phase.value.lower()} session first")
        outcome = self._call(
            "checkout",
            self.store.checkout_cart,
            cart_id,
            self.worker_name,
            checkout_phase,
            cell_id=self.cell_id if checkout_phase == "PICK" else None,
        )
        if outcome.ok:
            self.chunk = outcome.value
            self.phase = phase
        self.refresh()
        return outcome

    # Picking
    def start_picking(self, cart_id: str) -> Outcome:
        return self._start(Phase.PICKING, cart_id, "PICK")

    def report_out_of_stock(self, bin_numbers: list[int]) -> Outcome:
        if self.phase != Phase.PICKING:
            return Outcome.failure(FailureKind.STATE, "No cart is being picked")
        return self._mutate("out_of_stock", self.store.report_out_of_stock, self.chunk["id"], bin_numbers)

    def complete_picking(self) -> Outcome:
        if self.phase != Phase.PICKING:
            return Outcome.failure(FailureKind.STATE, "No cart is being picked")
        outcome = self._call("complete_picking", self.store.complete_picking, self.chunk["id"])
        if outcome.ok:
            self._end_session()
        self.refresh()
        return outcome

    def cancel_picking(self) -> Outcome:
        if self.phase != Phase.PICKING:
            return Outcome.failure(FailureKind.STATE, "No cart is being picked")
        outcome = self._call("cancel_picking", self.store.cancel_picking, self.chunk["id"])
        if outcome.ok:
            self._end_session()
        self.refresh()
        return outcome

    # Shipping
    def start_shipping(self, cart_id: str) -> Outcome:
        outcome = self._start(Phase.SHIPPING, cart_id, "SHIP")
        if outcome.ok and self.chunk is not None:
            self.engine = engine_for(
                self.chunk,
                random_source=self.random_source,
                spot_check_rate=self.settings.spot_check_rate,
            )
        return outcome

    def scan(self, code: str) -> Outcome:
        if self.engine is None:
            return Outcome.failure(FailureKind.STATE, "No cart is being shipped")
        result = self.engine.scan(code)
        if result.message and not result.accepted:
            self.banners.append(result.message)
            return Outcome(ok=False, value=result, kind=FailureKind.VALIDATION, message=result.message)
        if result.message:
            self.banners.append(result.message)
        return Outcome.success(result)

    def print_labels(self) -> Outcome:
        """Label every order of the verified unit and report each one shipped."""
        if self.engine is None:
            return Outcome.failure(FailureKind.STATE, "No cart is being shipped")
        chunk_id = self.chunk["id"]
        shipped = []
        try:
            for order in self.engine.orders_to_label():
                number = order["order_number"]
                label = self.engine.labels.get(number) or self.printer.print_label(number, order.get("payload") or {})
                self.engine.labels[number] = label
                self.store.complete_order(chunk_id, number, label.as_completion())
                self.engine.record_shipped(number, label)
                shipped.append(number)
        except _HANDLED as exc:
            outcome = self._fail("print_labels", exc)
        else:
            logger.info("labels_issued", chunk_id=chunk_id, orders=shipped)
            outcome = Outcome.success(shipped)
        self.refresh()
        return outcome

    def advance(self) -> Outcome:
        if self.engine is None:
            return Outcome.failure(FailureKind.STATE, "No cart is being shipped")
        try:
            return Outcome.success(self.engine.advance())
        except VerificationError as exc:
            return self._fail("advance", exc)

    def complete_cart(self) -> Outcome:
        if self.engine is None:
            return Outcome.failure(FailureKind.STATE, "No cart is being shipped")
        if self.engine.state != VerificationState.CART_COMPLETE:
            message = "Cart still has bins to ship"
            self.banners.append(message)
            return Outcome.failure(FailureKind.STATE, message)
        outcome = self._call("complete_cart", self.store.complete_cart, self.chunk["cart_id"], self.chunk["id"])
        if outcome.ok:
            self._end_session()
        self.refresh()
        return outcome

    # Engraving
    def start_engraving(self, cart_id: str) -> Outcome:
        if self.is_busy:
            return Outcome.failure(FailureKind.STATE, f"Finish the current {self.phase.value.lower()} session first")
        outcome = self._call(
            "checkout",
            EngravingSession.checkout,
            self.store,
            cart_id,
            self.worker_name,
            clock=self.clock,
            retry_base_seconds=self.settings.retry_base_seconds,
            retry_max_seconds=self.settings.retry_max_seconds,
        )
        if outcome.ok:
            self.engraving = outcome.value
            self.chunk = {"id": self.engraving.chunk_id, "cart_id": cart_id}
            self.phase = Phase.ENGRAVING
        self.refresh()
        return outcome

    def mark_done(self, index: int) -> Outcome:
        """Complete an engraving item. Save failures are retried in the background."""
        if self.engraving is None:
            return Outcome.failure(FailureKind.STATE, "No cart is being engraved")
        return self._call("mark_done", self.engraving.mark_done, index)

    def pause(self) -> Outcome:
        if self.engraving is None:
            return Outcome.failure(FailureKind.STATE, "No cart is being engraved")
        self.engraving.pause()
        return Outcome.success(self.engraving.paused)

    def resume(self) -> Outcome:
        if self.engraving is None:
            return Outcome.failure(FailureKind.STATE, "No cart is being engraved")
        self.engraving.resume()
        return Outcome.success(self.engraving.paused)

    def complete_engraving(self) -> Outcome:
        if self.engraving is None:
            return Outcome.failure(FailureKind.STATE, "No cart is being engraved")
        outcome = self._call("complete_engraving", self.engraving.complete)
        if outcome.ok:
            self._end_session()
        self.refresh()
        return outcome

    def cancel_engraving(self) -> Outcome:
        if self.engraving is None:
            return Outcome.failure(FailureKind.STATE, "No cart is being engraved")
        outcome = self._call("cancel_engraving", self.engraving.cancel)
        if outcome.ok:
            self._end_session()
        self.refresh()
        return outcome
