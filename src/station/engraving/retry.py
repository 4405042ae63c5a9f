"""Keyed retry queue with exponential backoff.

Failed saves wait ``base * 2 ** (attempts - 1)`` seconds, capped at ``cap``,
before their next attempt. Retries never give up; a key leaves the queue
only when a save for it succeeds.
"""

from collections.abc import Hashable
from dataclasses import dataclass
from enum import Enum


class SaveState(Enum):
    SAVED = "saved"
    SAVING = "saving"
    RETRYING = "retrying"


@dataclass(frozen=True)
class SaveIndicator:
    state: SaveState
    pending: int = 0
    retrying_for: float = 0.0  # seconds since the oldest pending save first failed

    @property
    def label(self) -> str:
        if self.state == SaveState.RETRYING:
            return f"Saving, retrying ({self.pending} pending)"
        if self.state == SaveState.SAVING:
            return "Saving"
        return "Saved"


@dataclass
class PendingSave:
    key: Hashable
    attempts: int
    first_failed_at: float
    next_attempt_at: float


class RetryQueue:
    def __init__(self, base_seconds: float = 5.0, cap_seconds: float = 60.0):
        self.base_seconds = base_seconds
        self.cap_seconds = cap_seconds
        self._pending: dict[Hashable, PendingSave] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._pending

    def delay_for(self, attempts: int) -> float:
        return min(self.base_seconds * 2 ** max(attempts - 1, 0), self.cap_seconds)

    def record_failure(self, key: Hashable, now: float) -> PendingSave:
        entry = self._pending.get(key)
        if entry is None:
            entry = PendingSave(key=key, attempts=0, first_failed_at=now, next_attempt_at=now)
            self._pending[key] = entry
        entry.attempts += 1
        entry.next_attempt_at = now + self.delay_for(entry.attempts)
        return entry

    def record_success(self, key: Hashable) -> bool:
        """Drop ``key``; True when it was pending."""
        return self._pending.pop(key, None) is not None

    def due(self, now: float) -> list[Hashable]:
        entries = sorted(self._pending.values(), key=lambda e: (e.next_attempt_at, e.first_failed_at))
        return [entry.key for entry in entries if entry.next_attempt_at <= now]

    def keys(self) -> list[Hashable]:
        return list(self._pending)

    def get(self, key: Hashable) -> PendingSave | None:
        return self._pending.get(key)

    def clear(self) -> None:
        self._pending.clear()

    def indicator(self, now: float, saving: bool = False) -> SaveIndicator:
        if self._pending:
            oldest = min(entry.first_failed_at for entry in self._pending.values())
            return SaveIndicator(SaveState.RETRYING, len(self._pending), max(now - oldest, 0.0))
        if saving:
            return SaveIndicator(SaveState.SAVING)
        return SaveIndicator(SaveState.SAVED)
