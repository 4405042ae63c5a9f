"""Queue ordering as plain list operations.

Used by the store to sort queues and by stations to turn a drag-and-drop
into a priority without touching persistence.
"""

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import TypeVar

T = TypeVar("T")

_EPOCH = datetime.min.replace(tzinfo=UTC)


def insertion_order(created_at: datetime | None, identifier: str) -> tuple:
    """Tie-break on creation time, then ID, giving a total order."""
    created_at = created_at or _EPOCH
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    return (created_at, identifier)


def order_by_priority(
    items: Sequence[T],
    priority_of: Callable[[T], int],
    tie_break: Callable[[T], tuple],
) -> list[T]:
    return sorted(items, key=lambda item: (priority_of(item), *tie_break(item)))


def move(items: Sequence[str], moved_id: str, target_index: int) -> list[str]:
    """Return a new list with ``moved_id`` moved to ``target_index``.

    The index is clamped into the list. Unknown IDs raise ``ValueError``.
    """
    if moved_id not in items:
        raise ValueError(f"{moved_id} is not in the list")
    remaining = [item for item in items if item != moved_id]
    index = max(0, min(target_index, len(remaining)))
    return [*remaining[:index], moved_id, *remaining[index:]]


def priority_for_position(queue: Sequence[tuple[str, int, tuple]], moved_id: str, target_index: int) -> int:
    """Priority that drops ``moved_id`` at ``target_index`` of an ordered queue.

    ``queue`` holds ``(id, priority, tie_key)`` triples in display order,
    ``tie_key`` being what orders equal priorities (see ``insertion_order``).
    The result is the first of the new predecessor's priority, the new
    successor's priority, or one step past either, at which
    ``(priority, tie_key)`` sorts strictly between the two neighbours, so
    nothing else is renumbered. When both neighbours share a priority and
    the moved key falls outside theirs no priority fits; the entry then goes
    just after its predecessor's priority group.
    """
    entries = {identifier: (priority, tie_key) for identifier, priority, tie_key in queue}
    new_order = move(list(entries), moved_id, target_index)
    position = new_order.index(moved_id)
    key = entries[moved_id][1]
    before = entries[new_order[position - 1]] if position > 0 else None
    after = entries[new_order[position + 1]] if position + 1 < len(new_order) else None
    if before is None and after is None:
        return 0

    candidates = []
    if before is not None:
        candidates.append(before[0])
    if after is not None:
        candidates.append(after[0])
    if before is not None:
        candidates.append(before[0] + 1)
    if after is not None:
        candidates.append(after[0] - 1)
    for priority in candidates:
        if (before is None or (priority, key) > before) and (after is None or (priority, key) < after):
            return priority
    return before[0] + 1
