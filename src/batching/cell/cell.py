"""PickCell aggregate: a named physical picking zone.

Batches are queued per cell. Deactivated cells keep their queue but cannot
receive new batches.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, String

from batching.cell.events import CellCreated, CellUpdated
from batching.domain import batching


@batching.aggregate
class PickCell:
    name = String(required=True, max_length=100)
    active = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, name: str) -> "PickCell":
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": ["Cell name is required"]})
        now = datetime.now(UTC)
        cell = cls(name=name, active=True, created_at=now, updated_at=now)
        cell.raise_(CellCreated(cell_id=str(cell.id), name=name, created_at=now))
        return cell

    def update(self, name: str | None = None, active: bool | None = None) -> None:
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError({"name": ["Cell name cannot be blank"]})
            self.name = name
        if active is not None:
            self.active = active
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CellUpdated(
                cell_id=str(self.id),
                name=self.name,
                active=self.active,
                updated_at=self.updated_at,
            )
        )
