"""Pick cell domain events."""

from protean.fields import Boolean, DateTime, Identifier, String

from batching.domain import batching


@batching.event(part_of="PickCell")
class CellCreated:
    """A picking zone was registered."""

    __version__ = 1

    cell_id = Identifier(required=True)
    name = String(required=True)
    created_at = DateTime(required=True)


@batching.event(part_of="PickCell")
class CellUpdated:
    """A picking zone was renamed, activated or deactivated."""

    __version__ = 1

    cell_id = Identifier(required=True)
    name = String(required=True)
    active = Boolean(required=True)
    updated_at = DateTime(required=True)
