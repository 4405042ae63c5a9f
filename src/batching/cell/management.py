"""Pick cell administration — commands and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from batching.cell.cell import PickCell
from batching.domain import batching
from batching.shared.queries import find_all
from batching.utils.logging import get_logger

logger = get_logger(__name__)


@batching.command(part_of="PickCell")
class CreateCell:
    name = String(required=True, max_length=100)


@batching.command(part_of="PickCell")
class UpdateCell:
    cell_id = Identifier(required=True)
    name = String(max_length=100)
    active = Boolean()


def _assert_unique_name(name: str, exclude_id: str | None = None) -> None:
    wanted = name.strip().lower()
    for cell in find_all(PickCell):
        if cell.name.lower() == wanted and str(cell.id) != exclude_id:
            raise ValidationError({"name": [f"A cell named '{name.strip()}' already exists"]})


@batching.command_handler(part_of=PickCell)
class PickCellCommandHandler:
    @handle(CreateCell)
    def create_cell(self, command):
        _assert_unique_name(command.name)
        cell = PickCell.create(command.name)
        current_domain.repository_for(PickCell).add(cell)
        logger.info("cell_created", cell_id=str(cell.id), name=cell.name)
        return str(cell.id)

    @handle(UpdateCell)
    def update_cell(self, command):
        repo = current_domain.repository_for(PickCell)
        cell = repo.get(command.cell_id)
        if command.name is not None:
            _assert_unique_name(command.name, exclude_id=str(cell.id))
        cell.update(name=command.name, active=command.active)
        repo.add(cell)
        logger.info("cell_updated", cell_id=str(cell.id), name=cell.name, active=cell.active)
        return str(cell.id)


def list_cells(active_only: bool = False) -> list[PickCell]:
    cells = find_all(PickCell)
    if active_only:
        cells = [cell for cell in cells if cell.active]
    return sorted(cells, key=lambda cell: (cell.created_at, cell.name))
