import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from gridlauncher.catalog.catalog import Catalog
from gridlauncher.catalog.models import AppRecord, DEFAULT_FOLDER_NAME, DEFAULT_FOLDER_ICON
from gridlauncher.catalog.view import APPS_PER_PAGE, GRID_COLUMNS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppTarget:
    name: str


@dataclass(frozen=True)
class FolderTarget:
    folder_id: str


@dataclass(frozen=True)
class GridTarget:
    """An empty grid cell on the given page."""

    row: int
    col: int
    page: int = 0


DropTarget = Union[AppTarget, FolderTarget, GridTarget]


class DropResult(Enum):
    FAILED = "failed"
    FOLDER_CREATED = "folder_created"
    ADDED_TO_FOLDER = "added_to_folder"
    REORDERED = "reordered"

    @property
    def success(self) -> bool:
        return self is not DropResult.FAILED


def grid_index(row: int, col: int, page: int) -> int:
    return row * GRID_COLUMNS + col + page * APPS_PER_PAGE


class DragDropController:
    """
    Holds the single in-flight drag and applies drops to the catalog.

    The drag source is remembered by name. If a rescan removes that app
    before the drop, the drop does nothing.
    """

    def __init__(self, catalog: Catalog):
        self.catalog = catalog
        self.active: Optional[str] = None
        self.last_folder_id: Optional[str] = None

    @property
    def is_dragging(self) -> bool:
        return self.active is not None

    def begin(self, app: AppRecord) -> None:
        self.active = app.name

    def cancel(self) -> None:
        self.active = None

    def source(self) -> Optional[AppRecord]:
        if self.active is None:
            return None
        return self.catalog.find_app(self.active)

    def drop(self, target: DropTarget) -> DropResult:
        source = self.source()
        self.active = None
        if source is None:
            logger.debug("Drop ignored: no active drag source.")
            return DropResult.FAILED
        if isinstance(target, AppTarget):
            return self._drop_on_app(source, target)
        if isinstance(target, FolderTarget):
            if not self.catalog.add_to_folder(source, target.folder_id):
                return DropResult.FAILED
            self.last_folder_id = target.folder_id
            return DropResult.ADDED_TO_FOLDER
        if isinstance(target, GridTarget):
            index = grid_index(target.row, target.col, target.page)
            if index < 0 or not self.catalog.move_app(source, index):
                return DropResult.FAILED
            self.catalog.recalculate_positions()
            return DropResult.REORDERED
        return DropResult.FAILED

    def _drop_on_app(self, source: AppRecord, target: AppTarget) -> DropResult:
        other = self.catalog.find_app(target.name)
        if other is None or other is source:
            return DropResult.FAILED
        folder = self.catalog.create_folder(DEFAULT_FOLDER_NAME, DEFAULT_FOLDER_ICON)
        self.catalog.add_to_folder(source, folder.id)
        self.catalog.add_to_folder(other, folder.id)
        self.last_folder_id = folder.id
        logger.info(f"Created folder {folder.id} with '{source.name}' and '{other.name}'.")
        return DropResult.FOLDER_CREATED
