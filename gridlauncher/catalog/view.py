import math
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from gridlauncher.catalog.catalog import Catalog
from gridlauncher.catalog.models import AppRecord, Folder, DEFAULT_APP_ICON

logger = logging.getLogger(__name__)

GRID_COLUMNS = 6
GRID_ROWS = 5
APPS_PER_PAGE = GRID_COLUMNS * GRID_ROWS
SCROLL_THRESHOLD = 0.3

VisibleItem = Union[AppRecord, Folder]


@dataclass
class GridItem:
    """One cell of the rendered grid."""

    kind: str
    label: str
    icon: str
    ref: str
    is_active: bool = False
    highlight: Optional[Tuple[int, int]] = None
    row: int = 0
    col: int = 0


@dataclass
class ViewSnapshot:
    """Everything a renderer needs to draw the current page."""

    items: List[GridItem]
    current_page: int
    total_pages: int
    folder: Optional[Folder]
    search_text: str


@dataclass
class ViewState:
    search_text: str = ""
    current_page: int = 0
    open_folder_id: Optional[str] = None
    visible: List[VisibleItem] = field(default_factory=list)


def match_span(label: str, text: str) -> Optional[Tuple[int, int]]:
    """
    Where the search text sits inside a label, for highlighting. Matching is
    caseless like the filter; the span is in offsets of the original label,
    even where folding changes the length (e.g. "ß" -> "ss").
    """
    needle = text.casefold()
    if not needle:
        return None
    folded = []
    owners = []
    for index, ch in enumerate(label):
        piece = ch.casefold()
        folded.append(piece)
        owners.extend([index] * len(piece))
    start = "".join(folded).find(needle)
    if start < 0:
        return None
    return (owners[start], owners[start + len(needle) - 1] + 1)


class ViewModel:
    """
    Derives the visible, paginated sequence from the catalog for the current
    search text and folder drill-down.

    Args:
        catalog: The catalog to present.
        show_hidden: Also list hidden apps in the root view.
    """

    def __init__(self, catalog: Catalog, show_hidden: bool = False):
        self.catalog = catalog
        self.show_hidden = show_hidden
        self.state = ViewState()
        self.refresh()

    @property
    def visible(self) -> List[VisibleItem]:
        return self.state.visible

    @property
    def current_page(self) -> int:
        return self.state.current_page

    @property
    def open_folder(self) -> Optional[Folder]:
        return self.catalog.find_folder(self.state.open_folder_id)

    @property
    def total_pages(self) -> int:
        if self.state.open_folder_id is not None:
            return 1
        return max(1, math.ceil(len(self.state.visible) / APPS_PER_PAGE))

    def _root_apps(self) -> List[AppRecord]:
        return [
            app
            for app in self.catalog.apps
            if app.folder_id is None and (self.show_hidden or not app.hidden)
        ]

    def _compute_visible(self) -> List[VisibleItem]:
        folder_id = self.state.open_folder_id
        if folder_id is not None:
            return list(self.catalog.members(folder_id))
        text = self.state.search_text
        if not text:
            return [*self.catalog.folders, *self._root_apps()]
        needle = text.casefold()
        return [
            app
            for app in self.catalog.apps
            if not app.hidden
            and app.folder_id is None
            and needle in app.name.casefold()
        ]

    def refresh(self) -> None:
        """
        Recomputes the visible sequence against the current catalog, e.g.
        after a mutation or a rescan. A folder that no longer exists is closed
        and the page index is clamped.
        """
        if (
            self.state.open_folder_id is not None
            and self.catalog.find_folder(self.state.open_folder_id) is None
        ):
            logger.debug(f"Open folder {self.state.open_folder_id} vanished; closing.")
            self.state.open_folder_id = None
        folder = self.open_folder
        if folder is not None:
            folder.is_open = True
        self.state.visible = self._compute_visible()
        self.state.current_page = self._clamp(self.state.current_page)

    def apply_filter(self, text: str) -> None:
        """
        Sets the search text and recomputes. Searching always happens in the
        root view, so a non-empty search closes an open folder.
        """
        text = text.strip()
        if text and self.state.open_folder_id is not None:
            self._set_folder_open(None)
        self.state.search_text = text
        self.state.current_page = 0
        self.refresh()

    def _clamp(self, page: int) -> int:
        return max(0, min(page, self.total_pages - 1))

    def go_to_page(self, page: int) -> bool:
        page = self._clamp(page)
        if page == self.state.current_page:
            return False
        self.state.current_page = page
        return True

    def next_page(self) -> bool:
        return self.go_to_page(self.state.current_page + 1)

    def previous_page(self) -> bool:
        return self.go_to_page(self.state.current_page - 1)

    def scroll(self, dx: float, dy: float) -> bool:
        """Smooth scroll: the dominant axis flips one page past a threshold."""
        delta = dx if abs(dx) > abs(dy) else dy
        if delta < -SCROLL_THRESHOLD:
            return self.previous_page()
        if delta > SCROLL_THRESHOLD:
            return self.next_page()
        return False

    def swipe(self, velocity_x: float) -> bool:
        if velocity_x > 0:
            return self.previous_page()
        if velocity_x < 0:
            return self.next_page()
        return False

    def _set_folder_open(self, folder_id: Optional[str]) -> None:
        current = self.open_folder
        if current is not None:
            current.is_open = False
        self.state.open_folder_id = folder_id
        folder = self.open_folder
        if folder is not None:
            folder.is_open = True

    def open_folder_by_id(self, folder_id: str) -> bool:
        if self.catalog.find_folder(folder_id) is None:
            return False
        self._set_folder_open(folder_id)
        self.state.search_text = ""
        self.state.current_page = 0
        self.refresh()
        return True

    def close_folder(self) -> bool:
        if self.state.open_folder_id is None:
            return False
        self._set_folder_open(None)
        self.state.current_page = 0
        self.refresh()
        return True

    def reset(self) -> None:
        """Back to the root view, page 0, no search."""
        self._set_folder_open(None)
        self.state.search_text = ""
        self.state.current_page = 0
        self.refresh()

    def page_items(self) -> List[VisibleItem]:
        if self.state.open_folder_id is not None:
            return list(self.state.visible)
        start = self.state.current_page * APPS_PER_PAGE
        return self.state.visible[start : start + APPS_PER_PAGE]

    def render(self) -> ViewSnapshot:
        items = []
        for index, item in enumerate(self.page_items()):
            row, col = divmod(index, GRID_COLUMNS)
            if isinstance(item, Folder):
                items.append(
                    GridItem(
                        kind="folder",
                        label=item.name,
                        icon=item.icon,
                        ref=item.id,
                        is_active=item.is_open,
                        row=row,
                        col=col,
                    )
                )
            else:
                items.append(
                    GridItem(
                        kind="app",
                        label=item.name,
                        icon=item.icon or DEFAULT_APP_ICON,
                        ref=item.name,
                        highlight=match_span(item.name, self.state.search_text),
                        row=row,
                        col=col,
                    )
                )
        return ViewSnapshot(
            items=items,
            current_page=self.state.current_page,
            total_pages=self.total_pages,
            folder=self.open_folder,
            search_text=self.state.search_text,
        )
