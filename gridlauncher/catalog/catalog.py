import time
import locale
import logging
from typing import Any, Dict, Iterable, List, Optional

from gridlauncher.catalog.models import (
    AppRecord,
    Folder,
    NO_POSITION,
    DEFAULT_FOLDER_NAME,
    DEFAULT_FOLDER_ICON,
)
from gridlauncher.catalog.sources import default_sources

logger = logging.getLogger(__name__)


def collation_key(name: str) -> str:
    """Locale-aware sort key for a display name."""
    try:
        return locale.strxfrm(name)
    except (ValueError, OSError):
        return name


def position_sort_key(app: AppRecord):
    """
    Records with an explicit position come first, by position; the rest
    follow in collated name order.
    """
    if app.has_position:
        return (0, app.position, "")
    return (1, 0, collation_key(app.name))


class Catalog:
    """
    The deduplicated, ordered list of applications and the user's folders.

    Folder membership is stored once, on each record (``folder_id``). The
    catalog keeps an index from folder id to member names in drop order, and
    every mutation goes through this class so both stay consistent.

    Args:
        sources: Discovery adapters, queried in order by ``rebuild``.
    """

    def __init__(self, sources: Optional[Iterable[Any]] = None):
        self.sources = list(sources) if sources is not None else default_sources()
        self.apps: List[AppRecord] = []
        self.folders: List[Folder] = []
        self._by_name: Dict[str, AppRecord] = {}
        self._members: Dict[str, List[str]] = {}
        self._last_folder_stamp = 0

    def __len__(self) -> int:
        return len(self.apps)

    def rebuild(self) -> None:
        """
        Rescans every source, keeps the first record seen for each name and
        sorts by collated name. Folders are dropped; the layout overlay is
        expected to be re-applied right after.
        """
        seen: Dict[str, AppRecord] = {}
        for source in self.sources:
            try:
                records = list(source.scan())
            except Exception as e:
                logger.warning(f"Application source {type(source).__name__} failed: {e}")
                continue
            for record in records:
                if record.name in seen:
                    continue
                record.hidden = False
                record.folder_id = None
                record.position = NO_POSITION
                seen[record.name] = record
        self.apps = sorted(seen.values(), key=lambda a: collation_key(a.name))
        self._by_name = dict(seen)
        self.folders = []
        self._members = {}
        logger.debug(f"Catalog rebuilt with {len(self.apps)} applications.")

    def find_app(self, name: str) -> Optional[AppRecord]:
        return self._by_name.get(name)

    def find_folder(self, folder_id: Optional[str]) -> Optional[Folder]:
        if folder_id is None:
            return None
        for folder in self.folders:
            if folder.id == folder_id:
                return folder
        return None

    def _new_folder_id(self) -> str:
        stamp = max(time.monotonic_ns() // 1000, self._last_folder_stamp + 1)
        while self.find_folder(f"folder_{stamp}") is not None:
            stamp += 1
        self._last_folder_stamp = stamp
        return f"folder_{stamp}"

    def create_folder(
        self, name: str = DEFAULT_FOLDER_NAME, icon: str = DEFAULT_FOLDER_ICON
    ) -> Folder:
        folder = Folder(id=self._new_folder_id(), name=name, icon=icon)
        self.add_folder(folder)
        return folder

    def add_folder(self, folder: Folder) -> bool:
        """Registers a folder under its own id. Duplicate ids are refused."""
        if self.find_folder(folder.id) is not None:
            logger.warning(f"Folder id {folder.id} already exists; ignoring duplicate.")
            return False
        self.folders.append(folder)
        self._members[folder.id] = []
        return True

    def rename_folder(self, folder_id: str, name: str) -> bool:
        folder = self.find_folder(folder_id)
        if folder is None or not name:
            return False
        folder.name = name
        return True

    def set_folder_icon(self, folder_id: str, icon: str) -> bool:
        folder = self.find_folder(folder_id)
        if folder is None or not icon:
            return False
        folder.icon = icon
        return True

    def delete_folder(self, folder_id: str) -> bool:
        """Removes a folder and returns its members to the root view."""
        folder = self.find_folder(folder_id)
        if folder is None:
            return False
        for app in self.members(folder_id):
            app.folder_id = None
        del self._members[folder_id]
        self.folders.remove(folder)
        return True

    def members(self, folder_id: str) -> List[AppRecord]:
        """The apps in a folder, in the order they were added."""
        return [self._by_name[n] for n in self._members.get(folder_id, [])]

    def add_to_folder(self, app: AppRecord, folder_id: str) -> bool:
        """
        Moves an app into a folder, leaving its previous folder first.

        Returns:
            bool: False when the folder or the app is not part of the catalog.
        """
        if self.find_folder(folder_id) is None or self.find_app(app.name) is not app:
            return False
        self._detach(app)
        app.folder_id = folder_id
        self._members[folder_id].append(app.name)
        return True

    def remove_from_folder(self, app: AppRecord) -> bool:
        if app.folder_id is None:
            return False
        self._detach(app)
        app.folder_id = None
        return True

    def _detach(self, app: AppRecord) -> None:
        names = self._members.get(app.folder_id or "")
        if names and app.name in names:
            names.remove(app.name)

    def hide(self, app: AppRecord) -> None:
        app.hidden = True

    def show(self, app: AppRecord) -> None:
        app.hidden = False

    def move_app(self, app: AppRecord, index: int) -> bool:
        """Takes an app out of the primary sequence and reinserts it at index."""
        if self.find_app(app.name) is not app:
            return False
        self.apps.remove(app)
        index = max(0, min(index, len(self.apps)))
        self.apps.insert(index, app)
        return True

    def recalculate_positions(self) -> None:
        """Makes the current order durable: position = index."""
        for index, app in enumerate(self.apps):
            app.position = index

    def sort_by_position(self) -> None:
        self.apps.sort(key=position_sort_key)

    def check_invariants(self) -> List[str]:
        """
        Returns a description of every broken catalog invariant, or an empty
        list when the catalog is consistent.
        """
        problems = []
        if len(self._by_name) != len(self.apps):
            problems.append("duplicate application names")
        folder_ids = {f.id for f in self.folders}
        for app in self.apps:
            if app.folder_id is None:
                continue
            if app.folder_id not in folder_ids:
                problems.append(f"{app.name} references missing folder {app.folder_id}")
            elif app.name not in self._members[app.folder_id]:
                problems.append(f"{app.name} missing from folder {app.folder_id}")
        for folder_id, names in self._members.items():
            for name in names:
                app = self._by_name.get(name)
                if app is None or app.folder_id != folder_id:
                    problems.append(f"folder {folder_id} lists stray member {name}")
        return problems
