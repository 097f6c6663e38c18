import os
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import toml

from gridlauncher.catalog.catalog import Catalog
from gridlauncher.catalog.errors import LayoutLoadError
from gridlauncher.catalog.models import DEFAULT_FOLDER_ICON, NO_POSITION, Folder

logger = logging.getLogger(__name__)

LAYOUT_FILE_NAME = "layout.toml"


@dataclass
class FolderEntry:
    id: str
    name: str
    icon: str = DEFAULT_FOLDER_ICON


@dataclass
class AppOverride:
    """Persisted deviation of one app from its scanned defaults."""

    name: str
    hidden: bool = False
    position: int = NO_POSITION
    folder: Optional[str] = None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _as_position(value: Any) -> int:
    """Integral, non-negative positions only; anything else means unordered."""
    if isinstance(value, bool):
        return NO_POSITION
    try:
        position = int(value)
    except (TypeError, ValueError, OverflowError):
        return NO_POSITION
    return position if position >= 0 else NO_POSITION


_TOML_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


def _dump_toml_string(value: str) -> str:
    parts = []
    for ch in value:
        if ch in _TOML_ESCAPES:
            parts.append(_TOML_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            parts.append(f"\\u{ord(ch):04x}")
        else:
            parts.append(ch)
    return '"' + "".join(parts) + '"'


class LayoutEncoder(toml.TomlEncoder):
    """Writes basic strings with every control character escaped."""

    def __init__(self):
        super().__init__(dict)
        self.dump_funcs[str] = _dump_toml_string


class LayoutOverlay:
    """
    The sparse user arrangement: folder descriptors plus overrides for the
    apps that are hidden, foldered or explicitly positioned.
    """

    def __init__(
        self,
        folders: Optional[List[FolderEntry]] = None,
        apps: Optional[List[AppOverride]] = None,
    ):
        self.folders = folders or []
        self.apps = apps or []

    def is_empty(self) -> bool:
        return not self.folders and not self.apps

    @classmethod
    def capture(cls, catalog: Catalog) -> "LayoutOverlay":
        """
        Builds the overlay for the catalog's current state.

        Foldered apps are listed folder by folder in member order so that
        re-applying the overlay restores the drop order inside each folder.
        """
        folders = [FolderEntry(f.id, f.name, f.icon) for f in catalog.folders]
        overrides: List[AppOverride] = []
        emitted = set()
        for folder in catalog.folders:
            for app in catalog.members(folder.id):
                overrides.append(
                    AppOverride(app.name, app.hidden, app.position, folder.id)
                )
                emitted.add(app.name)
        for app in catalog.apps:
            if app.name in emitted or app.is_default:
                continue
            overrides.append(AppOverride(app.name, app.hidden, app.position, None))
        return cls(folders, overrides)

    def apply_to(self, catalog: Catalog) -> int:
        """
        Overlays the stored attributes onto a freshly rebuilt catalog and
        re-sorts it by position.

        Returns:
            int: The number of app overrides that matched a scanned app.
        """
        for entry in self.folders:
            catalog.add_folder(Folder(id=entry.id, name=entry.name, icon=entry.icon))
        matched = 0
        for override in self.apps:
            app = catalog.find_app(override.name)
            if app is None:
                logger.debug(f"Layout override for unknown app '{override.name}' ignored.")
                continue
            matched += 1
            app.hidden = override.hidden
            app.position = override.position
            if override.folder is None:
                continue
            if not catalog.add_to_folder(app, override.folder):
                logger.debug(
                    f"'{override.name}' refers to missing folder {override.folder}; dropped."
                )
        catalog.sort_by_position()
        return matched

    def to_dict(self) -> Dict[str, Any]:
        apps = []
        for override in self.apps:
            item: Dict[str, Any] = {
                "name": override.name,
                "hidden": override.hidden,
                "position": override.position,
            }
            if override.folder is not None:
                item["folder"] = override.folder
            apps.append(item)
        return {
            "folders": [
                {"id": f.id, "name": f.name, "icon": f.icon} for f in self.folders
            ],
            "apps": apps,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LayoutOverlay":
        """
        Reads the overlay out of parsed TOML data. Individual entries missing
        required fields are skipped.

        Raises:
            ValueError: When a section has the wrong shape.
        """
        folders_data = data.get("folders", [])
        apps_data = data.get("apps", [])
        if not isinstance(folders_data, list) or not isinstance(apps_data, list):
            raise ValueError("'folders' and 'apps' must be arrays of tables")
        folders = []
        for item in folders_data:
            if not isinstance(item, dict):
                raise ValueError("folder entries must be tables")
            folder_id, name = item.get("id"), item.get("name")
            if not isinstance(folder_id, str) or not isinstance(name, str):
                logger.debug(f"Skipping folder entry without id or name: {item}")
                continue
            folders.append(
                FolderEntry(folder_id, name, str(item.get("icon") or DEFAULT_FOLDER_ICON))
            )
        apps = []
        for item in apps_data:
            if not isinstance(item, dict):
                raise ValueError("app entries must be tables")
            name = item.get("name")
            if not isinstance(name, str):
                logger.debug(f"Skipping app entry without a name: {item}")
                continue
            folder = item.get("folder")
            apps.append(
                AppOverride(
                    name=name,
                    hidden=_as_bool(item.get("hidden", False)),
                    position=_as_position(item.get("position", NO_POSITION)),
                    folder=folder if isinstance(folder, str) and folder else None,
                )
            )
        return cls(folders, apps)


class LayoutStore:
    """
    Reads and writes the layout overlay file.

    Args:
        path: Location of the TOML layout file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def save(self, catalog: Catalog) -> bool:
        """
        Rewrites the whole layout file atomically. Failures are logged and
        reported through the return value only.
        """
        overlay = LayoutOverlay.capture(catalog)
        tmp_name = None
        try:
            data = overlay.to_dict()
            content = toml.dumps(data, encoder=LayoutEncoder())
            if not self._reads_back(content, data):
                logger.error(f"Refusing to save layout to {self.path}: it would not read back intact.")
                return False
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
            logger.debug(
                f"Layout saved: {len(overlay.folders)} folders, {len(overlay.apps)} overrides."
            )
            return True
        except OSError as e:
            logger.error(f"Failed to save layout to {self.path}: {e}")
            return False
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def _reads_back(self, content: str, data: Dict[str, Any]) -> bool:
        try:
            return toml.loads(content) == data
        except toml.TomlDecodeError:
            return False

    def load(self) -> LayoutOverlay:
        """
        Returns:
            LayoutOverlay: The stored overlay, empty when no file exists.

        Raises:
            LayoutLoadError: When the file cannot be read or parsed.
        """
        if not self.path.exists():
            return LayoutOverlay()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = toml.load(f)
            return LayoutOverlay.from_dict(data)
        except (OSError, UnicodeDecodeError, toml.TomlDecodeError, ValueError) as e:
            raise LayoutLoadError(str(self.path), str(e)) from e

    def apply(self, catalog: Catalog) -> bool:
        """
        Merges the stored layout into a freshly rebuilt catalog. A broken file
        leaves the scan order untouched.
        """
        try:
            overlay = self.load()
        except LayoutLoadError as e:
            logger.warning(f"{e}. Using default application order.")
            return False
        matched = overlay.apply_to(catalog)
        logger.info(
            f"Layout applied: {len(catalog.folders)} folders, {matched} app overrides."
        )
        problems = catalog.check_invariants()
        if problems:
            logger.debug(f"Catalog invariant problems after load: {problems}")
        return True
