import os
import logging
import configparser
from typing import Any, Callable, Iterable, Iterator, List, Optional, Set

from gridlauncher.catalog.models import AppRecord, AppSource

logger = logging.getLogger(__name__)

DESKTOP_SUFFIX = ".desktop"
DESKTOP_GROUP = "Desktop Entry"

SNAP_DIRS = ["/var/lib/snapd/desktop/applications"]
FLATPAK_SYSTEM_DIRS = ["/var/lib/flatpak/exports/share/applications"]
FLATPAK_USER_DIRS = ["~/.local/share/flatpak/exports/share/applications"]


def watched_directories() -> List[str]:
    """
    Returns every directory whose .desktop files feed the catalog, system
    directories first. Directories that do not exist are still listed.
    """
    system_dirs = [
        "/usr/share/applications",
        "/usr/local/share/applications",
        *SNAP_DIRS,
        *FLATPAK_SYSTEM_DIRS,
    ]
    user_dirs = [
        "~/.local/share/applications",
        "~/snap",
        *FLATPAK_USER_DIRS,
    ]
    return system_dirs + [os.path.expanduser(d) for d in user_dirs]


def first_icon_name(icon: Optional[str]) -> Optional[str]:
    """Keeps only the first name of a multi-name themed icon."""
    if not icon:
        return None
    for name in icon.split(";"):
        name = name.strip()
        if name:
            return name
    return None


def _current_desktops() -> Set[str]:
    value = os.environ.get("XDG_CURRENT_DESKTOP", "")
    return {d.strip().lower() for d in value.split(":") if d.strip()}


def _locale_candidates() -> List[str]:
    """
    Returns locale suffixes to try for localized keys, most specific first,
    e.g. LANG=pt_BR.UTF-8 gives ['pt_BR', 'pt'].
    """
    for var in ("LC_ALL", "LC_MESSAGES", "LANG"):
        value = os.environ.get(var)
        if value:
            break
    else:
        return []
    lang = value.split(".")[0].split("@")[0]
    if not lang or lang in ("C", "POSIX"):
        return []
    candidates = [lang]
    if "_" in lang:
        candidates.append(lang.split("_")[0])
    return candidates


class NativeRegistrySource:
    """
    Lists applications known to the platform registry (Gio.AppInfo).

    Args:
        registry: Callable returning GAppInfo-like objects. Defaults to
            Gio.AppInfo.get_all, imported on first scan.
    """

    source = AppSource.NATIVE

    def __init__(self, registry: Optional[Callable[[], Iterable[Any]]] = None):
        self._registry = registry

    def _default_registry(self) -> Iterable[Any]:
        import gi

        gi.require_version("Gio", "2.0")
        from gi.repository import Gio  # pyright: ignore

        return Gio.AppInfo.get_all()

    def scan(self) -> Iterator[AppRecord]:
        try:
            apps = list(self._registry() if self._registry else self._default_registry())
        except Exception as e:
            logger.warning(f"Native application registry unavailable: {e}")
            return
        for app_info in apps:
            try:
                if not app_info.should_show():
                    continue
                name = app_info.get_display_name()
                if not name:
                    continue
                yield AppRecord(
                    name=name,
                    command=app_info.get_commandline() or "",
                    icon=self._icon_name(app_info.get_icon()),
                    source=self.source,
                    desktop_id=app_info.get_id(),
                )
            except Exception as e:
                logger.debug(f"Skipping registry entry: {e}")

    def _icon_name(self, gicon: Any) -> Optional[str]:
        """Only themed icons are usable; take their first name."""
        if gicon is None or not hasattr(gicon, "get_names"):
            return None
        names = gicon.get_names()
        return names[0] if names else None


class DesktopDirectorySource:
    """
    Scans a fixed set of directories for .desktop files.

    Missing directories are skipped silently, unreadable ones are logged and
    skipped, and a malformed file only drops that single entry.
    """

    source = AppSource.NATIVE
    default_directories: List[str] = []

    def __init__(self, directories: Optional[List[str]] = None):
        if directories is None:
            directories = self.default_directories
        self.directories = [os.path.expanduser(d) for d in directories]

    def scan(self) -> Iterator[AppRecord]:
        for app_dir in self.directories:
            if not os.path.isdir(app_dir):
                continue
            try:
                file_names = sorted(os.listdir(app_dir))
            except OSError as e:
                logger.warning(f"Failed to open {self.source.value} directory {app_dir}: {e}")
                continue
            for file_name in file_names:
                if not file_name.endswith(DESKTOP_SUFFIX):
                    continue
                record = self.parse_file(os.path.join(app_dir, file_name))
                if record is not None:
                    yield record

    def parse_file(self, file_path: str) -> Optional[AppRecord]:
        """
        Parses one desktop entry.

        Returns:
            Optional[AppRecord]: The record, or None when the file is malformed
            or the entry should not be shown.
        """
        parser = configparser.ConfigParser(interpolation=None, strict=False)
        parser.optionxform = str  # type: ignore[assignment]
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                parser.read_file(f)
        except (OSError, configparser.Error, UnicodeDecodeError) as e:
            logger.debug(f"Failed to parse desktop file {file_path}: {e}")
            return None
        if DESKTOP_GROUP not in parser:
            return None
        entry = parser[DESKTOP_GROUP]
        if not self._should_show(entry):
            return None
        name = self._localized(entry, "Name")
        if not name:
            return None
        return AppRecord(
            name=name,
            command=entry.get("Exec", ""),
            icon=first_icon_name(entry.get("Icon")),
            source=self.source,
            desktop_id=os.path.basename(file_path),
        )

    def _should_show(self, entry: configparser.SectionProxy) -> bool:
        """Mirrors the platform's should-show rule for a desktop entry."""
        for key in ("NoDisplay", "Hidden"):
            if self._get_bool(entry, key):
                return False
        entry_type = entry.get("Type")
        if entry_type and entry_type != "Application":
            return False
        desktops = _current_desktops()
        only_show_in = self._get_list(entry, "OnlyShowIn")
        if only_show_in and not desktops.intersection(only_show_in):
            return False
        not_show_in = self._get_list(entry, "NotShowIn")
        if desktops.intersection(not_show_in):
            return False
        return True

    def _localized(self, entry: configparser.SectionProxy, key: str) -> Optional[str]:
        for lang in _locale_candidates():
            value = entry.get(f"{key}[{lang}]")
            if value:
                return value
        return entry.get(key)

    def _get_bool(self, entry: configparser.SectionProxy, key: str) -> bool:
        return entry.get(key, "").strip().lower() == "true"

    def _get_list(self, entry: configparser.SectionProxy, key: str) -> Set[str]:
        return {v.strip().lower() for v in entry.get(key, "").split(";") if v.strip()}


class SnapSource(DesktopDirectorySource):
    source = AppSource.SNAP
    default_directories = SNAP_DIRS


class FlatpakSource(DesktopDirectorySource):
    source = AppSource.FLATPAK
    default_directories = FLATPAK_SYSTEM_DIRS + FLATPAK_USER_DIRS


def default_sources() -> List[Any]:
    """The adapters in query order; earlier sources win name collisions."""
    return [NativeRegistrySource(), SnapSource(), FlatpakSource()]
