from dataclasses import dataclass
from enum import Enum
from typing import Optional

NO_POSITION = -1
DEFAULT_FOLDER_NAME = "New Folder"
DEFAULT_FOLDER_ICON = "folder"
DEFAULT_APP_ICON = "application-x-executable"


class AppSource(Enum):
    """Discovery channel an application record came from."""

    NATIVE = "native"
    SNAP = "snap"
    FLATPAK = "flatpak"


@dataclass
class AppRecord:
    """
    One discovered launchable application.

    The display name is the identity of a record: the catalog never holds two
    records with the same name, and the persisted layout refers to apps by name.
    """

    name: str
    command: str = ""
    icon: Optional[str] = None
    source: AppSource = AppSource.NATIVE
    hidden: bool = False
    folder_id: Optional[str] = None
    position: int = NO_POSITION
    desktop_id: Optional[str] = None

    @property
    def has_position(self) -> bool:
        return self.position != NO_POSITION

    @property
    def is_default(self) -> bool:
        """True when nothing about this record needs to be persisted."""
        return not self.hidden and self.folder_id is None and not self.has_position


@dataclass
class Folder:
    """
    A user-created group of applications.

    Membership lives on the records (``AppRecord.folder_id``); the catalog
    keeps the per-folder member index.
    """

    id: str
    name: str = DEFAULT_FOLDER_NAME
    icon: str = DEFAULT_FOLDER_ICON
    is_open: bool = False
