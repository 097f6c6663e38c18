import os
import re
import shlex
import logging
import subprocess
from typing import Any, List, Optional

from gridlauncher.catalog.models import AppRecord

FIELD_CODE_RE = re.compile(r"%[fFuUdDnNickvm]")


def strip_field_codes(command: str) -> str:
    """
    Removes desktop-entry field codes (%f, %U, %i, ...) from an Exec line;
    '%%' stays as a literal percent sign.
    """
    parts = command.split("%%")
    parts = [FIELD_CODE_RE.sub("", part) for part in parts]
    return " ".join("%".join(parts).split())


class CommandRunner:
    def __init__(self, logger: Optional[Any] = None):
        self.logger = logger or logging.getLogger(__name__)

    def build_argv(self, app: AppRecord) -> List[str]:
        """
        Turns an app record into an argv list. The Exec line is preferred;
        records without one are started by desktop id through gtk-launch.
        """
        command = strip_field_codes(app.command or "")
        if command:
            argv = shlex.split(command)
        elif app.desktop_id:
            argv = ["gtk-launch", app.desktop_id]
        else:
            return []
        if os.path.exists("/.flatpak-info"):
            argv = ["flatpak-spawn", "--host"] + argv
        return argv

    def launch(self, app: AppRecord) -> bool:
        """
        Starts the application detached from the launcher process.
        Returns False when there is nothing to run or spawning failed.
        """
        try:
            argv = self.build_argv(app)
        except ValueError as e:
            self.logger.error(f"Cannot parse command for '{app.name}': {e}")
            return False
        if not argv:
            self.logger.warning(f"No command to launch for '{app.name}'.")
            return False
        try:
            subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            self.logger.error(f"Failed to launch application '{app.name}': {e}")
            return False
        self.logger.info(f"Launched '{app.name}'.")
        return True
