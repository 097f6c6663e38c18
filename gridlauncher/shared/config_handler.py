import copy
import time
import logging
import toml
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from gridlauncher.shared import config_template
from gridlauncher.shared.path_handler import PathHandler

HINT_SUFFIX = "_hint"
LOAD_ATTEMPTS = 3
LOAD_RETRY_DELAY = 0.05


def strip_hints(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drops every '*_hint' key, at any depth, from a settings tree."""
    return {
        key: strip_hints(value) if isinstance(value, dict) else value
        for key, value in data.items()
        if not key.endswith(HINT_SUFFIX)
    }


def merge_missing(target: Dict[str, Any], defaults: Dict[str, Any]) -> bool:
    """
    Copies keys present in `defaults` but absent from `target` into `target`,
    descending into nested sections.

    Returns:
        True if anything was added.
    """
    added = False
    for key, default_value in defaults.items():
        current = target.get(key)
        if key not in target:
            target[key] = copy.deepcopy(default_value)
            added = True
        elif isinstance(default_value, dict) and isinstance(current, dict):
            added = merge_missing(current, default_value) or added
    return added


class ConfigHandler:
    """
    Manages the launcher settings file (config.toml).

    Missing settings are filled in from the defaults template and written
    back. A file that cannot be parsed leaves the handler untrusted: defaults
    are used in memory and nothing is written, so a hand-edited file with a
    typo is never overwritten.
    """

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        logger: Optional[Any] = None,
    ):
        """
        Args:
            config_file: Location of config.toml. Defaults to the XDG config dir.
            logger: Logger to report to. Defaults to this module's logger.
        """
        self.logger = logger or logging.getLogger(__name__)
        self.default_config = copy.deepcopy(config_template.default_config)
        if config_file is None:
            config_file = PathHandler().get_config_path("config.toml")
        self.config_file = Path(config_file)
        self._trusted = False
        self.config_data: Dict[str, Any] = self.load_config()

    @property
    def default_config_stripped(self) -> Dict[str, Any]:
        return strip_hints(self.default_config)

    @property
    def is_trusted(self) -> bool:
        return self._trusted

    def _read_file(self) -> Tuple[Dict[str, Any], bool]:
        """
        Returns the parsed file and whether it could be read. A missing file
        counts as read (and empty).
        """
        if not self.config_file.exists():
            self.logger.info("Config file is missing. Will apply defaults and create.")
            return {}, True
        for attempt in range(1, LOAD_ATTEMPTS + 1):
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    return toml.load(f), True
            except (OSError, UnicodeDecodeError, toml.TomlDecodeError) as e:
                self.logger.error(f"Error loading {self.config_file} (attempt {attempt}): {e}")
                time.sleep(LOAD_RETRY_DELAY)
        self.logger.error(
            "Giving up on config.toml; running with defaults and leaving the file untouched."
        )
        return {}, False

    def load_config(self) -> Dict[str, Any]:
        """
        Reads config.toml and completes it with defaults.

        Returns:
            The settings tree in use.
        """
        data, self._trusted = self._read_file()
        added = merge_missing(data, self.default_config_stripped)
        self.config_data = data
        if added and self._trusted:
            self.logger.info("Writing missing default settings to config file.")
            self.save_config()
        return data

    def reload_config(self) -> None:
        self.config_data = self.load_config()
        self.logger.info("Configuration reloaded from file.")

    def save_config(self) -> bool:
        if not self._trusted:
            self.logger.warning(
                "Not saving settings: config.toml failed to load. Please fix it manually."
            )
            return False
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w", encoding="utf-8") as f:
                toml.dump(self.config_data, f)
        except OSError as e:
            self.logger.error(f"Failed to save configuration to {self.config_file}: {e}")
            return False
        self.logger.debug("Configuration saved.")
        return True

    def _walk(self, tree: Dict[str, Any], key_path: List[str]) -> Tuple[bool, Any]:
        node: Any = tree
        for key in key_path:
            if not isinstance(node, dict) or key not in node:
                return False, None
            node = node[key]
        return True, node

    def get_hint(self, key_path: List[str]) -> Optional[str]:
        """Returns the description of a setting from the defaults template."""
        if not key_path:
            return None
        found, section = self._walk(self.default_config, key_path[:-1])
        if not found or not isinstance(section, dict):
            return None
        return section.get(f"{key_path[-1]}{HINT_SUFFIX}")

    def get_setting(self, key_path: List[str], default_value: Any = None) -> Any:
        """
        Looks up a nested setting, e.g. ['watcher', 'debounce_ms'].
        Returns `default_value` when any part of the path is missing.
        """
        found, value = self._walk(self.config_data, key_path)
        if not found:
            self.logger.debug(
                f"Setting {' -> '.join(key_path)} not found; using {default_value!r}."
            )
            return default_value
        return value

    def set_setting(self, key_path: List[str], new_value: Any) -> bool:
        """Stores a setting, creating intermediate sections, and saves."""
        if not key_path:
            self.logger.error("Configuration key path cannot be empty.")
            return False
        if not self._trusted:
            self.logger.warning(
                f"Update to {' -> '.join(key_path)} skipped: config.toml failed to load."
            )
            return False
        section = self.config_data
        for key in key_path[:-1]:
            if not isinstance(section.get(key), dict):
                section[key] = {}
            section = section[key]
        section[key_path[-1]] = new_value
        self.logger.info(f"Set config key {' -> '.join(key_path)} to {new_value}.")
        return self.save_config()
