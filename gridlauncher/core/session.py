import logging
from pathlib import Path
from typing import Any, Callable, Optional

from gridlauncher.catalog.catalog import Catalog
from gridlauncher.catalog.dragdrop import (
    AppTarget,
    DragDropController,
    DropResult,
    DropTarget,
    FolderTarget,
    GridTarget,
)
from gridlauncher.catalog.persistence import LAYOUT_FILE_NAME, LayoutOverlay, LayoutStore
from gridlauncher.catalog.view import GridItem, ViewModel, ViewSnapshot
from gridlauncher.shared.command_runner import CommandRunner
from gridlauncher.shared.config_handler import ConfigHandler
from gridlauncher.shared.path_handler import PathHandler


class LauncherSession:
    """
    Owns the catalog, the view state, the active drag and the layout store
    for one launcher instance. Every user gesture and every rescan goes
    through this object on the main loop.

    Args:
        catalog: The application catalog (not yet rebuilt).
        store: Where the layout overlay is persisted.
        config: Settings handler; only ``launcher.show_hidden`` is read here.
        runner: Used to start applications.
        logger: Logger to report to.
    """

    def __init__(
        self,
        catalog: Catalog,
        store: LayoutStore,
        config: Optional[ConfigHandler] = None,
        runner: Optional[CommandRunner] = None,
        logger: Optional[Any] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.catalog = catalog
        self.store = store
        self.config = config
        self.runner = runner or CommandRunner(self.logger)
        self.drag = DragDropController(catalog)
        show_hidden = bool(self._setting(["launcher", "show_hidden"], False))
        self.view = ViewModel(catalog, show_hidden=show_hidden)
        self.overlay_visible = False
        self._mutating = False
        self._initialized = False
        self._unsaved = False

    @classmethod
    def from_config(
        cls, config: ConfigHandler, logger: Optional[Any] = None
    ) -> "LauncherSession":
        """Builds a session with the default sources and the configured layout path."""
        layout_path = config.get_setting(["layout", "path"], "")
        if not layout_path:
            layout_path = PathHandler().get_config_path(LAYOUT_FILE_NAME)
        return cls(
            Catalog(),
            LayoutStore(Path(layout_path).expanduser()),
            config=config,
            logger=logger,
        )

    def _setting(self, key_path, default):
        if self.config is None:
            return default
        return self.config.get_setting(key_path, default)

    def initialize(self) -> None:
        """Scans all sources and merges the persisted layout."""
        self.catalog.rebuild()
        self.store.apply(self.catalog)
        self.view.refresh()
        self._initialized = True
        self.logger.info(
            f"Launcher ready: {len(self.catalog)} applications, {len(self.catalog.folders)} folders."
        )

    def teardown(self) -> None:
        """Retries a save that failed earlier; otherwise the file is left alone."""
        self.drag.cancel()
        if self._initialized and self._unsaved:
            self._unsaved = not self.store.save(self.catalog)

    def rescan(self) -> None:
        """
        Replaces the catalog contents with a fresh scan and re-applies the
        current arrangement. An in-flight drag whose app disappeared becomes
        a no-op on drop.
        """
        if self._mutating:
            self.logger.warning("Rescan skipped: a change is in progress.")
            return
        overlay = LayoutOverlay.capture(self.catalog)
        self.catalog.rebuild()
        overlay.apply_to(self.catalog)
        self.view.refresh()
        self.logger.info(f"Catalog rescanned: {len(self.catalog)} applications.")

    def _mutate(self, description: str, change: Callable[[], bool]) -> bool:
        """
        Runs one catalog mutation; on success refreshes the view and saves.
        Re-entrant mutations are refused.
        """
        if self._mutating:
            self.logger.warning(f"Ignoring {description}: another change is in progress.")
            return False
        self._mutating = True
        try:
            changed = change()
        finally:
            self._mutating = False
        if changed:
            self.view.refresh()
            self._unsaved = not self.store.save(self.catalog)
            self.logger.debug(f"Applied {description}.")
        return changed

    def snapshot(self) -> ViewSnapshot:
        return self.view.render()

    def show_overlay(self) -> None:
        self.view.reset()
        self.overlay_visible = True

    def hide_overlay(self) -> None:
        self.overlay_visible = False
        self.drag.cancel()
        self.view.reset()

    def toggle_overlay(self) -> bool:
        if self.overlay_visible:
            self.hide_overlay()
        else:
            self.show_overlay()
        return self.overlay_visible

    def search(self, text: str) -> None:
        self.view.apply_filter(text)

    def next_page(self) -> bool:
        return self.view.next_page()

    def previous_page(self) -> bool:
        return self.view.previous_page()

    def go_to_page(self, page: int) -> bool:
        return self.view.go_to_page(page)

    def scroll(self, dx: float, dy: float) -> bool:
        return self.view.scroll(dx, dy)

    def swipe(self, velocity_x: float) -> bool:
        return self.view.swipe(velocity_x)

    def key_press(self, key: str) -> bool:
        """Handles Escape, Left and Right; returns True when consumed."""
        if key == "Escape":
            self.hide_overlay()
            return True
        if key == "Left":
            return self.view.previous_page()
        if key == "Right":
            return self.view.next_page()
        return False

    def open_folder(self, folder_id: str) -> bool:
        return self.view.open_folder_by_id(folder_id)

    def close_folder(self) -> bool:
        return self.view.close_folder()

    def activate(self, item: GridItem) -> bool:
        """A click on a grid cell: open the folder or launch the app."""
        if item.kind == "folder":
            return self.open_folder(item.ref)
        app = self.catalog.find_app(item.ref)
        if app is None:
            return False
        if not self.runner.launch(app):
            return False
        self.hide_overlay()
        return True

    def set_show_hidden(self, state: bool) -> None:
        self.view.show_hidden = state
        if self.config is not None:
            self.config.set_setting(["launcher", "show_hidden"], state)
        self.view.refresh()

    def hide_app(self, name: str) -> bool:
        app = self.catalog.find_app(name)
        if app is None or app.hidden:
            return False

        def change():
            self.catalog.hide(app)
            return True

        return self._mutate(f"hide '{name}'", change)

    def show_app(self, name: str) -> bool:
        app = self.catalog.find_app(name)
        if app is None or not app.hidden:
            return False

        def change():
            self.catalog.show(app)
            return True

        return self._mutate(f"show '{name}'", change)

    def remove_from_folder(self, name: str) -> bool:
        app = self.catalog.find_app(name)
        if app is None:
            return False
        return self._mutate(
            f"remove '{name}' from folder", lambda: self.catalog.remove_from_folder(app)
        )

    def rename_folder(self, folder_id: str, name: str) -> bool:
        return self._mutate(
            f"rename folder {folder_id}",
            lambda: self.catalog.rename_folder(folder_id, name),
        )

    def set_folder_icon(self, folder_id: str, icon: str) -> bool:
        return self._mutate(
            f"set icon of folder {folder_id}",
            lambda: self.catalog.set_folder_icon(folder_id, icon),
        )

    def delete_folder(self, folder_id: str) -> bool:
        return self._mutate(
            f"delete folder {folder_id}", lambda: self.catalog.delete_folder(folder_id)
        )

    def drag_begin(self, name: str) -> bool:
        app = self.catalog.find_app(name)
        if app is None:
            return False
        self.drag.begin(app)
        return True

    def drag_cancel(self) -> None:
        self.drag.cancel()

    def drop(self, target: DropTarget) -> DropResult:
        result = DropResult.FAILED

        def change():
            nonlocal result
            result = self.drag.drop(target)
            return result.success

        self._mutate("drop", change)
        return result

    def drop_on_app(self, name: str) -> DropResult:
        return self.drop(AppTarget(name))

    def drop_on_folder(self, folder_id: str) -> DropResult:
        return self.drop(FolderTarget(folder_id))

    def drop_on_grid(self, row: int, col: int) -> DropResult:
        """Drop on an empty cell of the page currently shown."""
        return self.drop(GridTarget(row, col, self.view.current_page))
