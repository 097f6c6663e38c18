default_config = {
    "_section_hint": (
        "General configuration settings for gridlauncher, a full-screen "
        "application grid for desktop panels."
    ),
    "launcher": {
        "_section_hint": "Overlay behavior.",
        "show_hidden": False,
        "show_hidden_hint": (
            "Whether applications hidden from the grid are still listed in the "
            "root view so they can be restored."
        ),
    },
    "layout": {
        "_section_hint": "Where the folder and ordering arrangement is stored.",
        "path": "",
        "path_hint": (
            "Absolute path of the layout file. Leave empty to use "
            "$XDG_CONFIG_HOME/gridlauncher/layout.toml."
        ),
    },
    "watcher": {
        "_section_hint": "Monitoring of application directories for changes.",
        "enabled": True,
        "enabled_hint": (
            "Rescan applications automatically when .desktop files are added, "
            "removed or modified."
        ),
        "debounce_ms": 500,
        "debounce_ms_hint": (
            "Milliseconds to wait after a change before rescanning, so that a "
            "package install triggers a single rescan."
        ),
    },
    "logging": {
        "_section_hint": "Log output settings.",
        "level": "INFO",
        "level_hint": "One of DEBUG, INFO, WARNING, ERROR.",
    },
}
