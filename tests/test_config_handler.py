"""Unit tests for the settings file handler"""

import toml

from gridlauncher.shared.config_handler import ConfigHandler, merge_missing, strip_hints


class TestConfigHandler:
    def test_missing_file_is_created_with_defaults(self, tmp_path):
        path = tmp_path / "config.toml"

        config = ConfigHandler(path)

        assert path.exists()
        data = toml.load(path)
        assert data["launcher"]["show_hidden"] is False
        assert data["watcher"]["debounce_ms"] == 500
        assert config.get_setting(["layout", "path"]) == ""

    def test_hints_are_not_written(self, tmp_path):
        path = tmp_path / "config.toml"

        ConfigHandler(path)

        assert "_hint" not in path.read_text(encoding="utf-8")

    def test_user_values_are_kept_and_missing_keys_merged(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[watcher]\ndebounce_ms = 1000\n", encoding="utf-8")

        config = ConfigHandler(path)

        assert config.get_setting(["watcher", "debounce_ms"]) == 1000
        assert config.get_setting(["watcher", "enabled"]) is True
        assert toml.load(path)["logging"]["level"] == "INFO"

    def test_corrupt_file_is_never_overwritten(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[watcher\nbroken", encoding="utf-8")

        config = ConfigHandler(path)

        assert not config.is_trusted
        assert config.get_setting(["watcher", "enabled"]) is True
        assert not config.set_setting(["watcher", "enabled"], False)
        assert not config.save_config()
        assert path.read_text(encoding="utf-8") == "[watcher\nbroken"

    def test_missing_key_returns_default(self, tmp_path):
        config = ConfigHandler(tmp_path / "config.toml")

        assert config.get_setting(["nope", "key"], 42) == 42

    def test_set_setting_creates_sections(self, tmp_path):
        path = tmp_path / "config.toml"
        config = ConfigHandler(path)

        assert config.set_setting(["extra", "nested", "value"], "x")
        assert toml.load(path)["extra"]["nested"]["value"] == "x"
        assert not config.set_setting([], "x")

    def test_get_hint(self, tmp_path):
        config = ConfigHandler(tmp_path / "config.toml")

        assert config.get_hint(["watcher", "debounce_ms"])
        assert config.get_hint(["watcher", "missing"]) is None

    def test_default_location_follows_xdg(self, isolated_xdg):
        config = ConfigHandler()

        assert config.config_file == isolated_xdg / "xdg_config_home" / "gridlauncher" / "config.toml"
        assert config.config_file.exists()

    def test_reload_picks_up_external_edit(self, tmp_path):
        path = tmp_path / "config.toml"
        config = ConfigHandler(path)
        data = toml.load(path)
        data["watcher"]["debounce_ms"] = 2000
        path.write_text(toml.dumps(data), encoding="utf-8")

        config.reload_config()

        assert config.get_setting(["watcher", "debounce_ms"]) == 2000


def test_strip_hints_and_merge_missing():
    tree = {"a": 1, "a_hint": "x", "sec": {"_section_hint": "y", "b": 2}}

    stripped = strip_hints(tree)
    target = {"sec": {"b": 5}}

    assert stripped == {"a": 1, "sec": {"b": 2}}
    assert merge_missing(target, stripped)
    assert target == {"a": 1, "sec": {"b": 5}}
    assert not merge_missing(target, stripped)


def test_template_only_declares_settings_in_use(tmp_path):
    stripped = ConfigHandler(tmp_path / "config.toml").default_config_stripped

    assert stripped == {
        "launcher": {"show_hidden": False},
        "layout": {"path": ""},
        "watcher": {"enabled": True, "debounce_ms": 500},
        "logging": {"level": "INFO"},
    }
