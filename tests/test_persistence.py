"""Unit tests for layout persistence"""

from unittest.mock import patch

import pytest
import toml

from conftest import FakeSource

from gridlauncher.catalog.catalog import Catalog
from gridlauncher.catalog.errors import LayoutLoadError
from gridlauncher.catalog.persistence import (
    AppOverride,
    FolderEntry,
    LayoutOverlay,
    LayoutStore,
)


def reload(names, store):
    """A fresh process: rebuild from the sources and apply the stored layout."""
    catalog = Catalog(sources=[FakeSource(names)])
    catalog.rebuild()
    store.apply(catalog)
    return catalog


@pytest.fixture
def store(tmp_path):
    return LayoutStore(tmp_path / "layout.toml")


class TestSaveAndLoad:
    def test_order_hidden_and_folders_survive_restart(self, make_catalog, store):
        names = ["Calculator", "Firefox", "GIMP", "Terminal"]
        catalog = make_catalog(names)
        catalog.move_app(catalog.find_app("Terminal"), 0)
        catalog.recalculate_positions()
        catalog.hide(catalog.find_app("Calculator"))
        folder = catalog.create_folder("Graphics", "applications-graphics")
        catalog.add_to_folder(catalog.find_app("GIMP"), folder.id)
        catalog.add_to_folder(catalog.find_app("Firefox"), folder.id)

        assert store.save(catalog)
        restored = reload(names, store)

        assert [a.name for a in restored.apps] == [a.name for a in catalog.apps]
        assert restored.find_app("Calculator").hidden
        assert [f.id for f in restored.folders] == [folder.id]
        assert restored.folders[0].name == "Graphics"
        assert restored.folders[0].icon == "applications-graphics"
        assert [a.name for a in restored.members(folder.id)] == ["GIMP", "Firefox"]
        assert restored.check_invariants() == []

    def test_default_apps_are_not_written(self, make_catalog, store):
        catalog = make_catalog(["Calculator", "Firefox"])
        catalog.hide(catalog.find_app("Firefox"))

        store.save(catalog)
        data = toml.load(store.path)

        assert [item["name"] for item in data["apps"]] == ["Firefox"]

    def test_special_characters_in_names(self, make_catalog, store):
        """Test names that need quoting survive the round trip"""
        names = [
            'Say "Hi"',
            "It's [beta]",
            "Line\nBreak",
            "a = b # c",
            "Back\\slash",
            "Café 日本語",
            "Ctl\x01x",
            "Esc\x1b[0m",
            "Del\x7fx",
            "Nul\x00x",
            "Tab\tand\rreturn",
        ]
        catalog = make_catalog(names)
        for app in catalog.apps:
            catalog.hide(app)
        folder = catalog.create_folder('Tools "#1" [x]')
        catalog.add_to_folder(catalog.find_app("a = b # c"), folder.id)

        assert store.save(catalog)
        restored = reload(names, store)

        assert all(restored.find_app(name).hidden for name in names)
        assert restored.folders[0].name == 'Tools "#1" [x]'
        assert restored.find_app("a = b # c").folder_id == folder.id

    def test_missing_file_gives_empty_overlay(self, store):
        assert store.load().is_empty()

    def test_unknown_names_are_ignored(self, make_catalog, store):
        catalog = make_catalog(["Firefox", "Uninstalled"])
        catalog.hide(catalog.find_app("Uninstalled"))
        catalog.hide(catalog.find_app("Firefox"))
        store.save(catalog)

        restored = reload(["Firefox"], store)

        assert [a.name for a in restored.apps] == ["Firefox"]
        assert restored.find_app("Firefox").hidden

    def test_new_apps_join_unpositioned(self, make_catalog, store):
        catalog = make_catalog(["B", "C"])
        catalog.move_app(catalog.find_app("C"), 0)
        catalog.recalculate_positions()
        store.save(catalog)

        restored = reload(["A", "B", "C"], store)

        assert [a.name for a in restored.apps] == ["C", "B", "A"]

    def test_dangling_folder_reference_is_dropped(self, store):
        store.path.write_text(
            '[[apps]]\nname = "Firefox"\nhidden = false\nposition = -1\nfolder = "folder_gone"\n',
            encoding="utf-8",
        )

        restored = reload(["Firefox"], store)

        assert restored.find_app("Firefox").folder_id is None
        assert restored.check_invariants() == []

    def test_save_failure_returns_false(self, make_catalog, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        store = LayoutStore(blocker / "layout.toml")

        assert not store.save(make_catalog(["Firefox"]))

    def test_save_failure_keeps_previous_file(self, make_catalog, store):
        catalog = make_catalog(["Firefox"])
        catalog.hide(catalog.find_app("Firefox"))
        store.save(catalog)
        before = store.path.read_text(encoding="utf-8")

        with patch("gridlauncher.catalog.persistence.os.replace", side_effect=OSError("disk full")):
            catalog.show(catalog.find_app("Firefox"))
            assert not store.save(catalog)

        assert store.path.read_text(encoding="utf-8") == before
        leftovers = [p for p in store.path.parent.iterdir() if p.name.startswith(".layout.toml.")]
        assert leftovers == []


class TestMalformedLayout:
    def test_parse_error_raises(self, store):
        store.path.write_text("[[apps]\nname = ", encoding="utf-8")

        with pytest.raises(LayoutLoadError):
            store.load()

    def test_wrong_shape_raises(self, store):
        store.path.write_text('apps = "nope"\n', encoding="utf-8")

        with pytest.raises(LayoutLoadError):
            store.load()

    def test_apply_keeps_default_order(self, store):
        """Test a corrupt layout leaves the scanned order untouched"""
        store.path.write_text("this is not toml ][", encoding="utf-8")
        catalog = Catalog(sources=[FakeSource(["Calculator", "Firefox"])])
        catalog.rebuild()

        assert not store.apply(catalog)
        assert [a.name for a in catalog.apps] == ["Calculator", "Firefox"]
        assert catalog.folders == []

    @pytest.mark.parametrize("value", ["inf", "-inf", "nan", "1e400", "2.5e3", "-7", "true"])
    def test_unusable_position_means_unordered(self, store, value):
        """Test odd but valid TOML positions never abort loading"""
        store.path.write_text(
            f'[[apps]]\nname = "Firefox"\nhidden = true\nposition = {value}\n',
            encoding="utf-8",
        )
        catalog = Catalog(sources=[FakeSource(["Calculator", "Firefox"])])
        catalog.rebuild()

        assert store.apply(catalog)
        firefox = catalog.find_app("Firefox")
        assert firefox.hidden
        assert firefox.position == (2500 if value == "2.5e3" else -1)

    def test_entries_without_name_are_skipped(self):
        overlay = LayoutOverlay.from_dict(
            {
                "folders": [{"name": "No id"}, {"id": "folder_1", "name": "Ok"}],
                "apps": [{"hidden": True}, {"name": "Firefox", "hidden": "true", "position": "x"}],
            }
        )

        assert overlay.folders == [FolderEntry("folder_1", "Ok", "folder")]
        assert overlay.apps == [AppOverride("Firefox", hidden=True, position=-1, folder=None)]


def test_capture_lists_folder_members_in_drop_order(make_catalog):
    catalog = make_catalog(["A", "B", "C"])
    folder = catalog.create_folder()
    catalog.add_to_folder(catalog.find_app("C"), folder.id)
    catalog.add_to_folder(catalog.find_app("A"), folder.id)

    overlay = LayoutOverlay.capture(catalog)

    assert [o.name for o in overlay.apps] == ["C", "A"]
    assert all(o.folder == folder.id for o in overlay.apps)


def test_control_characters_are_escaped_on_disk(make_catalog, store):
    catalog = make_catalog(["Ctl\x01x"])
    catalog.hide(catalog.find_app("Ctl\x01x"))

    assert store.save(catalog)

    text = store.path.read_text(encoding="utf-8")
    assert 'name = "Ctl\\u0001x"' in text
    assert "\x01" not in text


def test_save_refused_when_content_would_not_read_back(make_catalog, store):
    catalog = make_catalog(["Firefox"])
    catalog.hide(catalog.find_app("Firefox"))

    with patch("gridlauncher.catalog.persistence.toml.loads", return_value={}):
        assert not store.save(catalog)

    assert not store.path.exists()
