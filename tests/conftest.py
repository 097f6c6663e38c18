import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gridlauncher.catalog.catalog import Catalog  # noqa: E402
from gridlauncher.catalog.models import AppRecord  # noqa: E402


class FakeSource:
    """Yields fresh records for a fixed list of names on every scan."""

    def __init__(self, names, source_tag="fake"):
        self.names = list(names)
        self.source_tag = source_tag
        self.scans = 0

    def scan(self):
        self.scans += 1
        for name in self.names:
            yield AppRecord(
                name=name,
                command=f"{name.lower()} --{self.source_tag}",
                icon=f"{name.lower()}-icon",
            )


@pytest.fixture(autouse=True)
def isolated_xdg(tmp_path, monkeypatch):
    """Keeps config, state and data writes inside the test's tmp dir."""
    for var in ("XDG_CONFIG_HOME", "XDG_STATE_HOME", "XDG_DATA_HOME"):
        monkeypatch.setenv(var, str(tmp_path / var.lower()))
    monkeypatch.delenv("XDG_CURRENT_DESKTOP", raising=False)
    return tmp_path


@pytest.fixture
def make_catalog():
    def _make(names):
        catalog = Catalog(sources=[FakeSource(names)])
        catalog.rebuild()
        return catalog

    return _make
