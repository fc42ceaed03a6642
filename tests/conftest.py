"""Pytest configuration and shared fixtures.

No sys.path hacks - tests import from the installed bootcache package.
"""

import json

import pytest

from bootcache.contracts import PluginRecord
from bootcache.settings import BootstrapSettings, get_settings


class FakePool:
    """Stand-in for the worker pool; records its size and shutdown."""

    def __init__(self, workers):
        self.workers = workers
        self.shut_down = False

    def shutdown(self, wait=True):
        self.shut_down = True


def pytest_addoption(parser):
    """Add gated perf test option."""
    parser.addoption(
        "--run-perf",
        action="store_true",
        default=False,
        help="Run performance sentinel benchmarks (gated)."
    )


def pytest_collection_modifyitems(config, items):
    """Skip perf-marked tests unless --run-perf is set."""
    if config.getoption("--run-perf"):
        return
    skip_perf = pytest.mark.skip(reason="perf tests gated; pass --run-perf")
    for item in items:
        if "perf" in item.keywords:
            item.add_marker(skip_perf)


@pytest.fixture(autouse=True)
def _clean_settings_env(monkeypatch):
    """Keep the developer's environment out of settings-driven behavior."""
    for name in (
        "NODE_ENV",
        "BOOTCACHE_NODE_ENV",
        "BOOTCACHE_PRESERVE_FILE_DOWNLOAD_CACHE",
        "BOOTCACHE_PRESERVE_WEBPACK_CACHE",
        "BOOTCACHE_PAGE_BUILD_ON_DATA_CHANGES",
        "BOOTCACHE_HOT_LOADER",
        "BOOTCACHE_WORKER_COUNT",
        "BOOTCACHE_FAST_REFRESH",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def dev_settings():
    return BootstrapSettings(node_env="development")


@pytest.fixture
def site_dir(tmp_path):
    """A site with a package.json and one local plugin carrying a browser entry file."""
    site = tmp_path / "site"
    site.mkdir()
    (site / "package.json").write_text(
        json.dumps({"name": "example-site", "version": "0.0.1"}), encoding="utf-8"
    )
    plugin_dir = site / "plugins" / "p1"
    plugin_dir.mkdir(parents=True)
    (plugin_dir / "site-browser.js").write_text("import './global.css'\n", encoding="utf-8")
    return site


@pytest.fixture
def make_plugin():
    def _make(name="p1", version="1.0.0", resolve="/plugins/p1", **kwargs):
        return PluginRecord(name=name, version=version, resolve=str(resolve), **kwargs)
    return _make


@pytest.fixture
def pool_factory():
    created = []

    def _factory(workers):
        pool = FakePool(workers)
        created.append(pool)
        return pool

    _factory.created = created
    return _factory
