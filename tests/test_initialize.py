"""End-to-end tests for the bootstrap orchestrator."""

import json
import shutil
from contextlib import contextmanager

import pytest

from bootcache import fingerprint_site, initialize
from bootcache._internal.state import StateStore
from bootcache._internal.status_store import MemoryCacheStatusStore
from bootcache.api import CORRUPT_CACHE_MESSAGE, FINGERPRINT_MISMATCH_MESSAGE
from bootcache.codes import NotificationType, PurgeReason
from bootcache.contracts import DEFAULT_EXTENSIONS
from bootcache.errors import (
    BootstrapError,
    FingerprintError,
    InvalidSiteConfigError,
    MissingProgramArgsError,
    RunnerTemplateError,
    StatusStoreError,
    TemplateStagingError,
)
from bootcache.settings import BootstrapSettings


class RecordingReporter:
    def __init__(self):
        self.activities = []
        self.messages = []

    @contextmanager
    def activity(self, name):
        self.activities.append(name)
        yield

    def info(self, message):
        self.messages.append(message)

    def warn(self, message):
        self.messages.append(message)

    def error(self, message, error=None):
        self.messages.append(message)


class RecordingLifecycle:
    def __init__(self, extensions=None, fail_on=None):
        self.phases = []
        self.extensions = extensions or []
        self.fail_on = fail_on

    def _record(self, ctx):
        self.phases.append(ctx.phase)
        if ctx.phase == self.fail_on:
            raise RuntimeError(f"plugin failed in {ctx.phase}")

    def on_pre_init(self, ctx):
        self._record(ctx)

    def on_pre_bootstrap(self, ctx):
        self._record(ctx)

    def resolvable_extensions(self, ctx):
        self._record(ctx)
        return self.extensions


@pytest.fixture
def bootstrap(site_dir, make_plugin, pool_factory, dev_settings):
    """Run ``initialize`` against ``site_dir`` with test collaborators."""
    def _run(version="1.0.0", **overrides):
        kwargs = {
            "config": None,
            "plugins": [make_plugin("p1", version, resolve=site_dir / "plugins" / "p1")],
            "settings": dev_settings,
            "environ": {},
            "worker_pool_factory": pool_factory,
        }
        kwargs.update(overrides)
        program = kwargs.pop("program", {"directory": str(site_dir)})
        return initialize(program, **kwargs)
    return _run


def deletions(state):
    seen = []
    state.subscribe(
        lambda event, _: seen.append(event) if event.type == NotificationType.DELETE_CACHE else None
    )
    return seen


class TestFirstRun:
    def test_scaffolds_without_purging(self, bootstrap, site_dir, pool_factory):
        handle = bootstrap()

        assert handle.decision.reason is PurgeReason.FIRST_RUN
        assert handle.purged is False
        assert handle.cache_dir == site_dir.resolve() / ".cache"
        for sub in ("json", "fragments"):
            assert (handle.cache_dir / sub).is_dir()
        assert (handle.output_dir / "static").is_dir()
        assert (handle.cache_dir / "api-runner-browser.js").is_file()
        assert len(pool_factory.created) == 1
        assert handle.worker_pool is pool_factory.created[0]
        assert pool_factory.created[0].workers >= 1

    def test_persists_baseline_outside_cache(self, bootstrap, site_dir):
        handle = bootstrap()
        record = json.loads((site_dir / ".cache-status.json").read_text(encoding="utf-8"))
        assert record == {"fingerprint": handle.fingerprint, "schema_version": "1"}

    def test_state_receives_structural_notifications(self, bootstrap):
        state = StateStore()
        seen = []
        state.subscribe(lambda event, _: seen.append(event.type))

        handle = bootstrap(state=state)

        assert seen == [
            NotificationType.SET_PROGRAM,
            NotificationType.SET_SITE_CONFIG,
            NotificationType.UPDATE_FINGERPRINT,
            NotificationType.SET_PROGRAM_EXTENSIONS,
        ]
        assert state.get_state().fingerprint == handle.fingerprint
        assert state.get_state().extensions == DEFAULT_EXTENSIONS

    def test_writes_plugin_runners(self, bootstrap):
        handle = bootstrap()
        client = (handle.cache_dir / "api-runner-browser-plugins.js").read_text(encoding="utf-8")
        assert 'require("../plugins/p1/site-browser.js")' in client
        server = (handle.cache_dir / "api-runner-ssr.js").read_text(encoding="utf-8")
        assert server.startswith("var plugins = []\n")


class TestRerun:
    def test_unchanged_inputs_keep_cache(self, bootstrap):
        first = bootstrap()
        marker = first.cache_dir / "json" / "data.json"
        marker.write_text("{}", encoding="utf-8")

        second = bootstrap()

        assert second.decision.reason is PurgeReason.NONE
        assert second.purged is False
        assert second.fingerprint == first.fingerprint
        assert marker.exists()

    def test_plugin_upgrade_purges(self, bootstrap, site_dir):
        first = bootstrap()
        marker = first.cache_dir / "json" / "data.json"
        marker.write_text("{}", encoding="utf-8")
        state = StateStore()
        seen = deletions(state)
        reporter = RecordingReporter()

        second = bootstrap(version="1.1.0", state=state, reporter=reporter)

        assert second.decision.reason is PurgeReason.FINGERPRINT_MISMATCH
        assert second.purged is True
        assert not marker.exists()
        assert [e.cache_is_corrupt for e in seen] == [False]
        assert FINGERPRINT_MISMATCH_MESSAGE in reporter.messages
        record = json.loads((site_dir / ".cache-status.json").read_text(encoding="utf-8"))
        assert record["fingerprint"] == second.fingerprint != first.fingerprint

    def test_upgrade_then_rerun_is_stable(self, bootstrap):
        bootstrap()
        bootstrap(version="1.1.0")
        third = bootstrap(version="1.1.0")
        assert third.decision.reason is PurgeReason.NONE

    def test_sentinel_edit_purges(self, bootstrap, site_dir):
        bootstrap()
        (site_dir / "site-config.js").write_text("module.exports = {}\n", encoding="utf-8")
        assert bootstrap().decision.reason is PurgeReason.FINGERPRINT_MISMATCH

    def test_missing_output_dir_is_corruption(self, bootstrap):
        first = bootstrap()
        shutil.rmtree(first.output_dir)
        state = StateStore()
        seen = deletions(state)
        reporter = RecordingReporter()

        second = bootstrap(state=state, reporter=reporter)

        assert second.decision.reason is PurgeReason.CORRUPT_DIRECTORY
        assert second.purged is True
        assert [e.cache_is_corrupt for e in seen] == [True]
        assert state.get_state().last_cache_was_corrupt is True
        assert CORRUPT_CACHE_MESSAGE in reporter.messages
        assert (second.output_dir / "static").is_dir()

    def test_corruption_wins_over_mismatch(self, bootstrap):
        first = bootstrap()
        shutil.rmtree(first.output_dir)
        assert bootstrap(version="2.0.0").decision.reason is PurgeReason.CORRUPT_DIRECTORY

    def test_fragments_rebuilt_every_run(self, bootstrap):
        first = bootstrap()
        (first.cache_dir / "fragments" / "query.graphql").write_text("{}", encoding="utf-8")
        second = bootstrap()
        assert list((second.cache_dir / "fragments").iterdir()) == []

    def test_injected_status_store(self, bootstrap):
        store = MemoryCacheStatusStore("sha256:" + "0" * 64)
        handle = bootstrap(status_store=store)
        assert handle.decision.reason is PurgeReason.FINGERPRINT_MISMATCH
        assert store.load().last_fingerprint == handle.fingerprint


class TestPhases:
    def test_phase_order_development(self, bootstrap):
        reporter = RecordingReporter()
        lifecycle = RecordingLifecycle()

        bootstrap(reporter=reporter, lifecycle=lifecycle)

        assert reporter.activities == [
            "open and validate site config",
            "onPreInit",
            "initialize cache",
            "copy site files",
            "onPreBootstrap",
            "resolvableExtensions",
        ]
        assert lifecycle.phases == ["onPreInit", "onPreBootstrap", "resolvableExtensions"]

    def test_lifecycle_failure_aborts_before_worker_pool(self, bootstrap, pool_factory):
        lifecycle = RecordingLifecycle(fail_on="onPreBootstrap")
        with pytest.raises(RuntimeError, match="onPreBootstrap"):
            bootstrap(lifecycle=lifecycle)
        assert lifecycle.phases == ["onPreInit", "onPreBootstrap"]
        assert pool_factory.created == []

    def test_extensions_flattened_and_deduplicated(self, bootstrap, site_dir):
        state = StateStore()
        lifecycle = RecordingLifecycle(extensions=[[".md", ".js"], ".mdx", 3])

        bootstrap(
            state=state,
            lifecycle=lifecycle,
            program={"directory": str(site_dir), "extensions": [".ts"]},
        )

        assert state.get_state().extensions == DEFAULT_EXTENSIONS + [".ts", ".md", ".mdx"]

    def test_worker_count_from_settings(self, bootstrap, pool_factory):
        bootstrap(settings=BootstrapSettings(node_env="development", worker_count=3))
        assert pool_factory.created[0].workers == 3


class TestFailures:
    def test_missing_program(self, bootstrap, pool_factory):
        with pytest.raises(MissingProgramArgsError, match="Missing program args"):
            bootstrap(program=None)
        assert pool_factory.created == []

    def test_program_without_directory(self, bootstrap):
        with pytest.raises(MissingProgramArgsError):
            bootstrap(program={"command": "build"})

    def test_function_config_aborts_before_cache_work(self, bootstrap, site_dir):
        with pytest.raises(InvalidSiteConfigError):
            bootstrap(config=lambda: {})
        assert not (site_dir / ".cache").exists()

    def test_missing_template_set(self, bootstrap, tmp_path, pool_factory):
        with pytest.raises(TemplateStagingError):
            bootstrap(template_dir=tmp_path / "no-templates")
        assert pool_factory.created == []

    def test_unreadable_sentinel_is_a_bootstrap_error(self, bootstrap, site_dir, pool_factory):
        (site_dir / "package.json").unlink()
        (site_dir / "package.json").mkdir()
        with pytest.raises(FingerprintError) as excinfo:
            bootstrap()
        assert isinstance(excinfo.value, BootstrapError)
        assert isinstance(excinfo.value.__cause__, OSError)
        assert not (site_dir / ".cache").exists()
        assert pool_factory.created == []

    def test_unwritable_status_record_is_a_bootstrap_error(self, bootstrap, site_dir, pool_factory):
        (site_dir / ".cache-status.json").mkdir()
        with pytest.raises(StatusStoreError) as excinfo:
            bootstrap()
        assert isinstance(excinfo.value.__cause__, OSError)
        assert pool_factory.created == []

    def test_unserializable_plugin_options(self, bootstrap, site_dir, make_plugin, pool_factory):
        plugin = make_plugin(
            resolve=site_dir / "plugins" / "p1", pluginOptions={"root": site_dir}
        )
        with pytest.raises(RunnerTemplateError):
            bootstrap(plugins=[plugin])
        assert pool_factory.created == []


class TestProduction:
    @pytest.fixture
    def published(self, site_dir):
        public = site_dir / "public"
        (public / "static").mkdir(parents=True)
        (public / "page-data").mkdir()
        (public / "blog").mkdir()
        for rel in ("index.html", "styles.css", "blog/post.html", "static/app.css", "page-data/app.html"):
            (public / rel).write_text("x", encoding="utf-8")
        return public

    def test_stale_output_deleted(self, bootstrap, published):
        reporter = RecordingReporter()
        bootstrap(settings=BootstrapSettings(node_env="production"), reporter=reporter)

        assert not (published / "index.html").exists()
        assert not (published / "styles.css").exists()
        assert not (published / "blog" / "post.html").exists()
        assert (published / "static" / "app.css").exists()
        assert (published / "page-data" / "app.html").exists()
        assert reporter.activities[2] == "delete html and css files from previous builds"

    def test_page_build_on_data_changes_keeps_output(self, bootstrap, published):
        settings = BootstrapSettings(node_env="production", page_build_on_data_changes=True)
        reporter = RecordingReporter()
        bootstrap(settings=settings, reporter=reporter)
        assert (published / "index.html").exists()
        assert "delete html and css files from previous builds" not in reporter.activities

    def test_page_build_toggle_changes_fingerprint(self, bootstrap):
        first = bootstrap()
        second = bootstrap(
            settings=BootstrapSettings(node_env="development", page_build_on_data_changes=True)
        )
        assert second.fingerprint != first.fingerprint
        assert second.decision.reason is PurgeReason.FINGERPRINT_MISMATCH


class TestConfigFlags:
    def test_preserve_flag_keeps_subtree(self, bootstrap):
        first = bootstrap()
        webpack = first.cache_dir / "webpack" / "stats.json"
        webpack.parent.mkdir()
        webpack.write_text("{}", encoding="utf-8")
        data = first.cache_dir / "json" / "data.json"
        data.write_text("{}", encoding="utf-8")
        environ = {}

        second = bootstrap(
            version="1.1.0",
            config={"flags": {"PRESERVE_WEBPACK_CACHE": True}},
            environ=environ,
        )

        assert second.purged is True
        assert second.flags.enabled == ["PRESERVE_WEBPACK_CACHE"]
        assert environ == {"BOOTCACHE_PRESERVE_WEBPACK_CACHE": "true"}
        assert webpack.exists()
        assert not data.exists()

    def test_env_override_drops_flag(self, bootstrap):
        first = bootstrap()
        webpack = first.cache_dir / "webpack" / "stats.json"
        webpack.parent.mkdir()
        webpack.write_text("{}", encoding="utf-8")

        second = bootstrap(
            version="1.1.0",
            config={"flags": {"PRESERVE_WEBPACK_CACHE": True}},
            environ={"BOOTCACHE_PRESERVE_WEBPACK_CACHE": "0"},
        )

        assert second.flags.dropped == ["PRESERVE_WEBPACK_CACHE"]
        assert not webpack.exists()


class TestFingerprintSite:
    def test_matches_recorded_fingerprint(self, bootstrap, site_dir, make_plugin, dev_settings):
        config = {"flags": {"PAGE_BUILD_ON_DATA_CHANGES": True}}
        plugins = [make_plugin("p1", "1.0.0", resolve=site_dir / "plugins" / "p1")]
        environ = {}

        expected = fingerprint_site(
            {"directory": str(site_dir)}, config, plugins, settings=dev_settings, environ=environ
        )

        assert environ == {}
        assert not (site_dir / ".cache").exists()
        assert bootstrap(config=config).fingerprint == expected
        assert bootstrap().fingerprint != expected
