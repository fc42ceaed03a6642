"""Public API for the bootcache package.

``initialize`` is the single entry point external callers invoke. It runs
the bootstrap phases strictly in order; there is no rollback across phases,
so a failure leaves earlier effects in place and a fresh invocation re-runs
the whole (idempotent) sequence.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, MutableMapping, Optional, Sequence, Union

from pydantic import ValidationError

from bootcache._internal.cache_dir import (
    apply_decision,
    decide,
    delete_stale_output,
    scaffold,
    stage_templates,
)
from bootcache._internal.lifecycle import (
    LifecycleContext,
    LoggingReporter,
    NullLifecycle,
    PluginLifecycle,
    Reporter,
    flatten,
)
from bootcache._internal.plugin_api import MaterializedApi, materialize
from bootcache._internal.state import (
    SetProgram,
    SetProgramExtensions,
    SetSiteConfig,
    StateStore,
    UpdateFingerprint,
)
from bootcache._internal.status_store import CacheStatusStore, JsonCacheStatusStore
from bootcache._internal.worker_pool import create_worker_pool, default_worker_count
from bootcache.codes import PurgeReason
from bootcache.contracts import DEFAULT_EXTENSIONS, CacheDecision, PluginRecord, Program
from bootcache.errors import MissingProgramArgsError
from bootcache.fingerprint import fingerprint_for
from bootcache.settings import BootstrapSettings
from bootcache.site_config import FlagResolution, load_site_config, resolve_flags


logger = logging.getLogger(__name__)

# Config flags that map onto BootstrapSettings fields
FLAG_SETTINGS = {
    "PRESERVE_FILE_DOWNLOAD_CACHE": "preserve_file_download_cache",
    "PRESERVE_WEBPACK_CACHE": "preserve_webpack_cache",
    "PAGE_BUILD_ON_DATA_CHANGES": "page_build_on_data_changes",
}

FINGERPRINT_MISMATCH_MESSAGE = (
    "One or more of your plugins have changed since the last time you ran a build. "
    "As a precaution, the site's cache is being deleted to ensure there's no stale data."
)
CORRUPT_CACHE_MESSAGE = (
    "The cache is incomplete (the cache directory exists but the output directory "
    "does not). As a precaution, the site's cache is being deleted to ensure there's "
    "no stale data."
)


@dataclass
class BootstrapHandle:
    """Fully initialized state returned by ``initialize``."""
    state: StateStore
    worker_pool: Any
    program: Program
    fingerprint: str
    decision: CacheDecision
    purged: bool
    materialized: MaterializedApi
    flags: FlagResolution = field(default_factory=FlagResolution)

    @property
    def cache_dir(self) -> Path:
        return cache_dir_for(self.program)

    @property
    def output_dir(self) -> Path:
        return output_dir_for(self.program)


def cache_dir_for(program: Program) -> Path:
    return Path(program.directory) / program.cache_dir_name


def output_dir_for(program: Program) -> Path:
    return Path(program.directory) / program.output_dir_name


def _load_program(program: Union[Program, Dict[str, Any], None]) -> Program:
    if program is None:
        raise MissingProgramArgsError("Missing program args")
    if isinstance(program, Program):
        resolved = program
    else:
        try:
            resolved = Program.model_validate(program)
        except ValidationError as e:
            raise MissingProgramArgsError(f"Invalid program args: {e}") from e
    if not resolved.directory:
        raise MissingProgramArgsError("Missing program args: directory")
    directory = Path(resolved.directory).resolve()
    return resolved.model_copy(update={"directory": str(directory)})


def _load_plugins(plugins: Sequence[Union[PluginRecord, Dict[str, Any]]]) -> List[PluginRecord]:
    return [p if isinstance(p, PluginRecord) else PluginRecord.model_validate(p) for p in plugins]


def _settings_with_flags(settings: BootstrapSettings, flags: FlagResolution) -> BootstrapSettings:
    updates = {FLAG_SETTINGS[name]: True for name in flags.enabled if name in FLAG_SETTINGS}
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _fingerprint_salts(settings: BootstrapSettings) -> List[Any]:
    return [settings.page_build_on_data_changes]


def _unique(values: List[Any]) -> List[str]:
    seen = set()
    out = []
    for value in values:
        if not isinstance(value, str) or value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


def initialize(
    program: Union[Program, Dict[str, Any], None],
    config: Any = None,
    plugins: Sequence[Union[PluginRecord, Dict[str, Any]]] = (),
    *,
    state: Optional[StateStore] = None,
    status_store: Optional[CacheStatusStore] = None,
    lifecycle: Optional[PluginLifecycle] = None,
    reporter: Optional[Reporter] = None,
    settings: Optional[BootstrapSettings] = None,
    environ: Optional[MutableMapping[str, str]] = None,
    worker_pool_factory: Optional[Callable[[int], Any]] = None,
    template_dir: Optional[Union[str, Path]] = None,
) -> BootstrapHandle:
    """Run the bootstrap sequence and return the initialized state handle.

    Args:
        program: Resolved program args (needs at least ``directory``)
        config: Resolved root site config (dict)
        plugins: Resolved plugin list, in load order
        state: State store receiving structural notifications
        status_store: Persisted fingerprint baseline (defaults to a JSON file in the site dir)
        lifecycle: Plugin lifecycle dispatcher
        reporter: Phase timing / message sink
        settings: Environment toggles (read from the environment if omitted)
        environ: Environment mapping config flags are written to (defaults to os.environ)
        worker_pool_factory: Callable creating the worker pool from a worker count
        template_dir: Override for the staged template set

    Returns:
        BootstrapHandle

    Raises:
        BootstrapError: On any fatal phase failure
    """
    reporter = reporter or LoggingReporter()
    lifecycle = lifecycle or NullLifecycle()
    state = state or StateStore()
    environ = os.environ if environ is None else environ

    # 1. Program and config
    with reporter.activity("open and validate site config"):
        program = _load_program(program)
        site_config = load_site_config(config)
        flags = resolve_flags(site_config, environ)
        settings = _settings_with_flags(settings or BootstrapSettings(), flags)
        resolved_plugins = _load_plugins(plugins)
        state.dispatch(SetProgram(program=program))
        state.dispatch(SetSiteConfig(config=site_config.model_dump(by_alias=True, exclude_none=True)))

    cache_dir = cache_dir_for(program)
    output_dir = output_dir_for(program)
    if status_store is None:
        status_store = JsonCacheStatusStore(Path(program.directory) / program.status_file_name)

    def context(phase: str) -> LifecycleContext:
        return LifecycleContext(phase=phase, program=program, state=state)

    # 2. onPreInit
    with reporter.activity("onPreInit"):
        lifecycle.on_pre_init(context("onPreInit"))

    # 3. Stale production output
    if settings.should_delete_stale_output():
        with reporter.activity("delete html and css files from previous builds"):
            removed = delete_stale_output(output_dir)
            logger.debug("Deleted %d stale output files", removed)

    # 4. Cache decision and scaffolding
    with reporter.activity("initialize cache"):
        fingerprint = fingerprint_for(program, resolved_plugins, salts=_fingerprint_salts(settings))
        status = status_store.load()
        decision = decide(status, fingerprint, cache_dir, output_dir)

        if decision.reason is PurgeReason.CORRUPT_DIRECTORY:
            reporter.info(CORRUPT_CACHE_MESSAGE)
        elif decision.reason is PurgeReason.FINGERPRINT_MISMATCH:
            reporter.info(FINGERPRINT_MISMATCH_MESSAGE)

        purged = apply_decision(decision, cache_dir, settings.preserve_paths(), state)
        status_store.save(fingerprint)
        state.dispatch(UpdateFingerprint(fingerprint=fingerprint))
        scaffold(cache_dir, output_dir)

    # 5-6. Templates and plugin runners
    with reporter.activity("copy site files"):
        stage_templates(cache_dir, template_dir)
        materialized = materialize(resolved_plugins, cache_dir)

    # 7. onPreBootstrap
    with reporter.activity("onPreBootstrap"):
        lifecycle.on_pre_bootstrap(context("onPreBootstrap"))

    # 8. Resolvable extensions
    with reporter.activity("resolvableExtensions"):
        contributed = lifecycle.resolvable_extensions(context("resolvableExtensions"))
        extensions = _unique(flatten([DEFAULT_EXTENSIONS, program.extensions, contributed or []]))
        state.dispatch(SetProgramExtensions(extensions=extensions))

    # 9. Worker pool
    factory = worker_pool_factory or create_worker_pool
    worker_count = settings.worker_count or default_worker_count()
    worker_pool = factory(worker_count)

    logger.info(
        "Bootstrap initialized (purge=%s, reason=%s)", decision.purge, decision.reason.value
    )
    return BootstrapHandle(
        state=state,
        worker_pool=worker_pool,
        program=program,
        fingerprint=fingerprint,
        decision=decision,
        purged=purged,
        materialized=materialized,
        flags=flags,
    )


def fingerprint_site(
    program: Union[Program, Dict[str, Any], None],
    config: Any = None,
    plugins: Sequence[Union[PluginRecord, Dict[str, Any]]] = (),
    *,
    settings: Optional[BootstrapSettings] = None,
    environ: Optional[MutableMapping[str, str]] = None,
) -> str:
    """Fingerprint a site exactly as ``initialize`` would record it.

    Nothing is written: config flags are resolved against a copy of
    ``environ`` and no cache or status file is touched.

    Raises:
        BootstrapError: If the program or config is invalid, or a sentinel
            file cannot be read
    """
    program = _load_program(program)
    scratch_env = dict(os.environ if environ is None else environ)
    flags = resolve_flags(load_site_config(config), scratch_env)
    settings = _settings_with_flags(settings or BootstrapSettings(), flags)
    return fingerprint_for(program, _load_plugins(plugins), salts=_fingerprint_salts(settings))
