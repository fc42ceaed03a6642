"""Root site config validation and config-flag resolution.

Flags enabled in the site config are mapped onto environment variables, so
that ``BootstrapSettings`` sees a single source of truth. An environment
variable always wins over a conflicting config flag; the flag is dropped
with a warning.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, MutableMapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bootcache.errors import InvalidSiteConfigError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigFlag:
    name: str
    env: str
    description: str


AVAILABLE_FLAGS: Dict[str, ConfigFlag] = {
    flag.name: flag
    for flag in (
        ConfigFlag(
            "PRESERVE_FILE_DOWNLOAD_CACHE",
            "BOOTCACHE_PRESERVE_FILE_DOWNLOAD_CACHE",
            "Keep downloaded remote files when the cache is purged",
        ),
        ConfigFlag(
            "PRESERVE_WEBPACK_CACHE",
            "BOOTCACHE_PRESERVE_WEBPACK_CACHE",
            "Keep the bundler cache when the cache is purged",
        ),
        ConfigFlag(
            "PAGE_BUILD_ON_DATA_CHANGES",
            "BOOTCACHE_PAGE_BUILD_ON_DATA_CHANGES",
            "Only rebuild pages whose data changed",
        ),
        ConfigFlag(
            "FAST_REFRESH",
            "BOOTCACHE_FAST_REFRESH",
            "Use fast-refresh as the hot loader",
        ),
    )
}

HOT_LOADER_ENV = "BOOTCACHE_HOT_LOADER"
FAST_REFRESH_LOADER = "fast-refresh"
DISABLED_VALUES = ("", "0", "false", "no", "off")

DEPRECATED_THEMES_WARNING = (
    'The site config key "__experimentalThemes" has been deprecated. '
    'Please use the "plugins" key instead.'
)
DEPRECATED_POLYFILL_WARNING = (
    "Support for custom Promise polyfills has been removed; "
    'the "polyfill" key is ignored.'
)


class SiteConfig(BaseModel):
    """Root site config, as resolved by the external config/theme loader."""
    plugins: List[Any] = Field(default_factory=list)
    flags: Dict[str, bool] = Field(default_factory=dict)
    site_metadata: Dict[str, Any] = Field(default_factory=dict, alias="siteMetadata")
    experimental_themes: Optional[List[Any]] = Field(None, alias="__experimentalThemes")
    polyfill: Optional[Any] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


@dataclass
class FlagResolution:
    """Outcome of mapping config flags onto the environment."""
    enabled: List[str] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)
    unknown: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def load_site_config(raw: Any) -> SiteConfig:
    """Validate the root site config.

    Raises:
        InvalidSiteConfigError: If the config is a function or malformed
    """
    if raw is None:
        return SiteConfig()
    if callable(raw):
        raise InvalidSiteConfigError(
            "The root site config cannot be exported as a function; only theme configs can"
        )
    if isinstance(raw, SiteConfig):
        return raw
    if not isinstance(raw, dict):
        raise InvalidSiteConfigError(
            f"The root site config must be an object, got {type(raw).__name__}"
        )
    try:
        return SiteConfig.model_validate(raw)
    except ValidationError as e:
        raise InvalidSiteConfigError(f"Invalid site config: {e}") from e


def resolve_flags(config: SiteConfig, environ: MutableMapping[str, str]) -> FlagResolution:
    """Apply enabled config flags to ``environ`` and collect warnings.

    Args:
        config: Validated site config
        environ: Environment mapping to update (usually ``os.environ``)

    Returns:
        FlagResolution; warnings are also logged
    """
    result = FlagResolution()

    if config.experimental_themes is not None:
        result.warnings.append(DEPRECATED_THEMES_WARNING)
    if config.polyfill is not None:
        result.warnings.append(DEPRECATED_POLYFILL_WARNING)

    flags = dict(config.flags)
    hot_loader = environ.get(HOT_LOADER_ENV)
    if flags.get("FAST_REFRESH") and hot_loader and hot_loader != FAST_REFRESH_LOADER:
        del flags["FAST_REFRESH"]
        result.dropped.append("FAST_REFRESH")
        result.warnings.append(
            f'Both the FAST_REFRESH config flag and the {HOT_LOADER_ENV} environment variable '
            f'are set, with conflicting values ("{hot_loader}"). Using "{hot_loader}". '
            f'To use fast refresh, unset {HOT_LOADER_ENV} or set it to "{FAST_REFRESH_LOADER}".'
        )

    for name in sorted(flags):
        flag = AVAILABLE_FLAGS.get(name)
        if flag is None:
            result.unknown.append(name)
            continue
        if not flags[name]:
            continue
        current = environ.get(flag.env)
        if current is not None and current.strip().lower() in DISABLED_VALUES:
            result.dropped.append(name)
            result.warnings.append(
                f'The {name} config flag is overridden by {flag.env}="{current}".'
            )
            continue
        environ[flag.env] = "true"
        result.enabled.append(name)

    if "FAST_REFRESH" in result.enabled and not hot_loader:
        environ[HOT_LOADER_ENV] = FAST_REFRESH_LOADER

    if result.unknown:
        known = ", ".join(sorted(AVAILABLE_FLAGS))
        result.warnings.append(
            f"The following flags are not supported: {', '.join(result.unknown)}. "
            f"Supported flags: {known}"
        )

    for message in result.warnings:
        logger.warning(message)
    if result.enabled:
        logger.info("Enabled config flags: %s", ", ".join(result.enabled))
    return result
