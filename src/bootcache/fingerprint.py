"""Fingerprint Engine: digest over plugin versions and sentinel file contents."""

from pathlib import Path
from typing import Any, List, Sequence, Tuple, Union

from bootcache._internal.io.sentinels import hash_sentinel_files
from bootcache.contracts import PluginRecord, Program
from bootcache.errors import FingerprintError
from bootcache.kernel.fingerprint import combine_fingerprint


def compute_fingerprint(
    plugin_versions: Sequence[Tuple[str, str]],
    sentinel_files: Sequence[Union[str, Path]],
    salts: Sequence[Any] = (),
) -> str:
    """Compute the fingerprint of a project's dependency and config surface.

    Sentinel files that do not exist count as absent inputs, not errors.

    Args:
        plugin_versions: Ordered (name, version) pairs
        sentinel_files: Ordered sentinel file paths
        salts: Extra JSON scalars folded into the digest

    Returns:
        Fingerprint string (prefixed with "sha256:")

    Raises:
        FingerprintError: If a sentinel file exists but cannot be read
    """
    try:
        digests = hash_sentinel_files(sentinel_files)
    except OSError as e:
        raise FingerprintError(f"Failed to read sentinel file: {e}") from e
    return combine_fingerprint(plugin_versions, digests, salts)


def plugin_versions(plugins: Sequence[PluginRecord]) -> List[Tuple[str, str]]:
    """(name, version) pairs in resolved plugin-list order."""
    return [(plugin.name, plugin.version) for plugin in plugins]


def sentinel_paths(program: Program) -> List[Path]:
    """Sentinel files of a program, resolved against its site directory."""
    site_dir = Path(program.directory)
    return [site_dir / name for name in program.sentinel_files]


def fingerprint_for(
    program: Program,
    plugins: Sequence[PluginRecord],
    salts: Sequence[Any] = (),
) -> str:
    """Fingerprint for a program and its resolved plugin list."""
    return compute_fingerprint(plugin_versions(plugins), sentinel_paths(program), salts)
