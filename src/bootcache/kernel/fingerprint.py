"""Fingerprint combination over plugin versions and sentinel digests.

The kernel never touches the filesystem: sentinel files are hashed by the
caller (see ``bootcache.fingerprint``) and handed in as digests, with
``None`` standing in for a file that does not exist.
"""

from typing import Any, List, Optional, Sequence, Tuple

from .hash_utils import hash_canonical


PluginVersion = Tuple[str, str]


def _plugin_pairs(plugin_versions: Sequence[PluginVersion]) -> List[List[str]]:
    pairs = []
    for entry in plugin_versions:
        name, version = entry
        pairs.append([str(name), str(version)])
    return pairs


def combine_fingerprint(
    plugin_versions: Sequence[PluginVersion],
    sentinel_digests: Sequence[Optional[str]],
    salts: Sequence[Any] = (),
) -> str:
    """Combine ordered inputs into a single fingerprint.

    Order is significant on every input: the caller fixes it so that equal
    fingerprints mean equal content, not equal ordering.

    Args:
        plugin_versions: Ordered (name, version) pairs
        sentinel_digests: One digest per sentinel file, None if the file is absent
        salts: JSON scalars folded into the digest (e.g. mode toggles)

    Returns:
        Fingerprint string (prefixed with "sha256:")
    """
    payload = {
        "plugins": _plugin_pairs(plugin_versions),
        "sentinels": list(sentinel_digests),
        "salts": list(salts),
    }
    return hash_canonical(payload)
