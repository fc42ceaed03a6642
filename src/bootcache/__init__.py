"""bootcache: build bootstrap and cache-invalidation orchestrator."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("bootcache")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from bootcache.api import initialize, fingerprint_site, BootstrapHandle
from bootcache.codes import HookContext, NotificationType, PurgeReason
from bootcache.contracts import CacheDecision, CacheStatus, HookBinding, PluginRecord, Program
from bootcache.errors import BootstrapError
from bootcache.fingerprint import compute_fingerprint

__all__ = [
    "__version__",
    "initialize",
    "compute_fingerprint",
    "fingerprint_site",
    "BootstrapHandle",
    "BootstrapError",
    "CacheDecision",
    "CacheStatus",
    "HookBinding",
    "HookContext",
    "NotificationType",
    "PluginRecord",
    "Program",
    "PurgeReason",
]
