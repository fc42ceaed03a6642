"""Code constants for bootcache decisions, hook contexts and notifications.

These constants prevent stringly-typed codes and ensure client code
uses the same values the orchestrator emits.
"""

from enum import Enum


class PurgeReason(str, Enum):
    """Why the cache directory was (or was not) purged."""

    FIRST_RUN = "first-run"
    FINGERPRINT_MISMATCH = "fingerprint-mismatch"
    CORRUPT_DIRECTORY = "corrupt-directory"
    NONE = "none"


class HookContext(str, Enum):
    """Execution context a plugin hook file is dispatched in."""

    SERVER = "server-side"
    CLIENT = "client-side"


class NotificationType(str, Enum):
    """Structural notifications broadcast to state holders."""

    SET_PROGRAM = "SET_PROGRAM"
    SET_SITE_CONFIG = "SET_SITE_CONFIG"
    DELETE_CACHE = "DELETE_CACHE"
    UPDATE_FINGERPRINT = "UPDATE_FINGERPRINT"
    SET_PROGRAM_EXTENSIONS = "SET_PROGRAM_EXTENSIONS"
