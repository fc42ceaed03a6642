"""Purge policy: pure decision from the stored baseline and directory health."""

from typing import Optional

from bootcache.codes import PurgeReason
from bootcache.contracts import CacheDecision, CacheStatus


def decide_purge(
    status: CacheStatus,
    current_fingerprint: str,
    corrupted: Optional[bool] = None,
) -> CacheDecision:
    """Decide whether the cache directory must be purged.

    Corruption and a fingerprint mismatch are each sufficient on their own.
    When both hold, the corruption reason is reported; the resulting purge is
    the same either way.

    Args:
        status: Stored baseline from the cache status store
        current_fingerprint: Fingerprint computed for this run
        corrupted: Directory health result; defaults to ``status.corrupted``

    Returns:
        CacheDecision
    """
    if corrupted is None:
        corrupted = status.corrupted

    if corrupted:
        return CacheDecision(purge=True, reason=PurgeReason.CORRUPT_DIRECTORY, corrupted=True)

    previous = status.last_fingerprint
    if previous is None:
        return CacheDecision(purge=False, reason=PurgeReason.FIRST_RUN)
    if previous != current_fingerprint:
        return CacheDecision(purge=True, reason=PurgeReason.FINGERPRINT_MISMATCH)
    return CacheDecision(purge=False, reason=PurgeReason.NONE)
