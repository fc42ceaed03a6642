"""Sentinel file hashing (internal)."""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Union

from bootcache.kernel.hash_utils import hash_bytes


MAX_HASH_WORKERS = 4


def hash_sentinel_file(path: Union[str, Path]) -> Optional[str]:
    """Hash one sentinel file, returning None when it does not exist.

    Only a missing file is tolerated; any other read error propagates.
    """
    try:
        data = Path(path).read_bytes()
    except FileNotFoundError:
        return None
    return hash_bytes(data)


def hash_sentinel_files(paths: Sequence[Union[str, Path]]) -> List[Optional[str]]:
    """Hash sentinel files as one bounded concurrent batch.

    Results are returned by input position, independent of completion order.
    """
    if not paths:
        return []
    workers = min(MAX_HASH_WORKERS, len(paths))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bootcache-hash") as pool:
        return list(pool.map(hash_sentinel_file, paths))
