"""Cache State Store: the persisted fingerprint baseline.

The record lives outside the cache directory so that a purge never deletes
the baseline it is compared against. Writes go to a temporary file in the
same directory and are moved into place with ``os.replace``.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol, Union

from bootcache.contracts import CacheStatus
from bootcache.errors import StatusStoreError
from bootcache.kernel.hash_utils import canonical_dumps, is_digest


logger = logging.getLogger(__name__)

STATUS_SCHEMA_VERSION = "1"


class CacheStatusStore(Protocol):
    def load(self) -> CacheStatus:
        ...

    def save(self, fingerprint: str) -> None:
        ...


class MemoryCacheStatusStore:
    """Status store kept in memory (embedding, tests)."""

    def __init__(self, fingerprint: Optional[str] = None):
        self._fingerprint = fingerprint

    def load(self) -> CacheStatus:
        return CacheStatus(last_fingerprint=self._fingerprint)

    def save(self, fingerprint: str) -> None:
        self._fingerprint = fingerprint


class JsonCacheStatusStore:
    """Status store persisted as a small canonical JSON document."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> CacheStatus:
        """Load the last baseline.

        A missing record is a first run. A record that cannot be read or
        parsed is treated the same way: it cannot be trusted as a baseline.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return CacheStatus()
        except OSError as e:
            logger.warning("Could not read cache status %s (%s); treating as first run", self.path, e)
            return CacheStatus()

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Malformed cache status %s (%s); treating as first run", self.path, e)
            return CacheStatus()

        fingerprint = data.get("fingerprint") if isinstance(data, dict) else None
        if not is_digest(fingerprint):
            logger.warning("Cache status %s has no usable fingerprint; treating as first run", self.path)
            return CacheStatus()
        return CacheStatus(last_fingerprint=fingerprint)

    def save(self, fingerprint: str) -> None:
        """Overwrite the baseline unconditionally.

        Raises:
            StatusStoreError: If the record cannot be written
        """
        try:
            self._write(fingerprint)
        except OSError as e:
            raise StatusStoreError(f"Failed to write cache status {self.path}: {e}") from e

    def _write(self, fingerprint: str) -> None:
        record = {"schema_version": STATUS_SCHEMA_VERSION, "fingerprint": fingerprint}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=self.path.name + ".", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(canonical_dumps(record))
                f.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
