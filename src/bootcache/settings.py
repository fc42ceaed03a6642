"""Bootstrap settings: environment toggles via pydantic-settings.

Invariants:
    - Toggles are read from the environment, never from the site config
      directly (config flags are mapped onto env vars first, see site_config)
    - get_settings() is cached; call get_settings.cache_clear() after
      changing the environment
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


FILE_DOWNLOAD_CACHE_SUBTREE = "caches/source-filesystem"
WEBPACK_CACHE_SUBTREE = "webpack"


class BootstrapSettings(BaseSettings):
    """Environment toggles consumed during bootstrap."""

    model_config = SettingsConfigDict(
        env_prefix="BOOTCACHE_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Execution mode; "production" enables stale output deletion
    node_env: str = Field(
        "development", validation_alias=AliasChoices("NODE_ENV", "BOOTCACHE_NODE_ENV")
    )

    # Selective purge
    preserve_file_download_cache: bool = False
    preserve_webpack_cache: bool = False

    # Disables stale output deletion and salts the fingerprint
    page_build_on_data_changes: bool = False

    worker_count: Optional[int] = None

    # Observability
    log_level: str = "INFO"
    log_format: str = "text"

    @field_validator(
        "preserve_file_download_cache",
        "preserve_webpack_cache",
        "page_build_on_data_changes",
        mode="before",
    )
    @classmethod
    def empty_string_is_false(cls, v):
        """An exported-but-empty variable counts as unset."""
        if isinstance(v, str) and v.strip() == "":
            return False
        return v

    @property
    def is_production(self) -> bool:
        return self.node_env.strip().lower() == "production"

    def preserve_paths(self) -> List[str]:
        """Cache subtrees kept by a purge, in a fixed order."""
        paths = []
        if self.preserve_file_download_cache:
            paths.append(FILE_DOWNLOAD_CACHE_SUBTREE)
        if self.preserve_webpack_cache:
            paths.append(WEBPACK_CACHE_SUBTREE)
        return paths

    def should_delete_stale_output(self) -> bool:
        return self.is_production and not self.page_build_on_data_changes


@lru_cache
def get_settings() -> BootstrapSettings:
    return BootstrapSettings()
