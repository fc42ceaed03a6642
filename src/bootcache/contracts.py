"""Public data models for the bootcache package."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from bootcache.codes import HookContext, PurgeReason


DEFAULT_EXTENSIONS = [".mjs", ".js", ".jsx", ".wasm", ".json"]


class PluginRecord(BaseModel):
    """A resolved plugin, as produced by the external plugin loader.

    Read-only input. Field aliases match the loader's camel-case output so a
    loader dump can be validated directly.
    """
    name: str
    version: str
    resolve: str  # Resolved plugin directory
    node_apis: List[str] = Field(default_factory=list, alias="nodeAPIs")
    browser_apis: List[str] = Field(default_factory=list, alias="browserAPIs")
    ssr_apis: List[str] = Field(default_factory=list, alias="ssrAPIs")
    plugin_options: Dict[str, Any] = Field(default_factory=dict, alias="pluginOptions")
    skip_ssr: bool = Field(False, alias="skipSSR")  # Loader override for single-owner SSR hooks

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def declared_hooks(self, context: HookContext) -> List[str]:
        """Hook names this plugin declares for an execution context."""
        if context is HookContext.SERVER:
            return list(self.ssr_apis)
        return list(self.browser_apis)


class Program(BaseModel):
    """Resolved program arguments for one bootstrap invocation."""
    directory: str
    command: str = "develop"  # "develop" | "build"
    cache_dir_name: str = ".cache"
    output_dir_name: str = "public"
    status_file_name: str = ".cache-status.json"
    sentinel_files: List[str] = Field(
        default_factory=lambda: ["package.json", "site-config.js", "site-node.js"]
    )
    extensions: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")


class CacheStatus(BaseModel):
    """Last-known cache baseline. ``corrupted`` is never persisted."""
    last_fingerprint: Optional[str] = None
    corrupted: bool = False


class CacheDecision(BaseModel):
    """Purge decision, recomputed every run."""
    purge: bool
    reason: PurgeReason
    corrupted: bool = False

    model_config = ConfigDict(frozen=True)


class HookBinding(BaseModel):
    """One generated dispatch-table entry for a plugin in one context."""
    context: HookContext
    resolve: str  # Module path the generated artifact loads
    options: Dict[str, Any] = Field(default_factory=dict)
    plugin_name: str = ""

    model_config = ConfigDict(frozen=True)
