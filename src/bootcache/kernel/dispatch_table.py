"""Dispatch tables: which plugins contribute hook files to each execution context.

Each ``HookContext`` has its own table class deciding whether a plugin
contributes, and how the generated artifact is rendered. The kernel does not
touch the filesystem; entry-file resolution is delegated to a resolver
callable supplied by the caller.
"""

import json
import posixpath
from typing import Callable, Dict, List, Optional, Sequence, Type

from bootcache.codes import HookContext
from bootcache.contracts import HookBinding, PluginRecord


# (plugin_dir, entry_stem) -> resolved file path, or None if nothing resolves
EntryResolver = Callable[[str, str], Optional[str]]


def slash(path: str) -> str:
    """Convert Windows separators to forward slashes."""
    return path.replace("\\", "/")


def _options_json(options: Dict) -> str:
    # Sorted keys, compact separators; floats are allowed here, unlike in fingerprints
    return json.dumps(options, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _render_entries(bindings: Sequence[HookBinding], module_path: Callable[[str], str]) -> str:
    if not bindings:
        return "[]"
    lines = ["["]
    for binding in bindings:
        lines.append("  {")
        lines.append(f"    plugin: require({json.dumps(module_path(binding.resolve))}),")
        lines.append(f"    options: {_options_json(binding.options)},")
        lines.append("  },")
    lines.append("]")
    return "\n".join(lines)


class DispatchTable:
    """Base class for per-context dispatch tables."""

    context: HookContext
    entry_stem: str
    artifact_name: str

    def binding_for(self, plugin: PluginRecord, resolver: EntryResolver) -> Optional[HookBinding]:
        raise NotImplementedError

    def bindings(self, plugins: Sequence[PluginRecord], resolver: EntryResolver) -> List[HookBinding]:
        """Bindings in plugin-list order, skipping plugins without a contribution."""
        result = []
        for plugin in plugins:
            binding = self.binding_for(plugin, resolver)
            if binding is not None:
                result.append(binding)
        return result

    def render(self, bindings: Sequence[HookBinding], artifact_dir: str) -> str:
        raise NotImplementedError

    def _binding(self, plugin: PluginRecord, resolve: str) -> HookBinding:
        return HookBinding(
            context=self.context,
            resolve=slash(resolve),
            options=dict(plugin.plugin_options),
            plugin_name=plugin.name,
        )

    def _conventional_path(self, plugin: PluginRecord) -> str:
        return posixpath.join(slash(plugin.resolve), self.entry_stem)


class ClientDispatchTable(DispatchTable):
    """Client-side table, loaded directly by the bundler.

    A plugin's client entry file is always included when it resolves, even
    without declared hooks: such files commonly exist only for their global
    side effects (styles, polyfills).
    """

    context = HookContext.CLIENT
    entry_stem = "site-browser"
    artifact_name = "api-runner-browser-plugins.js"

    def binding_for(self, plugin: PluginRecord, resolver: EntryResolver) -> Optional[HookBinding]:
        resolved = resolver(plugin.resolve, self.entry_stem)
        if resolved:
            return self._binding(plugin, resolved)
        if plugin.declared_hooks(self.context):
            return self._binding(plugin, self._conventional_path(plugin))
        return None

    def render(self, bindings: Sequence[HookBinding], artifact_dir: str) -> str:
        # Paths relative to the artifact directory, forward slashes only
        base = slash(artifact_dir)

        def module_path(resolve: str) -> str:
            relative = posixpath.relpath(resolve, base)
            if not relative.startswith("."):
                relative = "./" + relative
            return relative

        return f"module.exports = {_render_entries(bindings, module_path)}\n"


class ServerDispatchTable(DispatchTable):
    """Server-side table, injected ahead of the staged runner template."""

    context = HookContext.SERVER
    entry_stem = "site-ssr"
    artifact_name = "api-runner-ssr.js"

    def binding_for(self, plugin: PluginRecord, resolver: EntryResolver) -> Optional[HookBinding]:
        # The loader disables SSR for a plugin when several implement a single-owner hook
        if plugin.skip_ssr:
            return None
        if plugin.declared_hooks(self.context):
            return self._binding(plugin, self._conventional_path(plugin))
        return None

    def render(self, bindings: Sequence[HookBinding], artifact_dir: str) -> str:
        return f"var plugins = {_render_entries(bindings, lambda resolve: resolve)}\n"

    def inject(self, rendered: str, template: str) -> str:
        """Prefix the runner template with the rendered plugin array."""
        return rendered + template


DISPATCH_TABLES: Dict[HookContext, Type[DispatchTable]] = {
    HookContext.CLIENT: ClientDispatchTable,
    HookContext.SERVER: ServerDispatchTable,
}


def table_for(context: HookContext) -> DispatchTable:
    """Instantiate the dispatch table for an execution context."""
    return DISPATCH_TABLES[HookContext(context)]()
