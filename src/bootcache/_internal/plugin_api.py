"""Plugin API Materializer: writes the generated dispatch artifacts.

Runs after the template set has been staged, since the server-side artifact
is the staged runner template with the plugin array prepended.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

from bootcache.codes import HookContext
from bootcache.contracts import HookBinding, PluginRecord
from bootcache.errors import RunnerTemplateError
from bootcache.kernel.dispatch_table import slash, table_for


logger = logging.getLogger(__name__)

ENTRY_EXTENSIONS = (".js", ".mjs", ".cjs", ".jsx", ".ts", ".tsx")


def resolve_entry_file(plugin_dir: str, stem: str) -> Optional[str]:
    """Resolve ``<plugin_dir>/<stem>`` the way a module loader would.

    Tries the known extensions, then ``<stem>/index.*``. Returns None when
    nothing resolves; an unresolvable entry file is not an error.
    """
    root = Path(plugin_dir)
    candidates = [root / (stem + ext) for ext in ENTRY_EXTENSIONS]
    candidates.extend(root / stem / ("index" + ext) for ext in ENTRY_EXTENSIONS)
    for candidate in candidates:
        try:
            if candidate.is_file():
                return slash(str(candidate))
        except OSError:
            continue
    return None


@dataclass
class MaterializedApi:
    """Bindings and artifact paths written by ``materialize``."""
    client_bindings: List[HookBinding] = field(default_factory=list)
    server_bindings: List[HookBinding] = field(default_factory=list)
    client_artifact: Optional[Path] = None
    server_artifact: Optional[Path] = None

    def bindings(self, context: HookContext) -> List[HookBinding]:
        if HookContext(context) is HookContext.SERVER:
            return self.server_bindings
        return self.client_bindings


def materialize(
    plugins: Sequence[PluginRecord],
    site_dir: Union[str, Path],
    resolver=resolve_entry_file,
) -> MaterializedApi:
    """Write the client dispatch table and the server runner for ``plugins``.

    Args:
        plugins: Resolved plugins, in load order
        site_dir: Directory holding the staged templates (the cache directory)
        resolver: Entry-file resolver (plugin_dir, stem) -> path or None

    Returns:
        MaterializedApi with the bindings written per context

    Raises:
        RunnerTemplateError: If the server runner template cannot be read or written,
            or plugin options cannot be serialized
    """
    site_path = Path(site_dir)
    client_table = table_for(HookContext.CLIENT)
    server_table = table_for(HookContext.SERVER)

    client_bindings = client_table.bindings(plugins, resolver)
    server_bindings = server_table.bindings(plugins, resolver)

    server_artifact = site_path / server_table.artifact_name
    try:
        template = server_artifact.read_text(encoding="utf-8")
    except OSError as e:
        raise RunnerTemplateError(f"Failed to read {server_artifact}: {e}") from e

    client_artifact = site_path / client_table.artifact_name
    try:
        client_source = client_table.render(client_bindings, slash(str(site_path)))
        server_source = server_table.inject(
            server_table.render(server_bindings, slash(str(site_path))), template
        )
    except (TypeError, ValueError) as e:
        raise RunnerTemplateError(f"Plugin options are not JSON-serializable: {e}") from e

    try:
        client_artifact.write_text(client_source, encoding="utf-8")
        server_artifact.write_text(server_source, encoding="utf-8")
    except OSError as e:
        raise RunnerTemplateError(f"Failed to write plugin runners in {site_path}: {e}") from e

    logger.debug(
        "Materialized %d client and %d server plugin bindings",
        len(client_bindings),
        len(server_bindings),
    )
    return MaterializedApi(
        client_bindings=client_bindings,
        server_bindings=server_bindings,
        client_artifact=client_artifact,
        server_artifact=server_artifact,
    )
