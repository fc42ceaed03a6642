"""Cache Directory Manager: health checks, purge, scaffolding and staging.

Filesystem failures here are fatal and surface as ``BootstrapError``
subclasses with the underlying ``OSError`` chained. The one tolerated
failure is a cache removal that can be completed by emptying the directory
in place (e.g. when the cache directory is a mount point).
"""

import logging
import shutil
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional, Set, Union

from bootcache.contracts import CacheDecision, CacheStatus
from bootcache.errors import CacheDirectoryError, TemplateStagingError
from bootcache.kernel.cache_policy import decide_purge
from .state import DeleteCache, NotificationSink


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

JSON_SUBDIR = "json"
FRAGMENTS_SUBDIR = "fragments"
STATIC_SUBDIR = "static"
PAGE_DATA_SUBDIR = "page-data"

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates" / "cache_dir"


def detect_corruption(cache_dir: PathLike, output_dir: PathLike) -> bool:
    """True when cache artifacts exist but no output was ever published.

    ``<cache>/json`` is used as the heuristic artifact: it is only written
    by a run that got past scaffolding.
    """
    return (Path(cache_dir) / JSON_SUBDIR).exists() and not Path(output_dir).exists()


def decide(
    status: CacheStatus,
    current_fingerprint: str,
    cache_dir: PathLike,
    output_dir: PathLike,
) -> CacheDecision:
    """Combine the stored baseline with directory health into a purge decision."""
    corrupted = detect_corruption(cache_dir, output_dir)
    return decide_purge(status, current_fingerprint, corrupted)


def _empty_dir(path: Path) -> None:
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def _remove_entry(path: Path) -> None:
    """Remove a file or directory, falling back to emptying a directory in place."""
    if path.is_dir() and not path.is_symlink():
        try:
            shutil.rmtree(path)
            return
        except FileNotFoundError:
            return
        except OSError as e:
            logger.info("Could not remove %s (%s); emptying it in place", path, e)
        try:
            _empty_dir(path)
        except OSError as e:
            raise CacheDirectoryError(f"Failed to remove cache files in {path}: {e}") from e
        return

    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as e:
        raise CacheDirectoryError(f"Failed to remove cache file {path}: {e}") from e


def _normalize_preserve(preserve: Iterable[str]) -> Set[PurePosixPath]:
    keep = set()
    for entry in preserve:
        cleaned = str(entry).replace("\\", "/").strip("/")
        if not cleaned:
            continue
        keep.add(PurePosixPath(cleaned))
    return keep


def _wipe_except(root: Path, keep: Set[PurePosixPath], prefix: PurePosixPath) -> None:
    try:
        children = sorted(root.iterdir())
    except OSError as e:
        raise CacheDirectoryError(f"Failed to list cache directory {root}: {e}") from e

    for child in children:
        rel = prefix / child.name
        if rel in keep:
            continue
        holds_kept = any(rel in kept.parents for kept in keep)
        if holds_kept and child.is_dir() and not child.is_symlink():
            _wipe_except(child, keep, rel)
            continue
        _remove_entry(child)


def purge_cache_dir(cache_dir: PathLike, preserve: Iterable[str] = ()) -> None:
    """Remove the cache directory contents.

    With an empty ``preserve`` the whole tree is removed (or emptied in
    place if removal fails). Otherwise every entry except the named
    subtrees (POSIX paths relative to the cache directory) is removed.

    Raises:
        CacheDirectoryError: If the cache cannot be removed or emptied
    """
    cache_path = Path(cache_dir)
    if not cache_path.exists():
        return

    keep = _normalize_preserve(preserve)
    if not keep:
        _remove_entry(cache_path)
        return

    logger.info("Purging %s, preserving %s", cache_path, ", ".join(sorted(str(k) for k in keep)))
    _wipe_except(cache_path, keep, PurePosixPath())


def apply_decision(
    decision: CacheDecision,
    cache_dir: PathLike,
    preserve: Iterable[str] = (),
    sink: Optional[NotificationSink] = None,
) -> bool:
    """Purge the cache when the decision requires it.

    On a purge, state holders receive ``DeleteCache`` so that in-memory data
    loaded from the disk cache is discarded too.

    Returns:
        True if the cache was purged
    """
    if not decision.purge:
        return False

    purge_cache_dir(cache_dir, preserve)
    if sink is not None:
        sink.dispatch(DeleteCache(cache_is_corrupt=decision.corrupted))
    return True


def scaffold(cache_dir: PathLike, output_dir: PathLike) -> None:
    """Ensure the directory layout required before any build work.

    The fragments directory is always emptied: fragments are rebuilt from
    scratch every run.

    Raises:
        CacheDirectoryError: If a directory cannot be created or emptied
    """
    cache_path = Path(cache_dir)
    fragments = cache_path / FRAGMENTS_SUBDIR
    try:
        cache_path.mkdir(parents=True, exist_ok=True)
        (cache_path / JSON_SUBDIR).mkdir(exist_ok=True)
        if fragments.is_dir() and not fragments.is_symlink():
            _empty_dir(fragments)
        elif fragments.exists() or fragments.is_symlink():
            fragments.unlink()
        fragments.mkdir(exist_ok=True)
        (Path(output_dir) / STATIC_SUBDIR).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheDirectoryError(f"Failed to scaffold {cache_path}: {e}") from e


def stage_templates(cache_dir: PathLike, template_dir: Optional[PathLike] = None) -> None:
    """Copy the static template set into the cache directory, overwriting.

    Raises:
        TemplateStagingError: If the template set cannot be copied
    """
    src = Path(template_dir) if template_dir is not None else TEMPLATE_DIR
    if not src.is_dir():
        raise TemplateStagingError(f"Template directory not found: {src}")
    try:
        shutil.copytree(src, Path(cache_dir), dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise TemplateStagingError(f"Unable to copy site files to {cache_dir}: {e}") from e


def delete_stale_output(output_dir: PathLike) -> int:
    """Delete html and css files left by a previous production build.

    Files under ``page-data/`` and ``static/`` are kept.

    Returns:
        Number of files deleted
    """
    output_path = Path(output_dir)
    if not output_path.is_dir():
        return 0

    removed = 0
    for pattern in ("*.html", "*.css"):
        for path in sorted(output_path.rglob(pattern)):
            rel = path.relative_to(output_path)
            if rel.parts[0] in (PAGE_DATA_SUBDIR, STATIC_SUBDIR):
                continue
            if not path.is_file():
                continue
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise CacheDirectoryError(f"Failed to delete stale output {path}: {e}") from e
            removed += 1
    return removed
