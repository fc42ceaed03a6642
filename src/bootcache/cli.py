"""bootcache CLI: fingerprint and bootstrap commands."""

import argparse
import json
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path
from typing import Any, List


def _read_json(path: Path) -> Any:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def _load_plugins(path: Path) -> List[Any]:
    data = _read_json(path)
    if not isinstance(data, list):
        raise ValueError(f"Plugin file must contain a JSON list: {path}")
    return data


def main():
    """Main CLI entry point for bootcache commands."""
    try:
        bootcache_version = get_version("bootcache")
    except PackageNotFoundError:
        bootcache_version = "dev"

    parser = argparse.ArgumentParser(
        prog="bootcache",
        description="bootcache: build bootstrap and cache invalidation"
    )
    parser.add_argument("--version", action="version", version=f"bootcache {bootcache_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )
    parent_parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (defaults to BOOTCACHE_LOG_LEVEL or INFO)"
    )
    parent_parser.add_argument(
        "--site",
        type=Path,
        default=Path("."),
        help="Site directory (defaults to the current directory)"
    )
    parent_parser.add_argument(
        "--plugins",
        type=Path,
        default=None,
        help="Path to the resolved plugin list (JSON)"
    )
    parent_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the resolved site config (JSON)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "fingerprint",
        help="Print the fingerprint of the site's plugins and config files",
        parents=[parent_parser]
    )

    init_parser = subparsers.add_parser(
        "init",
        help="Run the bootstrap: decide on the cache, scaffold, write plugin runners",
        parents=[parent_parser]
    )
    init_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker pool size (defaults to BOOTCACHE_WORKER_COUNT or cpu count - 1)"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Lazy imports: keep --help and --version free of pydantic start-up cost
    from bootcache._internal.observability import setup_logging
    from bootcache.errors import BootstrapError
    from bootcache.settings import get_settings

    settings = get_settings()
    if not args.quiet:
        setup_logging(args.log_level or settings.log_level, settings.log_format)

    try:
        plugins = _load_plugins(args.plugins) if args.plugins else []
        config = _read_json(args.config) if args.config else None
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "fingerprint":
        from bootcache.api import fingerprint_site

        try:
            fingerprint = fingerprint_site(
                {"directory": str(args.site)}, config, plugins, settings=settings
            )
        except (BootstrapError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(fingerprint)
        sys.exit(0)

    if args.command == "init":
        from bootcache.api import initialize

        try:
            if args.workers is not None:
                settings = settings.model_copy(update={"worker_count": args.workers})
            handle = initialize(
                {"directory": str(args.site), "command": "build" if settings.is_production else "develop"},
                config,
                plugins,
                settings=settings,
            )
        except (BootstrapError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        handle.worker_pool.shutdown(wait=False)
        if not args.quiet:
            print("[OK] Bootstrap complete")
            print(f"  Fingerprint: {handle.fingerprint}")
            print(f"  Purged: {'yes' if handle.purged else 'no'} ({handle.decision.reason.value})")
            print(f"  Cache: {handle.cache_dir}")
        sys.exit(0)


if __name__ == "__main__":
    main()
