"""CLI for asset-deps."""

import argparse
import logging
import os
import sys
import tempfile

from asset_deps.catalog.base import CatalogError
from asset_deps.catalog.sqlite_catalog import SqliteCatalog
from asset_deps.config import ConfigError, load_options
from asset_deps.domain.constants import LOG_FORMAT
from asset_deps.domain.enums import DependencyState, RenderProfile
from asset_deps.domain.file_types import primary_scan_types, sidecar_scan_types
from asset_deps.materialization.workspace import cleanup_orphans
from asset_deps.output.report_writer import ReportWriter
from asset_deps.service import create_analyzer, load_target

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 2


def _default_cache_dir() -> str:
    return os.path.join(tempfile.gettempdir(), 'asset-deps-cache')


def run_analyze(args: argparse.Namespace) -> int:
    """Analyze one file and report; returns the process exit code."""
    try:
        options = load_options(
            args.config,
            profile=args.profile,
            profile_version=args.profile_version,
            allow_cross_package=False if args.no_cross_package else None,
            scan_embedded_references=False if args.no_embedded else None,
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    try:
        catalog = SqliteCatalog(args.catalog)
    except CatalogError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    with catalog:
        try:
            info = load_target(catalog, args.asset_id, guid=args.guid, path=args.path)
        except CatalogError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_ERROR

        analyzer = create_analyzer(catalog, args.cache or _default_cache_dir(), options)
        print(f"Analyzing {info}...")
        analyzer.analyze_sync(info)

    state = info.dependency_state
    print(
        f"{state.value}: {len(info.dependencies)} dependencies "
        f"({len(info.media_dependencies)} media, {len(info.script_dependencies)} scripts), "
        f"{info.dependency_size} bytes"
    )
    for package in info.cross_package_dependencies:
        print(f"  requires package: {package}")
    if info.variant_used and info.variant:
        print(f"  using variant: {info.variant.support_package}")

    if args.output:
        ReportWriter(pretty=not args.no_pretty).write(info, args.output)
        print(f"Output: {args.output}")

    if state is DependencyState.DONE:
        return EXIT_OK
    if state is DependencyState.PARTIAL:
        return EXIT_PARTIAL
    return EXIT_ERROR


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='asset-deps', description='Asset dependency analyzer')
    parser.add_argument('--log-level', default='WARNING', help='Logging level (default: WARNING)')
    subparsers = parser.add_subparsers(dest='command')

    # analyze command
    analyze_parser = subparsers.add_parser('analyze', help='Compute the dependencies of a package file')
    analyze_parser.add_argument('--catalog', required=True, help='Path to the catalog database')
    analyze_parser.add_argument('--asset-id', type=int, required=True, help='Package id')
    target = analyze_parser.add_mutually_exclusive_group(required=True)
    target.add_argument('--guid', help='Identifier of the file to analyze')
    target.add_argument('--path', help='Path of the file inside the package')
    analyze_parser.add_argument('--cache', help='Folder for extracted packages')
    analyze_parser.add_argument('--config', help='YAML options file')
    analyze_parser.add_argument('--profile', choices=[p.value for p in RenderProfile], help='Technology profile')
    analyze_parser.add_argument('--profile-version', help='Version hint for variant packages')
    analyze_parser.add_argument('--no-cross-package', action='store_true', help='Stay inside the package')
    analyze_parser.add_argument('--no-embedded', action='store_true', help='Skip embedded references in models')
    analyze_parser.add_argument('--output', help='Write a JSON report to this file')
    analyze_parser.add_argument('--no-pretty', action='store_true', help='Disable pretty printing')
    analyze_parser.add_argument('--log-level', default=argparse.SUPPRESS, help='Logging level')

    # types command
    subparsers.add_parser('types', help='List scanned file types')

    # cleanup command
    cleanup_parser = subparsers.add_parser('cleanup', help='Remove leftover scratch folders')
    cleanup_parser.add_argument('--temp-root', help='Folder holding scratch folders (default: system temp)')

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)

    if args.command == 'analyze':
        return run_analyze(args)

    if args.command == 'types':
        print('Content:')
        for t in sorted(primary_scan_types()):
            print(f"  {t}")
        print('Sidecar:')
        for t in sorted(sidecar_scan_types()):
            print(f"  {t}")
        return EXIT_OK

    if args.command == 'cleanup':
        removed = cleanup_orphans(args.temp_root)
        print(f"Removed {removed} scratch folders")
        return EXIT_OK

    parser.print_help()
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
