"""
Asset Deps MCP Server.

Exposes the package catalog and dependency analysis to LLM clients via
the Model Context Protocol.

Usage:
    python -m mcp_server --catalog /path/to/catalog.db [--cache DIR] [--config FILE]
"""

from __future__ import annotations

import json
import logging
import os
import sys
import tempfile
from dataclasses import replace

from mcp.server.fastmcp import FastMCP

from asset_deps.catalog.base import CatalogError
from asset_deps.config import ConfigError, load_options
from asset_deps.domain.constants import LOG_FORMAT
from asset_deps.domain.enums import RenderProfile
from asset_deps.materialization.workspace import cleanup_orphans
from asset_deps.output.report_writer import build_report
from asset_deps.service import load_target
from mcp_server.datasource import DataSource, SqliteDataSource

logger = logging.getLogger(__name__)

# ── Globals ─────────────────────────────────────────────────────────────

_ds: DataSource | None = None
mcp = FastMCP("asset-deps")


def _datasource() -> DataSource:
    if _ds is None:
        raise RuntimeError("Data source not initialized")
    return _ds


def _truncate(data: dict | list, max_chars: int = 80_000) -> dict | list:
    text = json.dumps(data, ensure_ascii=False)
    if len(text) <= max_chars:
        return data
    return {
        "_truncated": True,
        "_message": f"Response too large ({len(text):,} chars). Narrow the query.",
    }


# ── Tools ───────────────────────────────────────────────────────────────


@mcp.tool()
def list_packages(query: str | None = None) -> list[dict]:
    """List packages in the catalog.

    Args:
        query: Optional case-insensitive substring of the package name.
    """
    packages = []
    for asset in _datasource().catalog.list_assets():
        if asset.exclude:
            continue
        if query and query.lower() not in f"{asset.safe_name} {asset.display_name}".lower():
            continue
        packages.append({
            "id": asset.id,
            "name": asset.safe_name,
            "display_name": asset.display_name,
            "parent_id": asset.parent_id,
            "version": asset.version,
            "source": asset.source.value,
        })
    return packages


@mcp.tool()
def list_package_files(asset_id: int, file_type: str | None = None) -> dict | list:
    """List the files of one package.

    Args:
        asset_id: Package id (from list_packages).
        file_type: Optional extension filter without dot (e.g. "prefab", "mat").
    """
    files = _datasource().catalog.files_of(asset_id)
    if file_type:
        files = [af for af in files if af.type == file_type.lower()]
    return _truncate([
        {"path": af.path, "guid": af.guid, "type": af.type, "size": af.size}
        for af in files
    ])


@mcp.tool()
async def analyze_dependencies(
    asset_id: int,
    guid: str | None = None,
    path: str | None = None,
    profile: str | None = None,
) -> dict | list:
    """Compute everything a package file needs to work when copied on its own.

    Returns state, total size, dependency files split into media and
    scripts, and other packages that must be present as well.

    Args:
        asset_id: Package id (from list_packages).
        guid: Identifier of the file to analyze.
        path: Path of the file inside the package (alternative to guid).
        profile: Optional technology profile: "none", "urp" or "hdrp".
    """
    ds = _datasource()
    try:
        info = load_target(ds.catalog, asset_id, guid=guid, path=path)
    except CatalogError as e:
        return {"error": str(e)}

    options = None
    if profile is not None:
        try:
            options = replace(ds.analyzer().options, profile=RenderProfile.parse(profile))
        except ValueError as e:
            return {"error": str(e)}

    await ds.analyzer(options).analyze(info)
    return _truncate(build_report(info))


# ── Entry point ─────────────────────────────────────────────────────────

def main():
    import argparse

    parser = argparse.ArgumentParser(description="Asset Deps MCP Server")
    parser.add_argument("--catalog", required=True, help="Path to the catalog database")
    parser.add_argument("--cache", default=os.path.join(tempfile.gettempdir(), "asset-deps-cache"),
                        help="Folder for extracted packages")
    parser.add_argument("--config", help="YAML options file")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")

    args = parser.parse_args()
    # stdout carries the protocol
    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT, stream=sys.stderr)

    global _ds
    try:
        options = load_options(args.config)
        _ds = SqliteDataSource(os.path.abspath(args.catalog), args.cache, options)
    except (ConfigError, CatalogError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    removed = cleanup_orphans(options.temp_root)
    if removed:
        logger.info("Removed %d leftover scratch folders", removed)

    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
