"""Wiring shared by the CLI, MCP server and HTTP API."""

import logging

from asset_deps.catalog.base import Catalog, CatalogError
from asset_deps.config import AnalysisOptions
from asset_deps.dependencies.analyzer import DependencyAnalyzer
from asset_deps.domain.models import AssetInfo
from asset_deps.materialization.materializer import ArchiveMaterializer, Materializer
from asset_deps.materialization.normalizer import CommandNormalizer, Normalizer, NullNormalizer

logger = logging.getLogger(__name__)


def load_target(catalog: Catalog, asset_id: int, guid: str | None = None, path: str | None = None) -> AssetInfo:
    """Look up the file to analyze by identifier or by path.

    Raises:
        CatalogError: Package or file not found, or neither guid nor path given.
    """
    if not guid and not path:
        raise CatalogError("Either a guid or a path is required")
    asset = catalog.get_asset(asset_id)
    if asset is None:
        raise CatalogError(f"Package {asset_id} not found")

    af = catalog.find_by_guid(guid, asset_id) if guid else catalog.find_by_path(asset_id, path)
    if af is None:
        raise CatalogError(f"File '{guid or path}' not found in package {asset_id}")
    return AssetInfo(asset=asset, file=af)


def create_normalizer(options: AnalysisOptions) -> Normalizer:
    if options.normalizer_command:
        return CommandNormalizer(options.normalizer_command)
    return NullNormalizer()


def create_analyzer(
    catalog: Catalog,
    cache_dir: str,
    options: AnalysisOptions,
    materializer: Materializer | None = None,
) -> DependencyAnalyzer:
    """Analyzer over archive-backed packages extracted into ``cache_dir``.

    Analyzers that share a cache folder must share ``materializer`` so
    extraction into that folder stays serialized.
    """
    if materializer is None:
        logger.debug("Using package cache %s", cache_dir)
        materializer = ArchiveMaterializer(cache_dir)
    return DependencyAnalyzer(
        catalog,
        materializer,
        normalizer=create_normalizer(options),
        options=options,
    )
