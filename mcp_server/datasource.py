"""
Data source abstraction for the MCP server.

Provides a uniform interface for listing packages and analyzing their
files, independent of where the catalog lives.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod

from asset_deps.catalog.base import Catalog
from asset_deps.catalog.sqlite_catalog import SqliteCatalog
from asset_deps.config import AnalysisOptions
from asset_deps.dependencies.analyzer import DependencyAnalyzer
from asset_deps.service import create_analyzer


class DataSource(ABC):
    """Abstract interface for catalog access and analysis."""

    @property
    @abstractmethod
    def catalog(self) -> Catalog:
        """Catalog listing packages and their files."""

    @abstractmethod
    def analyzer(self, options: AnalysisOptions | None = None) -> DependencyAnalyzer:
        """Analyzer bound to this source's catalog, optionally with other options."""


class SqliteDataSource(DataSource):
    """Reads packages from a SQLite catalog, extracting archives into a cache folder."""

    def __init__(self, db_path: str, cache_dir: str, options: AnalysisOptions | None = None):
        if not os.path.isfile(db_path):
            raise FileNotFoundError(f"Catalog not found: {db_path}")
        self._catalog = SqliteCatalog(db_path)
        self._cache_dir = cache_dir
        self._options = options or AnalysisOptions()
        self._analyzer = create_analyzer(self._catalog, cache_dir, self._options)

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def options(self) -> AnalysisOptions:
        return self._options

    def analyzer(self, options: AnalysisOptions | None = None) -> DependencyAnalyzer:
        if options is None or options == self._options:
            return self._analyzer
        return create_analyzer(self._catalog, self._cache_dir, options, self._analyzer.materializer)
