"""Package catalogs."""

from asset_deps.catalog.base import Catalog, CatalogError
from asset_deps.catalog.memory_catalog import MemoryCatalog
from asset_deps.catalog.sqlite_catalog import SqliteCatalog

__all__ = ['Catalog', 'CatalogError', 'MemoryCatalog', 'SqliteCatalog']
