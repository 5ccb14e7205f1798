"""SQLite-backed catalog.

Reads packages and files from an ``Asset`` / ``AssetFile`` database. The
schema is created on demand so ingestion tools and tests can populate a
fresh database through ``add_asset`` / ``add_file``.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from collections.abc import Iterable

from asset_deps.catalog.base import Catalog, CatalogError
from asset_deps.domain.enums import AssetSource, RenderProfile
from asset_deps.domain.models import Asset, AssetFile

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS Asset (
    Id INTEGER PRIMARY KEY,
    SafeName TEXT NOT NULL DEFAULT '',
    DisplayName TEXT NOT NULL DEFAULT '',
    ParentId INTEGER NOT NULL DEFAULT 0,
    Source TEXT NOT NULL DEFAULT 'archive',
    Location TEXT,
    Version TEXT,
    Exclude INTEGER NOT NULL DEFAULT 0,
    URPCompatible INTEGER NOT NULL DEFAULT 0,
    HDRPCompatible INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS AssetFile (
    Id INTEGER PRIMARY KEY AUTOINCREMENT,
    AssetId INTEGER NOT NULL,
    Guid TEXT,
    Path TEXT NOT NULL,
    FileName TEXT NOT NULL DEFAULT '',
    Type TEXT NOT NULL DEFAULT '',
    Size INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS IX_AssetFile_Guid ON AssetFile (Guid);
CREATE INDEX IF NOT EXISTS IX_AssetFile_AssetId ON AssetFile (AssetId);
"""

_PROFILE_COLUMNS: dict[RenderProfile, str] = {
    RenderProfile.URP: 'URPCompatible',
    RenderProfile.HDRP: 'HDRPCompatible',
}

_FILE_COLUMNS = 'Id, AssetId, Guid, Path, FileName, Type, Size'
_ASSET_COLUMNS = (
    'Id, SafeName, DisplayName, ParentId, Source, Location, Version, Exclude, '
    'URPCompatible, HDRPCompatible'
)


class SqliteCatalog(Catalog):
    """Catalog stored in a SQLite database.

    Args:
        db_path: Database file, or ``:memory:``.
        create: Create the file and schema if missing. When False, a
            missing file raises ``CatalogError``.
    """

    def __init__(self, db_path: str, create: bool = False) -> None:
        if db_path != ':memory:' and not create and not os.path.isfile(db_path):
            raise CatalogError(f"Catalog database not found: {db_path}")
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            if create:
                self._conn.executescript(SCHEMA)
            self._check_schema()
        except sqlite3.Error as e:
            raise CatalogError(f"Failed to open catalog '{db_path}': {e}") from e
        self._lock = threading.Lock()
        self.db_path = db_path

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SqliteCatalog:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ── Writes (ingestion/tests only) ────────────────────────────────────

    def add_asset(self, asset: Asset) -> Asset:
        with self._lock, self._conn:
            self._conn.execute(
                f"INSERT OR REPLACE INTO Asset ({_ASSET_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    asset.id, asset.safe_name, asset.display_name, asset.parent_id,
                    asset.source.value, asset.location, asset.version, int(asset.exclude),
                    int(asset.supports(RenderProfile.URP)), int(asset.supports(RenderProfile.HDRP)),
                ),
            )
        return asset

    def add_file(self, af: AssetFile) -> AssetFile:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "INSERT INTO AssetFile (AssetId, Guid, Path, FileName, Type, Size) VALUES (?, ?, ?, ?, ?, ?)",
                (af.asset_id, af.guid, af.path, af.file_name, af.type, af.size),
            )
        return AssetFile(
            asset_id=af.asset_id, path=af.path, guid=af.guid, file_name=af.file_name,
            type=af.type, size=af.size, id=cur.lastrowid,
        )

    # ── Queries ──────────────────────────────────────────────────────────

    def get_asset(self, asset_id: int) -> Asset | None:
        rows = self._query(f"SELECT {_ASSET_COLUMNS} FROM Asset WHERE Id=?", (asset_id,))
        return self._to_asset(rows[0]) if rows else None

    def list_assets(self) -> list[Asset]:
        return [self._to_asset(r) for r in self._query(f"SELECT {_ASSET_COLUMNS} FROM Asset ORDER BY Id")]

    def files_of(self, asset_id: int) -> list[AssetFile]:
        rows = self._query(f"SELECT {_FILE_COLUMNS} FROM AssetFile WHERE AssetId=? ORDER BY Id", (asset_id,))
        return [self._to_file(r) for r in rows]

    def find_all_by_guid(self, guid: str) -> list[AssetFile]:
        rows = self._query(f"SELECT {_FILE_COLUMNS} FROM AssetFile WHERE Guid=? ORDER BY Id", (guid,))
        return [self._to_file(r) for r in rows]

    def find_by_guid(self, guid: str, asset_id: int | None = None) -> AssetFile | None:
        if asset_id is None:
            rows = self._query(f"SELECT {_FILE_COLUMNS} FROM AssetFile WHERE Guid=? ORDER BY Id LIMIT 1", (guid,))
        else:
            rows = self._query(
                f"SELECT {_FILE_COLUMNS} FROM AssetFile WHERE Guid=? AND AssetId=? ORDER BY Id LIMIT 1",
                (guid, asset_id),
            )
        return self._to_file(rows[0]) if rows else None

    def find_by_guids(self, asset_id: int, guids: Iterable[str]) -> list[AssetFile]:
        guids = list(guids)
        if not guids:
            return []
        placeholders = ', '.join('?' for _ in guids)
        rows = self._query(
            f"SELECT {_FILE_COLUMNS} FROM AssetFile WHERE AssetId=? AND Guid IN ({placeholders}) ORDER BY Id",
            (asset_id, *guids),
        )
        return [self._to_file(r) for r in rows]

    def find_by_path(self, asset_id: int, path: str) -> AssetFile | None:
        rows = self._query(
            f"SELECT {_FILE_COLUMNS} FROM AssetFile WHERE AssetId=? AND Path=? ORDER BY Id LIMIT 1",
            (asset_id, path),
        )
        return self._to_file(rows[0]) if rows else None

    def find_by_file_name(self, asset_id: int, file_name: str) -> AssetFile | None:
        rows = self._query(
            f"SELECT {_FILE_COLUMNS} FROM AssetFile WHERE AssetId=? AND FileName=? ORDER BY Id LIMIT 1",
            (asset_id, file_name),
        )
        return self._to_file(rows[0]) if rows else None

    def find_by_types(self, asset_id: int, types: Iterable[str]) -> list[AssetFile]:
        types = list(types)
        if not types:
            return []
        placeholders = ', '.join('?' for _ in types)
        rows = self._query(
            f"SELECT {_FILE_COLUMNS} FROM AssetFile WHERE AssetId=? AND Type IN ({placeholders}) ORDER BY Id",
            (asset_id, *types),
        )
        return [self._to_file(r) for r in rows]

    def sibling_variants(
        self, parent_id: int, profile: RenderProfile, version_hint: str | None = None,
    ) -> list[Asset]:
        column = _PROFILE_COLUMNS.get(profile)
        if column is None:
            return []
        sql = f"SELECT {_ASSET_COLUMNS} FROM Asset WHERE ParentId=? AND Exclude=0 AND {column}=1"
        params: tuple = (parent_id,)
        if version_hint:
            sql += " AND (SafeName LIKE ? OR DisplayName LIKE ?)"
            params += (f"%{version_hint}%", f"%{version_hint}%")
        sql += " ORDER BY SafeName"
        return [self._to_asset(r) for r in self._query(sql, params)]

    # ── Private Methods ──────────────────────────────────────────────────

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def _check_schema(self) -> None:
        tables = {
            r[0] for r in self._conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        }
        missing = {'Asset', 'AssetFile'} - tables
        if missing:
            raise CatalogError(f"Catalog is missing tables: {', '.join(sorted(missing))}")

    @staticmethod
    def _to_asset(row: sqlite3.Row) -> Asset:
        profiles = set()
        if row['URPCompatible']:
            profiles.add(RenderProfile.URP)
        if row['HDRPCompatible']:
            profiles.add(RenderProfile.HDRP)
        try:
            source = AssetSource(row['Source'])
        except ValueError:
            logger.warning("Unknown source '%s' for package %s, assuming archive", row['Source'], row['Id'])
            source = AssetSource.ARCHIVE
        return Asset(
            id=row['Id'],
            safe_name=row['SafeName'] or '',
            display_name=row['DisplayName'] or '',
            parent_id=row['ParentId'] or 0,
            source=source,
            location=row['Location'],
            version=row['Version'],
            exclude=bool(row['Exclude']),
            compatible_profiles=frozenset(profiles),
        )

    @staticmethod
    def _to_file(row: sqlite3.Row) -> AssetFile:
        return AssetFile(
            asset_id=row['AssetId'],
            path=row['Path'],
            guid=row['Guid'],
            file_name=row['FileName'] or '',
            type=row['Type'] or '',
            size=row['Size'] or 0,
            id=row['Id'],
        )
