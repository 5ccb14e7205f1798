"""Materialization: making package content available at local paths."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from asset_deps.cancellation import CancellationToken
from asset_deps.domain.constants import PARTIAL_INDICATOR
from asset_deps.domain.enums import AssetSource
from asset_deps.domain.models import Asset, AssetFile
from asset_deps.materialization.package_reader import ArchiveReadError, PackageReader

logger = logging.getLogger(__name__)

_IN_PLACE_SOURCES = (AssetSource.DIRECTORY, AssetSource.REGISTRY_PACKAGE)

# seconds between attempts to take a package's extraction lock
LOCK_POLL_INTERVAL = 0.02


class Materializer(ABC):
    """Makes a package, or one of its files, readable on the local disk."""

    @abstractmethod
    async def ensure(
        self,
        asset: Asset,
        file: AssetFile | None = None,
        allow_download: bool = False,
        token: CancellationToken | None = None,
    ) -> Path | None:
        """Materialize a package or one of its files.

        Args:
            asset: Package owning the content.
            file: File to materialize; None for the whole package.
            allow_download: Remote content may be fetched if missing.
            token: Cancellation token.

        Returns:
            Local path, or None if the content is unavailable.
        """


class FolderMaterializer(Materializer):
    """Serves packages already extracted under ``root/<package folder>/``.

    Args:
        root: Folder holding one sub-folder per package.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    async def ensure(
        self,
        asset: Asset,
        file: AssetFile | None = None,
        allow_download: bool = False,
        token: CancellationToken | None = None,
    ) -> Path | None:
        if asset.source is AssetSource.FLAT_DIRECTORY:
            return _flat_directory_path(Path(asset.location) if asset.location else self._root / asset.folder_name, file)
        base = self._root / asset.folder_name
        if file is None:
            return base if base.is_dir() else None
        path = base / file.path
        if not path.is_file():
            logger.debug("File '%s' not found in '%s'", file.path, base)
            return None
        return path


class ArchiveMaterializer(Materializer):
    """Extracts package archives into a cache folder on first use.

    Directory and registry packages are served in place from their
    location. Archives (zip or unitypackage) are extracted once per package
    into ``cache_dir/<package id>/``; a partial-extraction marker makes an
    interrupted extraction restart. No content is ever downloaded.

    Extraction is serialized per package with thread locks, so one instance
    can be shared by analyses running on different threads and event loops.

    Args:
        cache_dir: Folder receiving extracted packages.
        reader: Package reader used for extraction.
    """

    def __init__(self, cache_dir: str | Path, reader: PackageReader | None = None) -> None:
        self._cache_dir = Path(cache_dir)
        self._reader = reader or PackageReader()
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def package_path(self, asset: Asset) -> Path:
        return self._cache_dir / str(asset.id)

    async def ensure(
        self,
        asset: Asset,
        file: AssetFile | None = None,
        allow_download: bool = False,
        token: CancellationToken | None = None,
    ) -> Path | None:
        if token and token.cancelled:
            return None

        if asset.source in _IN_PLACE_SOURCES:
            return self._in_place(asset, file)
        if asset.source is AssetSource.FLAT_DIRECTORY:
            if not asset.location:
                return None
            path = _flat_directory_path(Path(asset.location), file)
            if path is None and allow_download:
                logger.warning("Content for '%s' is not available locally and cannot be fetched", asset)
            return path

        target = self.package_path(asset)
        lock = self._lock_for(asset.id)
        while not lock.acquire(blocking=False):
            await asyncio.sleep(LOCK_POLL_INTERVAL)
        try:
            if not target.is_dir() or (target / PARTIAL_INDICATOR).exists():
                if not await self._extract(asset, target):
                    return None
        finally:
            lock.release()

        if file is None:
            return target
        path = target / file.path
        if not path.is_file():
            logger.error(
                "File '%s' is not contained in this version of the package '%s' anymore",
                file.file_name or file.path, asset,
            )
            return None
        return path

    # ── Private Methods ──────────────────────────────────────────────────

    def _lock_for(self, asset_id: int) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(asset_id, threading.Lock())

    def _in_place(self, asset: Asset, file: AssetFile | None) -> Path | None:
        if not asset.location:
            return None
        base = Path(asset.location)
        path = base if file is None else base / file.path
        return path if path.exists() else None

    async def _extract(self, asset: Asset, target: Path) -> bool:
        archive = asset.location
        if not archive or not os.path.isfile(archive):
            logger.warning("Archive for package '%s' not found: %s", asset, archive)
            return False

        target.mkdir(parents=True, exist_ok=True)
        marker = target / PARTIAL_INDICATOR
        marker.touch()
        try:
            contents = await asyncio.to_thread(self._reader.read, archive, str(target))
        except ArchiveReadError as e:
            logger.error("Could not extract package '%s': %s", asset, e)
            await asyncio.to_thread(self._reader.cleanup, str(target))
            return False
        marker.unlink(missing_ok=True)
        logger.debug("Extracted %d files of '%s' to %s", contents.total_files, asset, target)
        return True


def _flat_directory_path(base: Path, file: AssetFile | None) -> Path | None:
    """Locate a flat-directory item: a folder named after the file identifier.

    A folder holding a single file resolves to that file.
    """
    if file is None or not file.guid:
        return None
    folder = base / file.guid
    if not folder.is_dir():
        return None
    files = [p for p in folder.rglob('*') if p.is_file()]
    if len(files) == 1:
        return files[0]
    return folder
