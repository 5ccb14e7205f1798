"""Reference lookup: identifier, path and name to catalog file.

Lookup order for an identifier found in a file:
1. Override in the active variant package
2. File in the package currently being walked
3. File in the pre-substitution original package (only while walking a
   substituted package)
4. Any package in the catalog, if cross-package search is enabled
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from asset_deps.catalog.base import Catalog
from asset_deps.dependencies.context import ResolutionFrame
from asset_deps.domain.enums import RenderProfile
from asset_deps.domain.models import Asset, AssetFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackagePolicy:
    """Chooses the owning package when several packages share an identifier.

    Packages named after the active profile win; otherwise the first
    candidate is used.
    """

    profile: RenderProfile = RenderProfile.NONE

    def select(self, candidates: list[Asset]) -> Asset | None:
        token = self.profile.name_token
        if token:
            match = next((c for c in candidates if token in c.safe_name.lower()), None)
            if match:
                return match
        return candidates[0] if candidates else None


@dataclass(frozen=True)
class CrossPackageMatch:
    """A reference resolved in another package."""

    file: AssetFile
    package: Asset | None


class ReferenceLookup:
    """Resolves references to catalog files for the walker.

    Args:
        catalog: Catalog to query.
        allow_cross_package: Search the whole catalog as a last resort.
        policy: Owning package selection for cross-package matches.
    """

    def __init__(self, catalog: Catalog, allow_cross_package: bool = True, policy: PackagePolicy | None = None) -> None:
        self._catalog = catalog
        self._allow_cross_package = allow_cross_package
        self._policy = policy or PackagePolicy()

    def prefetch(self, frame: ResolutionFrame, guids: list[str]) -> dict[str, AssetFile]:
        """Load all same-package files for a batch of identifiers at once."""
        cache: dict[str, AssetFile] = {}
        for af in self._catalog.find_by_guids(frame.asset.id, guids):
            if af.guid:
                cache.setdefault(af.guid, af)
        return cache

    def local(self, frame: ResolutionFrame, guid: str, cache: dict[str, AssetFile] | None = None) -> AssetFile | None:
        """Resolve an identifier without leaving the variant/current/original packages."""
        if frame.variant is not None:
            af = frame.variant.file_for(guid)
            if af is not None:
                return af

        if cache is not None:
            af = cache.get(guid)
        else:
            af = self._catalog.find_by_guid(guid, frame.asset.id)
        if af is not None:
            return af

        if frame.in_substituted_package:
            return self._catalog.find_by_guid(guid, frame.variant.original.id)
        return None

    def cross_package(self, guid: str) -> CrossPackageMatch | None:
        """Search every package for an identifier.

        Returns:
            The match, or None if cross-package search is disabled or the
            identifier is unknown to the catalog.
        """
        if not self._allow_cross_package:
            return None
        files = self._catalog.find_all_by_guid(guid)
        if not files:
            return None

        owners: dict[int, Asset] = {}
        for af in files:
            if af.asset_id in owners:
                continue
            owner = self._catalog.package_owning(af)
            if owner is not None:
                owners[af.asset_id] = owner

        package = self._policy.select(list(owners.values()))
        if package is None:
            logger.debug("No package record for files with identifier %s", guid)
            return CrossPackageMatch(file=files[0], package=None)
        af = next(f for f in files if f.asset_id == package.id)
        return CrossPackageMatch(file=af, package=package)

    def by_path(self, frame: ResolutionFrame, path: str) -> AssetFile | None:
        af = self._catalog.find_by_path(frame.asset.id, path)
        if af is None and frame.in_substituted_package:
            af = self._catalog.find_by_path(frame.variant.original.id, path)
        return af

    def by_file_name(self, frame: ResolutionFrame, file_name: str) -> AssetFile | None:
        af = self._catalog.find_by_file_name(frame.asset.id, file_name)
        if af is None and frame.in_substituted_package:
            af = self._catalog.find_by_file_name(frame.variant.original.id, file_name)
        return af
