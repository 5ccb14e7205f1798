"""Catalog abstraction: read-only queries over packages and their files."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from asset_deps.domain.enums import RenderProfile
from asset_deps.domain.models import Asset, AssetFile


class CatalogError(Exception):
    """Catalog cannot be opened or queried."""
    pass


class Catalog(ABC):
    """Read-only view of the package catalog used during analysis."""

    @abstractmethod
    def get_asset(self, asset_id: int) -> Asset | None:
        """Return the package with this id."""

    @abstractmethod
    def list_assets(self) -> list[Asset]:
        """Return all packages ordered by id."""

    @abstractmethod
    def files_of(self, asset_id: int) -> list[AssetFile]:
        """Return all files of a package."""

    @abstractmethod
    def find_all_by_guid(self, guid: str) -> list[AssetFile]:
        """Return every file in the catalog carrying this identifier."""

    @abstractmethod
    def sibling_variants(
        self, parent_id: int, profile: RenderProfile, version_hint: str | None = None,
    ) -> list[Asset]:
        """Return non-excluded sub-packages compatible with a profile.

        Args:
            parent_id: Package whose sub-packages are searched.
            profile: Profile whose compatibility flag must be set.
            version_hint: Only packages whose safe or display name contains it.

        Returns:
            Matching packages ordered by safe name.
        """

    # ── Derived Queries ──────────────────────────────────────────────────

    def find_by_guid(self, guid: str, asset_id: int | None = None) -> AssetFile | None:
        """Return the first file with this identifier, optionally in one package."""
        for af in self.find_all_by_guid(guid):
            if asset_id is None or af.asset_id == asset_id:
                return af
        return None

    def find_by_guids(self, asset_id: int, guids: Iterable[str]) -> list[AssetFile]:
        wanted = set(guids)
        return [af for af in self.files_of(asset_id) if af.guid in wanted]

    def find_by_path(self, asset_id: int, path: str) -> AssetFile | None:
        return next((af for af in self.files_of(asset_id) if af.path == path), None)

    def find_by_file_name(self, asset_id: int, file_name: str) -> AssetFile | None:
        return next((af for af in self.files_of(asset_id) if af.file_name == file_name), None)

    def find_by_types(self, asset_id: int, types: Iterable[str]) -> list[AssetFile]:
        wanted = set(types)
        return [af for af in self.files_of(asset_id) if af.type in wanted]

    def package_owning(self, af: AssetFile) -> Asset | None:
        return self.get_asset(af.asset_id)
