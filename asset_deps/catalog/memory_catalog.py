"""In-memory catalog, used for embedding and tests."""

from __future__ import annotations

from collections import defaultdict

from asset_deps.catalog.base import Catalog
from asset_deps.domain.enums import RenderProfile
from asset_deps.domain.models import Asset, AssetFile


class MemoryCatalog(Catalog):
    """Catalog held in dictionaries.

    Args:
        assets: Initial packages.
        files: Initial files.
    """

    def __init__(self, assets: list[Asset] | None = None, files: list[AssetFile] | None = None) -> None:
        self._assets: dict[int, Asset] = {}
        self._files: dict[int, list[AssetFile]] = defaultdict(list)
        self._by_guid: dict[str, list[AssetFile]] = defaultdict(list)
        for asset in assets or []:
            self.add_asset(asset)
        for af in files or []:
            self.add_file(af)

    def add_asset(self, asset: Asset) -> Asset:
        self._assets[asset.id] = asset
        return asset

    def add_file(self, af: AssetFile) -> AssetFile:
        self._files[af.asset_id].append(af)
        if af.guid:
            self._by_guid[af.guid].append(af)
        return af

    def get_asset(self, asset_id: int) -> Asset | None:
        return self._assets.get(asset_id)

    def list_assets(self) -> list[Asset]:
        return [self._assets[k] for k in sorted(self._assets)]

    def files_of(self, asset_id: int) -> list[AssetFile]:
        return list(self._files.get(asset_id, []))

    def find_all_by_guid(self, guid: str) -> list[AssetFile]:
        return list(self._by_guid.get(guid, []))

    def sibling_variants(
        self, parent_id: int, profile: RenderProfile, version_hint: str | None = None,
    ) -> list[Asset]:
        candidates = [
            a for a in self._assets.values()
            if a.parent_id == parent_id and not a.exclude and a.supports(profile)
        ]
        if version_hint:
            candidates = [
                a for a in candidates
                if version_hint in a.safe_name or version_hint in a.display_name
            ]
        return sorted(candidates, key=lambda a: a.safe_name)
