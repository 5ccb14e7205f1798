"""Shared data models used across catalog, materialization and analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from asset_deps.domain.enums import AssetSource, DependencyState, RenderProfile

if TYPE_CHECKING:
    from asset_deps.dependencies.variants import VariantContext


@dataclass
class Asset:
    """A cataloged package: one unit of content made of one or more files."""

    id: int
    safe_name: str = ''
    display_name: str = ''
    parent_id: int = 0
    source: AssetSource = AssetSource.ARCHIVE
    location: str | None = None
    version: str | None = None
    exclude: bool = False
    compatible_profiles: frozenset[RenderProfile] = frozenset()

    def supports(self, profile: RenderProfile) -> bool:
        return profile in self.compatible_profiles

    @property
    def folder_name(self) -> str:
        """Folder name used when the package is laid out on disk."""
        return self.safe_name or str(self.id)

    def __str__(self) -> str:
        return self.display_name or self.safe_name or f"Asset {self.id}"


@dataclass(frozen=True)
class AssetFile:
    """One file inside a package, addressable by identifier and path."""

    asset_id: int
    path: str
    guid: str | None = None
    file_name: str = ''
    type: str = ''
    size: int = 0
    id: int = 0

    @property
    def key(self) -> str:
        """Deduplication key: the identifier, or package and path without one."""
        return self.guid or f"{self.asset_id}:{self.path}"

    @classmethod
    def create(cls, asset_id: int, path: str, guid: str | None = None, size: int = 0, id: int = 0) -> AssetFile:
        """Build a file record deriving name and type from the path."""
        path = path.replace('\\', '/')
        file_name = path.rsplit('/', 1)[-1]
        file_type = file_name.rsplit('.', 1)[1].lower() if '.' in file_name else ''
        return cls(
            asset_id=asset_id, path=path, guid=guid, file_name=file_name,
            type=file_type, size=size, id=id,
        )


@dataclass
class AssetInfo:
    """A package file selected for analysis, carrying its dependency results.

    ``DependencyAnalyzer.analyze`` fills the dependency fields in place;
    callers must branch on ``dependency_state`` before using them.
    """

    asset: Asset
    file: AssetFile
    dependency_state: DependencyState = DependencyState.NONE
    dependencies: list[AssetFile] = field(default_factory=list)
    media_dependencies: list[AssetFile] = field(default_factory=list)
    script_dependencies: list[AssetFile] = field(default_factory=list)
    cross_package_dependencies: list[Asset] = field(default_factory=list)
    dependency_size: int = 0
    variant: VariantContext | None = None
    variant_used: bool = False

    @property
    def guid(self) -> str | None:
        return self.file.guid

    @property
    def asset_id(self) -> int:
        return self.asset.id

    def reset_dependencies(self) -> None:
        self.dependency_state = DependencyState.CALCULATING
        self.dependencies = []
        self.media_dependencies = []
        self.script_dependencies = []
        self.cross_package_dependencies = []
        self.dependency_size = 0
        self.variant = None
        self.variant_used = False

    def __str__(self) -> str:
        return f"{self.file.path} ({self.asset})"
