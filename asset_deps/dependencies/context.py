"""Per-run resolution state: visited identifiers, frames and results."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass, field, replace

from asset_deps.cancellation import CancellationToken
from asset_deps.dependencies.variants import VariantContext
from asset_deps.domain.enums import DependencyState
from asset_deps.domain.models import Asset, AssetFile, AssetInfo
from asset_deps.materialization.workspace import ScratchWorkspace


class VisitedSet:
    """Insertion-ordered, lock-guarded set of processed identifiers."""

    def __init__(self) -> None:
        self._items: dict[str, None] = {}
        self._lock = threading.Lock()

    def add(self, item: str) -> bool:
        """Add an item; returns False if it was already present."""
        with self._lock:
            if item in self._items:
                return False
            self._items[item] = None
            return True

    def __contains__(self, item: object) -> bool:
        with self._lock:
            return item in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._items))


@dataclass(frozen=True)
class ResolutionFrame:
    """Immutable view of where the walk currently is.

    Attributes:
        asset: Package the current file is resolved against.
        current: File being scanned (None when unknown, e.g. a sidecar).
        variant: Active variant context; None after breaking out to
            another package.
    """

    asset: Asset
    current: AssetFile | None = None
    variant: VariantContext | None = None

    @property
    def in_substituted_package(self) -> bool:
        """The frame's package differs from the pre-substitution original."""
        return self.variant is not None and self.asset.id != self.variant.original.id

    def with_file(self, af: AssetFile | None) -> ResolutionFrame:
        return replace(self, current=af)

    def for_package(self, asset: Asset, af: AssetFile | None) -> ResolutionFrame:
        return replace(self, asset=asset, current=af)

    def break_out(self, asset: Asset) -> ResolutionFrame:
        return ResolutionFrame(asset=asset)


@dataclass
class ResolutionContext:
    """Mutable state owned by exactly one analysis run."""

    info: AssetInfo
    token: CancellationToken
    workspace: ScratchWorkspace
    visited: VisitedSet = field(default_factory=VisitedSet)
    results: list[AssetFile] = field(default_factory=list)
    cross_packages: dict[int, Asset] = field(default_factory=dict)
    unresolved: list[str] = field(default_factory=list)
    variant: VariantContext | None = None
    variant_used: bool = False
    state: DependencyState = DependencyState.CALCULATING

    @property
    def root_guid(self) -> str | None:
        return self.info.guid

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def mark(self, state: DependencyState) -> None:
        """Record a terminal state; the first one recorded wins."""
        if not self.state.is_terminal:
            self.state = state

    def mark_cancelled(self) -> None:
        self.mark(DependencyState.PARTIAL)

    def add_cross_package(self, asset: Asset) -> None:
        self.cross_packages.setdefault(asset.id, asset)

    def add_result(self, af: AssetFile) -> bool:
        """Record a dependency; False if its identifier was already visited."""
        if not self.visited.add(af.key):
            return False
        self.results.append(af)
        return True
