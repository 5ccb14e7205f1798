"""Variant (technology-profile support package) resolution.

Some packages ship profile-specific sub-packages whose files replace files
of the main package by sharing their identifiers. When a profile is active
the analysis prefers these replacements.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from asset_deps.catalog.base import Catalog
from asset_deps.domain.enums import RenderProfile
from asset_deps.domain.models import Asset, AssetFile, AssetInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VariantContext:
    """Active support package for one analysis run.

    Attributes:
        support_package: Profile-specific package providing replacements.
        original: Snapshot of the analyzed package before substitution.
        support_files: All files of the support package.
        main_replacement: Support file sharing the root file's identifier.
    """

    support_package: Asset
    original: Asset
    support_files: tuple[AssetFile, ...] = ()
    main_replacement: AssetFile | None = None
    _by_guid: dict[str, AssetFile] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_guid: dict[str, AssetFile] = {}
        for af in self.support_files:
            if af.guid:
                by_guid.setdefault(af.guid, af)
        object.__setattr__(self, '_by_guid', by_guid)

    def file_for(self, guid: str | None) -> AssetFile | None:
        """Return the support file overriding this identifier, if any."""
        return self._by_guid.get(guid) if guid else None


@dataclass(frozen=True)
class VariantPolicy:
    """Picks one support package when several qualify.

    Several candidates usually mean the package ships subsets next to a
    complete bundle; the bundle is recognized by a token in its name.
    Without such a name the last candidate (by safe name) wins.
    """

    preferred_token: str = 'all'

    def select(self, candidates: list[Asset]) -> Asset | None:
        if not candidates:
            return None
        token = self.preferred_token.lower()
        if token:
            for candidate in candidates:
                if token in candidate.safe_name.lower():
                    return candidate
        return candidates[-1]


class VariantResolver:
    """Finds the support package and root replacement for an analyzed file.

    Args:
        catalog: Catalog to query sub-packages from.
        profile: Active technology profile.
        profile_version: Version hint narrowing the candidates.
        policy: Tie-break policy for multiple candidates.
    """

    def __init__(
        self,
        catalog: Catalog,
        profile: RenderProfile = RenderProfile.NONE,
        profile_version: str | None = None,
        policy: VariantPolicy | None = None,
    ) -> None:
        self._catalog = catalog
        self._profile = profile
        self._profile_version = profile_version
        self._policy = policy or VariantPolicy()

    def prepare(self, info: AssetInfo) -> VariantContext | None:
        """Resolve the variant context for ``info``.

        Returns:
            The context, or None when no profile is active or no support
            package exists.
        """
        if self._profile is RenderProfile.NONE:
            return None

        candidates: list[Asset] = []
        if self._profile_version:
            candidates = self._catalog.sibling_variants(info.asset.id, self._profile, self._profile_version)
        if not candidates:
            candidates = self._catalog.sibling_variants(info.asset.id, self._profile)
        if not candidates:
            return None

        if len(candidates) > 1:
            logger.warning(
                "Multiple potential %s candidate packages found for package '%s'. Using best match of: %s",
                self._profile.name, info.asset, ', '.join(c.safe_name for c in candidates),
            )
        support = self._policy.select(candidates)

        support_files = tuple(self._catalog.files_of(support.id))
        replacement = None
        if info.guid:
            replacement = next((af for af in support_files if af.guid == info.guid), None)

        return VariantContext(
            support_package=support,
            original=replace(info.asset),
            support_files=support_files,
            main_replacement=replacement,
        )
