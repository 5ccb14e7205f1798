"""Domain enums for asset dependency analysis."""
from enum import Enum


class DependencyState(Enum):
    """Lifecycle of one dependency analysis run."""
    NONE = "none"
    CALCULATING = "calculating"
    DONE = "done"
    FAILED = "failed"
    PARTIAL = "partial"
    NOT_POSSIBLE = "not_possible"

    @property
    def is_terminal(self) -> bool:
        return self not in (DependencyState.NONE, DependencyState.CALCULATING)


class RenderProfile(Enum):
    """Target technology profiles a package can provide variants for."""
    NONE = "none"
    URP = "urp"
    HDRP = "hdrp"

    @property
    def name_token(self) -> str:
        """Token that identifies a profile-specific package by its name."""
        return '' if self is RenderProfile.NONE else self.value

    @classmethod
    def parse(cls, value: str | None) -> 'RenderProfile':
        if not value:
            return cls.NONE
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown render profile: {value}") from None


class AssetSource(Enum):
    """Where the content of a package comes from."""
    ARCHIVE = "archive"
    UNITY_PACKAGE = "unity_package"
    DIRECTORY = "directory"
    REGISTRY_PACKAGE = "registry_package"
    FLAT_DIRECTORY = "flat_directory"
