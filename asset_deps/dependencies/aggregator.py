"""Result aggregation: turns a finished walk into the analyzed item's fields."""

from asset_deps.dependencies.context import ResolutionContext
from asset_deps.domain.enums import DependencyState
from asset_deps.domain.file_types import is_script_type
from asset_deps.domain.models import AssetFile, AssetInfo


def deduplicate(files: list[AssetFile]) -> list[AssetFile]:
    """Drop repeated files by key, keeping the first occurrence."""
    seen: dict[str, AssetFile] = {}
    for af in files:
        seen.setdefault(af.key, af)
    return list(seen.values())


def sort_files(files: list[AssetFile]) -> list[AssetFile]:
    return sorted(files, key=lambda af: (af.asset_id, af.path, af.type))


def aggregate(info: AssetInfo, context: ResolutionContext) -> None:
    """Write the walk results into ``info``.

    Sets the deduplicated, sorted dependency list with total size, the
    media/script split, cross-package packages and the terminal state
    (``DONE`` only if no earlier terminal state was recorded).

    A prepared variant's support package is listed (first) among the
    cross-package packages only once one of its files was actually used.
    A variant that exists for the active profile but replaces nothing on
    the walked graph adds no package, and ``info.variant`` stays None.
    """
    dependencies = sort_files(deduplicate(context.results))

    info.dependencies = dependencies
    info.dependency_size = sum(af.size for af in dependencies)
    info.script_dependencies = [af for af in dependencies if is_script_type(af.type)]
    info.media_dependencies = [af for af in dependencies if not is_script_type(af.type)]
    cross_packages = dict(context.cross_packages)
    if context.variant_used and context.variant is not None:
        support = context.variant.support_package
        cross_packages = {support.id: support, **cross_packages}
    info.cross_package_dependencies = list(cross_packages.values())

    info.variant_used = context.variant_used
    info.variant = context.variant if context.variant_used else None

    context.mark(DependencyState.DONE)
    info.dependency_state = context.state
