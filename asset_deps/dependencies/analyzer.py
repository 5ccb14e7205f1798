"""Recursive dependency analysis for a single package file.

Starting from one file, references are extracted from its content (and
sidecar), resolved against the catalog and followed recursively until no
new identifiers turn up. Results, state and cross-package packages are
written back into the analyzed ``AssetInfo``.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from asset_deps.cancellation import CancellationToken
from asset_deps.catalog.base import Catalog
from asset_deps.config import AnalysisOptions
from asset_deps.dependencies.aggregator import aggregate
from asset_deps.dependencies.context import ResolutionContext, ResolutionFrame
from asset_deps.dependencies.lookup import PackagePolicy, ReferenceLookup
from asset_deps.dependencies.variants import VariantPolicy, VariantResolver
from asset_deps.domain.constants import IMAGE_TYPES, SIDECAR_SUFFIX
from asset_deps.domain.enums import AssetSource, DependencyState
from asset_deps.domain.file_types import FileType
from asset_deps.domain.models import AssetFile, AssetInfo
from asset_deps.extraction.binary_search import find_names_in_binary_async
from asset_deps.extraction.reference_extractor import (
    code_file_name,
    extract_include_paths,
    extract_named_references,
    extract_references,
    resolve_include_path,
)
from asset_deps.materialization.materializer import Materializer
from asset_deps.materialization.normalizer import (
    NormalizationError,
    Normalizer,
    NullNormalizer,
    is_normalized,
)
from asset_deps.materialization.workspace import ScratchWorkspace

logger = logging.getLogger(__name__)


class DependencyAnalyzer:
    """Computes the transitive dependencies of package files.

    One analyzer can serve many ``analyze`` calls, also concurrently; all
    per-run state lives in a ``ResolutionContext``.

    Args:
        catalog: Read-only package catalog.
        materializer: Makes package files available locally.
        normalizer: Re-serializes binary authoring files (defaults to a
            normalizer that accepts text files only).
        options: Analysis options.
    """

    def __init__(
        self,
        catalog: Catalog,
        materializer: Materializer,
        normalizer: Normalizer | None = None,
        options: AnalysisOptions | None = None,
    ) -> None:
        self._catalog = catalog
        self._materializer = materializer
        self._normalizer = normalizer or NullNormalizer()
        self._options = options or AnalysisOptions()
        self._variants = VariantResolver(
            catalog,
            self._options.profile,
            self._options.profile_version,
            VariantPolicy(self._options.variant_token),
        )
        self._lookup = ReferenceLookup(
            catalog, self._options.allow_cross_package, PackagePolicy(self._options.profile),
        )

    @property
    def options(self) -> AnalysisOptions:
        return self._options

    @property
    def materializer(self) -> Materializer:
        return self._materializer

    async def analyze(self, info: AssetInfo, token: CancellationToken | None = None) -> ResolutionContext:
        """Analyze ``info`` and write the results into it.

        Never raises for unreadable, unresolvable or unnormalizable content;
        the outcome is reported through ``info.dependency_state``.

        Args:
            info: File to analyze (mutated in place).
            token: Cooperative cancellation token.

        Returns:
            The finished run state, including visited and unresolved
            identifiers.
        """
        info.reset_dependencies()
        context = ResolutionContext(
            info=info,
            token=token or CancellationToken(),
            workspace=ScratchWorkspace(self._options.temp_root),
        )
        logger.info("Analyzing dependencies of %s", info)
        try:
            await self._run(context)
        finally:
            context.workspace.cleanup()

        aggregate(info, context)
        if context.unresolved:
            logger.debug("%d identifiers of %s could not be resolved", len(context.unresolved), info)
        logger.info(
            "Dependencies of %s: %s, %d files, %d bytes, %d other packages",
            info, info.dependency_state.value, len(info.dependencies),
            info.dependency_size, len(info.cross_package_dependencies),
        )
        return context

    def analyze_sync(self, info: AssetInfo, token: CancellationToken | None = None) -> ResolutionContext:
        """Run ``analyze`` to completion from synchronous code."""
        return asyncio.run(self.analyze(info, token))

    # ── Run Setup ────────────────────────────────────────────────────────

    async def _run(self, ctx: ResolutionContext) -> None:
        info = ctx.info
        path = await self._materializer.ensure(info.asset, info.file, self._options.allow_download, ctx.token)
        if ctx.cancelled:
            ctx.mark_cancelled()
            return
        if path is None:
            logger.error("Could not materialize %s", info)
            ctx.mark(DependencyState.FAILED)
            return

        frame = ResolutionFrame(asset=info.asset, current=info.file)
        variant = self._variants.prepare(info)
        if variant is not None:
            ctx.variant = variant
            frame = ResolutionFrame(asset=info.asset, current=info.file, variant=variant)
            if variant.main_replacement is not None:
                ctx.variant_used = True
                frame = frame.for_package(variant.support_package, variant.main_replacement)
                path = await self._materializer.ensure(
                    variant.support_package, variant.main_replacement, self._options.allow_download, ctx.token,
                )
                if ctx.cancelled:
                    ctx.mark_cancelled()
                    return
                if path is None:
                    logger.error("Could not materialize replacement of %s", info)
                    ctx.mark(DependencyState.FAILED)
                    return

        # the root is never its own dependency
        if info.guid:
            ctx.visited.add(info.guid)

        if await self._visit(ctx, frame, path) is None:
            ctx.mark(DependencyState.FAILED)

    # ── Recursive Walk ───────────────────────────────────────────────────

    async def _visit(self, ctx: ResolutionContext, frame: ResolutionFrame, path: Path) -> list[AssetFile] | None:
        """Scan one file and follow its references.

        Returns:
            The accumulated results, or None if the file could not be read.
        """
        if ctx.cancelled:
            ctx.mark_cancelled()
            return ctx.results

        if frame.asset.source is AssetSource.FLAT_DIRECTORY:
            return await self._collect_flat_directory(ctx, frame, path)

        file_type = FileType.from_path(path.name)
        behavior = file_type.behavior

        if behavior.scan_sidecar:
            sidecar = path.with_name(path.name + SIDECAR_SUFFIX)
            if sidecar.is_file():
                await self._visit(ctx, frame, sidecar)
            if behavior.embedded_references and self._options.scan_embedded_references:
                await self._follow_embedded(ctx, frame, path)

        if not behavior.scan_content:
            return ctx.results

        if not ctx.root_guid:
            logger.error("No identifier recorded for %s, dependencies cannot be determined", ctx.info)
            ctx.mark(DependencyState.FAILED)
            return ctx.results

        logger.debug("Scanning %s", path)
        content = await self._read(path)
        if ctx.cancelled:
            ctx.mark_cancelled()
            return ctx.results
        if content is None:
            return None

        if behavior.normalize and not is_normalized(content):
            content = await self._normalize(ctx, path, file_type)
            if content is None:
                return ctx.results

        if behavior.includes and frame.current is not None:
            await self._follow_includes(ctx, frame, content)
        if behavior.named_references:
            await self._follow_named_references(ctx, frame, content)
        await self._follow_identifiers(ctx, frame, extract_references(content, file_type))

        return ctx.results

    async def _add_and_recurse(self, ctx: ResolutionContext, frame: ResolutionFrame, af: AssetFile | None) -> None:
        """Record a dependency (or its variant override) and scan it."""
        if af is None or af.key in ctx.visited:
            return

        variant = frame.variant
        if variant is not None:
            if af.asset_id != variant.support_package.id:
                override = variant.file_for(af.guid)
                if override is not None:
                    af = override
            if af.asset_id == variant.support_package.id:
                ctx.variant_used = True

        if not ctx.add_result(af):
            return

        child = self._frame_for(frame, af)
        path = await self._materializer.ensure(child.asset, af, self._options.allow_download, ctx.token)
        if ctx.cancelled:
            ctx.mark_cancelled()
            return
        if path is None:
            logger.warning("Could not materialize dependency: %s", af.path)
            return

        await self._visit(ctx, child, path)

    def _frame_for(self, frame: ResolutionFrame, af: AssetFile) -> ResolutionFrame:
        """Frame in which a dependency's own references are resolved."""
        if af.asset_id == frame.asset.id:
            return frame.with_file(af)
        variant = frame.variant
        if variant is not None:
            if af.asset_id == variant.support_package.id:
                return frame.for_package(variant.support_package, af)
            return frame.for_package(variant.original, af)
        owner = self._catalog.package_owning(af)
        return frame.break_out(owner).with_file(af) if owner else frame.with_file(af)

    # ── Reference Kinds ──────────────────────────────────────────────────

    async def _follow_identifiers(self, ctx: ResolutionContext, frame: ResolutionFrame, guids: list[str]) -> None:
        current_guid = frame.current.guid if frame.current else None
        pending = [
            g for g in guids
            if g != ctx.root_guid and g != current_guid and g not in ctx.visited
        ]
        if not pending:
            return

        cache = self._lookup.prefetch(frame, pending)
        for guid in pending:
            if ctx.cancelled:
                ctx.mark_cancelled()
                return
            if guid in ctx.visited:
                continue

            target = frame
            af = self._lookup.local(frame, guid, cache)
            if af is None:
                match = self._lookup.cross_package(guid)
                if match is None:
                    # outside the indexed universe, nothing to follow
                    ctx.visited.add(guid)
                    ctx.unresolved.append(guid)
                    continue
                af = match.file
                if match.package is not None:
                    if match.package.id == ctx.info.asset.id:
                        target = ResolutionFrame(asset=ctx.info.asset, variant=ctx.variant)
                    else:
                        target = frame.break_out(match.package)
                        ctx.add_cross_package(match.package)

            await self._add_and_recurse(ctx, target, af)

    async def _follow_includes(self, ctx: ResolutionContext, frame: ResolutionFrame, content: str) -> None:
        for include in sorted(extract_include_paths(content)):
            include_path = resolve_include_path(include, frame.current.path)
            af = self._lookup.by_path(frame, include_path)
            if af is None:
                logger.debug("Include '%s' of %s not found in package", include_path, frame.current.path)
                continue
            await self._add_and_recurse(ctx, frame, af)

    async def _follow_named_references(self, ctx: ResolutionContext, frame: ResolutionFrame, content: str) -> None:
        for name in extract_named_references(content):
            af = self._lookup.by_file_name(frame, code_file_name(name))
            await self._add_and_recurse(ctx, frame, af)

    async def _follow_embedded(self, ctx: ResolutionContext, frame: ResolutionFrame, path: Path) -> None:
        """Follow image files whose names are embedded in a binary model."""
        images = self._catalog.find_by_types(frame.asset.id, IMAGE_TYPES)
        if not images:
            return
        try:
            found = await find_names_in_binary_async(path, [af.file_name for af in images])
        except OSError as e:
            logger.warning("Could not search '%s' for embedded references: %s", path, e)
            return
        if ctx.cancelled:
            ctx.mark_cancelled()
            return

        for name in found:
            af = next(a for a in images if a.file_name == name)
            await self._add_and_recurse(ctx, frame, af)

    async def _collect_flat_directory(
        self, ctx: ResolutionContext, frame: ResolutionFrame, path: Path,
    ) -> list[AssetFile]:
        """All other files co-located with the root; single files have none."""
        if not path.is_dir():
            return ctx.results

        root = ctx.info.file
        own_names = {root.path, root.file_name}
        files = await asyncio.to_thread(lambda: sorted(p for p in path.rglob('*') if p.is_file()))
        for file in files:
            relative = file.relative_to(path).as_posix()
            if relative in own_names:
                continue
            ctx.add_result(AssetFile.create(frame.asset.id, relative, size=file.stat().st_size))
        return ctx.results

    # ── Content Access ───────────────────────────────────────────────────

    async def _read(self, path: Path) -> str | None:
        try:
            return await asyncio.to_thread(path.read_text, encoding='utf-8', errors='replace')
        except OSError as e:
            logger.error("Could not read file '%s': %s", path, e)
            return None

    async def _normalize(self, ctx: ResolutionContext, path: Path, file_type: FileType) -> str | None:
        """Re-serialize a private copy of ``path`` and return its text.

        Returns:
            Normalized content, or None if scanning must stop (state is
            updated unless the type tolerates binary content).
        """
        behavior = file_type.behavior
        copy = await ctx.workspace.copy_in(path, retries=self._options.copy_retries)
        if ctx.cancelled:
            ctx.mark_cancelled()
            return None
        if copy is None:
            ctx.mark(DependencyState.FAILED)
            return None

        try:
            normalized = await self._normalizer.normalize(copy)
            if not normalized and behavior.repairable:
                # dangling script references block re-serialization
                logger.debug("Retrying normalization of '%s' with repair", path.name)
                normalized = await self._normalizer.normalize(copy, repair=True)
        except NormalizationError as e:
            logger.error("Invalid content '%s' encountered: %s", path.name, e)
            ctx.mark(DependencyState.FAILED)
            return None
        if ctx.cancelled:
            ctx.mark_cancelled()
            return None

        content = await self._read(copy) if normalized else None
        if content is not None and is_normalized(content):
            return content

        if behavior.tolerate_binary:
            logger.debug("'%s' is binary, skipping reference scan", path.name)
        else:
            logger.warning("'%s' cannot be converted to text, dependencies cannot be determined", path.name)
            ctx.mark(DependencyState.NOT_POSSIBLE)
        return None
