"""Tests for DependencyAnalyzer."""

import asyncio

import pytest

from asset_deps.cancellation import CancellationToken
from asset_deps.domain.enums import DependencyState, RenderProfile
from asset_deps.domain.models import AssetFile, AssetInfo
from asset_deps.materialization.materializer import FolderMaterializer
from asset_deps.materialization.normalizer import NormalizationError, Normalizer
from tests.conftest import BINARY_CONTENT, SHADER_SOURCE, meta_for, yaml_with_refs


class RecordingNormalizer(Normalizer):
    """Writes fixed text content; optionally only when asked to repair."""

    def __init__(self, content: str, needs_repair: bool = False):
        self.content = content
        self.needs_repair = needs_repair
        self.calls = []

    async def normalize(self, path, repair=False):
        self.calls.append((path, repair))
        if self.needs_repair and not repair:
            return False
        path.write_text(self.content, encoding='utf-8')
        return True


class FailingNormalizer(Normalizer):
    async def normalize(self, path, repair=False):
        raise NormalizationError("tool missing")


class CancellingMaterializer(FolderMaterializer):
    """Cancels the token once more than ``after`` files were requested."""

    def __init__(self, root, token, after):
        super().__init__(root)
        self.token = token
        self.after = after
        self.calls = 0

    async def ensure(self, asset, file=None, allow_download=False, token=None):
        self.calls += 1
        if self.calls > self.after:
            self.token.cancel()
        return await super().ensure(asset, file, allow_download, token)


def _paths(files):
    return [af.path for af in files]


class TestBasicWalk:

    def test_transitive_chain(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        p1 = builder.file(pkg, 'Prefabs/Crate.prefab', yaml_with_refs('bb01'), guid='aa01')
        builder.file(pkg, 'Materials/Crate.mat', yaml_with_refs('cc01'), guid='bb01')
        builder.file(pkg, 'Textures/crate.png', b'PNGDATA', guid='cc01')

        info = analyze(make_analyzer(), pkg, p1)

        assert info.dependency_state is DependencyState.DONE
        assert _paths(info.dependencies) == ['Materials/Crate.mat', 'Textures/crate.png']
        assert info.dependency_size == sum(af.size for af in info.dependencies)
        assert info.script_dependencies == []
        assert info.media_dependencies == info.dependencies
        assert info.cross_package_dependencies == []

    def test_no_self_reference(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        p1 = builder.file(pkg, 'Prefabs/Self.prefab', yaml_with_refs('aa01', 'bb01'), guid='aa01')
        builder.file(pkg, 'Textures/a.png', b'PNG', guid='bb01')

        info = analyze(make_analyzer(), pkg, p1)

        assert [af.guid for af in info.dependencies] == ['bb01']

    def test_cycle_terminates(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        a = builder.file(pkg, 'A.prefab', yaml_with_refs('bb01'), guid='aa01')
        builder.file(pkg, 'B.prefab', yaml_with_refs('aa01', 'cc01'), guid='bb01')
        builder.file(pkg, 'C.prefab', yaml_with_refs('bb01'), guid='cc01')

        info = analyze(make_analyzer(), pkg, a)

        assert info.dependency_state is DependencyState.DONE
        assert [af.guid for af in info.dependencies] == ['bb01', 'cc01']

    def test_no_duplicates_with_diamond(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Root.prefab', yaml_with_refs('bb01', 'cc01'), guid='aa01')
        builder.file(pkg, 'Left.mat', yaml_with_refs('dd01'), guid='bb01')
        builder.file(pkg, 'Right.mat', yaml_with_refs('dd01'), guid='cc01')
        builder.file(pkg, 'shared.png', b'PNG', guid='dd01')

        info = analyze(make_analyzer(), pkg, root)

        guids = [af.guid for af in info.dependencies]
        assert len(guids) == len(set(guids)) == 3

    def test_unknown_identifier_is_ignored(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Root.prefab', yaml_with_refs('ff99', 'bb01'), guid='aa01')
        builder.file(pkg, 'a.png', b'PNG', guid='bb01')

        info = analyze(make_analyzer(), pkg, root)

        assert info.dependency_state is DependencyState.DONE
        assert [af.guid for af in info.dependencies] == ['bb01']

    def test_absent_identifier_skipped_without_other_packages(self, builder, make_analyzer):
        pkg = builder.package(1)
        main = builder.file(pkg, 'main.prefab', yaml_with_refs('p2', 'p3'), guid='p1')
        builder.file(pkg, 'b.mat', yaml_with_refs(), guid='p2')
        info = AssetInfo(asset=pkg, file=main)

        ctx = make_analyzer().analyze_sync(info)

        assert info.dependency_state is DependencyState.DONE
        assert _paths(info.dependencies) == ['b.mat']
        assert info.cross_package_dependencies == []
        assert ctx.unresolved == ['p3']
        assert 'p3' in ctx.visited

    def test_unresolved_identifier_looked_up_once(self, builder, catalog, make_analyzer, monkeypatch):
        pkg = builder.package(1)
        main = builder.file(pkg, 'main.prefab', yaml_with_refs('p2', 'p3'), guid='p1')
        builder.file(pkg, 'b.mat', yaml_with_refs('p3'), guid='p2')
        searched = []
        find_all = catalog.find_all_by_guid

        def spy(guid):
            searched.append(guid)
            return find_all(guid)

        monkeypatch.setattr(catalog, 'find_all_by_guid', spy)

        ctx = make_analyzer().analyze_sync(AssetInfo(asset=pkg, file=main))

        assert searched == ['p3']
        assert ctx.unresolved == ['p3']

    def test_dependency_missing_on_disk_is_kept(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Root.prefab', yaml_with_refs('bb01'), guid='aa01')
        builder.catalog.add_file(AssetFile.create(1, 'Gone.mat', guid='bb01', size=10))

        info = analyze(make_analyzer(), pkg, root)

        assert info.dependency_state is DependencyState.DONE
        assert _paths(info.dependencies) == ['Gone.mat']

    def test_sorted_by_package_then_path(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Root.prefab', yaml_with_refs('bb03', 'bb01', 'bb02'), guid='aa01')
        builder.file(pkg, 'z.png', b'1', guid='bb03')
        builder.file(pkg, 'a.png', b'22', guid='bb01')
        builder.file(pkg, 'm.png', b'333', guid='bb02')

        info = analyze(make_analyzer(), pkg, root)

        assert _paths(info.dependencies) == ['a.png', 'm.png', 'z.png']
        assert info.dependency_size == 6

    def test_non_scanned_root_has_no_dependencies(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        tex = builder.file(pkg, 'a.png', b'PNG', guid='aa01')

        info = analyze(make_analyzer(), pkg, tex)

        assert info.dependency_state is DependencyState.DONE
        assert info.dependencies == []

    def test_repeated_analysis_is_stable(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Root.prefab', yaml_with_refs('bb01'), guid='aa01')
        builder.file(pkg, 'B.mat', yaml_with_refs('cc01'), guid='bb01')
        builder.file(pkg, 'c.png', b'PNG', guid='cc01')
        analyzer = make_analyzer()

        info = AssetInfo(asset=pkg, file=root)
        analyzer.analyze_sync(info)
        first = list(info.dependencies)
        analyzer.analyze_sync(info)

        assert info.dependencies == first

    def test_concurrent_runs_are_independent(self, builder, make_analyzer):
        pkg = builder.package(1)
        a = builder.file(pkg, 'A.prefab', yaml_with_refs('cc01'), guid='aa01')
        b = builder.file(pkg, 'B.prefab', yaml_with_refs('dd01'), guid='bb01')
        builder.file(pkg, 'c.png', b'PNG', guid='cc01')
        builder.file(pkg, 'd.png', b'PNG', guid='dd01')
        analyzer = make_analyzer()
        info_a, info_b = AssetInfo(asset=pkg, file=a), AssetInfo(asset=pkg, file=b)

        async def run_both():
            await asyncio.gather(analyzer.analyze(info_a), analyzer.analyze(info_b))

        asyncio.run(run_both())

        assert [af.guid for af in info_a.dependencies] == ['cc01']
        assert [af.guid for af in info_b.dependencies] == ['dd01']


class TestFailureStates:

    def test_root_not_materializable(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.catalog.add_file(AssetFile.create(1, 'Missing.prefab', guid='aa01'))

        info = analyze(make_analyzer(), pkg, root)

        assert info.dependency_state is DependencyState.FAILED
        assert info.dependencies == []

    def test_root_without_identifier(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'NoGuid.prefab', yaml_with_refs('bb01'))
        builder.file(pkg, 'b.png', b'PNG', guid='bb01')

        info = analyze(make_analyzer(), pkg, root)

        assert info.dependency_state is DependencyState.FAILED

    def test_binary_content_not_possible(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Binary.prefab', BINARY_CONTENT, guid='aa01')

        info = analyze(make_analyzer(), pkg, root)

        assert info.dependency_state is DependencyState.NOT_POSSIBLE

    def test_binary_asset_is_tolerated(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Data.asset', BINARY_CONTENT, guid='aa01')

        info = analyze(make_analyzer(), pkg, root)

        assert info.dependency_state is DependencyState.DONE
        assert info.dependencies == []

    def test_binary_dependency_marks_run(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Root.prefab', yaml_with_refs('bb01'), guid='aa01')
        builder.file(pkg, 'Binary.mat', BINARY_CONTENT, guid='bb01')

        info = analyze(make_analyzer(), pkg, root)

        assert info.dependency_state is DependencyState.NOT_POSSIBLE
        assert [af.guid for af in info.dependencies] == ['bb01']

    def test_normalizer_error_fails(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Binary.prefab', BINARY_CONTENT, guid='aa01')

        info = analyze(make_analyzer(normalizer=FailingNormalizer()), pkg, root)

        assert info.dependency_state is DependencyState.FAILED

    def test_workspace_removed_after_run(self, builder, make_analyzer, analyze, temp_root):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Binary.prefab', BINARY_CONTENT, guid='aa01')

        analyze(make_analyzer(), pkg, root)

        assert list(temp_root.iterdir()) == []


class TestNormalization:

    def test_binary_file_is_normalized_in_copy(self, builder, make_analyzer, analyze, packages_root):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Root.prefab', BINARY_CONTENT, guid='aa01')
        builder.file(pkg, 'b.png', b'PNG', guid='bb01')
        normalizer = RecordingNormalizer(yaml_with_refs('bb01'))

        info = analyze(make_analyzer(normalizer=normalizer), pkg, root)

        assert info.dependency_state is DependencyState.DONE
        assert [af.guid for af in info.dependencies] == ['bb01']
        assert len(normalizer.calls) == 1
        assert normalizer.calls[0][0] != packages_root / 'package1' / 'Root.prefab'
        assert (packages_root / 'package1' / 'Root.prefab').read_bytes() == BINARY_CONTENT

    def test_prefab_retries_with_repair(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Root.prefab', BINARY_CONTENT, guid='aa01')
        builder.file(pkg, 'b.png', b'PNG', guid='bb01')
        normalizer = RecordingNormalizer(yaml_with_refs('bb01'), needs_repair=True)

        info = analyze(make_analyzer(normalizer=normalizer), pkg, root)

        assert [repair for _, repair in normalizer.calls] == [False, True]
        assert [af.guid for af in info.dependencies] == ['bb01']

    def test_material_is_not_repaired(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Root.mat', BINARY_CONTENT, guid='aa01')
        normalizer = RecordingNormalizer(yaml_with_refs('bb01'), needs_repair=True)

        info = analyze(make_analyzer(normalizer=normalizer), pkg, root)

        assert [repair for _, repair in normalizer.calls] == [False]
        assert info.dependency_state is DependencyState.NOT_POSSIBLE

    def test_input_actions_scanned_as_is(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        root = builder.file(pkg, 'Controls.inputactions', '{"maps": [], "guid: bb01": 1}',
                            guid='aa01', meta=meta_for('aa01'))
        builder.file(pkg, 'b.png', b'PNG', guid='bb01')

        info = analyze(make_analyzer(), pkg, root)

        assert info.dependency_state is DependencyState.DONE
        assert [af.guid for af in info.dependencies] == ['bb01']


class TestCancellation:

    def _chain(self, builder):
        pkg = builder.package(1)
        root = builder.file(pkg, 'P1.prefab', yaml_with_refs('bb01'), guid='aa01')
        builder.file(pkg, 'P2.prefab', yaml_with_refs('cc01'), guid='bb01')
        builder.file(pkg, 'P3.prefab', yaml_with_refs('dd01'), guid='cc01')
        builder.file(pkg, 'p4.png', b'PNG', guid='dd01')
        return pkg, root

    def test_cancelled_before_start(self, builder, make_analyzer, analyze):
        pkg, root = self._chain(builder)
        token = CancellationToken()
        token.cancel()

        info = analyze(make_analyzer(), pkg, root, token)

        assert info.dependency_state is DependencyState.PARTIAL
        assert info.dependencies == []

    def test_cancelled_mid_walk_is_subset(self, builder, make_analyzer, analyze, packages_root):
        pkg, root = self._chain(builder)
        full = analyze(make_analyzer(), pkg, root)

        token = CancellationToken()
        materializer = CancellingMaterializer(packages_root, token, after=2)
        partial = analyze(make_analyzer(materializer=materializer), pkg, root, token)

        assert partial.dependency_state is DependencyState.PARTIAL
        assert set(partial.dependencies) < set(full.dependencies)


class TestShaders:

    def _shader_package(self, builder):
        pkg = builder.package(1)
        shader = builder.file(pkg, 'Shaders/Main.shader', SHADER_SOURCE, guid='aa01', meta=meta_for('aa01'))
        builder.file(pkg, 'Shaders/Common.cginc', '// common\n#include "Utils.hlsl"\n', guid='ca01')
        builder.file(pkg, 'Shaders/Lighting.cginc', '// lighting\n', guid='ca02')
        builder.file(pkg, 'Shaders/Utils.hlsl', '// utils\n', guid='ca03')
        builder.file(pkg, 'Editor/MainShaderGUI.cs', 'class MainShaderGUI {}', guid='cb01', meta=meta_for('cb01'))
        return pkg, shader

    def test_includes_and_custom_editor(self, builder, make_analyzer, analyze):
        pkg, shader = self._shader_package(builder)

        info = analyze(make_analyzer(), pkg, shader)

        assert info.dependency_state is DependencyState.DONE
        assert _paths(info.dependencies) == [
            'Editor/MainShaderGUI.cs',
            'Shaders/Common.cginc',
            'Shaders/Lighting.cginc',
            'Shaders/Utils.hlsl',
        ]
        assert _paths(info.script_dependencies) == ['Editor/MainShaderGUI.cs']

    def test_sidecar_references_are_followed(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        font = builder.file(pkg, 'Fonts/Title.ttf', b'\x00FONT', guid='aa01', meta=meta_for('aa01', 'bb01'))
        builder.file(pkg, 'Fonts/Fallback.ttf', b'\x00FONT2', guid='bb01')

        info = analyze(make_analyzer(), pkg, font)

        assert [af.guid for af in info.dependencies] == ['bb01']

    def test_graph_references(self, builder, make_analyzer, analyze):
        pkg = builder.package(1)
        graph_content = '{"m_Nodes": "{\\"m_Texture\\": {\\"guid\\": \\"bb01\\"}}"}'
        graph = builder.file(pkg, 'Shaders/Water.shadergraph', graph_content, guid='aa01')
        builder.file(pkg, 'Textures/water.png', b'PNG', guid='bb01')

        info = analyze(make_analyzer(), pkg, graph)

        assert [af.guid for af in info.dependencies] == ['bb01']


class TestEmbeddedReferences:

    def _model_package(self, builder):
        pkg = builder.package(1)
        model = builder.file(
            pkg, 'Models/Tree.fbx', b'\x00Kaydara FBX\x00Textures/wood.png\x00',
            guid='aa01', meta=meta_for('aa01', 'ma01'),
        )
        builder.file(pkg, 'Materials/Bark.mat', yaml_with_refs(), guid='ma01')
        builder.file(pkg, 'Textures/wood.png', b'PNGWOOD', guid='wd01')
        builder.file(pkg, 'Textures/stone.png', b'PNGSTONE', guid='st01')
        return pkg, model

    def test_embedded_texture_names_found(self, builder, make_analyzer, analyze):
        pkg, model = self._model_package(builder)

        info = analyze(make_analyzer(), pkg, model)

        assert _paths(info.dependencies) == ['Materials/Bark.mat', 'Textures/wood.png']

    def test_embedded_search_can_be_disabled(self, builder, make_analyzer, analyze):
        pkg, model = self._model_package(builder)

        info = analyze(make_analyzer(scan_embedded_references=False), pkg, model)

        assert _paths(info.dependencies) == ['Materials/Bark.mat']


class TestCrossPackage:

    def _packages(self, builder):
        main = builder.package(1, 'Main')
        shared = builder.package(2, 'Shared')
        root = builder.file(main, 'Root.prefab', yaml_with_refs('bb01', 'bb02', 'ff99'), guid='aa01')
        builder.file(shared, 'Shared.mat', yaml_with_refs('bb02'), guid='bb01')
        builder.file(shared, 'shared.png', b'PNG', guid='bb02')
        return main, shared, root

    def test_other_package_recorded_once(self, builder, make_analyzer, analyze):
        main, shared, root = self._packages(builder)

        info = analyze(make_analyzer(), main, root)

        assert info.dependency_state is DependencyState.DONE
        assert [(af.asset_id, af.path) for af in info.dependencies] == [(2, 'Shared.mat'), (2, 'shared.png')]
        assert [a.id for a in info.cross_package_dependencies] == [2]

    def test_disabled_cross_package(self, builder, make_analyzer, analyze):
        main, _, root = self._packages(builder)

        info = analyze(make_analyzer(allow_cross_package=False), main, root)

        assert info.dependency_state is DependencyState.DONE
        assert info.dependencies == []
        assert info.cross_package_dependencies == []

    def test_reference_back_into_root_package(self, builder, make_analyzer, analyze):
        main = builder.package(1, 'Main')
        shared = builder.package(2, 'Shared')
        root = builder.file(main, 'Root.prefab', yaml_with_refs('bb01'), guid='aa01')
        builder.file(shared, 'Shared.mat', yaml_with_refs('cc01'), guid='bb01')
        builder.file(main, 'local.png', b'PNG', guid='cc01')

        info = analyze(make_analyzer(), main, root)

        assert {af.guid for af in info.dependencies} == {'bb01', 'cc01'}
        assert [a.id for a in info.cross_package_dependencies] == [2]


class TestVariants:

    def test_profile_prefers_support_files(self, variant_setup, make_analyzer, analyze):
        s = variant_setup

        info = analyze(make_analyzer(profile=RenderProfile.URP), s['main'], s['prefab'])

        assert info.dependency_state is DependencyState.DONE
        assert info.dependencies == [s['urp_mat'], s['urp_tex']]
        assert info.variant_used is True
        assert info.variant.support_package.id == 2
        assert [a.id for a in info.cross_package_dependencies] == [2]

    def test_no_profile_uses_main_package(self, variant_setup, make_analyzer, analyze):
        s = variant_setup

        info = analyze(make_analyzer(), s['main'], s['prefab'])

        assert info.dependencies == [s['main_mat'], s['main_tex']]
        assert info.variant_used is False
        assert info.variant is None
        assert info.cross_package_dependencies == []

    def test_unused_variant_is_not_reported(self, builder, make_analyzer, analyze):
        main = builder.package(1, 'Main')
        builder.package(2, 'Main_URP', parent_id=1, compatible_profiles=frozenset({RenderProfile.URP}))
        root = builder.file(main, 'Root.prefab', yaml_with_refs('bb01'), guid='aa01')
        builder.file(main, 'b.png', b'PNG', guid='bb01')

        info = analyze(make_analyzer(profile=RenderProfile.URP), main, root)

        assert info.variant_used is False
        assert info.cross_package_dependencies == []

    def test_root_replacement_is_scanned(self, variant_setup, builder, make_analyzer, analyze):
        s = variant_setup
        builder.file(s['support'], 'Prefabs/Hero.prefab', yaml_with_refs('ad01'), guid='aa01')

        info = analyze(make_analyzer(profile=RenderProfile.URP), s['main'], s['prefab'])

        assert info.variant_used is True
        assert info.dependencies == [s['urp_tex']]

    def test_support_file_falls_back_to_original_package(self, builder, make_analyzer, analyze):
        main = builder.package(1, 'Main')
        support = builder.package(2, 'Main_HDRP', parent_id=1, compatible_profiles=frozenset({RenderProfile.HDRP}))
        root = builder.file(main, 'Root.prefab', yaml_with_refs('bb01'), guid='aa01')
        builder.file(main, 'Body.mat', yaml_with_refs(), guid='bb01')
        builder.file(support, 'Body.mat', yaml_with_refs('cc01'), guid='bb01')
        builder.file(main, 'only_main.png', b'PNG', guid='cc01')

        info = analyze(make_analyzer(profile=RenderProfile.HDRP), main, root)

        assert [(af.asset_id, af.guid) for af in info.dependencies] == [(1, 'cc01'), (2, 'bb01')]


class TestFlatDirectory:

    def test_co_located_files_are_dependencies(self, flat_package, make_analyzer, analyze):
        asset, tree, _ = flat_package

        info = analyze(make_analyzer(), asset, tree)

        assert info.dependency_state is DependencyState.DONE
        assert _paths(info.dependencies) == ['bark.png']
        assert info.dependency_size == 7

    def test_single_file_item_has_none(self, flat_package, make_analyzer, analyze):
        asset, _, rock = flat_package

        info = analyze(make_analyzer(), asset, rock)

        assert info.dependency_state is DependencyState.DONE
        assert info.dependencies == []
