"""Shared test fixtures."""

import asyncio
import zipfile
from pathlib import Path

import pytest

from asset_deps.catalog.memory_catalog import MemoryCatalog
from asset_deps.catalog.sqlite_catalog import SqliteCatalog
from asset_deps.config import AnalysisOptions
from asset_deps.dependencies.analyzer import DependencyAnalyzer
from asset_deps.domain.enums import AssetSource, RenderProfile
from asset_deps.domain.models import Asset, AssetFile, AssetInfo
from asset_deps.materialization.materializer import FolderMaterializer


# ── Sample Content ───────────────────────────────────────────────────────

YAML_PREAMBLE = """\
%YAML 1.1
%TAG !u! tag:unity3d.com,2011:
--- !u!1 &100000
GameObject:
  m_Name: Sample
"""


def yaml_with_refs(*guids: str) -> str:
    """Text-serialized asset referencing the given identifiers."""
    lines = [YAML_PREAMBLE]
    for i, guid in enumerate(guids):
        lines.append(f"  m_Ref{i}: {{fileID: 2100000, guid: {guid}, type: 2}}\n")
    return ''.join(lines)


def meta_for(guid: str, *refs: str) -> str:
    lines = ["fileFormatVersion: 2\n", f"guid: {guid}\n"]
    for ref in refs:
        lines.append(f"  externalObject: {{fileID: 2100000, guid: {ref}, type: 2}}\n")
    return ''.join(lines)


SHADER_SOURCE = """\
Shader "Custom/Main"
{
    SubShader
    {
        Pass
        {
            CGPROGRAM
            #include "Common.cginc"
            #include "./Lighting.cginc"
            #include "Packages/com.unity.render-pipelines.core/ShaderLibrary/Common.hlsl"
            ENDCG
        }
    }
    CustomEditor "Studio.Editors.MainShaderGUI"
}
"""

BINARY_CONTENT = b'\x00\x01\x02UnityBinary\xff\xfe'


# ── Package Builder ──────────────────────────────────────────────────────

class PackageBuilder:
    """Writes package folders under ``root`` and registers them in a catalog.

    Packages are laid out the way ``FolderMaterializer`` expects them:
    ``root/<safe name>/<file path>``.
    """

    def __init__(self, root: Path, catalog: MemoryCatalog):
        self.root = root
        self.catalog = catalog

    def package(self, asset_id: int, name: str | None = None, **kwargs) -> Asset:
        asset = Asset(id=asset_id, safe_name=name or f"package{asset_id}", **kwargs)
        return self.catalog.add_asset(asset)

    def file(self, asset: Asset, path: str, content: str | bytes = '', guid: str | None = None,
             meta: str | None = None, register: bool = True) -> AssetFile:
        """Write a file (plus optional sidecar) and add it to the catalog."""
        data = content.encode('utf-8') if isinstance(content, str) else content
        target = self.root / asset.folder_name / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        if meta is not None:
            target.with_name(target.name + '.meta').write_text(meta, encoding='utf-8')

        af = AssetFile.create(asset.id, path, guid=guid, size=len(data))
        if register:
            self.catalog.add_file(af)
        return af


@pytest.fixture
def catalog():
    return MemoryCatalog()


@pytest.fixture
def packages_root(tmp_path):
    root = tmp_path / 'packages'
    root.mkdir()
    return root


@pytest.fixture
def builder(packages_root, catalog):
    return PackageBuilder(packages_root, catalog)


@pytest.fixture
def temp_root(tmp_path):
    root = tmp_path / 'scratch'
    root.mkdir()
    return root


@pytest.fixture
def make_analyzer(catalog, packages_root, temp_root):
    """Factory for analyzers over the builder's packages."""
    def _make(normalizer=None, materializer=None, **options):
        options.setdefault('temp_root', str(temp_root))
        return DependencyAnalyzer(
            catalog,
            materializer or FolderMaterializer(packages_root),
            normalizer=normalizer,
            options=AnalysisOptions(**options),
        )
    return _make


@pytest.fixture
def analyze():
    """Run an analysis to completion and return the analyzed info."""
    def _analyze(analyzer, asset, af, token=None):
        info = AssetInfo(asset=asset, file=af)
        asyncio.run(analyzer.analyze(info, token))
        return info
    return _analyze


@pytest.fixture
def variant_setup(builder):
    """Main package with a URP support package overriding one material.

    main (1):  Hero.prefab -> Body.mat -> body.png
    support (2, child of 1, URP): Body.mat (same guid) -> body_urp.png
    """
    main = builder.package(1, 'HeroPack')
    support = builder.package(
        2, 'HeroPack_URP_All', parent_id=1, compatible_profiles=frozenset({RenderProfile.URP}),
    )
    prefab = builder.file(main, 'Prefabs/Hero.prefab', yaml_with_refs('ab01'), guid='aa01')
    main_mat = builder.file(main, 'Materials/Body.mat', yaml_with_refs('ac01'), guid='ab01')
    main_tex = builder.file(main, 'Textures/body.png', b'PNG', guid='ac01')
    urp_mat = builder.file(support, 'Materials/Body.mat', yaml_with_refs('ad01'), guid='ab01')
    urp_tex = builder.file(support, 'Textures/body_urp.png', b'PNGURP', guid='ad01')
    return {
        'main': main, 'support': support, 'prefab': prefab,
        'main_mat': main_mat, 'main_tex': main_tex, 'urp_mat': urp_mat, 'urp_tex': urp_tex,
    }


@pytest.fixture
def flat_package(tmp_path, catalog):
    """Flat-directory package with one multi-file item and one single-file item."""
    location = tmp_path / 'flat'
    (location / 'ee01').mkdir(parents=True)
    (location / 'ee01' / 'tree.obj').write_bytes(b'v 0 0 0\n')
    (location / 'ee01' / 'bark.png').write_bytes(b'PNGBARK')
    (location / 'ee02').mkdir()
    (location / 'ee02' / 'rock.obj').write_bytes(b'v 1 1 1\n')

    asset = catalog.add_asset(Asset(id=9, safe_name='Flat', source=AssetSource.FLAT_DIRECTORY,
                                    location=str(location)))
    tree = catalog.add_file(AssetFile.create(9, 'tree.obj', guid='ee01', size=8))
    rock = catalog.add_file(AssetFile.create(9, 'rock.obj', guid='ee02', size=8))
    return asset, tree, rock


@pytest.fixture
def sample_catalog(tmp_path):
    """SQLite catalog with one zipped package: Tree.prefab -> Bark.mat -> bark.png."""
    zip_path = tmp_path / 'Forest.zip'
    with zipfile.ZipFile(zip_path, 'w') as zf:
        zf.writestr('Prefabs/Tree.prefab', yaml_with_refs('bb01'))
        zf.writestr('Materials/Bark.mat', yaml_with_refs('cc01'))
        zf.writestr('Textures/bark.png', 'PNGDATA')
        zf.writestr('Prefabs/Broken.prefab', BINARY_CONTENT)

    db_path = tmp_path / 'catalog.db'
    with SqliteCatalog(str(db_path), create=True) as cat:
        cat.add_asset(Asset(id=1, safe_name='Forest', location=str(zip_path)))
        cat.add_file(AssetFile.create(1, 'Prefabs/Tree.prefab', guid='aa01', size=100))
        cat.add_file(AssetFile.create(1, 'Materials/Bark.mat', guid='bb01', size=200))
        cat.add_file(AssetFile.create(1, 'Textures/bark.png', guid='cc01', size=7))
        cat.add_file(AssetFile.create(1, 'Prefabs/Broken.prefab', guid='dd01', size=20))
    return str(db_path)
