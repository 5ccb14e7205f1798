"""Declared file types and the scanning behavior attached to each.

Every extension the walker knows about is a member of ``FileType``; the
``BEHAVIORS`` table decides what happens to a file of that type (content
scan, sidecar scan, normalization, special extraction). Extensions outside
the table map to ``FileType.OTHER`` and are never scanned.
"""

from dataclasses import dataclass
from enum import Enum


class FileType(Enum):
    """Closed set of declared file types relevant to dependency scanning."""
    PREFAB = 'prefab'
    MATERIAL = 'mat'
    CONTROLLER = 'controller'
    OVERRIDE_CONTROLLER = 'overridecontroller'
    ANIMATION = 'anim'
    ASSET = 'asset'
    PHYSIC_MATERIAL = 'physicmaterial'
    PHYSICS_MATERIAL = 'physicsmaterial'
    SUBSTANCE = 'sbs'
    SUBSTANCE_ARCHIVE = 'sbsar'
    CUBEMAP = 'cubemap'
    SHADER = 'shader'
    CGINC = 'cginc'
    HLSL = 'hlsl'
    SHADER_GRAPH = 'shadergraph'
    SHADER_SUBGRAPH = 'shadersubgraph'
    TERRAIN_LAYER = 'terrainlayer'
    INPUT_ACTIONS = 'inputactions'
    VFX = 'vfx'
    VFX_OPERATOR = 'vfxoperator'
    SCENE = 'unity'
    PRESET = 'preset'
    META = 'meta'
    TRUETYPE_FONT = 'ttf'
    OPENTYPE_FONT = 'otf'
    JAVASCRIPT = 'js'
    OBJ_MODEL = 'obj'
    FBX_MODEL = 'fbx'
    UXML = 'uxml'
    USS = 'uss'
    TSS = 'tss'
    NEURAL_NETWORK = 'nn'
    CSHARP = 'cs'
    LIBRARY = 'dll'
    OTHER = ''

    @classmethod
    def from_extension(cls, extension: str | None) -> 'FileType':
        """Map an extension (with or without dot, any case) to a file type."""
        if not extension:
            return cls.OTHER
        ext = extension.lower().lstrip('.')
        try:
            return cls(ext) if ext else cls.OTHER
        except ValueError:
            return cls.OTHER

    @classmethod
    def from_path(cls, path: str) -> 'FileType':
        name = str(path).replace('\\', '/').rsplit('/', 1)[-1]
        if '.' not in name:
            return cls.OTHER
        return cls.from_extension(name.rsplit('.', 1)[1])

    @property
    def behavior(self) -> 'TypeBehavior':
        return BEHAVIORS.get(self, _NO_BEHAVIOR)


@dataclass(frozen=True)
class TypeBehavior:
    """What the walker does with a file of a given type.

    Attributes:
        scan_content: The file itself is scanned for references.
        scan_sidecar: The ``.meta`` sidecar next to the file is scanned too.
        normalize: Content must be in text serialization before scanning;
            binary-serialized files are re-serialized through the normalizer.
        repairable: The normalizer may strip dangling scripts and retry.
        tolerate_binary: Still-binary content after normalization is not an error.
        graph: References use the (escaped) graph serialization patterns.
        includes: Quoted include directives reference other files by path.
        named_references: Custom editor directives reference code by class name.
        embedded_references: Binary content is searched for embedded file names.
        script: The file belongs to the script partition of a result.
    """
    scan_content: bool = False
    scan_sidecar: bool = False
    normalize: bool = False
    repairable: bool = False
    tolerate_binary: bool = False
    graph: bool = False
    includes: bool = False
    named_references: bool = False
    embedded_references: bool = False
    script: bool = False


_NO_BEHAVIOR = TypeBehavior()

# Serialized authoring formats: scanned after normalization
_SERIALIZED = TypeBehavior(scan_content=True, normalize=True)

BEHAVIORS: dict[FileType, TypeBehavior] = {
    FileType.PREFAB: TypeBehavior(scan_content=True, normalize=True, repairable=True),
    FileType.MATERIAL: _SERIALIZED,
    FileType.CONTROLLER: _SERIALIZED,
    FileType.OVERRIDE_CONTROLLER: _SERIALIZED,
    FileType.ANIMATION: _SERIALIZED,
    FileType.ASSET: TypeBehavior(scan_content=True, normalize=True, tolerate_binary=True),
    FileType.PHYSIC_MATERIAL: _SERIALIZED,
    FileType.PHYSICS_MATERIAL: _SERIALIZED,
    FileType.SUBSTANCE: _SERIALIZED,
    FileType.SUBSTANCE_ARCHIVE: _SERIALIZED,
    FileType.CUBEMAP: _SERIALIZED,
    FileType.SHADER: TypeBehavior(scan_content=True, scan_sidecar=True, includes=True, named_references=True),
    FileType.CGINC: TypeBehavior(scan_content=True, includes=True),
    FileType.HLSL: TypeBehavior(scan_content=True, includes=True),
    FileType.SHADER_GRAPH: TypeBehavior(scan_content=True, graph=True),
    FileType.SHADER_SUBGRAPH: TypeBehavior(scan_content=True, graph=True),
    FileType.TERRAIN_LAYER: _SERIALIZED,
    FileType.INPUT_ACTIONS: TypeBehavior(scan_content=True, scan_sidecar=True),
    FileType.VFX: _SERIALIZED,
    FileType.VFX_OPERATOR: _SERIALIZED,
    FileType.SCENE: _SERIALIZED,
    FileType.PRESET: _SERIALIZED,
    FileType.META: TypeBehavior(scan_content=True),
    FileType.TRUETYPE_FONT: TypeBehavior(scan_sidecar=True),
    FileType.OPENTYPE_FONT: TypeBehavior(scan_sidecar=True),
    FileType.JAVASCRIPT: TypeBehavior(scan_sidecar=True),
    FileType.OBJ_MODEL: TypeBehavior(scan_sidecar=True),
    FileType.FBX_MODEL: TypeBehavior(scan_sidecar=True, embedded_references=True),
    FileType.UXML: TypeBehavior(scan_sidecar=True),
    FileType.USS: TypeBehavior(scan_sidecar=True),
    FileType.TSS: TypeBehavior(scan_sidecar=True),
    FileType.NEURAL_NETWORK: TypeBehavior(scan_sidecar=True),
    FileType.CSHARP: TypeBehavior(scan_sidecar=True, script=True),
    FileType.LIBRARY: TypeBehavior(script=True),
}


def primary_scan_types() -> list[str]:
    """Extensions whose content is scanned for references."""
    return [t.value for t, b in BEHAVIORS.items() if b.scan_content]


def sidecar_scan_types() -> list[str]:
    """Extensions whose ``.meta`` sidecar is scanned for references."""
    return [t.value for t, b in BEHAVIORS.items() if b.scan_sidecar]


def needs_scan(extension: str) -> bool:
    """Whether a file with this extension can carry references at all."""
    behavior = FileType.from_extension(extension).behavior
    return behavior.scan_content or behavior.scan_sidecar


def is_script_type(extension: str) -> bool:
    return FileType.from_extension(extension).behavior.script
