"""Reference extraction from serialized asset content.

Finds identifier references (``guid: ...``) in text-serialized assets and
sidecars, escaped identifier references inside graph files, include
directives and custom editor class names inside shader sources.
"""

import posixpath
import re

from asset_deps.domain.constants import (
    CODE_EXTENSION,
    CUSTOM_EDITOR_RE,
    ESCAPED_GRAPH_GUID_RE,
    FILE_GUID_RE,
    GRAPH_GUID_RE,
    INCLUDE_RE,
    PACKAGES_PREFIX,
    PROJECT_PREFIX,
)
from asset_deps.domain.file_types import FileType


def extract_references(content: str, file_type: FileType) -> list[str]:
    """Extract referenced identifiers from content of the given type.

    Graph types try the single-escaped pattern first and only fall back to
    the deeper escaped pattern when nothing matched.

    Args:
        content: Text content of the file.
        file_type: Declared type of the file.

    Returns:
        Distinct identifiers in order of first occurrence.
    """
    if not content:
        return []
    if file_type.behavior.graph:
        return extract_graph_guids(content) or extract_escaped_graph_guids(content)
    return extract_guids(content)


def extract_guids(content: str) -> list[str]:
    """Extract ``guid: <id>`` references."""
    return _distinct(FILE_GUID_RE, content)


def extract_graph_guids(content: str) -> list[str]:
    r"""Extract ``\"guid\": \"<id>\"`` references from graph files."""
    return _distinct(GRAPH_GUID_RE, content)


def extract_escaped_graph_guids(content: str) -> list[str]:
    """Extract graph references embedded one serialization layer deeper."""
    return _distinct(ESCAPED_GRAPH_GUID_RE, content)


def extract_include_paths(content: str, include_package_refs: bool = False) -> set[str]:
    """Extract quoted include directives from shader code.

    Args:
        content: Shader source.
        include_package_refs: Keep includes pointing into ``Packages/``.
            These live in read-only external packages and cannot be
            attributed to a package file, so they are skipped by default.

    Returns:
        Set of include paths with a leading ``./`` removed.
    """
    result: set[str] = set()
    for m in INCLUDE_RE.finditer(content or ''):
        value = m.group(1)
        if not include_package_refs and value.startswith(PACKAGES_PREFIX):
            continue
        if value.startswith('./'):
            value = value[2:]
        result.add(value)
    return result


def resolve_include_path(include: str, containing_path: str) -> str:
    """Resolve an include path against the directory of the including file.

    Project-rooted includes (``Assets/...``) are kept; everything else is
    relative to the including file. Separators are normalized to ``/`` and
    ``.``/``..`` segments collapsed.
    """
    include = include.replace('\\', '/')
    if include.startswith(PROJECT_PREFIX):
        path = include
    else:
        base = posixpath.dirname(containing_path.replace('\\', '/'))
        path = posixpath.join(base, include) if base else include
    return posixpath.normpath(path)


def extract_named_references(content: str) -> list[str]:
    """Extract custom editor class names (``CustomEditor "Ns.ClassName"``)."""
    return [m.group(1) for m in CUSTOM_EDITOR_RE.finditer(content or '')]


def code_file_name(dotted_name: str) -> str:
    """File name expected to hold a (possibly namespaced) class.

    Files could be named differently than the class they contain; the
    class name is the only hint the shader gives.
    """
    return f"{dotted_name.split('.')[-1]}.{CODE_EXTENSION}"


def _distinct(pattern: re.Pattern, content: str) -> list[str]:
    seen: dict[str, None] = {}
    for m in pattern.finditer(content):
        value = m.group(1)
        if value:
            seen.setdefault(value, None)
    return list(seen)
