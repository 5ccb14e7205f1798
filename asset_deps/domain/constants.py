"""Shared constants, regex patterns, and type groups.

Centralizes all patterns that are shared across reference extraction,
the dependency walker and output modules.
"""

import re

# ── Identifier Patterns ──────────────────────────────────────────────────

# Inline identifier reference in serialized text assets and sidecars
FILE_GUID_RE = re.compile(r'guid: (?:([a-z0-9]*))')

# Graph files embed references inside an escaped JSON string: \"guid\": \"...\"
GRAPH_GUID_RE = re.compile(r'\\"guid\\": \\"([^"]*)\\"')

# Same reference one serialization layer deeper: \\\"guid\\\": \\\"...\\\"
ESCAPED_GRAPH_GUID_RE = re.compile(r'\\\\\\"guid\\\\\\": \\\\\\"([^"]*)\\\\\\"')

# ── Shader Directive Patterns ────────────────────────────────────────────

INCLUDE_RE = re.compile(r'#include(?:_with_pragmas)?\s*"(.+?)"')
CUSTOM_EDITOR_RE = re.compile(r'CustomEditor\s*"(.+?)"')

# ── Content Markers ──────────────────────────────────────────────────────

YAML_HEADER = '%YAML'
SIDECAR_SUFFIX = '.meta'
PACKAGES_PREFIX = 'Packages/'
PROJECT_PREFIX = 'Assets'
CODE_EXTENSION = 'cs'

# ── Scratch Workspaces ───────────────────────────────────────────────────

TEMP_FOLDER = '_AssetDepsTemp'
PARTIAL_INDICATOR = '.partial'

# ── Type Groups ──────────────────────────────────────────────────────────

IMAGE_TYPES: tuple[str, ...] = (
    'png', 'jpg', 'jpeg', 'bmp', 'tga', 'tif', 'tiff', 'psd', 'svg',
    'webp', 'ico', 'gif', 'hdr', 'iff', 'pict',
)

SCRIPT_TYPES: frozenset[str] = frozenset({'cs', 'dll'})

LOG_FORMAT = '[%(levelname)s] %(message)s'
