"""Analysis options and YAML configuration loading.

Precedence: explicit overrides (CLI flags) > config file > defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any

import yaml

from asset_deps.domain.enums import RenderProfile

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Invalid configuration file or value."""
    pass


@dataclass(frozen=True)
class AnalysisOptions:
    """Options controlling a dependency analysis run."""

    profile: RenderProfile = RenderProfile.NONE
    profile_version: str | None = None
    allow_cross_package: bool = True
    scan_embedded_references: bool = True
    allow_download: bool = False
    temp_root: str | None = None
    variant_token: str = 'all'
    copy_retries: int = 3
    normalizer_command: str | None = None


_BOOL_FIELDS = {'allow_cross_package', 'scan_embedded_references', 'allow_download'}


def load_options(path: str | None = None, **overrides: Any) -> AnalysisOptions:
    """Build options from an optional YAML file plus overrides.

    Args:
        path: YAML file with keys named like ``AnalysisOptions`` fields.
        **overrides: Field values taking precedence; None values are ignored.

    Returns:
        Validated options.

    Raises:
        ConfigError: File unreadable, not a mapping, unknown key or bad value.
    """
    data: dict[str, Any] = {}
    if path:
        if not os.path.isfile(path):
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path, encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read config '{path}': {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config '{path}' must be a mapping")
        logger.debug("Loaded config from %s", path)

    data.update({k: v for k, v in overrides.items() if v is not None})
    return options_from_dict(data)


def options_from_dict(data: dict[str, Any]) -> AnalysisOptions:
    known = {f.name for f in fields(AnalysisOptions)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    values = dict(data)
    if 'profile' in values and not isinstance(values['profile'], RenderProfile):
        try:
            values['profile'] = RenderProfile.parse(str(values['profile']))
        except ValueError as e:
            raise ConfigError(str(e)) from e
    for key in _BOOL_FIELDS & set(values):
        if not isinstance(values[key], bool):
            raise ConfigError(f"'{key}' must be true or false")
    if 'copy_retries' in values:
        try:
            values['copy_retries'] = int(values['copy_retries'])
        except (TypeError, ValueError):
            raise ConfigError("'copy_retries' must be an integer") from None
        if values['copy_retries'] < 1:
            raise ConfigError("'copy_retries' must be at least 1")
    command = values.get('normalizer_command')
    if command is not None and not isinstance(command, str):
        raise ConfigError("'normalizer_command' must be a string")
    if 'profile_version' in values and values['profile_version'] is not None:
        values['profile_version'] = str(values['profile_version'])

    return replace(AnalysisOptions(), **values)
