"""JSON output of dependency analysis results."""

import json
import os
from datetime import datetime, timezone
from typing import Any

from asset_deps.domain.models import Asset, AssetFile, AssetInfo


def _file_entry(af: AssetFile) -> dict[str, Any]:
    return {
        'asset_id': af.asset_id,
        'path': af.path,
        'guid': af.guid,
        'type': af.type,
        'size': af.size,
    }


def _package_entry(asset: Asset) -> dict[str, Any]:
    return {
        'id': asset.id,
        'name': asset.safe_name,
        'display_name': asset.display_name,
        'version': asset.version,
    }


def build_report(info: AssetInfo) -> dict[str, Any]:
    """Serializable summary of an analyzed file."""
    return {
        '_metadata': {
            'generated_at': datetime.now(timezone.utc).isoformat(),
        },
        'root': {
            'package': _package_entry(info.asset),
            **_file_entry(info.file),
        },
        'state': info.dependency_state.value,
        'dependency_size': info.dependency_size,
        'counts': {
            'dependencies': len(info.dependencies),
            'media': len(info.media_dependencies),
            'scripts': len(info.script_dependencies),
            'packages': len(info.cross_package_dependencies),
        },
        'dependencies': [_file_entry(af) for af in info.dependencies],
        'media_dependencies': [af.key for af in info.media_dependencies],
        'script_dependencies': [af.key for af in info.script_dependencies],
        'cross_package_dependencies': [_package_entry(a) for a in info.cross_package_dependencies],
        'variant': _package_entry(info.variant.support_package) if info.variant else None,
        'variant_used': info.variant_used,
    }


class ReportWriter:
    """Writes analysis reports as JSON files.

    Args:
        pretty: Whether to pretty-print JSON (default True).
    """

    def __init__(self, pretty: bool = True) -> None:
        self._indent = 2 if pretty else None

    def write(self, info: AssetInfo, path: str) -> str:
        """Write the report for ``info`` to ``path`` and return the path."""
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._write_json(path, build_report(info))
        return path

    def dumps(self, info: AssetInfo) -> str:
        return json.dumps(build_report(info), indent=self._indent, ensure_ascii=False, default=str)

    def _write_json(self, path: str, data: Any) -> None:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=self._indent, ensure_ascii=False, default=str)
