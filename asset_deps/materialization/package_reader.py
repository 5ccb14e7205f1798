"""Package reader for zip archives and unitypackage files."""
import os
import shutil
import tarfile
import zipfile
from dataclasses import dataclass
from typing import List

from asset_deps.domain.constants import SIDECAR_SUFFIX


class ArchiveReadError(Exception):
    """Error reading package archive."""
    pass


@dataclass
class PackageContents:
    """Extracted package contents."""
    target_dir: str
    files: List[str]
    archive_filename: str
    total_files: int


class PackageReader:
    """Extracts package archives into a folder laid out by relative path.

    Zip archives are extracted as-is. Unitypackage files (gzipped tar) store
    every file in a ``<guid>/`` folder holding ``asset``, ``asset.meta`` and
    a ``pathname`` entry; these are rebuilt into their project paths.
    """

    def read(self, archive_path: str, target_dir: str) -> PackageContents:
        """Extract an archive into ``target_dir``."""
        try:
            os.makedirs(target_dir, exist_ok=True)
            if zipfile.is_zipfile(archive_path):
                self._extract_zip(archive_path, target_dir)
            elif tarfile.is_tarfile(archive_path):
                self._extract_unitypackage(archive_path, target_dir)
            else:
                raise ArchiveReadError(f"Unsupported archive format: {archive_path}")

            files = []
            for root, dirs, names in os.walk(target_dir):
                for name in names:
                    files.append(os.path.relpath(os.path.join(root, name), target_dir).replace(os.sep, '/'))

            return PackageContents(
                target_dir=target_dir,
                files=sorted(files),
                archive_filename=os.path.basename(archive_path),
                total_files=len(files),
            )
        except ArchiveReadError:
            raise
        except Exception as e:
            raise ArchiveReadError(f"Failed to read package: {e}") from e

    def cleanup(self, target_dir: str):
        """Clean up extracted directory."""
        if os.path.exists(target_dir):
            shutil.rmtree(target_dir)

    # ── Private Methods ──────────────────────────────────────────────────

    def _extract_zip(self, archive_path: str, target_dir: str) -> None:
        with zipfile.ZipFile(archive_path, 'r') as zip_file:
            for member in zip_file.namelist():
                _safe_join(target_dir, member)
            zip_file.extractall(target_dir)

    def _extract_unitypackage(self, archive_path: str, target_dir: str) -> None:
        entries: dict[str, dict[str, tarfile.TarInfo]] = {}
        with tarfile.open(archive_path, 'r:*') as tar:
            for member in tar.getmembers():
                if not member.isfile():
                    continue
                parts = member.name.replace('\\', '/').lstrip('./').split('/')
                if len(parts) != 2:
                    continue
                entries.setdefault(parts[0], {})[parts[1]] = member

            for guid, members in entries.items():
                if 'pathname' not in members or 'asset' not in members:
                    continue
                pathname = tar.extractfile(members['pathname']).read().decode('utf-8')
                pathname = pathname.splitlines()[0].strip() if pathname else ''
                if not pathname:
                    continue
                target = _safe_join(target_dir, pathname)
                os.makedirs(os.path.dirname(target), exist_ok=True)
                self._copy_member(tar, members['asset'], target)
                if 'asset.meta' in members:
                    self._copy_member(tar, members['asset.meta'], target + SIDECAR_SUFFIX)

    @staticmethod
    def _copy_member(tar: tarfile.TarFile, member: tarfile.TarInfo, target: str) -> None:
        with tar.extractfile(member) as src, open(target, 'wb') as dst:
            shutil.copyfileobj(src, dst)


def _safe_join(root: str, relative: str) -> str:
    """Join a member path to ``root``, refusing paths that escape it."""
    root_abs = os.path.abspath(root)
    target = os.path.abspath(os.path.join(root_abs, relative))
    if target != root_abs and not target.startswith(root_abs + os.sep):
        raise ArchiveReadError(f"Archive entry escapes target folder: {relative}")
    return target
