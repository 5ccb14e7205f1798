"""Private scratch workspaces for content normalization.

Each analysis run gets its own uniquely named folder so concurrent runs
never share copies. Folders are created lazily and removed at the end of
the run; leftovers from crashed processes are removed by
``cleanup_orphans`` during service start-up.
"""

import asyncio
import logging
import shutil
import tempfile
import uuid
from pathlib import Path

from asset_deps.domain.constants import SIDECAR_SUFFIX, TEMP_FOLDER

logger = logging.getLogger(__name__)


class ScratchWorkspace:
    """A per-run scratch folder under a shared temp root.

    Args:
        temp_root: Parent folder for workspaces (defaults to the system temp dir).
    """

    def __init__(self, temp_root: str | Path | None = None) -> None:
        self._root = Path(temp_root) if temp_root else Path(tempfile.gettempdir())
        self.name = f"{TEMP_FOLDER}_{uuid.uuid4().hex[:8]}"
        self.path = self._root / self.name

    @property
    def exists(self) -> bool:
        return self.path.is_dir()

    def ensure(self) -> Path:
        self.path.mkdir(parents=True, exist_ok=True)
        return self.path

    async def copy_in(self, source: str | Path, retries: int = 3, delay: float = 0.2) -> Path | None:
        """Copy a file into the workspace, retrying while it is locked.

        Returns:
            Path of the copy, or None if every attempt failed.
        """
        source = Path(source)
        target = self.ensure() / source.name
        for attempt in range(1, retries + 1):
            try:
                await asyncio.to_thread(shutil.copyfile, source, target)
                return target
            except OSError as e:
                if attempt == retries:
                    logger.error("Could not copy '%s' into workspace: %s", source, e)
                    return None
                logger.debug("Copy of '%s' failed (attempt %d/%d): %s", source, attempt, retries, e)
                await asyncio.sleep(delay * attempt)
        return None

    def cleanup(self) -> None:
        """Remove the workspace; failures are logged, never raised."""
        _remove(self.path)

    def __repr__(self) -> str:
        return f"ScratchWorkspace({self.path})"


def cleanup_orphans(temp_root: str | Path | None = None) -> int:
    """Remove workspaces left behind by earlier runs.

    Only folders named exactly like the workspace prefix, or the prefix
    followed by ``_`` and an id, are touched.

    Args:
        temp_root: Folder to scan (defaults to the system temp dir).

    Returns:
        Number of folders removed.
    """
    root = Path(temp_root) if temp_root else Path(tempfile.gettempdir())
    if not root.is_dir():
        return 0

    removed = 0
    for entry in root.glob(f"{TEMP_FOLDER}*"):
        if not entry.is_dir():
            continue
        if entry.name != TEMP_FOLDER and not entry.name.startswith(TEMP_FOLDER + '_'):
            continue
        if _remove(entry):
            removed += 1
            sidecar = entry.with_name(entry.name + SIDECAR_SUFFIX)
            if sidecar.is_file():
                sidecar.unlink(missing_ok=True)
    return removed


def _remove(path: Path) -> bool:
    if not path.exists():
        return False
    try:
        shutil.rmtree(path)
        return True
    except OSError as e:
        logger.warning("Could not remove temporary folder '%s': %s", path, e)
        return False
