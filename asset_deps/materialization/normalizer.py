"""Normalization of binary-serialized authoring files into scannable text.

Authoring tools may store assets in a binary serialization. References can
only be extracted from the text form, so such files are handed to an
external normalizer that re-serializes them in place.
"""

import asyncio
import logging
import shlex
from abc import ABC, abstractmethod
from pathlib import Path

from asset_deps.domain.constants import YAML_HEADER

logger = logging.getLogger(__name__)


class NormalizationError(Exception):
    """The external normalizer could not be run at all."""
    pass


def is_normalized(content: str) -> bool:
    return content.startswith(YAML_HEADER)


def has_normalized_header(path: str | Path) -> bool:
    """Check the file header without reading the whole file."""
    header = YAML_HEADER.encode('ascii')
    try:
        with open(path, 'rb') as fh:
            return fh.read(len(header)) == header
    except OSError:
        return False


class Normalizer(ABC):
    """Re-serializes a file into text form in place."""

    @abstractmethod
    async def normalize(self, path: Path, repair: bool = False) -> bool:
        """Normalize the file at ``path``.

        Args:
            path: File inside a private scratch workspace; modified in place.
            repair: Strip dangling script references before re-serializing.

        Returns:
            True if the file is in text form afterwards.
        """


class NullNormalizer(Normalizer):
    """Normalizer for environments without a re-serialization tool.

    Files already in text form pass; binary files stay binary.
    """

    async def normalize(self, path: Path, repair: bool = False) -> bool:
        return await asyncio.to_thread(has_normalized_header, path)


class CommandNormalizer(Normalizer):
    """Runs an external re-serialization tool per file.

    ``{path}`` in the command is replaced by the file path; without a
    placeholder the path is appended. For repairs ``repair_flag`` is appended.

    Args:
        command: Command line as list or shell-like string.
        timeout: Seconds before the tool is killed.
        repair_flag: Extra argument requesting dangling-script removal.
    """

    def __init__(self, command: list[str] | str, timeout: float = 120.0, repair_flag: str = '--repair') -> None:
        self._command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self._command:
            raise ValueError("Normalizer command must not be empty")
        self._timeout = timeout
        self._repair_flag = repair_flag

    def build_args(self, path: Path, repair: bool = False) -> list[str]:
        args = [a.replace('{path}', str(path)) for a in self._command]
        if not any('{path}' in a for a in self._command):
            args.append(str(path))
        if repair and self._repair_flag:
            args.append(self._repair_flag)
        return args

    async def normalize(self, path: Path, repair: bool = False) -> bool:
        args = self.build_args(path, repair)
        try:
            proc = await asyncio.create_subprocess_exec(
                *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise NormalizationError(f"Could not start normalizer '{args[0]}': {e}") from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.error("Normalizer timed out after %ss on '%s'", self._timeout, path)
            return False

        if proc.returncode != 0:
            logger.warning(
                "Normalizer exited with %s on '%s': %s",
                proc.returncode, path, stderr.decode('utf-8', errors='replace').strip(),
            )
            return False
        return await asyncio.to_thread(has_normalized_header, path)
