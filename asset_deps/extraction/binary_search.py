"""Substring search inside binary files.

Binary model containers embed the file names of the textures they were
authored with. A text scan cannot see these, so the raw bytes are searched
for each candidate name instead.
"""

import asyncio
from pathlib import Path

DEFAULT_CHUNK_SIZE = 1 << 20


def find_names_in_binary(path: str | Path, names: list[str], chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """Return the names whose UTF-8 bytes occur anywhere in the file.

    The file is streamed in chunks; each chunk is prefixed with the tail of
    the previous one so matches spanning a chunk border are found. Reading
    stops as soon as every name has been found.

    Args:
        path: Binary file to search.
        names: Candidate names.
        chunk_size: Bytes read per iteration.

    Returns:
        Found names in input order, without duplicates.
    """
    patterns = {name: name.encode('utf-8') for name in dict.fromkeys(names) if name}
    if not patterns:
        return []

    overlap = max(len(p) for p in patterns.values()) - 1
    found: set[str] = set()
    tail = b''
    with open(path, 'rb') as fh:
        while len(found) < len(patterns):
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            window = tail + chunk
            for name, pattern in patterns.items():
                if name not in found and pattern in window:
                    found.add(name)
            tail = window[-overlap:] if overlap else b''

    return [name for name in patterns if name in found]


async def find_names_in_binary_async(path: str | Path, names: list[str]) -> list[str]:
    """Run ``find_names_in_binary`` off the event loop."""
    return await asyncio.to_thread(find_names_in_binary, path, names)
