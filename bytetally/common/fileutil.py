"""File I/O primitives for persisted documents.

Both helpers raise ``OSError`` (including ``PermissionError``) on failure
and leave error handling to the caller.  Writes replace the whole file.
"""

from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


def read_document(path: PathLike) -> bytes:
    """Read the full contents of *path*."""
    return Path(path).read_bytes()


def write_document(path: PathLike, document: str) -> None:
    """Write *document* to *path* as UTF-8, creating the parent directory."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(document, encoding="utf-8")
