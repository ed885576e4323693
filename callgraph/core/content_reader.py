"""Source file reader with graceful encoding fallback.

The structural scanner reads arbitrary workspace files, some of which
are not UTF-8.  :func:`read_source` tries a short chain of encodings and
only falls back to replacement characters when all of them fail.
"""

from __future__ import annotations

import pathlib
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

# Encodings to attempt in order when reading source files.
_ENCODING_CHAIN: tuple[str, ...] = ("utf-8", "latin-1", "cp1252")


def decode_source(raw: bytes, file_path: Optional[pathlib.Path] = None) -> str:
    """Decode *raw* with the first encoding of the chain that succeeds.

    Args:
        raw: File contents.
        file_path: Path used in the fallback log event only.

    Returns:
        The decoded text.
    """
    for encoding in _ENCODING_CHAIN:
        try:
            return raw.decode(encoding)
        except (UnicodeDecodeError, UnicodeError):
            continue

    # Last resort: decode with replacement chars.
    logger.warning(
        "encoding_fallback",
        file=str(file_path) if file_path else None,
        tried=_ENCODING_CHAIN,
    )
    return raw.decode("utf-8", errors="replace")


def read_source(file_path: pathlib.Path) -> str:
    """Read the whole of *file_path* as text.

    Args:
        file_path: Absolute path to the source file.

    Returns:
        The file contents.

    Raises:
        FileNotFoundError: If *file_path* does not exist.
        OSError: If the file cannot be read.
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Source file not found: {file_path}")

    with file_path.open("rb", buffering=8192) as fh:
        raw = fh.read()

    text = decode_source(raw, file_path)
    logger.debug("source_read", file=str(file_path), size=len(raw))
    return text
