"""Recursive file crawler with include/exclude pattern filtering.

Uses ``pathlib`` for all file-system operations and ``pathspec`` for
``.gitignore``-style matching.  Directories matching an exclude pattern
are pruned; files must match at least one include pattern.
"""

from __future__ import annotations

import pathlib
from typing import Iterator, Optional, Sequence

import pathspec
import structlog

from callgraph.config import settings

logger = structlog.get_logger(__name__)

# Map file extensions to language identifiers used by the parser factory.
EXTENSION_LANGUAGE_MAP: dict[str, str] = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
}


class FileCrawler:
    """Recursively walks a directory tree, yielding matching files.

    Args:
        root: The root directory to scan.
        include: Glob patterns a file must match.  ``None`` accepts
            every file.
        exclude: Glob patterns to skip.  Falls back to
            :pyattr:`callgraph.config.Settings.class_diagram_exclude`.
        max_file_size_bytes: Skip files larger than this.  Falls back to
            :pyattr:`callgraph.config.Settings.max_file_size_bytes`.
    """

    def __init__(
        self,
        root: pathlib.Path,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        max_file_size_bytes: int | None = None,
    ) -> None:
        self.root = root.resolve()
        self.include = list(include) if include is not None else None
        self.exclude = list(exclude) if exclude is not None else settings.class_diagram_exclude
        self.max_file_size_bytes = max_file_size_bytes or settings.max_file_size_bytes
        self._include_spec = (
            pathspec.PathSpec.from_lines("gitwildmatch", self.include)
            if self.include is not None
            else None
        )
        self._exclude_spec = pathspec.PathSpec.from_lines("gitwildmatch", self.exclude)

    def _relative(self, path: pathlib.Path) -> str | None:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return None

    def _is_excluded(self, path: pathlib.Path) -> bool:
        """Check whether *path* matches any exclude pattern.

        Args:
            path: Absolute path to test.

        Returns:
            ``True`` if the path should be skipped.
        """
        posix = self._relative(path)
        if posix is None:
            return False
        # For directories, append a trailing slash so directory patterns match.
        if path.is_dir():
            posix += "/"
        return self._exclude_spec.match_file(posix)

    def _is_included(self, path: pathlib.Path) -> bool:
        if self._include_spec is None:
            return True
        posix = self._relative(path)
        return posix is not None and self._include_spec.match_file(posix)

    def crawl(self) -> Iterator[pathlib.Path]:
        """Yield all matching files under :pyattr:`root` in sorted order.

        Yields:
            Absolute ``pathlib.Path`` objects.
        """
        logger.info("crawl_started", root=str(self.root))
        file_count = 0

        for path in self._walk(self.root):
            file_count += 1
            yield path

        logger.info("crawl_finished", root=str(self.root), files_found=file_count)

    def _walk(self, directory: pathlib.Path) -> Iterator[pathlib.Path]:
        """Recursively walk *directory*, pruning excluded subtrees.

        Args:
            directory: Directory to walk.

        Yields:
            Matching file paths.
        """
        try:
            entries = sorted(directory.iterdir())
        except PermissionError:
            logger.warning("permission_denied", path=str(directory))
            return

        for entry in entries:
            if self._is_excluded(entry):
                logger.debug("excluded", path=str(entry))
                continue

            if entry.is_dir():
                yield from self._walk(entry)
            elif entry.is_file():
                if not self._is_included(entry):
                    continue
                try:
                    size = entry.stat().st_size
                except OSError:
                    logger.warning("stat_failed", path=str(entry))
                    continue
                if size > self.max_file_size_bytes:
                    logger.warning(
                        "file_too_large",
                        path=str(entry),
                        size=size,
                        limit=self.max_file_size_bytes,
                    )
                    continue
                yield entry


def get_language_for_file(path: pathlib.Path) -> str | None:
    """Return the language identifier for a file based on its extension.

    Args:
        path: File path to inspect.

    Returns:
        Language string (e.g. ``"python"``) or ``None`` if unsupported.
    """
    return EXTENSION_LANGUAGE_MAP.get(path.suffix.lower())
