"""Gitignore-style symbol filtering.

An ignore file lists paths in ``.gitignore`` syntax.  Symbols whose
resource matches one of the patterns are left out of the graph, along
with everything reachable only through them.
"""

from __future__ import annotations

import pathlib
from typing import Optional

import pathspec
import structlog

from callgraph.config import WORKSPACE_PLACEHOLDER
from callgraph.core.builder import IgnorePredicate
from callgraph.core.content_reader import read_source
from callgraph.models.graph import SymbolReference

logger = structlog.get_logger(__name__)


def _never_ignore(ref: SymbolReference) -> bool:
    return False


def expand_workspace(value: str, workspace_root: str | pathlib.Path) -> str:
    """Replace ``${workspace}`` in *value* with the workspace root."""
    return value.replace(WORKSPACE_PLACEHOLDER, str(workspace_root))


def build_ignore_predicate(
    workspace_root: str | pathlib.Path,
    ignore_file: Optional[str | pathlib.Path],
) -> IgnorePredicate:
    """Build an ignore predicate from a gitignore-style file.

    Args:
        workspace_root: Root that patterns are relative to.
        ignore_file: Path of the pattern file; ``${workspace}`` is
            expanded.  ``None``, an empty string or a path that does
            not exist disables ignoring.

    Returns:
        A predicate that is ``True`` for symbols outside the workspace
        and for symbols whose workspace-relative path matches a pattern.
    """
    if not ignore_file:
        return _never_ignore

    root = pathlib.Path(workspace_root).resolve()
    path = pathlib.Path(expand_workspace(str(ignore_file), root))
    if not path.is_absolute():
        path = root / path
    if not path.is_file():
        logger.warning("ignore_file_missing", file=str(path))
        return _never_ignore

    spec = pathspec.PathSpec.from_lines("gitwildmatch", read_source(path).splitlines())
    logger.info("ignore_file_loaded", file=str(path), patterns=len(spec.patterns))

    def is_ignored(ref: SymbolReference) -> bool:
        try:
            relative = pathlib.Path(ref.resource).resolve().relative_to(root)
        except ValueError:
            return True
        return spec.match_file(relative.as_posix())

    return is_ignored
