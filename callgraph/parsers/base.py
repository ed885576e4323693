"""Abstract base class for all language-specific tree-sitter parsers.

Every new language grammar must subclass :class:`BaseLanguageParser` and
implement :meth:`BaseLanguageParser.parse_file`.
"""

from __future__ import annotations

import abc
import pathlib
from typing import Optional

from callgraph.models.graph import Range
from callgraph.models.source import ParsedFile


class BaseLanguageParser(abc.ABC):
    """Contract that every language parser must fulfil.

    Subclasses are responsible for:

    1. Initialising the appropriate ``tree-sitter`` ``Language`` and ``Parser``.
    2. Extracting the outline (classes, methods, functions, properties),
       the callables and their call sites from the concrete syntax tree.
    """

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def parse_file(self, file_path: pathlib.Path, source: bytes) -> ParsedFile:
        """Parse *source* and return its outline and call sites.

        Args:
            file_path: Absolute path to the source file; its string form
                becomes the resource of every extracted symbol.
            source: Raw bytes of the source file.

        Returns:
            A :class:`ParsedFile` for the file.
        """

    # ------------------------------------------------------------------
    # Helpers available to all subclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _node_text(node: object) -> str:
        """Decode the UTF-8 text of a tree-sitter node.

        Args:
            node: A ``tree_sitter.Node`` instance.

        Returns:
            The decoded text content.
        """
        # tree_sitter.Node exposes ``text`` as ``bytes | None``.
        text: bytes | None = getattr(node, "text", None)
        if text is None:
            return ""
        return text.decode("utf-8", errors="replace")

    @staticmethod
    def _range(node: object) -> Range:
        """Return the zero-based range of a tree-sitter node."""
        return Range.from_points(tuple(node.start_point), tuple(node.end_point))  # type: ignore[attr-defined]

    @classmethod
    def _child_text_by_field(cls, node: object, field: str) -> Optional[str]:
        """Return the decoded text of a named field child.

        Args:
            node: Parent tree-sitter node.
            field: Field name (e.g. ``"name"``).

        Returns:
            Text content or ``None``.
        """
        child = node.child_by_field_name(field)  # type: ignore[attr-defined]
        if child is None:
            return None
        return cls._node_text(child) or None
