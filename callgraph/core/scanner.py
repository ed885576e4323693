"""Lexical scan of workspace files for class and interface declarations.

The scan is deliberately shallow: regular expressions locate
``class``/``interface`` declarations (with ``extends`` / ``implements``
clauses or a Python-style base list) and ``namespace X { ... }`` blocks,
whose extent is found by counting braces.  It does not parse the
languages it reads, so declarations inside comments or strings are
picked up too.

A second, optional pass asks an outline provider (for example
:class:`~callgraph.core.workspace.WorkspaceIndex`) for each file's
symbol tree to recover members and precise ranges.
"""

from __future__ import annotations

import pathlib
import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

import structlog

from callgraph.config import settings
from callgraph.core.content_reader import read_source
from callgraph.core.crawler import FileCrawler
from callgraph.models.graph import ClassInfo, ClassKind, OutlineSymbol, SymbolKind

_DECLARATION = re.compile(
    r"\b(class|interface)\s+([\w.]+)"
    r"(?:\s*<[^>{]*>)?"
    r"(?:\s*\(([^()]*)\))?"
    r"(?:\s+extends\s+([\w.]+)(?:\s*<[^>{]*>)?)?"
    r"(?:\s+implements\s+([\w.,\s]+?))?"
    r"\s*[{:]"
)
_NAMESPACE = re.compile(r"\bnamespace\s+([\w.]+)\s*\{")

_METHOD_KINDS = frozenset({SymbolKind.METHOD, SymbolKind.FUNCTION, SymbolKind.CONSTRUCTOR})
_PROPERTY_KINDS = frozenset({SymbolKind.PROPERTY, SymbolKind.FIELD})


@runtime_checkable
class OutlineProvider(Protocol):
    """Returns the structural outline of a resource."""

    async def outline(self, resource: str) -> list[OutlineSymbol]:
        """Return the top-level outline symbols of *resource*."""
        ...


@dataclass(frozen=True)
class _NamespaceBlock:
    name: str
    start: int
    end: int


def _namespace_blocks(text: str) -> list[_NamespaceBlock]:
    """Locate ``namespace X {`` blocks and the index of their closing brace."""
    blocks: list[_NamespaceBlock] = []
    for match in _NAMESPACE.finditer(text):
        depth = 1
        end = len(text)
        for index in range(match.end(), len(text)):
            char = text[index]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    end = index
                    break
        blocks.append(_NamespaceBlock(match.group(1), match.start(), end))
    return blocks


def _split_names(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [name.strip() for name in raw.split(",") if name.strip()]


def parse_declarations(text: str, resource: str) -> dict[str, ClassInfo]:
    """Extract class and interface declarations from *text*.

    Args:
        text: Source text of one file.
        resource: Identity of the file, stored on each :class:`ClassInfo`.

    Returns:
        Declarations keyed by namespace-qualified name, in source order.
    """
    namespaces = _namespace_blocks(text)
    found: dict[str, ClassInfo] = {}

    for match in _DECLARATION.finditer(text):
        keyword, name, bases, extends, implements = match.groups()

        enclosing = [ns.name for ns in namespaces if ns.start < match.start() < ns.end]
        namespace = ".".join(enclosing) or None
        qualified = f"{namespace}.{name}" if namespace else name

        superclass = extends
        base_list = [base for base in _split_names(bases) if "=" not in base]
        if superclass is None and base_list:
            superclass = base_list[0]

        found[qualified] = ClassInfo(
            kind=ClassKind.INTERFACE if keyword == "interface" else ClassKind.CLASS,
            namespace=namespace,
            superclass=superclass,
            interfaces=_split_names(implements),
            resource=resource,
        )
    return found


def _find_symbol(symbols: Sequence[OutlineSymbol], name: str, kind: SymbolKind) -> Optional[OutlineSymbol]:
    for symbol in symbols:
        if symbol.name == name and symbol.kind == kind:
            return symbol
        found = _find_symbol(symbol.children, name, kind)
        if found is not None:
            return found
    return None


class StructuralScanner:
    """Scans a workspace for class and interface declarations.

    Args:
        workspace_root: Directory to scan.
        include: Glob patterns of files to read.  Falls back to
            :pyattr:`callgraph.config.Settings.class_diagram_include`.
        exclude: Glob patterns to skip.  Falls back to
            :pyattr:`callgraph.config.Settings.class_diagram_exclude`.
        logger: Structured logger; defaults to this module's logger.
    """

    def __init__(
        self,
        workspace_root: str | pathlib.Path,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        *,
        logger: Any = None,
    ) -> None:
        self.workspace_root = pathlib.Path(workspace_root)
        self.include = list(include) if include is not None else settings.class_diagram_include
        self.exclude = list(exclude) if exclude is not None else settings.class_diagram_exclude
        self._logger = logger or structlog.get_logger(__name__)

    def scan(self) -> dict[str, ClassInfo]:
        """Read every matching file and collect its declarations.

        Unreadable or unparseable files are logged and skipped.

        Returns:
            Declarations keyed by qualified name.  A later file declaring
            the same qualified name replaces the earlier entry.
        """
        crawler = FileCrawler(self.workspace_root, include=self.include, exclude=self.exclude)
        classes: dict[str, ClassInfo] = {}
        files_scanned = 0
        files_failed = 0

        for file_path in crawler.crawl():
            try:
                text = read_source(file_path)
            except OSError:
                files_failed += 1
                self._logger.warning("scan_file_unreadable", file=str(file_path))
                continue
            try:
                classes.update(parse_declarations(text, str(file_path)))
                files_scanned += 1
            except Exception:
                files_failed += 1
                self._logger.exception("scan_file_failed", file=str(file_path))

        self._logger.info(
            "scan_finished",
            root=str(self.workspace_root),
            files_scanned=files_scanned,
            files_failed=files_failed,
            classes=len(classes),
        )
        return classes

    async def enrich(self, classes: dict[str, ClassInfo], provider: OutlineProvider) -> None:
        """Fill in members and ranges of *classes* from outlines.

        Each resource is asked for at most once.  A provider failure for
        one resource is logged and the classes it declares are left as
        scanned.

        Args:
            classes: Scan result, updated in place.
            provider: Source of structural outlines.
        """
        outlines: dict[str, Optional[list[OutlineSymbol]]] = {}

        for qualified_name, info in classes.items():
            if info.resource is None:
                continue
            if info.resource not in outlines:
                try:
                    outlines[info.resource] = await provider.outline(info.resource)
                except Exception:
                    self._logger.exception("outline_failed", resource=info.resource)
                    outlines[info.resource] = None
            symbols = outlines[info.resource]
            if not symbols:
                continue

            simple_name = qualified_name.split(".")[-1]
            class_symbol = _find_symbol(symbols, simple_name, SymbolKind.CLASS) or _find_symbol(
                symbols, simple_name, SymbolKind.INTERFACE
            )
            if class_symbol is None:
                continue

            info.class_range = class_symbol.range
            for member in class_symbol.children:
                if member.kind in _METHOD_KINDS:
                    info.add_method(member.name)
                    info.method_ranges[member.name] = member.range
                elif member.kind in _PROPERTY_KINDS:
                    info.add_property(member.name)

        self._logger.debug("enrich_finished", resources=len(outlines))
