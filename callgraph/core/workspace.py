"""In-memory index of a workspace's callables and call sites.

:class:`WorkspaceIndex` crawls a directory, hands every supported file to
its tree-sitter parser and links the unresolved call sites to the
callables they most likely refer to.  The result serves both as a
:class:`~callgraph.core.builder.RelationSource` and as an
:class:`~callgraph.core.scanner.OutlineProvider`, so diagrams can be
produced without an editor's language server.

Call resolution is name-based:

1. A callee is matched on the final segment of its expression
   (``self.repo.save`` matches every callable named ``save``); calling a
   class name matches that class's constructor.
2. ``self.x()`` / ``this.x()`` prefer methods of the caller's own class.
3. Otherwise definitions in the caller's file are preferred.
4. Any remaining ambiguity links every candidate.
"""

from __future__ import annotations

import pathlib
from typing import Any, Optional, Sequence

import structlog

from callgraph.core.crawler import FileCrawler, get_language_for_file
from callgraph.core.identity import node_key
from callgraph.models.graph import (
    CallDirection,
    CallRelation,
    OutlineSymbol,
    Position,
    Range,
    SymbolKind,
    SymbolReference,
)
from callgraph.models.source import CallSite, ParsedFile
from callgraph.parsers.base import BaseLanguageParser
from callgraph.parsers.factory import ParserFactory, default_factory

_SELF_RECEIVERS = frozenset({"self", "this"})


class SymbolNotFoundError(LookupError):
    """Raised when no indexed callable matches a lookup."""


def _class_of(ref: SymbolReference) -> Optional[str]:
    if ref.kind in (SymbolKind.METHOD, SymbolKind.CONSTRUCTOR) and "." in ref.name:
        return ref.name.rsplit(".", 1)[0]
    return None


def _contains(range_: Range, position: Position) -> bool:
    return range_.start.sort_key() <= position.sort_key() < range_.end.sort_key()


class WorkspaceIndex:
    """Callables, outlines and resolved call relations of one workspace.

    Use :meth:`build` to index a directory; the constructor accepts
    already-parsed files, which keeps the linking logic testable without
    touching the file system.

    Args:
        root: Workspace root directory.
        files: Parse results keyed by resource.
        logger: Structured logger; defaults to this module's logger.
    """

    def __init__(
        self,
        root: str | pathlib.Path,
        files: dict[str, ParsedFile],
        *,
        logger: Any = None,
    ) -> None:
        self.root = pathlib.Path(root).resolve()
        self._files = files
        self._logger = logger or structlog.get_logger(__name__)

        self._callables: list[SymbolReference] = []
        self._by_simple_name: dict[str, list[SymbolReference]] = {}
        self._constructors: dict[str, list[SymbolReference]] = {}
        for parsed in files.values():
            for ref in parsed.callables:
                self._callables.append(ref)
                self._by_simple_name.setdefault(ref.name.rsplit(".", 1)[-1], []).append(ref)
                owner = _class_of(ref)
                if ref.kind == SymbolKind.CONSTRUCTOR and owner is not None:
                    self._constructors.setdefault(owner.rsplit(".", 1)[-1], []).append(ref)

        self._outgoing: dict[str, list[CallRelation]] = {}
        self._incoming: dict[str, list[CallRelation]] = {}
        self._link()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        root: str | pathlib.Path,
        include: Optional[Sequence[str]] = None,
        exclude: Optional[Sequence[str]] = None,
        *,
        factory: Optional[ParserFactory] = None,
        logger: Any = None,
    ) -> "WorkspaceIndex":
        """Parse every supported file under *root* and link the calls.

        This is blocking work; async callers should run it through
        ``asyncio.to_thread``.

        Args:
            root: Workspace root directory.
            include: Glob patterns of files to index (default: all).
            exclude: Glob patterns to skip.  Falls back to
                :pyattr:`callgraph.config.Settings.class_diagram_exclude`.
            factory: Parser registry; defaults to the built-in parsers.
            logger: Structured logger.

        Returns:
            The populated index.

        Raises:
            FileNotFoundError: If *root* does not exist.
            NotADirectoryError: If *root* is not a directory.
        """
        log = logger or structlog.get_logger(__name__)
        root_path = pathlib.Path(root).resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Workspace path does not exist: {root_path}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Workspace path is not a directory: {root_path}")

        log.info("indexing_started", root=str(root_path))
        crawler = FileCrawler(root_path, include=include, exclude=exclude)
        parsers = factory or default_factory()

        files: dict[str, ParsedFile] = {}
        files_failed = 0
        for file_path in crawler.crawl():
            language = get_language_for_file(file_path)
            if language is None:
                continue

            parser: BaseLanguageParser | None = parsers.get(language)
            if parser is None:
                log.warning("no_parser_for_language", language=language, file=str(file_path))
                continue

            try:
                parsed = parser.parse_file(file_path, file_path.read_bytes())
            except Exception:
                files_failed += 1
                log.exception("parse_failed", file=str(file_path), language=language)
                continue
            files[parsed.resource] = parsed

        index = cls(root_path, files, logger=log)
        log.info(
            "indexing_finished",
            root=str(root_path),
            files_parsed=len(files),
            files_failed=files_failed,
            callables=len(index._callables),
        )
        return index

    def _link(self) -> None:
        """Resolve every call site and group them into relations."""
        outgoing: dict[str, dict[str, tuple[SymbolReference, list[Range]]]] = {}
        incoming: dict[str, dict[str, tuple[SymbolReference, list[Range]]]] = {}
        unresolved = 0

        for parsed in self._files.values():
            for site in parsed.calls:
                targets = self._resolve(site)
                if not targets:
                    unresolved += 1
                    continue
                caller_key = node_key(site.caller)
                for target in targets:
                    target_key = node_key(target)
                    outgoing.setdefault(caller_key, {}).setdefault(target_key, (target, []))[1].append(site.range)
                    incoming.setdefault(target_key, {}).setdefault(caller_key, (site.caller, []))[1].append(site.range)

        for key, relations in outgoing.items():
            self._outgoing[key] = [CallRelation(other=ref, call_sites=tuple(sites)) for ref, sites in relations.values()]
        for key, relations in incoming.items():
            self._incoming[key] = [CallRelation(other=ref, call_sites=tuple(sites)) for ref, sites in relations.values()]

        self._logger.debug(
            "calls_linked",
            callers=len(self._outgoing),
            callees=len(self._incoming),
            unresolved=unresolved,
        )

    def _resolve(self, site: CallSite) -> list[SymbolReference]:
        """Return the callables *site* most likely refers to."""
        name = site.simple_name
        candidates = self._by_simple_name.get(name, []) + self._constructors.get(name, [])
        if not candidates:
            return []

        receiver = site.callee_name.rsplit(".", 1)[0] if "." in site.callee_name else None
        caller_class = _class_of(site.caller)
        if receiver in _SELF_RECEIVERS and caller_class is not None:
            same_class = [c for c in candidates if _class_of(c) == caller_class]
            if same_class:
                return same_class

        same_file = [c for c in candidates if c.resource == site.caller.resource]
        return same_file or candidates

    # ------------------------------------------------------------------
    # RelationSource / OutlineProvider
    # ------------------------------------------------------------------

    async def get_relations(self, ref: SymbolReference, direction: CallDirection) -> list[CallRelation]:
        """Return the callees (outgoing) or callers (incoming) of *ref*.

        Unknown symbols have no relations.
        """
        table = self._outgoing if direction == CallDirection.OUTGOING else self._incoming
        return list(table.get(node_key(ref), []))

    async def outline(self, resource: str) -> list[OutlineSymbol]:
        """Return the top-level outline symbols of *resource*."""
        parsed = self._files.get(resource) or self._files.get(str(self._resolve_path(resource)))
        if parsed is None:
            return []
        return list(parsed.outline)

    # ------------------------------------------------------------------
    # Seed lookup
    # ------------------------------------------------------------------

    @property
    def callables(self) -> list[SymbolReference]:
        """Every indexed callable, in crawl and source order."""
        return list(self._callables)

    def _resolve_path(self, file: str | pathlib.Path) -> pathlib.Path:
        path = pathlib.Path(file)
        if not path.is_absolute():
            path = self.root / path
        return path.resolve()

    def find_symbol(self, name: str, file: Optional[str | pathlib.Path] = None) -> SymbolReference:
        """Find a callable by name.

        An exact match on the (qualified) name wins over a match on the
        final name segment.  Among equal matches the first in crawl and
        source order is returned.

        Args:
            name: ``save`` or ``UserService.save``.
            file: Restrict the search to this file (absolute or relative
                to the workspace root).

        Raises:
            SymbolNotFoundError: If nothing matches.
        """
        candidates = self._callables
        if file is not None:
            resource = str(self._resolve_path(file))
            candidates = [ref for ref in candidates if ref.resource == resource]

        for ref in candidates:
            if ref.name == name:
                return ref
        for ref in candidates:
            if ref.name.rsplit(".", 1)[-1] == name:
                return ref
        raise SymbolNotFoundError(f"No callable named {name!r}" + (f" in {file}" if file else ""))

    def symbol_at(self, file: str | pathlib.Path, line: int, character: int) -> SymbolReference:
        """Return the innermost callable enclosing a zero-based position.

        Raises:
            SymbolNotFoundError: If no callable encloses the position.
        """
        resource = str(self._resolve_path(file))
        position = Position(line=line, character=character)
        enclosing = [
            ref for ref in self._callables if ref.resource == resource and _contains(ref.range, position)
        ]
        if not enclosing:
            raise SymbolNotFoundError(f"No callable at {file}:{line}:{character}")
        return max(enclosing, key=lambda ref: ref.range.start.sort_key())
