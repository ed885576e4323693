"""Two-pass builder that turns a seed symbol into a bounded call graph.

The builder asks a :class:`RelationSource` for the callers or callees of
each symbol and assembles a :class:`~callgraph.models.graph.CallGraphNode`
tree from the answers:

1. **Census** (outgoing builds with a positive in-degree threshold only):
   a depth-bounded walk that counts how often each callee is referenced
   and remembers its earliest call site.
2. **Materialisation**: a second depth-bounded walk that attaches
   children, drops ignored symbols and high in-degree "hub" callees
   (together with their whole subtree), and reuses the node instance of a
   symbol that was already materialised instead of expanding it again.

Both walks keep a per-pass set of expanded identities, so cyclic
relations terminate even when the depth is unbounded.  Children of a node
are requested concurrently; the check-then-insert on the shared maps runs
without any ``await`` in between, which makes it atomic on the event
loop.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Protocol, runtime_checkable

import structlog

from callgraph.core.identity import node_key, same_symbol
from callgraph.models.graph import (
    CallDirection,
    CallGraphNode,
    CallRelation,
    Position,
    SymbolReference,
)

IgnorePredicate = Callable[[SymbolReference], bool]


class BuildError(Exception):
    """Raised when a graph build cannot complete.

    The build is all-or-nothing: a relation-source failure at any node
    aborts it and no partial graph is returned.
    """


class BuildCancelledError(BuildError):
    """Raised when the caller abandoned the build."""


@runtime_checkable
class RelationSource(Protocol):
    """Resolves the callers or callees of a symbol."""

    async def get_relations(
        self, ref: SymbolReference, direction: CallDirection
    ) -> list[CallRelation]:
        """Return the relations of *ref* in *direction*."""
        ...


def _never_ignore(ref: SymbolReference) -> bool:
    return False


def _call_site_sort_key(relation: CallRelation) -> tuple[int, int, int]:
    position = relation.first_call_site
    if position is None:
        return (1, 0, 0)
    return (0, position.line, position.character)


class _MaterializedSet:
    """Identity-keyed registry of nodes created during one pass."""

    def __init__(self) -> None:
        self._by_key: dict[str, list[CallGraphNode]] = {}

    def find(self, ref: SymbolReference) -> Optional[CallGraphNode]:
        for node in self._by_key.get(node_key(ref), ()):
            if same_symbol(node.symbol, ref):
                return node
        return None

    def add(self, node: CallGraphNode) -> None:
        self._by_key.setdefault(node_key(node.symbol), []).append(node)

    def __len__(self) -> int:
        return sum(len(nodes) for nodes in self._by_key.values())


class GraphBuilder:
    """Builds deduplicated, depth- and in-degree-bounded call graphs.

    Usage::

        builder = GraphBuilder(source)
        root = await builder.build(seed, CallDirection.OUTGOING, max_depth=3)

    Args:
        source: Collaborator answering caller/callee lookups.
        logger: Structured logger; defaults to this module's logger.
    """

    def __init__(self, source: RelationSource, *, logger: Any = None) -> None:
        self._source = source
        self._logger = logger or structlog.get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def build(
        self,
        seed: SymbolReference,
        direction: CallDirection,
        max_depth: int = 0,
        in_degree_threshold: int = 0,
        ignore: Optional[IgnorePredicate] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CallGraphNode:
        """Build the call graph rooted at *seed*.

        Args:
            seed: Symbol the graph starts from.
            direction: Follow callees (outgoing) or callers (incoming).
            max_depth: Maximum number of edges on any root path
                (``0`` = unbounded).
            in_degree_threshold: For outgoing builds, callees whose census
                in-degree exceeds this are pruned with their subtree
                (``0`` = disabled).
            ignore: Predicate dropping a symbol and its whole subtree.
            cancel_event: When set, the build stops at the next
                suspension point.

        Returns:
            The root node.  Nodes reached through several parents are the
            same instance.

        Raises:
            ValueError: If *max_depth* or *in_degree_threshold* is negative.
            BuildError: If the relation source fails anywhere.
            BuildCancelledError: If *cancel_event* was set mid-build.
        """
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        if in_degree_threshold < 0:
            raise ValueError(f"in_degree_threshold must be >= 0, got {in_degree_threshold}")

        build = _Build(
            source=self._source,
            direction=direction,
            max_depth=max_depth,
            in_degree_threshold=in_degree_threshold,
            ignore=ignore or _never_ignore,
            cancel_event=cancel_event,
            logger=self._logger.bind(seed=seed.name, direction=direction.value),
        )
        return await build.run(seed)


class _Build:
    """State of a single :meth:`GraphBuilder.build` invocation."""

    def __init__(
        self,
        *,
        source: RelationSource,
        direction: CallDirection,
        max_depth: int,
        in_degree_threshold: int,
        ignore: IgnorePredicate,
        cancel_event: Optional[asyncio.Event],
        logger: Any,
    ) -> None:
        self.source = source
        self.direction = direction
        self.max_depth = max_depth
        self.threshold = in_degree_threshold
        self.ignore = ignore
        self.cancel_event = cancel_event
        self.logger = logger

        self.failed = False
        self.in_degrees: dict[str, int] = {}
        self.call_sites: dict[str, Position] = {}
        self.census_ran = False

    async def run(self, seed: SymbolReference) -> CallGraphNode:
        self.logger.info(
            "build_started",
            max_depth=self.max_depth,
            in_degree_threshold=self.threshold,
        )

        if self.direction is CallDirection.OUTGOING and self.threshold > 0:
            visited = _MaterializedSet()
            visited.add(CallGraphNode(symbol=seed))
            await self._census(seed, 0, visited)
            self.census_ran = True
            self.logger.debug("census_finished", counted=len(self.in_degrees))

        root = CallGraphNode(symbol=seed, in_degree=0 if self.census_ran else None)
        materialized = _MaterializedSet()
        materialized.add(root)
        await self._materialize(root, 0, materialized)

        self.logger.info("build_finished", nodes=len(materialized))
        return root

    # ------------------------------------------------------------------
    # Relation access
    # ------------------------------------------------------------------

    def _check_cancelled(self) -> None:
        if self.failed:
            raise BuildError("call graph build aborted after a failed lookup")
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise BuildCancelledError("call graph build was cancelled")

    async def _fetch(self, ref: SymbolReference) -> list[CallRelation]:
        """Ask the relation source about *ref*, wrapping failures."""
        self._check_cancelled()
        try:
            relations = await self.source.get_relations(ref, self.direction)
        except Exception as exc:
            self.failed = True
            self.logger.error("relation_lookup_failed", symbol=ref.name, resource=ref.resource)
            raise BuildError(f"Relation lookup failed for {ref.name!r} in {ref.resource}: {exc}") from exc
        # Results that arrive after cancellation are discarded.
        self._check_cancelled()
        return list(relations or ())

    async def _gather(self, pending: list) -> None:
        """Await sibling expansions; on any failure cancel the rest."""
        if not pending:
            return
        tasks = [asyncio.ensure_future(coro) for coro in pending]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            self.failed = True
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _within_depth(self, depth: int) -> bool:
        return self.max_depth == 0 or depth < self.max_depth

    # ------------------------------------------------------------------
    # Pass 1: in-degree census
    # ------------------------------------------------------------------

    async def _census(
        self, ref: SymbolReference, depth: int, visited: _MaterializedSet
    ) -> None:
        if not self._within_depth(depth):
            return

        relations = await self._fetch(ref)
        pending = []
        for relation in relations:
            callee = relation.other
            if self.ignore(callee):
                continue

            key = node_key(callee)
            self.in_degrees[key] = self.in_degrees.get(key, 0) + 1

            position = relation.first_call_site
            if position is not None:
                known = self.call_sites.get(key)
                if known is None or position.sort_key() < known.sort_key():
                    self.call_sites[key] = position

            # Counted above even when already expanded.
            if visited.find(callee) is not None:
                continue
            visited.add(CallGraphNode(symbol=callee))
            pending.append(self._census(callee, depth + 1, visited))

        await self._gather(pending)

    # ------------------------------------------------------------------
    # Pass 2: materialisation
    # ------------------------------------------------------------------

    async def _materialize(
        self, node: CallGraphNode, depth: int, materialized: _MaterializedSet
    ) -> None:
        if not self._within_depth(depth):
            return

        self.logger.debug("resolve", symbol=node.symbol.name, depth=depth)
        relations = await self._fetch(node.symbol)
        if self.direction is CallDirection.OUTGOING:
            relations.sort(key=_call_site_sort_key)

        pending = []
        for relation in relations:
            other = relation.other
            if self.ignore(other):
                self.logger.debug("node_ignored", symbol=other.name)
                continue

            key = node_key(other)
            in_degree = self.in_degrees.get(key, 0) if self.census_ran else None
            if self.census_ran and in_degree > self.threshold:
                self.logger.debug(
                    "node_pruned",
                    symbol=other.name,
                    in_degree=in_degree,
                    threshold=self.threshold,
                )
                continue

            existing = materialized.find(other)
            if existing is not None:
                node.children.append(existing)
                continue

            call_site = self.call_sites.get(key)
            if call_site is None:
                call_site = relation.first_call_site
            child = CallGraphNode(symbol=other, in_degree=in_degree, call_site=call_site)
            materialized.add(child)
            node.children.append(child)
            pending.append(self._materialize(child, depth + 1, materialized))

        await self._gather(pending)
