"""Shared fixtures: an in-memory relation source and symbol helpers."""

from __future__ import annotations

import asyncio
from typing import Iterator, Optional

import pytest

from callgraph.core.identity import node_key
from callgraph.models.graph import (
    CallDirection,
    CallGraphNode,
    CallRelation,
    Range,
    SymbolKind,
    SymbolReference,
)

WORKSPACE = "/ws"


def make_ref(
    name: str,
    resource: str = f"{WORKSPACE}/a.ts",
    line: int = 0,
    character: int = 0,
    kind: SymbolKind = SymbolKind.FUNCTION,
) -> SymbolReference:
    """Build a symbol whose declaration starts at ``line:character``."""
    return SymbolReference(
        name=name,
        kind=kind,
        resource=resource,
        range=Range.from_points((line, character), (line + 2, 0)),
    )


class FakeRelationSource:
    """Relation source backed by explicitly registered calls.

    Records every lookup so tests can assert on how often a symbol was
    expanded, and tracks how many lookups were in flight at once.
    """

    def __init__(self) -> None:
        self._outgoing: dict[str, list[CallRelation]] = {}
        self._incoming: dict[str, list[CallRelation]] = {}
        self.lookups: list[tuple[str, CallDirection]] = []
        self.fail_on: set[str] = set()
        self.delays: dict[str, float] = {}
        self.cancel_on: Optional[tuple[str, asyncio.Event]] = None
        self.in_flight = 0
        self.max_in_flight = 0

    def add_call(
        self,
        caller: SymbolReference,
        callee: SymbolReference,
        line: Optional[int] = None,
        character: int = 4,
    ) -> None:
        """Register ``caller -> callee``, optionally with a call site."""
        sites: tuple[Range, ...] = ()
        if line is not None:
            sites = (Range.from_points((line, character), (line, character + len(callee.name))),)
        self._outgoing.setdefault(node_key(caller), []).append(CallRelation(other=callee, call_sites=sites))
        self._incoming.setdefault(node_key(callee), []).append(CallRelation(other=caller, call_sites=sites))

    def lookups_of(self, name: str) -> int:
        return sum(1 for looked_up, _ in self.lookups if looked_up == name)

    async def get_relations(self, ref: SymbolReference, direction: CallDirection) -> list[CallRelation]:
        self.lookups.append((ref.name, direction))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(ref.name, 0))
            if ref.name in self.fail_on:
                raise RuntimeError(f"lookup of {ref.name} failed")
            if self.cancel_on is not None and self.cancel_on[0] == ref.name:
                self.cancel_on[1].set()
        finally:
            self.in_flight -= 1
        table = self._outgoing if direction == CallDirection.OUTGOING else self._incoming
        return list(table.get(node_key(ref), []))


def iter_nodes(root: CallGraphNode) -> Iterator[CallGraphNode]:
    """Yield each distinct node instance of the graph once."""
    seen: set[int] = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node
        stack.extend(node.children)


def longest_path(node: CallGraphNode) -> int:
    """Number of edges on the longest root-to-leaf path of a tree."""
    if not node.children:
        return 0
    return 1 + max(longest_path(child) for child in node.children)


def child_names(node: CallGraphNode) -> list[str]:
    return [child.name for child in node.children]


@pytest.fixture
def source() -> FakeRelationSource:
    return FakeRelationSource()
