"""Graphviz ``digraph`` renderer.

Nodes are grouped into one ``cluster_`` subgraph per resource, and every
node with children gets a single grouped edge statement::

    digraph {
    node [shape=box]
    nodesep=.05
    rankdir="LR"
    "/ws/a.ts#main@0:0" -> {"/ws/b.ts#load@3:0" "/ws/b.ts#save@9:0"}
    subgraph "cluster_/ws/a.ts" {
    label="${workspace}/a.ts"
    "/ws/a.ts#main@0:0" [label="main"]
    }
    ...
    }
"""

from __future__ import annotations

from typing import Any, Optional

from callgraph.core.identity import node_key
from callgraph.models.graph import CallDirection, CallGraphNode
from callgraph.renderers.base import BaseRenderer


def _quote(text: str) -> str:
    """Return *text* as a double-quoted dot ID."""
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _attributes(attrs: dict[str, str]) -> str:
    return "[" + ", ".join(f"{key}={_quote(value)}" for key, value in attrs.items()) + "]"


class _Cluster:
    """Accumulates the node declarations of one resource."""

    def __init__(self, name: str, label: str) -> None:
        self.name = name
        self.label = label
        self.declarations: list[str] = []
        self._declared: set[str] = set()

    def declare(self, declaration: str) -> None:
        if declaration in self._declared:
            return
        self._declared.add(declaration)
        self.declarations.append(declaration)

    def to_dot(self) -> str:
        lines = [f"subgraph {_quote('cluster_' + self.name)} {{", f"label={_quote(self.label)}"]
        lines.extend(self.declarations)
        lines.append("}")
        return "\n".join(lines)


class DotRenderer(BaseRenderer):
    """Renders a call graph as Graphviz dot text.

    Args:
        workspace_root: Workspace root shown as ``${workspace}`` in
            cluster labels.
        rankdir: Graphviz ``rankdir`` (``LR``, ``TB``, ...).
        title: Optional graph name.
        direction: Direction the graph was built in.
        logger: Structured logger.
    """

    format_name = "dot"

    def __init__(
        self,
        workspace_root: Optional[str] = None,
        *,
        rankdir: str = "LR",
        title: Optional[str] = None,
        direction: CallDirection = CallDirection.OUTGOING,
        logger: Any = None,
    ) -> None:
        super().__init__(workspace_root, direction=direction, logger=logger)
        self.rankdir = rankdir
        self.title = title

    def node_id(self, node: CallGraphNode) -> str:
        """Return the dot node ID of *node* (unquoted)."""
        start = node.symbol.range.start
        return f"{node.resource}#{node.name}@{start.line}:{start.character}"

    def render(self, root: CallGraphNode) -> str:
        """Render *root* as a ``digraph`` document.

        Args:
            root: Built call graph.

        Returns:
            Dot source text.
        """
        clusters: dict[str, _Cluster] = {}
        edges: list[str] = []
        visited: set[str] = set()

        def declare(node: CallGraphNode) -> None:
            cluster = clusters.get(node.resource)
            if cluster is None:
                cluster = _Cluster(node.resource, self._display_path(node.resource))
                clusters[node.resource] = cluster
            cluster.declare(_quote(self.node_id(node)) + " " + _attributes({"label": node.name}))

        for node in self._walk(root):
            visited.add(node_key(node.symbol))
            declare(node)

            targets: list[str] = []
            for child in node.children:
                target = _quote(self.node_id(child))
                if target not in targets:
                    targets.append(target)
            if targets:
                edges.append(f"{_quote(self.node_id(node))} -> {{{' '.join(targets)}}}")

        header = "digraph " + (_quote(self.title) + " " if self.title else "") + "{"
        lines = [header, "node [shape=box]", "nodesep=.05", f"rankdir={_quote(self.rankdir)}"]
        lines.extend(edges)
        lines.extend(cluster.to_dot() for cluster in clusters.values())
        lines.append("}")

        self._logger.debug("dot_rendered", nodes=len(visited), clusters=len(clusters))
        return "\n".join(lines) + "\n"
