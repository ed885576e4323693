"""Mermaid ``flowchart TD`` renderer.

One box per distinct symbol and one arrow per parent/child relation.
An edge into an already drawn box closes the loop instead of expanding
the callee again, so recursive chains stay finite.
"""

from __future__ import annotations

import hashlib

from callgraph.core.identity import node_key
from callgraph.models.graph import CallGraphNode
from callgraph.renderers.base import BaseRenderer


def flowchart_node_id(node: CallGraphNode) -> str:
    """Return a short Mermaid-safe id for *node*.

    The id is derived from the node identity (name, resource and
    declaration start), so it is identical across runs.
    """
    digest = hashlib.sha1(node_key(node.symbol).encode("utf-8")).hexdigest()
    return f"node_{digest[:8]}"


def _escape_label(label: str) -> str:
    return label.replace('"', "#quot;")


class ControlFlowRenderer(BaseRenderer):
    """Renders a call graph as a Mermaid flowchart."""

    format_name = "flowchart"

    def render(self, root: CallGraphNode) -> str:
        """Render *root* as a ``flowchart TD`` document."""
        boxes: list[str] = []
        edges: list[str] = []
        seen_edges: set[str] = set()

        for node in self._walk(root):
            node_id = flowchart_node_id(node)
            label = f"{node.name}<br><small>{self._relative_path(node.resource)}</small>"
            boxes.append(f'  {node_id}["{_escape_label(label)}"]')

            for child in node.children:
                edge = f"  {node_id} --> {flowchart_node_id(child)}"
                if edge not in seen_edges:
                    seen_edges.add(edge)
                    edges.append(edge)

        self._logger.debug("flowchart_rendered", boxes=len(boxes), edges=len(edges))
        return "\n".join(["flowchart TD", *boxes, *edges]) + "\n"
