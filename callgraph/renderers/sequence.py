"""Mermaid ``sequenceDiagram`` renderer.

Every resource becomes one participant.  Messages follow the order in
which calls are discovered, depth first, with each node's calls sorted by
call-site position, so the diagram reads roughly like the source does.
"""

from __future__ import annotations

import hashlib
import pathlib
from typing import Any, Optional

from callgraph.core.identity import node_key
from callgraph.models.graph import CallDirection, CallGraphNode
from callgraph.renderers.base import BaseRenderer


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _child_order(child: CallGraphNode) -> tuple[int, int, int]:
    if child.call_site is None:
        return (1, 0, 0)
    return (0, child.call_site.line, child.call_site.character)


class _Participant:
    def __init__(self, ident: str, label: str, node: CallGraphNode) -> None:
        self.ident = ident
        self.label = label
        self.node = node


class SequenceRenderer(BaseRenderer):
    """Renders a call graph as a Mermaid sequence diagram.

    Args:
        workspace_root: Workspace root used for participant labels.
        navigation: Emit one ``click`` line per participant pointing at
            the first symbol seen in that resource.
        direction: Direction the graph was built in; incoming graphs are
            drawn caller to callee.
        logger: Structured logger.
    """

    format_name = "sequence"

    def __init__(
        self,
        workspace_root: Optional[str] = None,
        *,
        navigation: bool = False,
        direction: CallDirection = CallDirection.OUTGOING,
        logger: Any = None,
    ) -> None:
        super().__init__(workspace_root, direction=direction, logger=logger)
        self.navigation = navigation

    def participant_label(self, resource: str) -> str:
        """Return ``<basename>#<suffix>`` for *resource*.

        The four-character suffix is taken from a SHA-1 of the
        workspace-relative path, so files sharing a base name stay
        distinguishable and labels are stable between runs.
        """
        relative = self._relative_path(resource)
        digest = hashlib.sha1(relative.encode("utf-8")).hexdigest()[:4]
        return f"{pathlib.PurePosixPath(relative).name}#{digest}"

    def render(self, root: CallGraphNode) -> str:
        """Render *root* as a ``sequenceDiagram`` document."""
        participants: dict[str, _Participant] = {}
        messages: list[str] = []
        seen_messages: set[tuple[str, str, str]] = set()

        def participant(node: CallGraphNode) -> _Participant:
            found = participants.get(node.resource)
            if found is None:
                found = _Participant(
                    f"participant_{len(participants)}",
                    self.participant_label(node.resource),
                    node,
                )
                participants[node.resource] = found
            return found

        participant(root)
        visited = {node_key(root.symbol)}
        stack: list[tuple[CallGraphNode, CallGraphNode]] = [
            (root, child) for child in reversed(sorted(root.children, key=_child_order))
        ]
        while stack:
            parent, child = stack.pop()
            caller, callee = self._caller_callee(parent, child)
            source = participant(caller).ident
            target = participant(callee).ident
            label = _escape(callee.name)

            triple = (source, target, label)
            if triple not in seen_messages:
                seen_messages.add(triple)
                messages.append(f"    {source}->>{target}: {label}")

            key = node_key(child.symbol)
            if key in visited:
                continue
            visited.add(key)
            ordered = sorted(child.children, key=_child_order)
            stack.extend((child, grandchild) for grandchild in reversed(ordered))

        lines = ["sequenceDiagram"]
        lines.extend(f"    participant {p.ident} as {_escape(p.label)}" for p in participants.values())
        lines.extend(messages)
        if self.navigation:
            for p in participants.values():
                start = p.node.symbol.range.start
                lines.append(
                    f'    click {p.ident} call navigateTo("{_escape(p.node.resource)}", '
                    f"{start.line}, {start.character})"
                )

        self._logger.debug("sequence_rendered", participants=len(participants), messages=len(messages))
        return "\n".join(lines) + "\n"
