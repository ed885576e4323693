"""Abstract base class for all diagram renderers.

Every output format subclasses :class:`BaseRenderer` and implements
:meth:`BaseRenderer.render`.  Renderers only read the built graph: they
never call back into a relation source, and each call owns its own
visited set and id maps so one graph can be handed to several renderers.
"""

from __future__ import annotations

import abc
import pathlib
from typing import Any, Iterator, Optional

import structlog

from callgraph.config import WORKSPACE_PLACEHOLDER
from callgraph.core.identity import node_key
from callgraph.models.graph import CallDirection, CallGraphNode


class BaseRenderer(abc.ABC):
    """Contract that every diagram renderer must fulfil.

    Args:
        workspace_root: Root of the workspace; resources below it are
            shown relative to it.
        direction: Direction the graph was built in.  Renderers that draw
            caller-to-callee arrows flip edges of incoming graphs.
        logger: Structured logger; defaults to the subclass module logger.
    """

    #: Short format name used by :class:`~callgraph.renderers.factory.RendererFactory`.
    format_name: str = ""

    def __init__(
        self,
        workspace_root: Optional[str] = None,
        *,
        direction: CallDirection = CallDirection.OUTGOING,
        logger: Any = None,
    ) -> None:
        self.workspace_root = workspace_root.rstrip("/\\") if workspace_root else ""
        self.direction = direction
        self._logger = logger or structlog.get_logger(type(self).__module__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def render(self, root: CallGraphNode) -> str:
        """Render the graph rooted at *root* as diagram text.

        Args:
            root: Fully built and pruned call graph.

        Returns:
            The diagram document, terminated by a newline.
        """

    # ------------------------------------------------------------------
    # Helpers available to all subclasses
    # ------------------------------------------------------------------

    def _relative_path(self, resource: str) -> str:
        """Return *resource* relative to the workspace, POSIX-style.

        Resources outside the workspace (or any resource when no
        workspace is configured) are returned unchanged apart from
        separator normalisation.
        """
        posix = resource.replace("\\", "/")
        if not self.workspace_root:
            return posix
        root = self.workspace_root.replace("\\", "/")
        try:
            return pathlib.PurePosixPath(posix).relative_to(root).as_posix()
        except ValueError:
            return posix

    def _display_path(self, resource: str) -> str:
        """Return *resource* with the workspace root replaced by a placeholder."""
        relative = self._relative_path(resource)
        if relative == resource.replace("\\", "/"):
            return relative
        return f"{WORKSPACE_PLACEHOLDER}/{relative}"

    def _caller_callee(
        self, parent: CallGraphNode, child: CallGraphNode
    ) -> tuple[CallGraphNode, CallGraphNode]:
        """Order a graph edge as ``(caller, callee)``."""
        if self.direction is CallDirection.INCOMING:
            return child, parent
        return parent, child

    @staticmethod
    def _walk(root: CallGraphNode) -> Iterator[CallGraphNode]:
        """Yield each distinct node once, depth first, in child order."""
        seen: set[str] = set()
        stack = [root]
        while stack:
            node = stack.pop()
            key = node_key(node.symbol)
            if key in seen:
                continue
            seen.add(key)
            yield node
            stack.extend(reversed(node.children))
