"""Factory for obtaining diagram renderers by format name.

Adding a new output format requires only:

1. Creating a new subclass of :class:`BaseRenderer`.
2. Registering it via :meth:`RendererFactory.register`.
"""

from __future__ import annotations

from typing import Any, Type

import structlog

from callgraph.renderers.base import BaseRenderer
from callgraph.renderers.class_diagram import ClassDiagramRenderer
from callgraph.renderers.controlflow import ControlFlowRenderer
from callgraph.renderers.dot import DotRenderer
from callgraph.renderers.sequence import SequenceRenderer

logger = structlog.get_logger(__name__)


class RendererFactory:
    """Registry-based factory that maps format names to renderer classes.

    Renderers are built fresh on every :meth:`create` call: they are
    cheap, and a fresh instance guarantees no traversal state leaks
    between renders.

    Usage::

        factory = RendererFactory()
        factory.register("dot", DotRenderer)
        renderer = factory.create("dot", workspace_root="/repo", rankdir="TB")
    """

    def __init__(self) -> None:
        self._registry: dict[str, Type[BaseRenderer]] = {}

    def register(self, format_name: str, renderer_cls: Type[BaseRenderer]) -> None:
        """Register a renderer class for *format_name*.

        Args:
            format_name: Lowercase format identifier (e.g. ``"dot"``).
            renderer_cls: A concrete subclass of :class:`BaseRenderer`.
        """
        self._registry[format_name] = renderer_cls
        logger.debug("renderer_registered", format=format_name, cls=renderer_cls.__name__)

    def create(self, format_name: str, **options: Any) -> BaseRenderer | None:
        """Instantiate the renderer registered for *format_name*.

        Args:
            format_name: Lowercase format identifier.
            **options: Keyword arguments forwarded to the renderer.

        Returns:
            A renderer instance, or ``None`` if the format is unknown.
        """
        cls = self._registry.get(format_name)
        if cls is None:
            logger.warning("no_renderer_registered", format=format_name)
            return None
        return cls(**options)

    @property
    def supported_formats(self) -> list[str]:
        """Return a sorted list of registered format names."""
        return sorted(self._registry.keys())


def default_factory() -> RendererFactory:
    """Create a :class:`RendererFactory` pre-loaded with the built-in formats."""
    factory = RendererFactory()
    for renderer_cls in (DotRenderer, SequenceRenderer, ClassDiagramRenderer, ControlFlowRenderer):
        factory.register(renderer_cls.format_name, renderer_cls)
    return factory
