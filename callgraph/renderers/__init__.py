"""Diagram renderers and the renderer factory."""

from callgraph.renderers.base import BaseRenderer
from callgraph.renderers.class_diagram import ClassDiagramRenderer
from callgraph.renderers.controlflow import ControlFlowRenderer
from callgraph.renderers.dot import DotRenderer
from callgraph.renderers.factory import RendererFactory, default_factory
from callgraph.renderers.sequence import SequenceRenderer

__all__ = [
    "BaseRenderer",
    "ClassDiagramRenderer",
    "ControlFlowRenderer",
    "DotRenderer",
    "RendererFactory",
    "SequenceRenderer",
    "default_factory",
]
