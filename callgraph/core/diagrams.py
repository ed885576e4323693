"""Diagram generation orchestrator.

This is the main entry point for turning a seed symbol into diagrams: it
builds the call graph once, runs the structural scan when a class
diagram is requested, and hands the same graph to every requested
renderer.
"""

from __future__ import annotations

import asyncio
import pathlib
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import structlog

from callgraph.config import settings
from callgraph.core.builder import GraphBuilder, IgnorePredicate, RelationSource
from callgraph.core.scanner import OutlineProvider, StructuralScanner
from callgraph.models.graph import CallDirection, CallGraphNode, ClassInfo, SymbolReference
from callgraph.renderers.base import BaseRenderer
from callgraph.renderers.class_diagram import ClassDiagramRenderer
from callgraph.renderers.factory import RendererFactory, default_factory

logger = structlog.get_logger(__name__)

#: Output formats in the order they are rendered by default.
DEFAULT_FORMATS: tuple[str, ...] = ("dot", "sequence", "class", "flowchart")


@dataclass
class DiagramBundle:
    """One built graph and the diagrams rendered from it.

    Attributes:
        seed: Symbol the graph was built from.
        direction: Direction the graph was built in.
        root: Root of the built graph.
        diagrams: Diagram text keyed by format name, in request order.
    """

    seed: SymbolReference
    direction: CallDirection
    root: CallGraphNode
    diagrams: dict[str, str] = field(default_factory=dict)

    @property
    def total_nodes(self) -> int:
        """Number of distinct nodes in the graph."""
        return sum(1 for _ in BaseRenderer._walk(self.root))


async def generate_diagrams(
    seed: SymbolReference,
    source: RelationSource,
    *,
    direction: CallDirection = CallDirection.OUTGOING,
    workspace_root: Optional[str | pathlib.Path] = None,
    max_depth: Optional[int] = None,
    in_degree_threshold: Optional[int] = None,
    ignore: Optional[IgnorePredicate] = None,
    outline_provider: Optional[OutlineProvider] = None,
    include: Optional[Sequence[str]] = None,
    exclude: Optional[Sequence[str]] = None,
    formats: Optional[Sequence[str]] = None,
    renderers: Optional[RendererFactory] = None,
) -> DiagramBundle:
    """Build the call graph of *seed* and render it in every requested format.

    Options left as ``None`` fall back to :data:`callgraph.config.settings`.

    Args:
        seed: Symbol the graph starts from.
        source: Relation source answering caller/callee lookups.
        direction: Follow callees (outgoing) or callers (incoming).
        workspace_root: Root used for relative paths and the class scan.
        max_depth: Depth bound (``0`` = unbounded).
        in_degree_threshold: Hub threshold (``0`` = disabled).
        ignore: Predicate dropping symbols and their subtrees.
        outline_provider: Enriches scanned classes with members.
        include: Glob patterns for the class scan.
        exclude: Glob patterns excluded from the class scan.
        formats: Output formats; defaults to :data:`DEFAULT_FORMATS`.
        renderers: Renderer registry; defaults to the built-in formats.

    Returns:
        A :class:`DiagramBundle`.

    Raises:
        ValueError: If a format is unknown or a bound is negative.
        BuildError: If the relation source fails.
    """
    factory = renderers or default_factory()
    requested = list(formats) if formats else list(DEFAULT_FORMATS)
    unknown = [name for name in requested if name not in factory.supported_formats]
    if unknown:
        raise ValueError(f"Unknown diagram format(s): {', '.join(unknown)}")

    root_path = pathlib.Path(workspace_root).resolve() if workspace_root is not None else None
    root_str = str(root_path) if root_path is not None else None
    log = logger.bind(seed=seed.name, direction=direction.value)
    log.info("diagrams_started", formats=requested)

    builder = GraphBuilder(source)
    root = await builder.build(
        seed,
        direction,
        max_depth=settings.max_depth if max_depth is None else max_depth,
        in_degree_threshold=settings.in_degree_threshold if in_degree_threshold is None else in_degree_threshold,
        ignore=ignore,
    )

    declared: Optional[dict[str, ClassInfo]] = None
    if "class" in requested and root_path is not None:
        scanner = StructuralScanner(root_path, include=include, exclude=exclude)
        declared = await asyncio.to_thread(scanner.scan)
        if outline_provider is not None:
            await scanner.enrich(declared, outline_provider)

    bundle = DiagramBundle(seed=seed, direction=direction, root=root)
    for name in requested:
        options: dict[str, Any] = {"workspace_root": root_str, "direction": direction}
        if name == "dot":
            options["rankdir"] = settings.rankdir
        elif name == "sequence":
            options["navigation"] = settings.sequence_navigation

        renderer = factory.create(name, **options)
        if isinstance(renderer, ClassDiagramRenderer):
            bundle.diagrams[name] = renderer.render(root, declared)
        elif renderer is not None:
            bundle.diagrams[name] = renderer.render(root)

    log.info("diagrams_finished", total_nodes=bundle.total_nodes, formats=list(bundle.diagrams))
    return bundle
