"""FastAPI route definitions for the CallGraph API.

Provides two endpoints:

- ``POST /graph/render``: index a workspace, resolve the seed symbol,
  build its call graph once and return every requested diagram.
- ``GET /health``: liveness probe.

Indexing is blocking tree-sitter work and is dispatched to a thread via
``asyncio.to_thread`` so the event loop stays free.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from pydantic import BaseModel, Field

from fastapi import APIRouter, HTTPException, status

from callgraph import __version__
from callgraph.config import settings
from callgraph.core.builder import BuildError
from callgraph.core.diagrams import generate_diagrams
from callgraph.core.ignore import build_ignore_predicate
from callgraph.core.workspace import SymbolNotFoundError, WorkspaceIndex
from callgraph.logging import get_logger
from callgraph.models.graph import CallDirection, SymbolReference

logger = get_logger(__name__, component="api")

router = APIRouter()
graph_router = APIRouter(prefix="/graph")


# ------------------------------------------------------------------
# Request / Response schemas
# ------------------------------------------------------------------


class RenderRequest(BaseModel):
    """Payload for ``POST /graph/render``.

    The seed is given either by name (``symbol``, optionally narrowed by
    ``file``) or by a zero-based cursor position (``file``, ``line`` and
    ``character``).

    Attributes:
        path: Absolute local path to the workspace.
        symbol: Name of the seed callable (``save`` or ``Repo.save``).
        file: File holding the seed, absolute or workspace-relative.
        line: Zero-based line of the cursor position.
        character: Zero-based column of the cursor position.
        direction: Follow callees (outgoing) or callers (incoming).
        max_depth: Depth bound; defaults to the configured value.
        in_degree_threshold: Hub threshold; defaults to the configured value.
        formats: Diagram formats to render; defaults to all of them.
        ignore_file: Gitignore-style file of paths to leave out.
    """

    path: str = Field(..., description="Absolute local path to the workspace.")
    symbol: Optional[str] = Field(None, description="Name of the seed callable.")
    file: Optional[str] = Field(None, description="File holding the seed.")
    line: Optional[int] = Field(None, ge=0, description="Zero-based cursor line.")
    character: Optional[int] = Field(None, ge=0, description="Zero-based cursor column.")
    direction: CallDirection = Field(CallDirection.OUTGOING, description="Relation direction.")
    max_depth: Optional[int] = Field(None, ge=0, description="Depth bound, 0 = unbounded.")
    in_degree_threshold: Optional[int] = Field(None, ge=0, description="Hub threshold, 0 = disabled.")
    formats: Optional[list[str]] = Field(None, description="Formats to render.")
    ignore_file: Optional[str] = Field(None, description="Gitignore-style ignore file.")


class RenderResponse(BaseModel):
    """Response from ``POST /graph/render``.

    Attributes:
        seed: The resolved seed symbol.
        direction: Direction the graph was built in.
        total_nodes: Number of distinct nodes in the graph.
        diagrams: Diagram text keyed by format name.
    """

    seed: SymbolReference
    direction: CallDirection
    total_nodes: int = Field(..., description="Distinct nodes in the graph.")
    diagrams: dict[str, str] = Field(..., description="Diagram text per format.")


class HealthResponse(BaseModel):
    """Response from ``GET /health``."""

    status: str = "ok"
    version: str = __version__


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _resolve_seed(index: WorkspaceIndex, request: RenderRequest) -> SymbolReference:
    """Pick the seed symbol named by *request*.

    Raises:
        HTTPException: 400 when the request names no seed.
        SymbolNotFoundError: When nothing in the index matches.
    """
    if request.symbol:
        return index.find_symbol(request.symbol, request.file)
    if request.file is not None and request.line is not None and request.character is not None:
        return index.symbol_at(request.file, request.line, request.character)
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Provide either 'symbol' or 'file', 'line' and 'character'.",
    )


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
)
async def health() -> HealthResponse:
    """Report that the service is up."""
    return HealthResponse()


@graph_router.post(
    "/render",
    response_model=RenderResponse,
    status_code=status.HTTP_200_OK,
    summary="Render the call graph of a symbol",
    description=(
        "Index a local workspace with tree-sitter, resolve the seed symbol, "
        "build its bounded call graph once and render it as Graphviz dot "
        "and Mermaid sequence, class and flowchart diagrams."
    ),
)
async def render_graph(request: RenderRequest) -> RenderResponse:
    """Build and render the call graph of one symbol.

    Args:
        request: Workspace path, seed and build options.

    Returns:
        :class:`RenderResponse` with the resolved seed and the diagrams.

    Raises:
        HTTPException: 400 on invalid input, 404 if the seed is unknown,
            502 if relation lookup fails, 500 on unexpected errors.
    """
    try:
        index = await asyncio.to_thread(WorkspaceIndex.build, request.path)
    except (FileNotFoundError, NotADirectoryError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        )
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Indexing failed: {exc}",
        )

    try:
        seed = _resolve_seed(index, request)
    except SymbolNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        )

    ignore = build_ignore_predicate(index.root, request.ignore_file or settings.ignore_file)

    try:
        bundle = await generate_diagrams(
            seed,
            index,
            direction=request.direction,
            workspace_root=index.root,
            max_depth=request.max_depth,
            in_degree_threshold=request.in_degree_threshold,
            ignore=ignore,
            outline_provider=index,
            formats=request.formats,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        )
    except BuildError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Call graph build failed: {exc}",
        )
    except Exception as exc:
        logger.exception("render_failed", seed=seed.name)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Rendering failed: {exc}",
        )

    return RenderResponse(
        seed=bundle.seed,
        direction=bundle.direction,
        total_nodes=bundle.total_nodes,
        diagrams=bundle.diagrams,
    )
