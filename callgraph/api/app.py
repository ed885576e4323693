"""FastAPI application factory and lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from callgraph import __version__
from callgraph.api.routes import graph_router, router
from callgraph.config import settings
from callgraph.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler; configures logging on startup.

    Args:
        app: The FastAPI application instance.
    """
    setup_logging(settings.log_level)
    yield


def create_app() -> FastAPI:
    """Build and return the configured FastAPI application.

    Returns:
        A fully wired :class:`FastAPI` instance.
    """
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description=(
            "Builds a bounded call graph around a symbol of a local "
            "workspace and renders it as Graphviz dot and Mermaid "
            "sequence, class and flowchart diagrams."
        ),
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router, tags=["Service"])
    app.include_router(graph_router, tags=["Call Graph"])
    return app


app = create_app()
