"""Application-wide configuration and settings.

Uses ``pydantic-settings`` so values can be overridden via environment
variables prefixed with ``CALLGRAPH_``.
"""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings

#: Placeholder for the workspace root in paths shown to users and in settings.
WORKSPACE_PLACEHOLDER = "${workspace}"


class Settings(BaseSettings):
    """Global settings for graph building and diagram rendering.

    Attributes:
        app_name: Display name of the application.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        max_depth: Maximum number of edges from the seed (``0`` = unbounded).
        in_degree_threshold: Callees referenced more often than this are
            pruned from outgoing graphs (``0`` = disabled).
        rankdir: Graphviz ``rankdir`` attribute for the dot output.
        sequence_navigation: Emit ``click`` navigation lines in sequence
            diagrams.
        ignore_file: Optional gitignore-style file listing paths whose
            symbols are dropped.  ``${workspace}`` expands to the
            workspace root.
        class_diagram_include: Glob patterns of files the structural scan
            reads.
        class_diagram_exclude: Glob patterns removed from the scan set.
        max_file_size_bytes: Skip files larger than this threshold.
    """

    app_name: str = "CallGraph"
    log_level: str = "INFO"

    max_depth: int = 0
    in_degree_threshold: int = 5

    rankdir: str = "LR"
    sequence_navigation: bool = False
    ignore_file: Optional[str] = None

    class_diagram_include: list[str] = [
        "*.ts",
        "*.tsx",
        "*.js",
        "*.py",
        "*.java",
        "*.cs",
    ]
    class_diagram_exclude: list[str] = [
        ".git",
        "__pycache__",
        "node_modules",
        "venv",
        ".venv",
        ".tox",
        ".mypy_cache",
        ".pytest_cache",
        "dist",
        "build",
        "*.egg-info",
        "*.spec.ts",
        "*.test.ts",
    ]
    max_file_size_bytes: int = 1_048_576  # 1 MB

    model_config = {"env_prefix": "CALLGRAPH_", "env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
