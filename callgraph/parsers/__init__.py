"""Language-specific tree-sitter parsers and the parser factory."""

from callgraph.parsers.factory import ParserFactory, default_factory

__all__ = ["ParserFactory", "default_factory"]
