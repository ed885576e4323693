"""Data models for symbols, call relations and call graphs."""

from callgraph.models.graph import (
    CallDirection,
    CallGraphNode,
    CallRelation,
    ClassInfo,
    ClassKind,
    OutlineSymbol,
    Position,
    Range,
    SymbolKind,
    SymbolReference,
)
from callgraph.models.source import CallSite, ParsedFile

__all__ = [
    "CallDirection",
    "CallGraphNode",
    "CallRelation",
    "CallSite",
    "ClassInfo",
    "ClassKind",
    "OutlineSymbol",
    "ParsedFile",
    "Position",
    "Range",
    "SymbolKind",
    "SymbolReference",
]
