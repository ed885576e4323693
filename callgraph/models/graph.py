"""Data models for symbols, call relations and the built call graph.

Value types handed over by collaborators (positions, ranges, symbol
references, relations, outline symbols) are frozen Pydantic v2 models.
The graph itself is made of plain dataclasses: a :class:`CallGraphNode`
is shared by reference wherever it is reached, so it compares by
identity rather than by value.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SymbolKind(str, enum.Enum):
    """Enumeration of symbol kinds reported by relation and outline sources."""

    FUNCTION = "function"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    CLASS = "class"
    INTERFACE = "interface"
    PROPERTY = "property"
    FIELD = "field"
    VARIABLE = "variable"
    NAMESPACE = "namespace"
    MODULE = "module"


class CallDirection(str, enum.Enum):
    """Which side of a call relation a build follows."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"


class Position(BaseModel):
    """A zero-based line/character location inside a resource."""

    model_config = ConfigDict(frozen=True)

    line: int = Field(..., ge=0, description="Zero-based line number.")
    character: int = Field(..., ge=0, description="Zero-based column.")

    def sort_key(self) -> tuple[int, int]:
        return (self.line, self.character)


class Range(BaseModel):
    """A half-open span between two positions."""

    model_config = ConfigDict(frozen=True)

    start: Position
    end: Position

    @classmethod
    def from_points(cls, start: tuple[int, int], end: tuple[int, int]) -> "Range":
        """Build a range from ``(line, character)`` pairs.

        Tree-sitter reports ``start_point`` / ``end_point`` in exactly
        this shape.
        """
        return cls(
            start=Position(line=start[0], character=start[1]),
            end=Position(line=end[0], character=end[1]),
        )


class SymbolReference(BaseModel):
    """Identifies a callable unit handed out by a relation source.

    Attributes:
        name: Display name of the symbol (may be qualified, e.g.
            ``UserService.save``).
        kind: What sort of symbol this is.
        resource: Identity of the owning file (path or URI string).
        range: Full source range of the declaration.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Display name of the symbol.")
    kind: SymbolKind = Field(SymbolKind.FUNCTION, description="Kind of symbol.")
    resource: str = Field(..., description="Owning file path or URI.")
    range: Range = Field(..., description="Declaration range.")


class CallRelation(BaseModel):
    """One caller/callee pair returned by a relation source.

    Attributes:
        other: The symbol on the far side of the relation (the callee for
            outgoing lookups, the caller for incoming ones).
        call_sites: Ranges of the call expressions, in source order.
    """

    model_config = ConfigDict(frozen=True)

    other: SymbolReference
    call_sites: tuple[Range, ...] = Field(default_factory=tuple)

    @property
    def first_call_site(self) -> Optional[Position]:
        """Start of the earliest call site, if any were reported."""
        if not self.call_sites:
            return None
        return min((r.start for r in self.call_sites), key=Position.sort_key)


class OutlineSymbol(BaseModel):
    """A node of a file's structural outline (classes and their members)."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: SymbolKind
    range: Range
    selection_range: Range
    children: tuple["OutlineSymbol", ...] = Field(default_factory=tuple)


OutlineSymbol.model_rebuild()


@dataclass(eq=False)
class CallGraphNode:
    """One vertex of a built call graph.

    Children are shared, not copied: a node reached through several
    parents appears as the same instance in each parent's ``children``.

    Attributes:
        symbol: The symbol this vertex stands for.
        children: Callees (outgoing) or callers (incoming), in attach order.
        in_degree: Census in-degree; only set for outgoing builds that ran
            the census.
        call_site: Earliest recorded call-site position of this node.
    """

    symbol: SymbolReference
    children: list[CallGraphNode] = field(default_factory=list)
    in_degree: Optional[int] = None
    call_site: Optional[Position] = None

    @property
    def name(self) -> str:
        return self.symbol.name

    @property
    def resource(self) -> str:
        return self.symbol.resource

    def __repr__(self) -> str:
        return f"CallGraphNode({self.symbol.name!r}, children={len(self.children)})"


class ClassKind(str, enum.Enum):
    """Kinds of declarations shown in a class diagram."""

    CLASS = "class"
    INTERFACE = "interface"


@dataclass
class ClassInfo:
    """Render-time description of one class or interface.

    Attributes:
        kind: Class or interface.
        methods: Method names in discovery order.
        properties: Property names in discovery order.
        namespace: Enclosing namespace, if declared inside one.
        superclass: Name of the extended class.
        interfaces: Names of implemented interfaces.
        resource: File the declaration (or first method) came from.
        class_range: Declaration range, when an outline provided it.
        method_ranges: Method name to declaration range, from the outline.
    """

    kind: ClassKind = ClassKind.CLASS
    methods: list[str] = field(default_factory=list)
    properties: list[str] = field(default_factory=list)
    namespace: Optional[str] = None
    superclass: Optional[str] = None
    interfaces: list[str] = field(default_factory=list)
    resource: Optional[str] = None
    class_range: Optional[Range] = None
    method_ranges: dict[str, Range] = field(default_factory=dict)

    def add_method(self, name: str) -> None:
        if name not in self.methods:
            self.methods.append(name)

    def add_property(self, name: str) -> None:
        if name not in self.properties:
            self.properties.append(name)
