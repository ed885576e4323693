"""Per-file parse results produced by the tree-sitter parsers.

These models are the raw material of
:class:`~callgraph.core.workspace.WorkspaceIndex`: the outline answers
outline-provider requests and the call sites are resolved into call
relations.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from callgraph.models.graph import OutlineSymbol, Range, SymbolReference


class CallSite(BaseModel):
    """An unresolved call expression inside a callable.

    Attributes:
        caller: The callable whose body contains the call.
        callee_name: Callee expression as written (``save``,
            ``self.repo.save``, ``api.client.get``).
        range: Range of the callee expression.
    """

    model_config = ConfigDict(frozen=True)

    caller: SymbolReference
    callee_name: str = Field(..., description="Callee expression as written.")
    range: Range

    @property
    def simple_name(self) -> str:
        """Last segment of the callee expression."""
        return self.callee_name.rsplit(".", 1)[-1]


class ParsedFile(BaseModel):
    """Everything a parser extracted from one source file.

    Attributes:
        resource: Identity of the file.
        outline: Top-level outline symbols (classes with their members,
            free functions).
        callables: Every function, method and constructor, with
            class-qualified names.
        calls: Call sites found in callable bodies, in source order.
    """

    resource: str
    outline: list[OutlineSymbol] = Field(default_factory=list)
    callables: list[SymbolReference] = Field(default_factory=list)
    calls: list[CallSite] = Field(default_factory=list)
