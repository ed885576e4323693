"""Tree-sitter based parser for JavaScript source files.

Extracts the structural outline (classes, methods, fields, functions),
the callables and the call sites inside their bodies.
"""

from __future__ import annotations

import pathlib
from typing import Optional

import structlog
import tree_sitter_javascript as tsjavascript
from tree_sitter import Language, Node, Parser

from callgraph.models.graph import OutlineSymbol, SymbolKind, SymbolReference
from callgraph.models.source import CallSite, ParsedFile
from callgraph.parsers.base import BaseLanguageParser

logger = structlog.get_logger(__name__)

JS_LANGUAGE = Language(tsjavascript.language())

_FUNCTION_VALUES = ("arrow_function", "function_expression", "function")


class JavaScriptParser(BaseLanguageParser):
    """Extracts outlines and call sites from JavaScript files.

    Handles:

    - Function declarations and arrow-function variable declarations.
    - Class declarations with method and field definitions.
    - ``export`` wrappers around any of the above.
    - Call expressions inside function and method bodies.
    """

    def __init__(self) -> None:
        self._parser = Parser(JS_LANGUAGE)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse_file(self, file_path: pathlib.Path, source: bytes) -> ParsedFile:
        """Parse a JavaScript file.

        Args:
            file_path: Absolute path to the ``.js`` file.
            source: Raw bytes of the file.

        Returns:
            :class:`ParsedFile` with the outline, callables and calls.
        """
        tree = self._parser.parse(source)
        parsed = ParsedFile(resource=str(file_path))
        parsed.outline = self._extract_definitions(tree.root_node, parsed)
        return parsed

    # ------------------------------------------------------------------
    # Definition extraction
    # ------------------------------------------------------------------

    def _extract_definitions(self, node: Node, parsed: ParsedFile) -> list[OutlineSymbol]:
        """Walk top-level statements and extract function/class definitions.

        Args:
            node: Program or export node.
            parsed: Accumulator for callables and call sites.

        Returns:
            Outline symbols in source order.
        """
        symbols: list[OutlineSymbol] = []
        for child in node.children:
            if child.type in ("function_declaration", "generator_function_declaration"):
                symbol = self._handle_function(child, child.child_by_field_name("name"), child, parsed)
                if symbol is not None:
                    symbols.append(symbol)
            elif child.type == "class_declaration":
                symbol = self._handle_class(child, parsed)
                if symbol is not None:
                    symbols.append(symbol)
            elif child.type in ("lexical_declaration", "variable_declaration"):
                symbols.extend(self._handle_variable_declaration(child, parsed))
            elif child.type == "export_statement":
                # Recurse into export wrappers
                symbols.extend(self._extract_definitions(child, parsed))
        return symbols

    def _handle_function(
        self,
        node: Node,
        name_node: Optional[Node],
        function: Node,
        parsed: ParsedFile,
        class_name: Optional[str] = None,
    ) -> Optional[OutlineSymbol]:
        """Register one callable and collect the calls in its body.

        Args:
            node: Node spanning the whole declaration.
            name_node: Node holding the callable's name.
            function: Node whose ``body`` field holds the statements.
            parsed: Accumulator for callables and call sites.
            class_name: Enclosing class for methods.

        Returns:
            The outline symbol, or ``None`` when the callable is unnamed.
        """
        if name_node is None:
            return None
        name = self._node_text(name_node)

        if class_name is None:
            kind = SymbolKind.FUNCTION
        elif name == "constructor":
            kind = SymbolKind.CONSTRUCTOR
        else:
            kind = SymbolKind.METHOD

        reference = SymbolReference(
            name=f"{class_name}.{name}" if class_name else name,
            kind=kind,
            resource=parsed.resource,
            range=self._range(node),
        )
        parsed.callables.append(reference)

        body = function.child_by_field_name("body")
        if body is not None:
            self._extract_calls(body, reference, parsed.calls)

        return OutlineSymbol(
            name=name,
            kind=kind,
            range=reference.range,
            selection_range=self._range(name_node),
        )

    def _handle_class(self, node: Node, parsed: ParsedFile) -> Optional[OutlineSymbol]:
        """Process a ``class_declaration`` node and its members."""
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        name = self._node_text(name_node)

        members: list[OutlineSymbol] = []
        body = node.child_by_field_name("body")
        if body is not None:
            for child in body.children:
                if child.type == "method_definition":
                    member = self._handle_function(child, child.child_by_field_name("name"), child, parsed, name)
                    if member is not None:
                        members.append(member)
                elif child.type == "field_definition":
                    prop = child.child_by_field_name("property")
                    if prop is not None:
                        members.append(
                            OutlineSymbol(
                                name=self._node_text(prop),
                                kind=SymbolKind.FIELD,
                                range=self._range(child),
                                selection_range=self._range(prop),
                            )
                        )

        return OutlineSymbol(
            name=name,
            kind=SymbolKind.CLASS,
            range=self._range(node),
            selection_range=self._range(name_node),
            children=tuple(members),
        )

    def _handle_variable_declaration(self, node: Node, parsed: ParsedFile) -> list[OutlineSymbol]:
        """Detect arrow functions assigned to ``const``/``let``/``var``."""
        symbols: list[OutlineSymbol] = []
        for child in node.children:
            if child.type != "variable_declarator":
                continue
            value_node = child.child_by_field_name("value")
            if value_node is None or value_node.type not in _FUNCTION_VALUES:
                continue
            symbol = self._handle_function(child, child.child_by_field_name("name"), value_node, parsed)
            if symbol is not None:
                symbols.append(symbol)
        return symbols

    # ------------------------------------------------------------------
    # Call-site extraction
    # ------------------------------------------------------------------

    def _extract_calls(self, node: Node, caller: SymbolReference, calls: list[CallSite]) -> None:
        """Recursively find ``call_expression`` nodes and record them.

        Args:
            node: Subtree to search.
            caller: The callable whose body is being walked.
            calls: Call-site accumulator.
        """
        if node.type in ("call_expression", "new_expression"):
            field = "function" if node.type == "call_expression" else "constructor"
            func = node.child_by_field_name(field)
            callee = self._resolve_call_name(func)
            if func is not None and callee:
                calls.append(CallSite(caller=caller, callee_name=callee, range=self._range(func)))

        for child in node.children:
            self._extract_calls(child, caller, calls)

    def _resolve_call_name(self, func: Optional[Node]) -> Optional[str]:
        """Extract the callee name from a call's function node.

        ``this.repo.save`` keeps its receiver chain; computed or
        call-result receivers are reduced to the property name.
        """
        if func is None:
            return None
        if func.type == "identifier":
            return self._node_text(func)
        elif func.type == "member_expression":
            prop = self._child_text_by_field(func, "property")
            obj = func.child_by_field_name("object")
            if prop is None:
                return None
            if obj is not None and obj.type in ("identifier", "this", "member_expression"):
                return f"{self._node_text(obj)}.{prop}"
            return prop
        return None
