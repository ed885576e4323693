"""Tree-sitter based parser for Python source files.

Extracts the structural outline (classes, methods, functions, fields),
the callables and the call sites inside their bodies.
"""

from __future__ import annotations

import pathlib
from typing import Optional

import structlog
import tree_sitter_python as tspython
from tree_sitter import Language, Node, Parser

from callgraph.models.graph import OutlineSymbol, SymbolKind, SymbolReference
from callgraph.models.source import CallSite, ParsedFile
from callgraph.parsers.base import BaseLanguageParser

logger = structlog.get_logger(__name__)

PY_LANGUAGE = Language(tspython.language())

_CONSTRUCTOR_NAME = "__init__"


class PythonParser(BaseLanguageParser):
    """Extracts outlines and call sites from Python source files.

    Uses the ``tree-sitter-python`` grammar to build a concrete syntax
    tree, then walks it to collect:

    - **Outline**: classes with their methods, class-level fields and the
      ``self.<name>`` attributes assigned in ``__init__``; free functions.
    - **Callables**: functions and methods, named ``Class.method`` inside
      classes.
    - **Calls**: every ``call`` expression inside a callable body.
    """

    def __init__(self) -> None:
        self._parser = Parser(PY_LANGUAGE)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse_file(self, file_path: pathlib.Path, source: bytes) -> ParsedFile:
        """Parse a Python file.

        Args:
            file_path: Absolute path to the ``.py`` file.
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

    def _extract_definitions(
        self,
        node: Node,
        parsed: ParsedFile,
        scope_prefix: str = "",
        in_class: bool = False,
    ) -> list[OutlineSymbol]:
        """Extract class and function definitions directly under *node*.

        Args:
            node: Module or class body node.
            parsed: Accumulator for callables and call sites.
            scope_prefix: Dot-separated scope for nested entities.
            in_class: Whether *node* is a class body.

        Returns:
            Outline symbols for the definitions found, in source order.
        """
        symbols: list[OutlineSymbol] = []
        for child in node.children:
            definition = child
            if child.type == "decorated_definition":
                # The actual definition is the last child of the decorator wrapper.
                definition = child.child_by_field_name("definition") or child.children[-1]

            symbol: Optional[OutlineSymbol] = None
            if definition.type == "class_definition":
                symbol = self._handle_class(definition, parsed, scope_prefix)
            elif definition.type == "function_definition":
                symbol = self._handle_function(definition, parsed, scope_prefix, in_class)
            elif in_class and definition.type == "expression_statement":
                symbols.extend(self._class_fields(definition))

            if symbol is not None:
                symbols.append(symbol)
        return symbols

    def _handle_class(self, node: Node, parsed: ParsedFile, scope_prefix: str) -> Optional[OutlineSymbol]:
        """Process a single class definition node.

        Args:
            node: The ``class_definition`` tree-sitter node.
            parsed: Accumulator for callables and call sites.
            scope_prefix: Current scope prefix.

        Returns:
            The class outline symbol, or ``None`` for an anonymous node.
        """
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        name = self._node_text(name_node)
        qualified = f"{scope_prefix}{name}"

        members: list[OutlineSymbol] = []
        body = node.child_by_field_name("body")
        if body is not None:
            members = self._extract_definitions(body, parsed, scope_prefix=f"{qualified}.", in_class=True)
            members.extend(self._instance_attributes(body, {m.name for m in members}))

        return OutlineSymbol(
            name=name,
            kind=SymbolKind.CLASS,
            range=self._range(node),
            selection_range=self._range(name_node),
            children=tuple(members),
        )

    def _handle_function(
        self,
        node: Node,
        parsed: ParsedFile,
        scope_prefix: str,
        in_class: bool,
    ) -> Optional[OutlineSymbol]:
        """Process a single function definition node.

        Args:
            node: The ``function_definition`` tree-sitter node.
            parsed: Accumulator for callables and call sites.
            scope_prefix: Current scope prefix.
            in_class: Whether the function is a method.

        Returns:
            The function outline symbol, or ``None`` for an anonymous node.
        """
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None
        name = self._node_text(name_node)

        if not in_class:
            kind = SymbolKind.FUNCTION
        elif name == _CONSTRUCTOR_NAME:
            kind = SymbolKind.CONSTRUCTOR
        else:
            kind = SymbolKind.METHOD

        reference = SymbolReference(
            name=f"{scope_prefix}{name}",
            kind=kind,
            resource=parsed.resource,
            range=self._range(node),
        )
        parsed.callables.append(reference)

        body = node.child_by_field_name("body")
        if body is not None:
            self._extract_calls(body, reference, parsed.calls)

        return OutlineSymbol(
            name=name,
            kind=kind,
            range=reference.range,
            selection_range=self._range(name_node),
        )

    def _class_fields(self, statement: Node) -> list[OutlineSymbol]:
        """Turn ``name = value`` / ``name: type`` statements into fields."""
        fields: list[OutlineSymbol] = []
        for expr in statement.children:
            if expr.type != "assignment":
                continue
            left = expr.child_by_field_name("left")
            if left is None or left.type != "identifier":
                continue
            fields.append(
                OutlineSymbol(
                    name=self._node_text(left),
                    kind=SymbolKind.FIELD,
                    range=self._range(statement),
                    selection_range=self._range(left),
                )
            )
        return fields

    def _instance_attributes(self, body: Node, known: set[str]) -> list[OutlineSymbol]:
        """Collect ``self.<name> = ...`` assignments made in ``__init__``.

        Args:
            body: Class body node.
            known: Member names already in the outline.

        Returns:
            Property outline symbols, first assignment wins.
        """
        init = None
        for child in body.children:
            definition = child
            if child.type == "decorated_definition":
                definition = child.child_by_field_name("definition") or child.children[-1]
            if definition.type == "function_definition" and self._child_text_by_field(definition, "name") == _CONSTRUCTOR_NAME:
                init = definition
                break
        if init is None:
            return []

        properties: list[OutlineSymbol] = []
        seen = set(known)
        stack = [init.child_by_field_name("body")]
        while stack:
            node = stack.pop()
            if node is None:
                continue
            if node.type == "assignment":
                left = node.child_by_field_name("left")
                if left is not None and left.type == "attribute":
                    owner = self._child_text_by_field(left, "object")
                    attr = left.child_by_field_name("attribute")
                    if owner == "self" and attr is not None:
                        name = self._node_text(attr)
                        if name not in seen:
                            seen.add(name)
                            properties.append(
                                OutlineSymbol(
                                    name=name,
                                    kind=SymbolKind.PROPERTY,
                                    range=self._range(node),
                                    selection_range=self._range(attr),
                                )
                            )
            # Nested defs assign to their own ``self``.
            if node.type in ("function_definition", "class_definition", "lambda"):
                continue
            stack.extend(reversed(node.children))
        properties.sort(key=lambda s: s.range.start.sort_key())
        return properties

    # ------------------------------------------------------------------
    # Call-site extraction
    # ------------------------------------------------------------------

    def _extract_calls(self, node: Node, caller: SymbolReference, calls: list[CallSite]) -> None:
        """Walk *node* and record every function/method call.

        Args:
            node: Subtree to search for ``call`` nodes.
            caller: The callable whose body is being walked.
            calls: Call-site accumulator.
        """
        if node.type == "call":
            func = node.child_by_field_name("function")
            callee_name = self._resolve_call_name(func)
            if func is not None and callee_name:
                calls.append(CallSite(caller=caller, callee_name=callee_name, range=self._range(func)))

        for child in node.children:
            self._extract_calls(child, caller, calls)

    def _resolve_call_name(self, func: Optional[Node]) -> Optional[str]:
        """Extract the callee name from the ``function`` child of a call.

        Handles simple calls (``foo()``) and attribute calls
        (``obj.method()``).
        """
        if func is None:
            return None
        if func.type == "identifier":
            return self._node_text(func)
        elif func.type == "attribute":
            attr = self._child_text_by_field(func, "attribute")
            obj = func.child_by_field_name("object")
            if attr is None:
                return None
            if obj is not None and obj.type in ("identifier", "attribute"):
                return f"{self._node_text(obj)}.{attr}"
            # ``super().save()`` and friends: keep only the attribute.
            return attr
        return None
