"""Mermaid ``classDiagram`` renderer.

Classes come from two places:

1. The call graph.  Each node is mapped to an owning class with
   :func:`~callgraph.core.inference.infer_class_and_method`; a call
   between two different classes becomes a ``uses`` dependency and marks
   the callee method as called.  A class only lists the methods that some
   other class in the graph actually calls.
2. Declarations found by the structural scan, passed in as ``declared``.
   They are added when the call graph did not already produce a class of
   the same name, and contribute inheritance and implementation lines.
"""

from __future__ import annotations

import re
from typing import Mapping, Optional

from callgraph.core.inference import infer_class_and_method
from callgraph.models.graph import CallGraphNode, ClassInfo, ClassKind
from callgraph.renderers.base import BaseRenderer

_PLAIN_NAME = re.compile(r"^[A-Za-z0-9_]+$")


def class_id(name: str) -> str:
    """Return *name* as a Mermaid class identifier.

    Names with characters Mermaid does not accept in a bare identifier
    (``.``, ``::``, ``$``, ...) are wrapped in backticks.
    """
    if _PLAIN_NAME.match(name):
        return name
    return f"`{name}`"


class ClassDiagramRenderer(BaseRenderer):
    """Renders a call graph, plus scanned declarations, as a class diagram."""

    format_name = "class"

    def render(
        self,
        root: CallGraphNode,
        declared: Optional[Mapping[str, ClassInfo]] = None,
    ) -> str:
        """Render *root* as a ``classDiagram`` document.

        Args:
            root: Built call graph.
            declared: Classes found by the structural scan, keyed by
                qualified name.

        Returns:
            Mermaid class diagram text.
        """
        classes: dict[str, ClassInfo] = {}
        called: dict[str, set[str]] = {}
        relationships: list[str] = []

        def owner(node: CallGraphNode) -> tuple[str, Optional[str]]:
            return infer_class_and_method(node.name, self._relative_path(node.resource))

        for node in self._walk(root):
            class_name, method_name = owner(node)
            if not class_name:
                continue
            info = classes.get(class_name)
            if info is None:
                info = ClassInfo(kind=ClassKind.CLASS, resource=node.resource)
                classes[class_name] = info
            if method_name:
                info.add_method(method_name)

            for child in node.children:
                caller, callee = self._caller_callee(node, child)
                caller_class, _ = owner(caller)
                callee_class, callee_method = owner(callee)
                if not caller_class or not callee_class or caller_class == callee_class:
                    continue
                relationship = f"{class_id(caller_class)} ..> {class_id(callee_class)} : uses"
                if relationship not in relationships:
                    relationships.append(relationship)
                if callee_method:
                    called.setdefault(callee_class, set()).add(callee_method)

        lines = ["classDiagram"]
        for class_name, info in classes.items():
            invoked = called.get(class_name, set())
            info.methods = [m for m in info.methods if m in invoked]
            lines.extend(self._class_block(class_name, info))

        inheritance: list[str] = []
        for class_name, info in (declared or {}).items():
            if class_name not in classes:
                lines.extend(self._class_block(class_name, info))
            if info.superclass:
                inheritance.append(f"{class_id(info.superclass)} <|-- {class_id(class_name)}")
            for interface in info.interfaces:
                inheritance.append(f"{class_id(interface)} <|.. {class_id(class_name)}")

        lines.extend(f"    {line}" for line in relationships)
        lines.extend(f"    {line}" for line in inheritance)

        self._logger.debug(
            "class_diagram_rendered",
            classes=len(classes),
            declared=len(declared or {}),
            relationships=len(relationships) + len(inheritance),
        )
        return "\n".join(lines) + "\n"

    @staticmethod
    def _class_block(class_name: str, info: ClassInfo) -> list[str]:
        block = [f"    class {class_id(class_name)} {{"]
        if info.kind is ClassKind.INTERFACE:
            block.append("        <<interface>>")
        block.extend(f"        +{method}()" for method in info.methods)
        block.extend(f"        +{prop}" for prop in info.properties)
        block.append("    }")
        return block
