"""Lexical inference of owning class and method from a symbol name.

This is a naming-convention heuristic, not type analysis.  It is kept
behind :func:`infer_class_and_method` so the class diagram renderer has a
single, side-effect-free seam to call and tests have a single function to
pin down.

Rules, in order:

1. Dotted names (``Foo.Bar.baz``): the maximal leading run of segments
   starting with an uppercase letter (all but the last segment) is the
   class; the last segment is the method.  When the first segment is not
   capitalised (``self.save``, ``repo.load``) the class comes from the
   file name instead.
2. C++-style names (``ns::Widget::render``): everything before the last
   ``::`` is the class.
3. Bare names: the class comes from the file name; a name equal to that
   class, optionally prefixed with ``new``/``New``, is a constructor.
"""

from __future__ import annotations

import pathlib
import re
from typing import Optional

# File-name separators used to split ``user_service.ts`` style names.
_FILE_NAME_SEPARATORS = re.compile(r"[_\-.]")

CONSTRUCTOR = "constructor"


def class_name_from_file(file_path: str) -> str:
    """Derive a PascalCase class name from a file's base name.

    ``user_service.ts`` becomes ``UserService`` and ``user.go`` becomes
    ``User``.  Only the first letter of each piece is upper-cased; the
    rest is kept as written.

    Args:
        file_path: Path of the file (POSIX or Windows separators).

    Returns:
        The derived class name (empty for an empty path).
    """
    stem = pathlib.PurePosixPath(file_path.replace("\\", "/")).stem
    pieces = _FILE_NAME_SEPARATORS.split(stem)
    return "".join(piece[:1].upper() + piece[1:] for piece in pieces)


def _is_class_segment(segment: str) -> bool:
    return segment[:1].isupper()


def infer_class_and_method(full_name: str, file_path: str) -> tuple[str, Optional[str]]:
    """Guess the owning class and the method name of a call-site name.

    Args:
        full_name: Symbol name as reported by the relation source.
        file_path: Path of the file declaring the symbol.

    Returns:
        ``(class_name, method_name)``.  ``method_name`` is ``None`` only
        when a dotted or ``::`` name ends in an empty segment.

    Examples::

        >>> infer_class_and_method("Foo.Bar.baz", "x.ts")
        ('Foo.Bar', 'baz')
        >>> infer_class_and_method("doWork", "user_service.ts")
        ('UserService', 'doWork')
    """
    if "." in full_name:
        parts = full_name.split(".")
        method_name = parts[-1] or None

        run: list[str] = []
        for segment in parts[:-1]:
            if not _is_class_segment(segment):
                break
            run.append(segment)

        if not run:
            return class_name_from_file(file_path), method_name
        return ".".join(run), method_name

    if "::" in full_name:
        parts = full_name.split("::")
        return "::".join(parts[:-1]), parts[-1] or None

    class_name = class_name_from_file(file_path)
    if full_name in (class_name, f"new{class_name}", f"New{class_name}"):
        return class_name, CONSTRUCTOR
    return class_name, full_name
