"""Identity of symbol references.

Two references denote the same graph node when their name, kind,
resource and range start all match.  The range start is used instead of
the full range: a re-declaration starting at the same place is the same
callable.  No path normalisation happens here; the relation source is
responsible for handing out consistent resource strings.
"""

from __future__ import annotations

from callgraph.models.graph import SymbolReference


def node_key(ref: SymbolReference) -> str:
    """Return the string key used to deduplicate *ref*.

    Args:
        ref: Symbol to key.

    Returns:
        ``"<name>|<resource>|<line>:<character>"`` of the range start.
    """
    start = ref.range.start
    return f"{ref.name}|{ref.resource}|{start.line}:{start.character}"


def same_symbol(a: SymbolReference, b: SymbolReference) -> bool:
    """Return ``True`` if *a* and *b* denote the same callable."""
    return (
        a.name == b.name
        and a.kind == b.kind
        and a.resource == b.resource
        and a.range.start == b.range.start
    )
