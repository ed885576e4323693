"""Graph building, symbol identity, class inference and workspace scanning."""
