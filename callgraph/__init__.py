"""CallGraph: bounded call-hierarchy graphs rendered as diagram text."""

__version__ = "0.1.0"
