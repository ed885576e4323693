"""FastAPI application exposing diagram generation over HTTP."""
