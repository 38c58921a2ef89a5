"""MCP stdio server exposing the document store and sync operations."""
