"""MCP server exposing the caller API as tools."""
