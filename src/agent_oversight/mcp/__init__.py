"""FastMCP server and tool definitions for agent oversight."""

from agent_oversight.mcp.server import create_server

__all__ = ["create_server"]
