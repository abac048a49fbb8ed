"""MCP (Model Context Protocol) tool provider adapters."""

from .connection import MCPConnection, StdioMCPConnection, create_connection
from .loader import discover_mcp_tools, load_mcp_config, load_mcp_tools
from .manager import MCPServerManager

__all__ = [
    "MCPConnection",
    "StdioMCPConnection",
    "create_connection",
    "MCPServerManager",
    "load_mcp_config",
    "load_mcp_tools",
    "discover_mcp_tools",
]
