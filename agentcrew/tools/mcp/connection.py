"""MCP server connection over stdio."""

import logging
import os
from abc import ABC, abstractmethod
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Mapping, Optional

from agentcrew.errors import ToolInvocationError

LOGGER = logging.getLogger(__name__)


def resolve_env(env: Mapping[str, str]) -> Dict[str, str]:
    """Merge ``env`` over the process environment, expanding ``${VAR}`` references."""
    full_env = os.environ.copy()
    for key, value in env.items():
        value = str(value)
        if value.startswith("${") and value.endswith("}"):
            full_env[key] = os.environ.get(value[2:-1], "")
        else:
            full_env[key] = value
    return full_env


class MCPConnection(ABC):
    """Abstract base class for MCP server connections."""

    def __init__(self, server_id: str, command: str, args: List[str], env: Dict[str, str]):
        self.server_id = server_id
        self.command = command
        self.args = args
        self.env = env
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @abstractmethod
    async def start(self):
        """Start the server and establish connection."""

    @abstractmethod
    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> str:
        """Call a tool on the server and return its text content."""

    @abstractmethod
    async def list_tools(self) -> List[Any]:
        """List all tools provided by the server."""

    @abstractmethod
    async def close(self):
        """Close the connection and cleanup resources."""


def result_text(tool_name: str, result: Any) -> str:
    """Join text content of a ``CallToolResult``; raise if the server flagged an error."""
    text_parts = [item.text for item in (getattr(result, "content", None) or []) if hasattr(item, "text")]
    text = "\n".join(text_parts)
    if getattr(result, "isError", False):
        raise ToolInvocationError(tool_name, text or "MCP server reported an error")
    return text


class StdioMCPConnection(MCPConnection):
    """Child-process MCP server; stdio transport and ClientSession share one exit stack."""

    def __init__(self, server_id: str, command: str, args: List[str], env: Dict[str, str]):
        super().__init__(server_id, command, args, env)
        self._session = None
        self._stack: Optional[AsyncExitStack] = None

    def _require_session(self):
        if not self._initialized or self._session is None:
            raise RuntimeError(f"MCP server '{self.server_id}' is not initialized")
        return self._session

    async def start(self):
        from mcp import ClientSession, StdioServerParameters
        from mcp.client.stdio import stdio_client

        params = StdioServerParameters(command=self.command, args=self.args, env=resolve_env(self.env))
        LOGGER.debug(f"  Spawning MCP server '{self.server_id}': {self.command} {' '.join(self.args)}")

        stack = AsyncExitStack()
        try:
            read_stream, write_stream = await stack.enter_async_context(stdio_client(params))
            session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
            await session.initialize()
        except BaseException:
            await stack.aclose()
            raise

        self._stack = stack
        self._session = session
        self._initialized = True
        LOGGER.debug(f"  ✓ MCP server '{self.server_id}' ready")

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> str:
        session = self._require_session()
        LOGGER.debug(f"  {self.server_id}.{tool_name}({', '.join(arguments)})")
        return result_text(tool_name, await session.call_tool(tool_name, arguments))

    async def list_tools(self) -> List[Any]:
        listing = await self._require_session().list_tools()
        return listing.tools

    async def close(self):
        stack, self._stack = self._stack, None
        self._session = None
        self._initialized = False
        if stack is None:
            return
        try:
            await stack.aclose()
        except Exception as e:
            LOGGER.warning(f"  Error shutting down MCP server '{self.server_id}': {e}")
        else:
            LOGGER.debug(f"  ✓ MCP server '{self.server_id}' stopped")


def create_connection(
    server_id: str,
    command: str,
    args: List[str],
    env: Dict[str, str],
    mode: Optional[str] = "stdio",
) -> MCPConnection:
    """Factory function for connections; only ``stdio`` is supported."""
    if mode in (None, "stdio"):
        return StdioMCPConnection(server_id, command, args, env)
    raise ValueError(f"Unsupported connection mode: {mode}")
