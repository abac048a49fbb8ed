"""MCP server lifecycle manager with lazy startup support."""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from .connection import MCPConnection, create_connection

LOGGER = logging.getLogger(__name__)

ConnectionFactory = Callable[..., MCPConnection]


class MCPServerManager:
    """
    Manages lifecycle of MCP servers.

    - Lazy startup: a server is only started on its first tool call
    - Connection reuse: one connection per server id
    - Cleanup: ``shutdown()`` closes every started server
    """

    def __init__(self, config: dict, connection_factory: Optional[ConnectionFactory] = None):
        """
        Args:
            config: MCP configuration dict loaded from mcp_servers.yaml
            connection_factory: Override for ``create_connection`` (tests)
        """
        self.config = config
        self._connection_factory = connection_factory or create_connection
        self._servers: Dict[str, MCPConnection] = {}
        self._server_configs: Dict[str, dict] = {}
        self._lock = asyncio.Lock()

        for server_id, server_cfg in (config.get("servers") or {}).items():
            if server_cfg.get("enabled", True):
                self._server_configs[server_id] = server_cfg
                LOGGER.debug(f"  Registered MCP server config: {server_id}")

    @property
    def settings(self) -> Dict[str, Any]:
        return self.config.get("settings") or {}

    async def get_server(self, server_id: str) -> MCPConnection:
        """
        Get server connection, starting it on first use.

        Raises:
            ValueError: If server not configured
            RuntimeError: If server fails to start
        """
        if server_id in self._servers:
            return self._servers[server_id]

        if server_id not in self._server_configs:
            raise ValueError(f"MCP server not configured: {server_id}")

        # 两个并发调用不能把同一个 server 启动两次
        async with self._lock:
            if server_id not in self._servers:
                LOGGER.info(f"🚀 Starting MCP server: {server_id}")
                self._servers[server_id] = await self._start_server(server_id)

        return self._servers[server_id]

    async def _start_server(self, server_id: str) -> MCPConnection:
        cfg = self._server_configs[server_id]
        mode = cfg.get("connection_mode", self.settings.get("default_connection_mode", "stdio"))

        connection = self._connection_factory(
            server_id=server_id,
            command=cfg["command"],
            args=list(cfg.get("args", [])),
            env=dict(cfg.get("env", {})),
            mode=mode,
        )

        startup_timeout = self.settings.get("startup_timeout", 30)
        try:
            await asyncio.wait_for(connection.start(), timeout=startup_timeout)
        except asyncio.TimeoutError:
            raise RuntimeError(f"MCP server startup timeout: {server_id}")
        except Exception as e:
            raise RuntimeError(f"Failed to start MCP server '{server_id}': {e}") from e

        LOGGER.info(f"  ✓ MCP server started: {server_id} (mode: {mode})")
        return connection

    async def call_tool(self, server_id: str, tool_name: str, arguments: Dict[str, Any]) -> str:
        connection = await self.get_server(server_id)
        return await connection.call_tool(tool_name, arguments)

    async def shutdown(self):
        """Shutdown all started MCP servers."""
        if not self._servers:
            return

        LOGGER.info(f"Shutting down {len(self._servers)} MCP server(s)...")

        for server_id, connection in self._servers.items():
            try:
                await connection.close()
                LOGGER.info(f"  ✓ Closed: {server_id}")
            except Exception as e:
                LOGGER.error(f"  ✗ Failed to close {server_id}: {e}")

        self._servers.clear()

    def is_server_started(self, server_id: str) -> bool:
        return server_id in self._servers

    def list_configured_servers(self) -> List[str]:
        return list(self._server_configs.keys())

    def list_started_servers(self) -> List[str]:
        return list(self._servers.keys())
