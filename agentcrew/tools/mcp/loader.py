"""Configuration loader and tool factory for MCP integration."""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml

from agentcrew.tools.registry import Tool

from .manager import MCPServerManager

LOGGER = logging.getLogger(__name__)


def load_mcp_config(config_path: Path) -> dict:
    """
    Load MCP configuration from YAML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"MCP config not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        config = yaml.safe_load(f)

    if not config:
        return {"servers": {}, "settings": {}}

    return config


def mcp_tool(
    manager: MCPServerManager,
    server_id: str,
    name: str,
    original_name: str,
    description: str,
    parameters: Optional[Mapping[str, Any]] = None,
) -> Tool:
    """Native Tool whose invocation goes to ``original_name`` on an MCP server."""

    async def _invoke(arguments: Mapping[str, Any]) -> str:
        return await manager.call_tool(server_id, original_name, dict(arguments))

    return Tool.native(name=name, description=description, fn=_invoke, parameters=parameters)


def load_mcp_tools(config: dict, manager: MCPServerManager) -> List[Tool]:
    """
    Create tools from the ``tools`` section of each configured server.

    This does NOT start servers; they start lazily on first tool call.
    """
    tools = []
    namespace_strategy = (config.get("settings") or {}).get("namespace_strategy", "alias")

    for server_id, server_cfg in (config.get("servers") or {}).items():
        if not server_cfg.get("enabled", True):
            LOGGER.debug(f"  Skipping disabled MCP server: {server_id}")
            continue

        tools_config = server_cfg.get("tools") or {}
        if not tools_config:
            LOGGER.warning(f"  No tools configured for MCP server: {server_id}")
            continue

        for tool_name, tool_cfg in tools_config.items():
            tool_cfg = tool_cfg or {}
            if not tool_cfg.get("enabled", True):
                LOGGER.debug(f"    Skipping disabled tool: {server_id}.{tool_name}")
                continue

            final_name = _resolve_tool_name(server_id, tool_name, tool_cfg, namespace_strategy)
            description = tool_cfg.get(
                "description",
                f"MCP tool '{tool_name}' from server '{server_id}'",
            )

            tools.append(
                mcp_tool(
                    manager,
                    server_id,
                    name=final_name,
                    original_name=tool_name,
                    description=description,
                    parameters=tool_cfg.get("parameters"),
                )
            )
            LOGGER.info(f"    ✓ Loaded MCP tool: {final_name} (server: {server_id})")

    return tools


async def discover_mcp_tools(
    manager: MCPServerManager,
    server_id: str,
    include: Optional[Iterable[str]] = None,
    namespace_strategy: str = "alias",
) -> List[Tool]:
    """
    Start ``server_id`` and build tools from its live catalog.

    Args:
        manager: MCPServerManager instance
        server_id: Server identifier
        include: Only keep these original tool names (all when None)
        namespace_strategy: "prefix" or "alias"
    """
    connection = await manager.get_server(server_id)
    wanted = set(include) if include is not None else None

    tools = []
    offered = set()
    for info in await connection.list_tools():
        offered.add(info.name)
        if wanted is not None and info.name not in wanted:
            continue
        schema: Dict[str, Any] = dict(getattr(info, "inputSchema", None) or {})
        tools.append(
            mcp_tool(
                manager,
                server_id,
                name=_resolve_tool_name(server_id, info.name, {}, namespace_strategy),
                original_name=info.name,
                description=getattr(info, "description", None) or f"MCP tool '{info.name}'",
                parameters=schema,
            )
        )

    missing = (wanted or set()) - offered
    if missing:
        LOGGER.warning(f"  Tools not offered by {server_id}: {', '.join(sorted(missing))}")

    LOGGER.info(f"  Discovered {len(tools)} tool(s) on MCP server: {server_id}")
    return tools


def _resolve_tool_name(server_id: str, tool_name: str, tool_cfg: dict, namespace_strategy: str) -> str:
    """Alias from config first, then ``mcp__<server>__<tool>`` for prefix strategy, else the original name."""
    if "alias" in tool_cfg:
        return tool_cfg["alias"]

    if namespace_strategy == "prefix":
        return f"mcp__{server_id}__{tool_name}"

    return tool_name
