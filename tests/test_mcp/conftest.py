"""Pytest fixtures for MCP tests."""

from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from agentcrew.tools.mcp import MCPConnection


class FakeConnection(MCPConnection):
    """In-process MCP connection; records starts and calls."""

    instances: List["FakeConnection"] = []

    def __init__(self, server_id, command, args, env, mode=None):
        super().__init__(server_id, command, args, env)
        self.mode = mode
        self.calls: List[tuple] = []
        self.closed = False
        self.start_count = 0
        FakeConnection.instances.append(self)

    async def start(self):
        self.start_count += 1
        self._initialized = True

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> str:
        self.calls.append((tool_name, arguments))
        if tool_name == "add":
            return str(arguments["a"] + arguments["b"])
        return f"{tool_name}: {arguments}"

    async def list_tools(self) -> List[Any]:
        return [
            SimpleNamespace(name="get_issue", description="Get an issue",
                            inputSchema={"type": "object", "properties": {"number": {"type": "integer"}}}),
            SimpleNamespace(name="list_issues", description="List issues", inputSchema={}),
            SimpleNamespace(name="delete_repository", description=None, inputSchema=None),
        ]

    async def close(self):
        self.closed = True
        self._initialized = False


class FailingConnection(FakeConnection):
    async def start(self):
        raise OSError("command not found")


@pytest.fixture(autouse=True)
def reset_fake_connections():
    FakeConnection.instances = []
    yield
    FakeConnection.instances = []


@pytest.fixture
def fake_connection_factory():
    return FakeConnection


@pytest.fixture
def failing_connection_factory():
    return FailingConnection


@pytest.fixture
def test_mcp_config():
    """Test MCP configuration."""
    return {
        "servers": {
            "github": {
                "command": "podman",
                "args": ["run", "-i", "--rm", "ghcr.io/github/github-mcp-server"],
                "enabled": True,
                "env": {"GITHUB_PERSONAL_ACCESS_TOKEN": "${GITHUB_PERSONAL_ACCESS_TOKEN}"},
                "tools": {
                    "echo": {"enabled": True, "alias": "mcp_echo", "description": "Echo back a message"},
                    "add": {"enabled": True, "alias": "mcp_add", "description": "Add two numbers"},
                    "get_time": {"enabled": False, "alias": "mcp_time"},
                },
            },
            "disabled": {
                "command": "python",
                "args": ["server.py"],
                "enabled": False,
                "tools": {"tool1": {"enabled": True}},
            },
        },
        "settings": {
            "namespace_strategy": "alias",
            "startup_timeout": 5,
            "default_connection_mode": "stdio",
        },
    }
