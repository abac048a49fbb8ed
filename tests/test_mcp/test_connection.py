"""Test MCP connection helpers."""

from types import SimpleNamespace

import pytest

from agentcrew.errors import ToolInvocationError
from agentcrew.tools.mcp import StdioMCPConnection, create_connection
from agentcrew.tools.mcp.connection import resolve_env, result_text


def test_create_connection_stdio():
    connection = create_connection("github", "podman", ["run"], {}, mode="stdio")

    assert isinstance(connection, StdioMCPConnection)
    assert connection.initialized is False


def test_create_connection_default_mode():
    assert isinstance(create_connection("github", "podman", [], {}, mode=None), StdioMCPConnection)


def test_create_connection_unsupported_mode():
    with pytest.raises(ValueError, match="Unsupported connection mode: sse"):
        create_connection("github", "podman", [], {}, mode="sse")


def test_resolve_env_expands_references(monkeypatch):
    monkeypatch.setenv("GITHUB_PERSONAL_ACCESS_TOKEN", "ghp_secret")
    monkeypatch.delenv("MISSING_VAR", raising=False)

    env = resolve_env({
        "GITHUB_PERSONAL_ACCESS_TOKEN": "${GITHUB_PERSONAL_ACCESS_TOKEN}",
        "EMPTY": "${MISSING_VAR}",
        "PLAIN": "value",
    })

    assert env["GITHUB_PERSONAL_ACCESS_TOKEN"] == "ghp_secret"
    assert env["EMPTY"] == ""
    assert env["PLAIN"] == "value"


def test_result_text_joins_text_content():
    result = SimpleNamespace(
        content=[SimpleNamespace(text="line 1"), SimpleNamespace(data=b"img"), SimpleNamespace(text="line 2")],
        isError=False,
    )

    assert result_text("get_issue", result) == "line 1\nline 2"


def test_result_text_raises_on_error_flag():
    result = SimpleNamespace(content=[SimpleNamespace(text="Not Found")], isError=True)

    with pytest.raises(ToolInvocationError, match="Tool 'get_issue' failed: Not Found"):
        result_text("get_issue", result)


@pytest.mark.asyncio
async def test_call_before_start_fails():
    connection = create_connection("github", "podman", [], {})

    with pytest.raises(RuntimeError, match="not initialized"):
        await connection.call_tool("get_issue", {})
