"""Tests for the tool registry, capability sets and tool results."""

import pytest

from agentcrew.errors import DuplicateToolError, UnknownTool
from agentcrew.tools.registry import (
    CapabilitySet,
    DelegatingAgent,
    Tool,
    ToolErrorKind,
    ToolRegistry,
    ToolResult,
    tool_from_langchain,
)


def _noop(args):
    return None


class TestToolRegistry:
    """注册表：只读、名称唯一"""

    def test_register_and_lookup(self, github_registry):
        assert len(github_registry) == 3
        assert "get_issue" in github_registry
        assert github_registry.get_tool("get_issue").description == "Get a GitHub issue"
        assert github_registry.list_names() == ["get_issue", "list_issues", "create_branch"]

    def test_duplicate_names_rejected(self):
        with pytest.raises(DuplicateToolError, match="get_issue"):
            ToolRegistry.register([Tool.native("get_issue", "a", _noop), Tool.native("get_issue", "b", _noop)])

    def test_unknown_tool_lookup(self, github_registry):
        with pytest.raises(UnknownTool):
            github_registry.get_tool("delete_repository")
        assert github_registry.get("delete_repository") is None

    def test_extend_returns_new_registry(self, github_registry):
        extended = github_registry.extend([Tool.for_agent("CodeWriterAgent", "Writes code")])

        assert "call_CodeWriterAgent" in extended
        assert "call_CodeWriterAgent" not in github_registry
        assert len(github_registry) == 3

    def test_extend_rejects_duplicates(self, github_registry):
        with pytest.raises(DuplicateToolError):
            github_registry.extend([Tool.native("list_issues", "again", _noop)])


class TestCapabilitySet:
    """能力集：注册表的命名子集"""

    def test_subset_keeps_order_and_name(self, github_registry):
        capabilities = github_registry.subset(["list_issues", "get_issue", "list_issues"], name="issues")

        assert capabilities.name == "issues"
        assert [t.name for t in capabilities] == ["list_issues", "get_issue"]
        assert capabilities.names == frozenset({"get_issue", "list_issues"})
        assert "get_issue" in capabilities
        assert not capabilities.contains("create_branch")

    def test_subset_reports_every_unknown_name(self, github_registry):
        with pytest.raises(UnknownTool) as exc_info:
            github_registry.subset(["get_issue", "push_files", "delete_file"])

        assert exc_info.value.names == ["delete_file", "push_files"]

    def test_empty_subset(self, github_registry):
        capabilities = github_registry.subset([], name="none")

        assert len(capabilities) == 0
        assert capabilities.describe() == []

    def test_describe_returns_function_schemas(self, github_registry):
        schemas = github_registry.subset(["get_issue", "list_issues"]).describe()

        assert schemas[0]["type"] == "function"
        assert schemas[0]["function"]["name"] == "get_issue"
        assert schemas[0]["function"]["parameters"]["properties"]["number"]["type"] == "integer"
        # Tools without parameters still advertise an empty object schema
        assert schemas[1]["function"]["parameters"] == {"type": "object", "properties": {}}

    def test_shared_registry_is_not_affected_by_subsets(self, github_registry):
        CapabilitySet("a", github_registry.list_tools()[:1])
        github_registry.subset(["create_branch"], name="b")

        assert len(github_registry) == 3


class TestDelegatingTool:
    def test_for_agent_defaults(self):
        tool = Tool.for_agent("IssueReaderAgent", "Reads issues")

        assert tool.name == "call_IssueReaderAgent"
        assert tool.is_delegating
        assert tool.implementation == DelegatingAgent("IssueReaderAgent")
        assert tool.parameters["required"] == ["task"]

    def test_for_agent_custom_name(self):
        assert Tool.for_agent("IssueReaderAgent", "Reads issues", name="read_issues").name == "read_issues"


class TestToolResult:
    def test_success_text(self):
        assert ToolResult.success("plain").as_text() == "plain"
        assert ToolResult.success(None).as_text() == ""
        assert ToolResult.success({"number": 1, "title": "问题"}).as_text() == '{"number": 1, "title": "问题"}'

    def test_failure_text(self):
        result = ToolResult.failure("boom", ToolErrorKind.TIMEOUT)

        assert not result.ok
        assert result.as_text() == "Error (timeout): boom"


@pytest.mark.asyncio
async def test_tool_from_langchain():
    from langchain_core.tools import tool as lc_tool

    @lc_tool
    def multiply(a: int, b: int) -> int:
        """Multiply two numbers."""
        return a * b

    converted = tool_from_langchain(multiply)

    assert converted.name == "multiply"
    assert converted.description == "Multiply two numbers."
    assert set(converted.parameters["properties"]) == {"a", "b"}
    assert await converted.implementation.fn({"a": 6, "b": 7}) == 42
