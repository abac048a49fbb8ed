"""Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and ensures proper test environment setup.
"""

import sys
from pathlib import Path

import pytest

# Ensure project root (and this directory, for ``fakes``) are importable
project_root = Path(__file__).parent.parent
tests_root = Path(__file__).parent
for path in (project_root, tests_root):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from agentcrew.config import OrchestrationSettings  # noqa: E402
from agentcrew.tools.registry import Tool, ToolRegistry  # noqa: E402


@pytest.fixture
def orchestration_settings():
    """Deterministic orchestration settings (independent of .env)."""
    return OrchestrationSettings(
        max_iterations=10,
        approval_token="approve",
        max_tool_rounds=10,
        tool_timeout=None,
        max_delegation_depth=5,
    )


@pytest.fixture
def github_registry():
    """Registry with the GitHub tools used across scenarios."""

    def _issue(args):
        return {"number": args.get("number", 1), "title": "Crash on start"}

    def _list(args):
        return [{"number": 1, "title": "Crash on start"}, {"number": 2, "title": "Typo"}]

    def _branch(args):
        return f"created branch {args.get('branch', 'feature')}"

    return ToolRegistry.register([
        Tool.native("get_issue", "Get a GitHub issue", _issue,
                    {"type": "object", "properties": {"number": {"type": "integer"}}}),
        Tool.native("list_issues", "List GitHub issues", _list),
        Tool.native("create_branch", "Create a branch", _branch,
                    {"type": "object", "properties": {"branch": {"type": "string"}}}),
    ])
