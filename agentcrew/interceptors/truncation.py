"""
工具结果截断器

防止单个工具（例如 get_file_contents）返回的大段文本撑爆共享历史。
"""

from __future__ import annotations

import logging

from agentcrew.tools.invocation import ToolInvocation
from agentcrew.tools.registry import ToolResult

from .base import InvocationInterceptor

LOGGER = logging.getLogger(__name__)


class ResultTruncationInterceptor(InvocationInterceptor):
    """截断过长的成功结果（失败结果保持原样）"""

    def __init__(self, max_chars: int = 8000):
        if max_chars <= 0:
            raise ValueError("max_chars must be positive")
        self.max_chars = max_chars

    def after(self, call: ToolInvocation, result: ToolResult) -> ToolResult:
        if not result.ok:
            return result

        text = result.as_text()
        if len(text) <= self.max_chars:
            return result

        dropped = len(text) - self.max_chars
        LOGGER.warning(f"Truncated {call.tool_name} result: {len(text)} → {self.max_chars} chars")
        return ToolResult.success(f"{text[: self.max_chars]}\n... (truncated {dropped} chars)")


__all__ = ["ResultTruncationInterceptor"]
