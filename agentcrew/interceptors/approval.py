"""Approval checker for tool execution safety, plus the interceptor that enforces it."""

from __future__ import annotations

import inspect
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

import yaml

from agentcrew.tools.invocation import ToolInvocation

from .base import InterceptDecision, InvocationInterceptor

LOGGER = logging.getLogger(__name__)

PROTECTED_BRANCHES = ("main", "master")


@dataclass(frozen=True, slots=True)
class ApprovalDecision:
    """审批决策结果"""

    needs_approval: bool
    reason: str = ""
    risk_level: str = "low"  # low, medium, high, critical


class ApprovalChecker:
    """工具执行审批检测器

    规则优先级（从高到低）：
    1. 工具自定义检查器（代码注册）
    2. 全局风险模式（跨工具，匹配参数值）
    3. 工具配置规则（approval_rules.yaml 中的 tools 段）
    4. 内置规则（写入受保护分支）
    """

    def __init__(self, config_path: Optional[Path] = None, rules: Optional[Mapping[str, Any]] = None):
        """
        Args:
            config_path: 审批规则配置文件路径（可选）
            rules: 直接传入的规则字典，优先于 config_path
        """
        self.config_path = config_path
        if rules is not None:
            self.rules: Dict[str, Any] = dict(rules)
        else:
            self.rules = self._load_config() if config_path else {}
        self.custom_checkers: Dict[str, Callable[[Mapping[str, Any]], ApprovalDecision]] = {}
        self.global_patterns = self._load_global_patterns()

    def _load_config(self) -> Dict[str, Any]:
        if not self.config_path or not Path(self.config_path).exists():
            return {}

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            LOGGER.warning(f"Failed to load approval config {self.config_path}: {e}")
            return {}

    def _load_global_patterns(self) -> Dict[str, Dict[str, Any]]:
        risk_patterns = (self.rules.get("global") or {}).get("risk_patterns", {})

        patterns_by_level: Dict[str, Dict[str, Any]] = {}
        for level, pattern_config in risk_patterns.items():
            if isinstance(pattern_config, dict):
                patterns_by_level[level] = {
                    "patterns": pattern_config.get("patterns", []),
                    "action": pattern_config.get("action", "require_approval"),
                    "reason": pattern_config.get("reason", f"Matched global {level} risk pattern"),
                }
        return patterns_by_level

    def register_checker(
        self, tool_name: str, checker: Callable[[Mapping[str, Any]], ApprovalDecision]
    ) -> None:
        """注册工具自定义审批检测函数"""
        self.custom_checkers[tool_name] = checker

    def check(self, tool_name: str, args: Mapping[str, Any]) -> ApprovalDecision:
        """检查工具调用是否需要审批

        Args:
            tool_name: 工具名称
            args: 工具参数

        Returns:
            ApprovalDecision
        """
        if tool_name in self.custom_checkers:
            return self.custom_checkers[tool_name](args)

        global_decision = self._check_global_patterns(args)
        if global_decision.needs_approval:
            return global_decision

        if tool_name in (self.rules.get("tools") or {}):
            decision = self._check_config_rules(tool_name, args)
            if decision.needs_approval:
                return decision

        return self._check_builtin_rules(tool_name, args)

    def _check_global_patterns(self, args: Mapping[str, Any]) -> ApprovalDecision:
        if not self.global_patterns:
            return ApprovalDecision(needs_approval=False)

        args_str = _flatten(args)

        for risk_level in ("critical", "high", "medium", "low"):
            pattern_config = self.global_patterns.get(risk_level)
            if not pattern_config or pattern_config["action"] != "require_approval":
                continue

            for pattern in pattern_config["patterns"]:
                if re.search(pattern, args_str, re.IGNORECASE):
                    return ApprovalDecision(
                        needs_approval=True,
                        reason=pattern_config["reason"],
                        risk_level=risk_level,
                    )

        return ApprovalDecision(needs_approval=False)

    def _check_config_rules(self, tool_name: str, args: Mapping[str, Any]) -> ApprovalDecision:
        tool_config = self.rules["tools"][tool_name] or {}

        if not tool_config.get("enabled", True):
            return ApprovalDecision(needs_approval=False)

        # always: true 表示该工具每次调用都需要审批
        if tool_config.get("always"):
            return ApprovalDecision(
                needs_approval=True,
                reason=tool_config.get("reason", f"{tool_name} always requires approval"),
                risk_level=tool_config.get("risk_level", "medium"),
            )

        args_str = _flatten(args)
        for risk_level, pattern_list in (tool_config.get("patterns") or {}).items():
            for pattern in pattern_list:
                if re.search(pattern, args_str, re.IGNORECASE):
                    action = (tool_config.get("actions") or {}).get(risk_level, "require_approval")
                    if action == "require_approval":
                        return ApprovalDecision(
                            needs_approval=True,
                            reason=f"Matched {risk_level} risk pattern: {pattern}",
                            risk_level=risk_level,
                        )

        return ApprovalDecision(needs_approval=False)

    def _check_builtin_rules(self, tool_name: str, args: Mapping[str, Any]) -> ApprovalDecision:
        # 直接写入受保护分支
        if tool_name in ("create_or_update_file", "push_files", "delete_file"):
            branch = str(args.get("branch", "")).strip()
            if branch in PROTECTED_BRANCHES:
                return ApprovalDecision(
                    needs_approval=True,
                    reason=f"Writes directly to protected branch '{branch}'",
                    risk_level="high",
                )

        return ApprovalDecision(needs_approval=False)


def _flatten(args: Mapping[str, Any]) -> str:
    return " ".join(str(v) for v in args.values())


Approver = Callable[[ToolInvocation, ApprovalDecision], Union[bool, Awaitable[bool]]]


class ApprovalInterceptor(InvocationInterceptor):
    """Blocks risky tool calls unless the approver callback accepts them.

    Without an approver every call that needs approval is aborted.
    """

    def __init__(self, checker: Optional[ApprovalChecker] = None, approver: Optional[Approver] = None):
        self.checker = checker or ApprovalChecker()
        self.approver = approver

    async def before(self, call: ToolInvocation) -> InterceptDecision:
        decision = self.checker.check(call.tool_name, call.arguments)
        if not decision.needs_approval:
            return InterceptDecision.proceed()

        LOGGER.info(
            f"Approval required for {call.tool_name} by {call.agent_id} "
            f"[{decision.risk_level}]: {decision.reason}"
        )

        if self.approver is None:
            return InterceptDecision.abort(f"Approval required but no approver configured: {decision.reason}")

        approved = self.approver(call, decision)
        if inspect.isawaitable(approved):
            approved = await approved

        if approved:
            LOGGER.info(f"Approved: {call.tool_name}")
            return InterceptDecision.proceed()

        LOGGER.info(f"Denied: {call.tool_name}")
        return InterceptDecision.abort(f"Tool execution denied by user: {decision.reason}")


__all__ = ["ApprovalDecision", "ApprovalChecker", "ApprovalInterceptor", "PROTECTED_BRANCHES"]
