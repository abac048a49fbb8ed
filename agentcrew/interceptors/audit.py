"""Audit interceptor: logs every invocation and keeps a record of it."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from agentcrew.tools.invocation import ToolInvocation
from agentcrew.tools.registry import ToolResult

from .base import InterceptDecision, InvocationInterceptor

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    agent_id: str
    tool_name: str
    description: str
    capability_set: str
    ok: bool
    error_kind: Optional[str]
    duration_ms: float
    timestamp: datetime


class AuditInterceptor(InvocationInterceptor):
    """Logs ``Invoke: <name> - <description> - (<capability set>)`` for each call."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or LOGGER
        self.records: List[AuditRecord] = []
        # keyed by invocation identity; backends may reuse call ids
        self._started: Dict[int, float] = {}

    def before(self, call: ToolInvocation) -> InterceptDecision:
        self.logger.info(f"Invoke: {call.tool_name} - {call.description} - ({call.capability_set})")
        self._started[id(call)] = time.perf_counter()
        return InterceptDecision.proceed()

    def after(self, call: ToolInvocation, result: ToolResult) -> ToolResult:
        started = self._started.pop(id(call), None)
        elapsed = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        self.records.append(
            AuditRecord(
                agent_id=call.agent_id,
                tool_name=call.tool_name,
                description=call.description,
                capability_set=call.capability_set,
                ok=result.ok,
                error_kind=result.error_kind.value if result.error_kind else None,
                duration_ms=elapsed,
                timestamp=datetime.now(timezone.utc),
            )
        )
        if not result.ok:
            self.logger.warning(f"{call.tool_name} failed for {call.agent_id}: {result.error}")
        return result


__all__ = ["AuditInterceptor", "AuditRecord"]
