"""Runtime assembly: crew config + tool provider + model backends → sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from agentcrew.agents.agent import Agent
from agentcrew.agents.backend import AgentBackend
from agentcrew.config import Settings, get_settings
from agentcrew.interceptors import (
    ApprovalChecker,
    ApprovalInterceptor,
    AuditInterceptor,
    InvocationInterceptor,
    ResultTruncationInterceptor,
)
from agentcrew.interceptors.approval import Approver
from agentcrew.orchestration.history import ConversationHistory
from agentcrew.orchestration.selection import RoundRobinSelection, RouterSelection, SelectionStrategy
from agentcrew.orchestration.session import Session, TerminationConfig, start_session
from agentcrew.orchestration.termination import KeywordPredicate, VerdictPredicate
from agentcrew.tools.mcp import MCPServerManager, discover_mcp_tools, load_mcp_config, load_mcp_tools
from agentcrew.tools.registry import Tool, ToolRegistry

from .crew_config import CrewConfig, InterceptorSection, load_crew_config
from .model_resolver import build_backend_factory

LOGGER = logging.getLogger(__name__)

BackendFactory = Callable[[Optional[str]], AgentBackend]


def _resolve_path(path: str, base_dir: Optional[Path]) -> Path:
    candidate = Path(path)
    if not candidate.is_absolute() and base_dir is not None:
        candidate = base_dir / candidate
    return candidate


def build_interceptors(
    section: InterceptorSection,
    approver: Optional[Approver] = None,
    base_dir: Optional[Path] = None,
) -> List[InvocationInterceptor]:
    """Audit first (outermost), then approval, then result truncation."""
    interceptors: List[InvocationInterceptor] = []
    if section.audit:
        interceptors.append(AuditInterceptor())
    if section.approval_rules:
        checker = ApprovalChecker(_resolve_path(section.approval_rules, base_dir))
        interceptors.append(ApprovalInterceptor(checker, approver))
    if section.max_result_chars:
        interceptors.append(ResultTruncationInterceptor(section.max_result_chars))
    return interceptors


def build_session(
    crew: CrewConfig,
    registry: ToolRegistry,
    backend_factory: BackendFactory,
    *,
    settings: Optional[Settings] = None,
    interceptors: Optional[Iterable[InvocationInterceptor]] = None,
    approver: Optional[Approver] = None,
    base_dir: Optional[Path] = None,
    session_id: Optional[str] = None,
    history: Optional[ConversationHistory] = None,
) -> Session:
    """Build a fresh session from a crew definition.

    Raises:
        UnknownTool: An agent lists tool names absent from the registry
    """
    settings = settings or get_settings()
    orchestration = settings.orchestration

    delegation_tools = [
        Tool.for_agent(cfg.id, cfg.description or f"Delegate a task to {cfg.id}", name=cfg.tool_name)
        for cfg in crew.agents
        if cfg.expose_as_tool
    ]
    registry = registry.extend(delegation_tools)

    agents = {}
    for cfg in crew.agents:
        capabilities = registry.subset(cfg.tools, name=cfg.capability_set_name)
        agents[cfg.id] = Agent.create(
            agent_id=cfg.id,
            instructions=cfg.instructions,
            backend=backend_factory(cfg.model),
            capabilities=capabilities,
            description=cfg.description,
            max_tool_rounds=cfg.max_tool_rounds or orchestration.max_tool_rounds,
            name=cfg.name,
        )
        LOGGER.debug(f"  Agent {cfg.id}: {sorted(capabilities.names)}")

    section = crew.termination
    token = section.approval_token or orchestration.approval_token
    termination = TerminationConfig(
        max_iterations=section.max_iterations or orchestration.max_iterations,
        allowed_terminators=section.allowed_terminators,
        approval_token=token,
        predicate=VerdictPredicate((token, f"{token}d")) if section.mode == "verdict" else KeywordPredicate(token),
    )

    selection: SelectionStrategy
    if crew.selection.policy == "router":
        kwargs = {"default_agent_id": crew.selection.default_agent}
        if crew.selection.instructions:
            kwargs["instructions"] = crew.selection.instructions
        selection = RouterSelection(backend_factory(crew.selection.model), **kwargs)
    else:
        selection = RoundRobinSelection()

    if interceptors is None:
        interceptors = build_interceptors(crew.interceptors, approver, base_dir)

    return start_session(
        [agents[cfg.id] for cfg in crew.participants],
        termination,
        selection=selection,
        interceptors=interceptors,
        delegates=[agents[cfg.id] for cfg in crew.delegates],
        settings=orchestration,
        session_id=session_id,
        history=history,
        result_preview_length=settings.observability.log_result_max_length,
    )


@dataclass
class Application:
    """Long-lived pieces shared by every session of a crew."""

    crew: CrewConfig
    registry: ToolRegistry
    backend_factory: BackendFactory
    settings: Settings
    base_dir: Optional[Path] = None
    mcp_manager: Optional[MCPServerManager] = None
    approver: Optional[Approver] = None

    def new_session(
        self,
        session_id: Optional[str] = None,
        history: Optional[ConversationHistory] = None,
    ) -> Session:
        return build_session(
            self.crew,
            self.registry,
            self.backend_factory,
            settings=self.settings,
            approver=self.approver,
            base_dir=self.base_dir,
            session_id=session_id,
            history=history,
        )

    async def close(self) -> None:
        if self.mcp_manager is not None:
            await self.mcp_manager.shutdown()


async def build_application(
    crew_path: Path,
    mcp_config_path: Optional[Path] = None,
    *,
    settings: Optional[Settings] = None,
    backend_factory: Optional[BackendFactory] = None,
    approver: Optional[Approver] = None,
    extra_tools: Iterable[Tool] = (),
) -> Application:
    """Load the crew, collect tools (static + MCP) and prepare backends."""
    settings = settings or get_settings()
    crew_path = Path(crew_path)
    crew = load_crew_config(crew_path)

    tools: List[Tool] = list(extra_tools)
    manager: Optional[MCPServerManager] = None

    if mcp_config_path:
        mcp_config = load_mcp_config(Path(mcp_config_path))
        manager = MCPServerManager(mcp_config)
        tools.extend(load_mcp_tools(mcp_config, manager))

        namespace_strategy = (mcp_config.get("settings") or {}).get("namespace_strategy", "alias")
        for server_id, server_cfg in (mcp_config.get("servers") or {}).items():
            if server_cfg.get("enabled", True) and server_cfg.get("discover", False):
                tools.extend(
                    await discover_mcp_tools(
                        manager,
                        server_id,
                        include=server_cfg.get("include"),
                        namespace_strategy=namespace_strategy,
                    )
                )

    registry = ToolRegistry.register(tools)
    LOGGER.info(f"Tool registry ready: {len(registry)} tool(s)")

    return Application(
        crew=crew,
        registry=registry,
        backend_factory=backend_factory or build_backend_factory(settings.models),
        settings=settings,
        base_dir=crew_path.parent,
        mcp_manager=manager,
        approver=approver,
    )


__all__ = ["Application", "build_application", "build_interceptors", "build_session"]
