"""Top-level package exports for agentcrew."""

from .agents import Agent, AgentBackend, BackendResponse, ChatModelBackend, GenerationRequest, ToolCallRequest
from .interceptors import AuditInterceptor, InterceptDecision, InvocationInterceptor
from .orchestration.history import ConversationHistory, Message, Role
from .orchestration.session import (
    Session,
    SessionOutcome,
    SessionStatus,
    TerminationConfig,
    run_until_complete,
    start_session,
    submit_user_message,
)
from .orchestration.termination import KeywordPredicate, TerminationStrategy, VerdictPredicate
from .runtime import build_application
from .tools import CapabilitySet, Tool, ToolRegistry, ToolResult

__all__ = [
    "Agent",
    "AgentBackend",
    "AuditInterceptor",
    "BackendResponse",
    "CapabilitySet",
    "ChatModelBackend",
    "ConversationHistory",
    "GenerationRequest",
    "InterceptDecision",
    "InvocationInterceptor",
    "KeywordPredicate",
    "Message",
    "Role",
    "Session",
    "SessionOutcome",
    "SessionStatus",
    "TerminationConfig",
    "TerminationStrategy",
    "Tool",
    "ToolCallRequest",
    "ToolRegistry",
    "ToolResult",
    "VerdictPredicate",
    "build_application",
    "run_until_complete",
    "start_session",
    "submit_user_message",
]
