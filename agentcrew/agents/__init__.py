"""Agents, their execution contexts and the tool dispatcher."""

from .agent import Agent, AgentTurn
from .backend import AgentBackend, BackendResponse, GenerationRequest, ToolCallRequest
from .chat_model import ChatModelBackend, to_langchain_messages
from .context import CancellationToken, ExecutionContext, TurnCancelled, TurnContext
from .dispatcher import MAX_DELEGATION_DEPTH, ToolDispatcher

__all__ = [
    "Agent",
    "AgentTurn",
    "AgentBackend",
    "BackendResponse",
    "GenerationRequest",
    "ToolCallRequest",
    "ChatModelBackend",
    "to_langchain_messages",
    "CancellationToken",
    "ExecutionContext",
    "TurnCancelled",
    "TurnContext",
    "ToolDispatcher",
    "MAX_DELEGATION_DEPTH",
]
