"""Conversation history and termination primitives.

The scheduler lives in ``agentcrew.orchestration.session`` and is imported
from there (it depends on ``agentcrew.agents``, which depends on this package).
"""

from .history import USER, ConversationHistory, Message, Role
from .termination import KeywordPredicate, TerminationState, TerminationStrategy, VerdictPredicate

__all__ = [
    "USER",
    "ConversationHistory",
    "KeywordPredicate",
    "Message",
    "Role",
    "TerminationState",
    "TerminationStrategy",
    "VerdictPredicate",
]
