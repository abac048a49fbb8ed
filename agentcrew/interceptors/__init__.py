"""Invocation interceptors (middleware around tool dispatch)."""

from .approval import ApprovalChecker, ApprovalDecision, ApprovalInterceptor
from .audit import AuditInterceptor, AuditRecord
from .base import DecisionAction, InterceptDecision, InterceptorChain, InvocationInterceptor
from .truncation import ResultTruncationInterceptor

__all__ = [
    "ApprovalChecker",
    "ApprovalDecision",
    "ApprovalInterceptor",
    "AuditInterceptor",
    "AuditRecord",
    "DecisionAction",
    "InterceptDecision",
    "InterceptorChain",
    "InvocationInterceptor",
    "ResultTruncationInterceptor",
]
