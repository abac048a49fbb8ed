"""Optional persistence adapters."""

from .history_store import HistoryStore

__all__ = ["HistoryStore"]
