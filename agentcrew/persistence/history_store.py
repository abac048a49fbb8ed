"""Simple SQLite-based conversation history storage."""

from __future__ import annotations

import json
import os
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from agentcrew.orchestration.history import ConversationHistory


class HistoryStore:
    """SQLite store for saving and loading session histories by session id."""

    def __init__(self, db_path: str = "data/history.db"):
        """Initialize the history store.

        Args:
            db_path: Path to SQLite database file (``:memory:`` is not supported,
                every call opens its own connection)
        """
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

        self.db_path = db_path
        self._init_db()

    def _init_db(self) -> None:
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS histories (
                    session_id TEXT PRIMARY KEY,
                    messages_json TEXT NOT NULL,
                    status TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    message_count INTEGER DEFAULT 0
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def save(self, session_id: str, history: ConversationHistory, status: Optional[str] = None) -> None:
        """Save (or overwrite) the history of a session.

        Args:
            session_id: Unique session identifier
            history: The conversation history
            status: Optional session status to store alongside
        """
        messages_json = json.dumps(history.to_records(), ensure_ascii=False)
        now = datetime.now(timezone.utc).isoformat()

        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute(
                "SELECT created_at FROM histories WHERE session_id = ?",
                (session_id,),
            ).fetchone()

            if row:
                conn.execute(
                    """UPDATE histories
                       SET messages_json = ?, status = ?, updated_at = ?, message_count = ?
                       WHERE session_id = ?""",
                    (messages_json, status, now, len(history), session_id),
                )
            else:
                conn.execute(
                    """INSERT INTO histories (session_id, messages_json, status, created_at, updated_at, message_count)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (session_id, messages_json, status, now, now, len(history)),
                )
            conn.commit()
        finally:
            conn.close()

    def load(self, session_id: str) -> Optional[ConversationHistory]:
        """Load a history, or None if the session id is unknown."""
        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute(
                "SELECT messages_json FROM histories WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        return ConversationHistory.from_records(json.loads(row[0]))

    def load_status(self, session_id: str) -> Optional[str]:
        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute(
                "SELECT status FROM histories WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        finally:
            conn.close()
        return row[0] if row else None

    def list_sessions(self) -> List[Tuple[str, Optional[str], str, str, int]]:
        """List all saved sessions.

        Returns:
            List of (session_id, status, created_at, updated_at, message_count) tuples
        """
        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.execute(
                """SELECT session_id, status, created_at, updated_at, message_count
                   FROM histories
                   ORDER BY updated_at DESC"""
            )
            return cursor.fetchall()
        finally:
            conn.close()

    def delete(self, session_id: str) -> None:
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("DELETE FROM histories WHERE session_id = ?", (session_id,))
            conn.commit()
        finally:
            conn.close()
