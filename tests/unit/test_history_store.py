"""Tests for SQLite history persistence."""

from agentcrew.orchestration.history import ConversationHistory, Message
from agentcrew.persistence import HistoryStore


def _history():
    return ConversationHistory([
        Message.user("Slogan for an electric car"),
        Message.assistant("CopyWriter", "Silence, redefined."),
        Message.tool("CopyWriter", "[]", tool_call_id="c1", tool_name="list_issues", tool_arguments={"state": "open"}),
        Message.assistant("ArtDirector", "Approved."),
    ])


def test_save_and_load(tmp_path):
    store = HistoryStore(str(tmp_path / "data" / "history.db"))
    history = _history()

    store.save("session-1", history, status="completed")
    loaded = store.load("session-1")

    assert loaded is not None
    assert loaded.messages == history.messages
    assert loaded[2].tool_arguments == {"state": "open"}
    assert store.load_status("session-1") == "completed"


def test_load_unknown_session(tmp_path):
    store = HistoryStore(str(tmp_path / "history.db"))

    assert store.load("missing") is None
    assert store.load_status("missing") is None


def test_save_overwrites_and_lists(tmp_path):
    store = HistoryStore(str(tmp_path / "history.db"))
    history = _history()

    store.save("session-1", ConversationHistory(history.messages[:2]), status="running")
    store.save("session-1", history, status="completed")
    store.save("session-2", ConversationHistory([Message.user("hi")]))

    rows = {row[0]: row for row in store.list_sessions()}
    assert set(rows) == {"session-1", "session-2"}
    assert rows["session-1"][1] == "completed"
    assert rows["session-1"][4] == 4
    assert rows["session-2"][1] is None


def test_delete(tmp_path):
    store = HistoryStore(str(tmp_path / "history.db"))
    store.save("session-1", _history())

    store.delete("session-1")

    assert store.load("session-1") is None
    assert store.list_sessions() == []
