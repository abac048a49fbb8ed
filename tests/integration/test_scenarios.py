"""End-to-end session scenarios over scripted backends.

No network: every agent is driven by a ScriptedBackend, tools are native
functions with canned GitHub-like answers.
"""

import pytest
from fakes import ScriptedBackend, call, make_agent, tool_calls

from agentcrew.interceptors import AuditInterceptor
from agentcrew.orchestration.history import Role
from agentcrew.orchestration.session import SessionStatus, TerminationConfig, start_session
from agentcrew.persistence import HistoryStore

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_copy_review_until_art_director_approves(orchestration_settings):
    """A 先发言，A 在第三次发言时批准：5 轮后完成"""
    art = make_agent("ArtDirector", ScriptedBackend([
        "Too long. Cut the adjectives.",
        "Closer, but the rhythm is off.",
        "This is approved.",
    ]))
    copy = make_agent("CopyWriter", ScriptedBackend([
        "Electric. Effortless. Extraordinary.",
        "Silence, redefined.",
    ]))
    session = start_session(
        [art, copy],
        TerminationConfig(max_iterations=10, allowed_terminators=["ArtDirector"]),
        settings=orchestration_settings,
    )

    session.submit_user_message("Concept: a quiet electric car")
    messages = await session.run_until_complete()

    assert session.status == SessionStatus.COMPLETED
    assert session.turn_count == 5
    assert [m.author for m in messages] == ["ArtDirector", "CopyWriter", "ArtDirector", "CopyWriter", "ArtDirector"]
    assert session.outcome.reason == "terminated by ArtDirector"


@pytest.mark.asyncio
async def test_copywriter_cannot_end_the_session(orchestration_settings):
    art = make_agent("ArtDirector", ScriptedBackend(default="Not yet."))
    copy = make_agent("CopyWriter", ScriptedBackend(default="I approve of this draft myself."))
    session = start_session(
        [copy, art],
        TerminationConfig(max_iterations=4, allowed_terminators=["ArtDirector"]),
        settings=orchestration_settings,
    )

    session.submit_user_message("Slogan")
    await session.run_until_complete()

    assert session.turn_count == 4
    assert session.outcome.reason == "maximum iterations reached (4)"


@pytest.mark.asyncio
async def test_turn_count_never_exceeds_ceiling(orchestration_settings):
    agents = [make_agent(name, ScriptedBackend(default="more work")) for name in ("A", "B", "C")]
    session = start_session(agents, TerminationConfig(max_iterations=7), settings=orchestration_settings)

    session.submit_user_message("go")
    turns = []
    while not session.status.is_terminal:
        turns.append((await session.step()).turn)

    assert turns == [1, 2, 3, 4, 5, 6, 7]
    assert len(session.history) == 8


@pytest.mark.asyncio
async def test_capability_violation_is_reported_in_history(orchestration_settings, github_registry):
    """X 请求能力集之外的 create_branch：一条失败的工具消息，会话继续运行"""
    audit = AuditInterceptor()
    agent = make_agent(
        "X",
        ScriptedBackend([tool_calls(call("create_branch", branch="fix")), "I am not allowed to branch."]),
        capabilities=github_registry.subset(["get_issue", "list_issues"], name="issues"),
    )
    session = start_session([agent], TerminationConfig(max_iterations=3), interceptors=[audit],
                            settings=orchestration_settings)

    session.submit_user_message("Create a fix branch")
    outcome = await session.step()

    tool_messages = [m for m in session.history if m.role == Role.TOOL]
    assert len(tool_messages) == 1
    assert tool_messages[0].is_error
    assert "capability_violation" in tool_messages[0].content
    assert outcome.status == SessionStatus.RUNNING
    # Rejected before the interceptor chain
    assert audit.records == []


@pytest.mark.asyncio
async def test_orchestrator_delegates_and_history_persists(orchestration_settings, github_registry, tmp_path):
    from agentcrew.tools.registry import Tool

    registry = github_registry.extend([Tool.for_agent("IssueReaderAgent", "Reads GitHub issues")])
    reader = make_agent(
        "IssueReaderAgent",
        ScriptedBackend([tool_calls(call("list_issues")), "Two open issues: #1 crash, #2 typo."]),
        capabilities=registry.subset(["get_issue", "list_issues"], name="issues"),
    )
    orchestrator = make_agent(
        "GitHubOrchestrator",
        ScriptedBackend([
            tool_calls(call("call_IssueReaderAgent", task="List the open issues"), content="Asking the reader."),
            "There are two open issues.",
        ]),
        capabilities=registry.subset(["call_IssueReaderAgent"], name="orchestrator"),
    )
    session = start_session(
        [orchestrator],
        TerminationConfig(max_iterations=1, allowed_terminators=[]),
        delegates=[reader],
        settings=orchestration_settings,
        session_id="github-1",
    )

    session.submit_user_message("What is open?")
    await session.run_until_complete()

    store = HistoryStore(str(tmp_path / "history.db"))
    store.save(session.session_id, session.history, status=session.status.value)
    restored = store.load("github-1")

    assert [m.role for m in restored] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
    assert restored[2].content == "Two open issues: #1 crash, #2 typo."
    assert store.load_status("github-1") == "completed"

    # A resumed session continues on the persisted history
    resumed = start_session(
        [make_agent("GitHubOrchestrator", ScriptedBackend(["Still two."]))],
        TerminationConfig(max_iterations=1, allowed_terminators=[]),
        settings=orchestration_settings,
        session_id="github-1",
        history=restored,
    )
    resumed.submit_user_message("And now?")
    await resumed.run_until_complete()
    assert len(resumed.history) == 6
